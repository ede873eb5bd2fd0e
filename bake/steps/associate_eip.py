"""Bind the public address to the build instance."""

from __future__ import annotations

from bake.base.exceptions import CloudbakeError
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class AssociateEIP(Step):
    """Associate ``access_eip`` with the first port of the instance.

    The association goes away with the instance, so there is no cleanup.
    """

    def run(self, state: BuildState) -> StepAction:
        eip = state.access_eip
        if not eip.handle.id:
            return StepAction.CONTINUE

        ui = state.ui
        ui.say(f"Associating public IP '{eip.handle.id}' ({eip.address}) with instance port...")
        try:
            interfaces = state.compute.list_interfaces(state.server_id)
        except CloudbakeError as e:
            return self.halt(state, CloudbakeError(f"Error getting interfaces of the instance: {e}"))
        if not interfaces:
            return self.halt(
                state, CloudbakeError(f"instance {state.server_id} has no network interface")
            )

        port_id = interfaces[0]["port_id"]
        try:
            state.network.associate_address(eip.handle.id, state.server_id, port_id)
        except CloudbakeError as e:
            return self.halt(
                state,
                CloudbakeError(
                    f"Error associating public IP '{eip.handle.id}' ({eip.address}) "
                    f"with port '{port_id}': {e}"
                ),
            )

        ui.message(f"Added public IP '{eip.handle.id}' ({eip.address}) to instance!")
        return StepAction.CONTINUE

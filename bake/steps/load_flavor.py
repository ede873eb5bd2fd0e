"""Verify the flavor of the build instance."""

from __future__ import annotations

from bake.base.exceptions import ComputeError
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class LoadFlavor(Step):
    """Requires ``availability_zone``; produces ``flavor_id``."""

    def __init__(self, flavor: str) -> None:
        self.flavor = flavor

    def run(self, state: BuildState) -> StepAction:
        state.ui.say(f"Loading flavor: {self.flavor}")
        try:
            flavor = state.compute.get_flavor(self.flavor, zone=state.availability_zone)
        except ComputeError as e:
            return self.halt(state, e)

        state.ui.message(
            f"Verified flavor ID: {flavor['flavor_id']} "
            f"({flavor.get('vcpus', '?')} vCPUs, {flavor.get('memory_mb', '?')} MiB)"
        )
        state.flavor_id = flavor["flavor_id"]
        return StepAction.CONTINUE

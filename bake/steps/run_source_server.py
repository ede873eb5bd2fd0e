"""Launch and terminate the temporary build instance."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from bake.base.exceptions import CloudbakeError, InstanceNotFoundError, WaitError
from bake.engine.refresh import instance_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState, ResourceHandle, ResourceKind
from bake.pipeline.step import Step, StepAction

DELETE_PENDING = ["ACTIVE", "BUILD", "SHUTOFF", "DELETING", "ERROR"]


class RunSourceServer(Step):
    """Launch the build instance and wait for it to become ``ACTIVE``.

    Requires ``flavor_id``, ``source_image``, ``availability_zone``,
    ``subnet_ids`` and optionally ``keypair`` / ``boot_volume``.  Produces
    ``server`` and ``server_info``.  The handle is recorded as soon as the
    launch call returns, so a server that fails to boot is still deleted.
    """

    def __init__(
        self,
        name: str,
        *,
        security_groups: list[str] | None = None,
        user_data: str = "",
        user_data_file: str = "",
        instance_metadata: dict[str, str] | None = None,
        root_volume_type: str = "",
        root_volume_size: int = 0,
        timeout: float = 1800.0,
        delete_timeout: float = 600.0,
        min_timeout: float = 0.0,
    ) -> None:
        self.instance_name = name
        self.security_groups = list(security_groups or [])
        self.user_data = user_data
        self.user_data_file = user_data_file
        self.instance_metadata = dict(instance_metadata or {})
        self.root_volume_type = root_volume_type
        self.root_volume_size = root_volume_size
        self.timeout = timeout
        self.delete_timeout = delete_timeout
        self.min_timeout = min_timeout

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui

        user_data = self.user_data.encode()
        if self.user_data_file:
            try:
                user_data = Path(self.user_data_file).read_bytes()
            except OSError as e:
                return self.halt(state, CloudbakeError(f"Error reading user data file: {e}"))

        options: dict[str, Any] = {
            "zone": state.availability_zone,
            "subnet_ids": list(state.subnet_ids),
            "security_groups": self.security_groups,
            "metadata": self.instance_metadata,
        }
        if user_data:
            options["user_data"] = user_data
        if state.keypair.is_live:
            options["keypair_name"] = state.keypair.id
            options["ssh_username"] = state.config.communicator.ssh_username
        if state.boot_volume.is_live:
            options["boot_volume_id"] = state.boot_volume.id
        else:
            if self.root_volume_type:
                options["root_volume_type"] = self.root_volume_type
            if self.root_volume_size:
                options["root_volume_size"] = self.root_volume_size

        ui.say(f"Launching server in az:{state.availability_zone} ...")
        try:
            server_id = state.compute.create_instance(
                self.instance_name, state.flavor_id, state.source_image, **options
            )
        except CloudbakeError as e:
            return self.halt(state, CloudbakeError(f"Error launching source server: {e}"))

        state.server = ResourceHandle(ResourceKind.SERVER, server_id)
        ui.message(f"Server ID: {server_id}")

        ui.say("Waiting for server to become ready...")
        conf = StateChangeConf(
            refresh=instance_state_refresh(state.compute, server_id),
            pending=["BUILD"],
            target=["ACTIVE"],
            timeout=self.timeout,
            min_timeout=self.min_timeout,
            **state.wait_options(),
        )
        try:
            state.server_info = conf.wait_for_state()
        except WaitError as e:
            return self.halt(
                state,
                CloudbakeError(f"Error waiting for server ({server_id}) to become ready: {e}"),
            )
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        handle = state.server
        if not handle.is_live:
            return

        ui = state.ui
        ui.say(f"Terminating the source server: {handle.id} ...")
        try:
            state.compute.delete_instance(handle.id)
        except InstanceNotFoundError:
            handle.release()
            return
        except CloudbakeError as e:
            ui.error(f"Error terminating server, may still be around: {e}")
            return

        conf = StateChangeConf(
            refresh=instance_state_refresh(state.compute, handle.id, fail_on_error=False),
            pending=DELETE_PENDING,
            timeout=self.delete_timeout,
            min_timeout=self.min_timeout,
            **state.wait_options(cancel=None),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            ui.error(f"Error waiting for server ({handle.id}) to be deleted: {e}")
            return
        handle.release()

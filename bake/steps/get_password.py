"""Administrator password of Windows build instances."""

from __future__ import annotations

from bake.base import keys
from bake.base.exceptions import CloudbakeError, WaitError
from bake.engine.refresh import password_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class GetPassword(Step):
    """Wait for the cloud-generated password and decrypt it with the build key.

    Only runs for the ``winrm`` communicator when no password is configured.
    Requires ``server`` and ``private_key``; produces ``password``.
    """

    def __init__(
        self,
        *,
        timeout: float = 600.0,
        delay: float = 30.0,
        poll_interval: float = 10.0,
    ) -> None:
        self.timeout = timeout
        self.delay = delay
        self.poll_interval = poll_interval

    def run(self, state: BuildState) -> StepAction:
        comm = state.config.communicator
        if comm.type != "winrm" or comm.winrm_password:
            return StepAction.CONTINUE

        ui = state.ui
        ui.say("Waiting for password since WinRM password is not specified...")
        conf = StateChangeConf(
            refresh=password_refresh(state.compute, state.server_id),
            pending=["PENDING"],
            target=["SUCCESS"],
            timeout=self.timeout,
            delay=self.delay,
            poll_interval=self.poll_interval,
            **state.wait_options(),
        )
        try:
            encrypted = conf.wait_for_state()
        except WaitError as e:
            return self.halt(state, CloudbakeError(f"Error waiting for password: {e}"))

        try:
            password = keys.decrypt_password(encrypted, state.private_key)
        except ValueError as e:
            return self.halt(state, CloudbakeError(f"Error decrypting password: {e}"))

        state.password = password
        comm.winrm_password = password
        ui.message("Password retrieved!")
        return StepAction.CONTINUE

"""Shut the instance down before it is captured."""

from __future__ import annotations

from bake.engine.refresh import instance_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction, StepPolicy


class StopServer(Step):
    """Stop the build instance and wait for ``SHUTOFF``.

    A failure only produces a warning: capture of a running instance still
    works on every supported cloud.
    """

    policy = StepPolicy.BEST_EFFORT

    def __init__(
        self,
        *,
        timeout: float = 180.0,
        delay: float = 5.0,
        poll_interval: float = 5.0,
    ) -> None:
        self.timeout = timeout
        self.delay = delay
        self.poll_interval = poll_interval

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        ui.say(f"Stopping server: {state.server_id} ...")
        state.compute.stop_instance(state.server_id)

        ui.message("Waiting for server to stop...")
        conf = StateChangeConf(
            refresh=instance_state_refresh(state.compute, state.server_id),
            pending=["ACTIVE"],
            target=["SHUTOFF"],
            timeout=self.timeout,
            delay=self.delay,
            poll_interval=self.poll_interval,
            **state.wait_options(),
        )
        state.server_info = conf.wait_for_state()
        return StepAction.CONTINUE

"""Run the provisioning hooks against the live instance."""

from __future__ import annotations

from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class Provision(Step):
    """Call every hook in ``state.hooks`` in order.

    A hook that raises halts the build through the runner's failure policy.
    """

    def run(self, state: BuildState) -> StepAction:
        if not state.hooks:
            state.ui.say("No provisioners configured")
            return StepAction.CONTINUE

        for index, hook in enumerate(state.hooks, start=1):
            name = getattr(hook, "__name__", type(hook).__name__)
            state.ui.say(f"Running provisioner {index}/{len(state.hooks)}: {name}")
            hook(state)
        return StepAction.CONTINUE

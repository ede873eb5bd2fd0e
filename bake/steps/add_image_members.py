"""Share the captured images with other projects."""

from __future__ import annotations

from bake.base.exceptions import CloudbakeError
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction, StepPolicy


class AddImageMembers(Step):
    policy = StepPolicy.BEST_EFFORT

    def __init__(self, members: list[str] | None = None, auto_accept: bool = False) -> None:
        self.members = list(members or [])
        self.auto_accept = auto_accept

    def run(self, state: BuildState) -> StepAction:
        if not self.members or not state.image_ids:
            return StepAction.CONTINUE

        ui = state.ui
        ui.say(f"Adding members {self.members} to image(s) {state.image_ids} ...")
        try:
            state.image.add_members(state.image_ids, self.members)
        except CloudbakeError as e:
            ui.message(f"WARN: failed to add members to image: {e}")
            ui.message("WARN: please share the image manually!")
            return StepAction.CONTINUE

        if self.auto_accept:
            ui.message("WARN: accepting image membership on behalf of members is not supported")
        return StepAction.CONTINUE

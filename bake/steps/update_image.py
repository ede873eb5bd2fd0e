"""Record the configured minimum disk size on the captured images."""

from __future__ import annotations

from bake.base.exceptions import ImageError
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class UpdateImageMinDisk(Step):
    def __init__(self, min_disk_gb: int = 0) -> None:
        self.min_disk_gb = min_disk_gb

    def run(self, state: BuildState) -> StepAction:
        if self.min_disk_gb == 0:
            return StepAction.CONTINUE

        ui = state.ui
        for image_id in state.image_ids:
            ui.say(f"Updating the minimum disk of image {image_id} to {self.min_disk_gb} GB")
            try:
                state.image.update_min_disk(image_id, self.min_disk_gb)
            except ImageError as e:
                return self.halt(state, ImageError(f"Error updating image {image_id}: {e}"))
        return StepAction.CONTINUE

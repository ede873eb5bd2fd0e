"""Resolve the image the build instance boots from."""

from __future__ import annotations

from bake.base.exceptions import ImageError, ImageNotFoundError
from bake.config import ImageFilter
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class SourceImage(Step):
    """Use ``source_image`` directly or look it up by name / filters.

    Produces ``source_image``.
    """

    def __init__(
        self,
        source_image: str = "",
        source_image_name: str = "",
        source_image_filter: ImageFilter | None = None,
    ) -> None:
        self.source_image = source_image
        self.source_image_name = source_image_name
        self.source_image_filter = source_image_filter or ImageFilter()

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        if self.source_image:
            state.source_image = self.source_image
            return StepAction.CONTINUE

        opts = self.source_image_filter.filters.model_copy()
        if self.source_image_name:
            opts.name = self.source_image_name

        search = opts.model_dump(exclude_defaults=True)
        try:
            images = state.image.find_images(
                name=opts.name,
                owner=opts.owner,
                visibility=opts.visibility,
                properties=opts.properties or None,
            )
        except ImageError as e:
            return self.halt(state, ImageError(f"Error querying image: {e}"))

        if not images:
            return self.halt(
                state, ImageNotFoundError(f"No image was found matching filters: {search}")
            )
        if len(images) > 1 and not self.source_image_filter.most_recent:
            return self.halt(
                state,
                ImageError(
                    "Your query returned more than one result. Please try a more specific "
                    f"search, or set most_recent to true. Search filters: {search}"
                ),
            )

        image_id = images[0]["image_id"]
        ui.message(f"Found Image ID: {image_id}")
        state.source_image = image_id
        return StepAction.CONTINUE

"""Result of a successful build."""

from __future__ import annotations

import logging

from bake.base.exceptions import CloudbakeError, ImageError, ImageNotFoundError
from bake.base.image import ImageBlueprint

logger = logging.getLogger("cloudbake")


class Artifact:
    """The image(s) a build produced.

    Attributes:
        image_ids: Captured image IDs, system image first.
        builder_id: Identifier of the builder that produced them.
        client: Image service used to delete the images again.
    """

    def __init__(self, image_ids: list[str], builder_id: str, client: ImageBlueprint) -> None:
        self.image_ids = list(image_ids)
        self.builder_id = builder_id
        self.client = client

    @property
    def id(self) -> str:
        return ";".join(self.image_ids)

    def files(self) -> list[str]:
        # No local files are produced by this builder.
        return []

    def destroy(self) -> None:
        """Delete every image of the artifact.

        All images are attempted; errors are collected and raised together.

        Raises:
            ImageError: If at least one image could not be deleted.
        """
        errors: list[str] = []
        for image_id in self.image_ids:
            logger.info("[INFO] Deleting image: %s", image_id)
            try:
                self.client.delete_image(image_id)
            except ImageNotFoundError:
                continue
            except CloudbakeError as e:
                errors.append(f"{image_id}: {e}")
        if errors:
            raise ImageError("error deleting images: " + "; ".join(errors))

    def __str__(self) -> str:
        return f"An image was created: {', '.join(self.image_ids)}"

    def __repr__(self) -> str:
        return f"Artifact(builder_id={self.builder_id!r}, image_ids={self.image_ids!r})"

"""Image service blueprint."""

from abc import abstractmethod
from typing import Any

from .jobs import JobBlueprint


class ImageBlueprint(JobBlueprint):
    """Abstract interface for source image lookup and image capture.

    Maps to AWS AMIs and GCP images / machine images.  Capture calls return
    a job ID; the finished job's ``entities["image_id"]`` names the image.
    """

    @abstractmethod
    def find_images(
        self,
        *,
        name: str = "",
        owner: str = "",
        visibility: str = "",
        properties: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return usable images matching the filters, newest first.

        Each dict contains ``image_id``, ``name``, ``created_at`` and
        ``min_disk_gb``.
        """

    @abstractmethod
    def get_image(self, image_id: str) -> dict[str, Any]:
        """Return ``image_id``, ``name``, ``state`` and ``min_disk_gb``.

        Raises:
            ImageNotFoundError: If the image does not exist.
        """

    @abstractmethod
    def create_system_image(
        self,
        name: str,
        instance_id: str,
        **kwargs: Any,
    ) -> str:
        """Capture the boot disk of an instance; return the job ID.

        Args:
            name: Image name.
            instance_id: Source instance.
            **kwargs: ``description``, ``tags``, ``include_data_volumes``.
        """

    @abstractmethod
    def create_data_image(self, name: str, volume_id: str, **kwargs: Any) -> str:
        """Capture a single data volume; return the job ID."""

    @abstractmethod
    def create_whole_image(self, name: str, instance_id: str, **kwargs: Any) -> str:
        """Capture an instance with all of its disks; return the job ID.

        Args:
            name: Image name.
            instance_id: Source instance.
            **kwargs: ``description``, ``tags``, ``vault_id``.
        """

    @abstractmethod
    def add_members(self, image_ids: list[str], projects: list[str]) -> None:
        """Share images with other projects / accounts."""

    @abstractmethod
    def update_min_disk(self, image_id: str, min_disk_gb: int) -> None:
        """Set the minimum disk size recorded on an image."""

    @abstractmethod
    def delete_image(self, image_id: str) -> None:
        """Delete an image.

        Raises:
            ImageNotFoundError: If the image does not exist.
        """

"""Block storage (volume) service blueprint."""

from abc import ABC, abstractmethod
from typing import Any

VOLUME_CREATING = "CREATING"
VOLUME_AVAILABLE = "AVAILABLE"
VOLUME_IN_USE = "IN_USE"
VOLUME_DELETING = "DELETING"
VOLUME_ERROR = "ERROR"


class BlockStorageBlueprint(ABC):
    """Abstract interface for boot and data volumes.

    Maps to AWS EBS and GCP Persistent Disk.
    """

    @abstractmethod
    def create_volume(
        self,
        name: str,
        size_gb: int,
        zone: str,
        **kwargs: Any,
    ) -> str:
        """Create a volume and return its ID.

        Args:
            name: Volume name.
            size_gb: Size in GiB.
            zone: Availability zone.
            **kwargs: ``volume_type``, ``image_id`` (populate from an image)
                or ``snapshot_id`` (populate from a snapshot).
        """

    @abstractmethod
    def get_volume(self, volume_id: str) -> dict[str, Any]:
        """Return ``volume_id``, ``name``, ``state``, ``size_gb`` and ``zone``.

        ``state`` is one of CREATING, AVAILABLE, IN_USE, DELETING, ERROR.

        Raises:
            VolumeNotFoundError: If the volume does not exist.
        """

    @abstractmethod
    def delete_volume(self, volume_id: str) -> None:
        """Delete a volume.

        Raises:
            VolumeNotFoundError: If the volume does not exist.
        """

    @abstractmethod
    def get_snapshot(self, snapshot_id: str) -> dict[str, Any]:
        """Return ``snapshot_id`` and ``size_gb`` for a snapshot.

        Raises:
            SnapshotNotFoundError: If the snapshot does not exist.
        """

"""GCP Persistent Disk implementation of the BlockStorage blueprint."""

from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.base.block_storage import (
    BlockStorageBlueprint,
    VOLUME_AVAILABLE,
    VOLUME_CREATING,
    VOLUME_DELETING,
    VOLUME_ERROR,
    VOLUME_IN_USE,
)
from bake.base.config import GCPConfig
from bake.base.exceptions import (
    BlockStorageError,
    SnapshotNotFoundError,
    VolumeNotFoundError,
)
from bake.gcp.compute import split_id
from bake.gcp.operations import OperationJobs

_STATE_MAP = {
    "CREATING": VOLUME_CREATING,
    "RESTORING": VOLUME_CREATING,
    "READY": VOLUME_AVAILABLE,
    "DELETING": VOLUME_DELETING,
    "FAILED": VOLUME_ERROR,
}


class BlockStorage(OperationJobs, BlockStorageBlueprint):
    """GCP Persistent Disk service.

    Volume IDs have the form ``<zone>/<name>``.  ``volume_type`` is a
    Compute Engine disk type such as ``pd-balanced`` or ``pd-ssd``.
    """

    def __init__(self, config: GCPConfig) -> None:
        assert config.project_id is not None  # guaranteed by GCPConfig validator
        self.project_id: str = config.project_id
        self.zone: str = config.zone
        self.client = compute_v1.DisksClient(**config.client_kwargs())
        self._snapshots = compute_v1.SnapshotsClient(**config.client_kwargs())
        self._init_operations(config)

    def _global(self, collection: str, resource_id: str) -> str:
        if "/" in resource_id:
            return resource_id
        return f"projects/{self.project_id}/global/{collection}/{resource_id}"

    def create_volume(self, name: str, size_gb: int, zone: str, **kwargs: Any) -> str:
        """Insert a disk; creation continues in the background."""
        zone = zone or self.zone
        disk = compute_v1.Disk()
        disk.name = name
        if size_gb:
            disk.size_gb = size_gb
        if kwargs.get("volume_type"):
            disk.type_ = f"zones/{zone}/diskTypes/{kwargs['volume_type']}"
        if kwargs.get("snapshot_id"):
            disk.source_snapshot = self._global("snapshots", kwargs["snapshot_id"])
        elif kwargs.get("image_id"):
            disk.source_image = self._global("images", kwargs["image_id"])
        try:
            self.client.insert(project=self.project_id, zone=zone, disk_resource=disk)
        except gcp_exceptions.GoogleAPICallError as e:
            raise BlockStorageError(f"Failed to create disk '{name}'") from e
        return f"{zone}/{name}"

    def get_volume(self, volume_id: str) -> dict[str, Any]:
        zone, name = split_id(volume_id, self.zone)
        try:
            disk = self.client.get(project=self.project_id, zone=zone, disk=name)
        except gcp_exceptions.NotFound as e:
            raise VolumeNotFoundError(f"Volume '{volume_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise BlockStorageError(f"Failed to get volume '{volume_id}'") from e

        state = _STATE_MAP.get(disk.status, disk.status)
        if state == VOLUME_AVAILABLE and disk.users:
            state = VOLUME_IN_USE
        return {
            "volume_id": f"{zone}/{disk.name}",
            "name": disk.name,
            "state": state,
            "size_gb": disk.size_gb,
            "zone": zone,
        }

    def delete_volume(self, volume_id: str) -> None:
        zone, name = split_id(volume_id, self.zone)
        try:
            self.client.delete(project=self.project_id, zone=zone, disk=name)
        except gcp_exceptions.NotFound as e:
            raise VolumeNotFoundError(f"Volume '{volume_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise BlockStorageError(f"Failed to delete volume '{volume_id}'") from e

    def get_snapshot(self, snapshot_id: str) -> dict[str, Any]:
        try:
            snapshot = self._snapshots.get(project=self.project_id, snapshot=snapshot_id)
        except gcp_exceptions.NotFound as e:
            raise SnapshotNotFoundError(f"Snapshot '{snapshot_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise BlockStorageError(f"Failed to get snapshot '{snapshot_id}'") from e
        return {"snapshot_id": snapshot.name, "size_gb": snapshot.disk_size_gb}

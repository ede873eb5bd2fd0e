"""AWS EBS implementation of the BlockStorage blueprint."""

from __future__ import annotations

from typing import Any, NoReturn

import boto3
from botocore.exceptions import ClientError

from bake.base.block_storage import (
    BlockStorageBlueprint,
    VOLUME_AVAILABLE,
    VOLUME_CREATING,
    VOLUME_DELETING,
    VOLUME_ERROR,
    VOLUME_IN_USE,
)
from bake.base.config import AWSConfig
from bake.base.exceptions import (
    BlockStorageError,
    ImageNotFoundError,
    SnapshotNotFoundError,
    VolumeNotFoundError,
)

_ERROR_MAP: dict[str, type[BlockStorageError]] = {
    "InvalidVolume.NotFound": VolumeNotFoundError,
    "InvalidSnapshot.NotFound": SnapshotNotFoundError,
}

_STATE_MAP = {
    "creating": VOLUME_CREATING,
    "available": VOLUME_AVAILABLE,
    "in-use": VOLUME_IN_USE,
    "deleting": VOLUME_DELETING,
    "deleted": "DELETED",
    "error": VOLUME_ERROR,
}

EBS_VOLUME_TYPES = frozenset({"standard", "gp2", "gp3", "io1", "io2", "st1", "sc1"})


def _handle(e: ClientError, msg: str) -> NoReturn:
    exc = _ERROR_MAP.get(e.response["Error"]["Code"])
    raise (exc or BlockStorageError)(msg) from e


class BlockStorage(BlockStorageBlueprint):
    """AWS EBS volume service.

    EBS cannot create a volume from an AMI directly; a volume "from an
    image" is created from the snapshot backing the AMI's root device.

    Attributes:
        client: boto3 EC2 client.
    """

    def __init__(self, config: AWSConfig) -> None:
        self.client = boto3.client("ec2", **config.client_kwargs())

    def _root_snapshot(self, image_id: str) -> str:
        images = self.client.describe_images(ImageIds=[image_id]).get("Images", [])
        if not images:
            raise ImageNotFoundError(f"Image '{image_id}' not found")
        image = images[0]
        for mapping in image.get("BlockDeviceMappings", []):
            if mapping.get("DeviceName") == image.get("RootDeviceName") and "Ebs" in mapping:
                return mapping["Ebs"]["SnapshotId"]  # type: ignore[no-any-return]
        raise BlockStorageError(f"Image '{image_id}' has no EBS root snapshot")

    def create_volume(self, name: str, size_gb: int, zone: str, **kwargs: Any) -> str:
        """Create an EBS volume.

        Volume types outside :data:`EBS_VOLUME_TYPES` fall back to the
        account default.
        """
        params: dict[str, Any] = {
            "AvailabilityZone": zone,
            "TagSpecifications": [
                {"ResourceType": "volume", "Tags": [{"Key": "Name", "Value": name}]}
            ],
        }
        if size_gb:
            params["Size"] = size_gb
        if kwargs.get("volume_type") in EBS_VOLUME_TYPES:
            params["VolumeType"] = kwargs["volume_type"]
        try:
            if kwargs.get("snapshot_id"):
                params["SnapshotId"] = kwargs["snapshot_id"]
            elif kwargs.get("image_id"):
                params["SnapshotId"] = self._root_snapshot(kwargs["image_id"])
            resp = self.client.create_volume(**params)
        except ClientError as e:
            _handle(e, f"Failed to create volume '{name}'")
        return resp["VolumeId"]  # type: ignore[no-any-return]

    def get_volume(self, volume_id: str) -> dict[str, Any]:
        try:
            resp = self.client.describe_volumes(VolumeIds=[volume_id])
        except ClientError as e:
            _handle(e, f"Failed to get volume '{volume_id}'")
        volumes = resp.get("Volumes", [])
        if not volumes:
            raise VolumeNotFoundError(f"Volume '{volume_id}' not found")
        vol = volumes[0]
        return {
            "volume_id": vol["VolumeId"],
            "name": next((t["Value"] for t in vol.get("Tags", []) if t["Key"] == "Name"), ""),
            "state": _STATE_MAP.get(vol["State"], vol["State"]),
            "size_gb": vol.get("Size", 0),
            "zone": vol.get("AvailabilityZone", ""),
        }

    def delete_volume(self, volume_id: str) -> None:
        try:
            self.client.delete_volume(VolumeId=volume_id)
        except ClientError as e:
            _handle(e, f"Failed to delete volume '{volume_id}'")

    def get_snapshot(self, snapshot_id: str) -> dict[str, Any]:
        try:
            resp = self.client.describe_snapshots(SnapshotIds=[snapshot_id])
        except ClientError as e:
            _handle(e, f"Failed to get snapshot '{snapshot_id}'")
        snapshots = resp.get("Snapshots", [])
        if not snapshots:
            raise SnapshotNotFoundError(f"Snapshot '{snapshot_id}' not found")
        snapshot = snapshots[0]
        return {"snapshot_id": snapshot["SnapshotId"], "size_gb": snapshot.get("VolumeSize", 0)}

"""AWS AMI implementation of the Image blueprint."""

from __future__ import annotations

import logging
from typing import Any, NoReturn

import boto3
from botocore.exceptions import ClientError

from bake.base.config import AWSConfig
from bake.base.exceptions import (
    ImageError,
    ImageNotFoundError,
    JobNotFoundError,
    UnsupportedOperationError,
)
from bake.base.image import ImageBlueprint
from bake.base.jobs import JOB_FAIL, JOB_RUNNING, JOB_SUCCESS

logger = logging.getLogger("cloudbake")

_ERROR_MAP: dict[str, type[ImageError]] = {
    "InvalidAMIID.NotFound": ImageNotFoundError,
    "InvalidAMIID.Malformed": ImageNotFoundError,
    "InvalidAMIID.Unavailable": ImageNotFoundError,
}

_STATE_MAP = {"pending": "PENDING", "available": "ACTIVE", "failed": "ERROR"}
_JOB_STATUS = {"pending": JOB_RUNNING, "available": JOB_SUCCESS}

MIN_DISK_TAG = "MinDiskGB"


def _handle(e: ClientError, msg: str) -> NoReturn:
    exc = _ERROR_MAP.get(e.response["Error"]["Code"])
    raise (exc or ImageError)(msg) from e


def _tag_specs(tags: dict[str, str] | None) -> list[dict[str, Any]]:
    if not tags:
        return []
    return [
        {"ResourceType": "image", "Tags": [{"Key": k, "Value": v} for k, v in tags.items()]}
    ]


def _root_size(image: dict[str, Any]) -> int:
    for mapping in image.get("BlockDeviceMappings", []):
        if mapping.get("DeviceName") == image.get("RootDeviceName"):
            return mapping.get("Ebs", {}).get("VolumeSize", 0)  # type: ignore[no-any-return]
    return 0


class Image(ImageBlueprint):
    """AWS AMI service.

    Image capture is tracked with synthetic job IDs of the form
    ``image:<ami-id>``, resolved from the AMI state.  EC2 has no notion of
    an image of a single data volume, so data images are unsupported.

    Attributes:
        client: boto3 EC2 client.
    """

    def __init__(self, config: AWSConfig) -> None:
        self.client = boto3.client("ec2", **config.client_kwargs())

    def _describe(self, image_id: str) -> dict[str, Any]:
        try:
            resp = self.client.describe_images(ImageIds=[image_id])
        except ClientError as e:
            _handle(e, f"Failed to get image '{image_id}'")
        images = resp.get("Images", [])
        if not images:
            raise ImageNotFoundError(f"Image '{image_id}' not found")
        return images[0]  # type: ignore[no-any-return]

    def find_images(
        self,
        *,
        name: str = "",
        owner: str = "",
        visibility: str = "",
        properties: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Search AMIs; ``properties`` are matched as tags."""
        filters: list[dict[str, Any]] = [{"Name": "state", "Values": ["available"]}]
        if name:
            filters.append({"Name": "name", "Values": [name]})
        if visibility in ("public", "private"):
            filters.append({"Name": "is-public", "Values": [str(visibility == "public").lower()]})
        for key, value in (properties or {}).items():
            filters.append({"Name": f"tag:{key}", "Values": [value]})

        params: dict[str, Any] = {"Filters": filters}
        if owner:
            params["Owners"] = [owner]
        try:
            resp = self.client.describe_images(**params)
        except ClientError as e:
            _handle(e, "Failed to search images")

        images = sorted(
            resp.get("Images", []), key=lambda i: i.get("CreationDate", ""), reverse=True
        )
        return [
            {
                "image_id": i["ImageId"],
                "name": i.get("Name", ""),
                "created_at": i.get("CreationDate", ""),
                "min_disk_gb": _root_size(i),
            }
            for i in images
        ]

    def get_image(self, image_id: str) -> dict[str, Any]:
        image = self._describe(image_id)
        tags = {t["Key"]: t["Value"] for t in image.get("Tags", [])}
        min_disk = int(tags.get(MIN_DISK_TAG) or _root_size(image))
        return {
            "image_id": image["ImageId"],
            "name": image.get("Name", ""),
            "state": _STATE_MAP.get(image["State"], image["State"]),
            "min_disk_gb": min_disk,
        }

    def create_system_image(self, name: str, instance_id: str, **kwargs: Any) -> str:
        """Create an AMI of the root volume only.

        Data volumes are excluded from the image unless
        ``include_data_volumes`` is set.
        """
        params: dict[str, Any] = {
            "InstanceId": instance_id,
            "Name": name,
            "Description": kwargs.get("description", ""),
            "TagSpecifications": _tag_specs(kwargs.get("tags")),
        }
        try:
            if not kwargs.get("include_data_volumes"):
                params["BlockDeviceMappings"] = self._exclude_data_volumes(instance_id)
            resp = self.client.create_image(**params)
        except ClientError as e:
            _handle(e, f"Failed to create image '{name}'")
        return f"image:{resp['ImageId']}"

    def _exclude_data_volumes(self, instance_id: str) -> list[dict[str, Any]]:
        resp = self.client.describe_instances(InstanceIds=[instance_id])
        inst = resp["Reservations"][0]["Instances"][0]
        root = inst.get("RootDeviceName")
        return [
            {"DeviceName": m["DeviceName"], "NoDevice": ""}
            for m in inst.get("BlockDeviceMappings", [])
            if m["DeviceName"] != root
        ]

    def create_data_image(self, name: str, volume_id: str, **kwargs: Any) -> str:
        raise UnsupportedOperationError("EC2 cannot create an image from a single data volume")

    def create_whole_image(self, name: str, instance_id: str, **kwargs: Any) -> str:
        """Create an AMI with every attached volume.

        ``vault_id`` has no EC2 equivalent and is ignored.
        """
        if kwargs.get("vault_id"):
            logger.debug("[DEBUG] vault_id is not used by EC2, ignoring it")
        return self.create_system_image(
            name,
            instance_id,
            description=kwargs.get("description", ""),
            tags=kwargs.get("tags"),
            include_data_volumes=True,
        )

    def get_job(self, job_id: str) -> dict[str, Any]:
        kind, _, image_id = job_id.partition(":")
        if kind != "image" or not image_id:
            raise JobNotFoundError(f"Unknown job '{job_id}'")
        try:
            image = self._describe(image_id)
        except ImageNotFoundError as e:
            # a new AMI may not be visible yet
            raise JobNotFoundError(f"Job '{job_id}' not found") from e

        status = _JOB_STATUS.get(image["State"], JOB_FAIL)
        reason = ""
        if status == JOB_FAIL:
            reason = image.get("StateReason", {}).get("Message", image["State"])
        return {
            "job_id": job_id,
            "status": status,
            "entities": {"image_id": image_id},
            "fail_reason": reason,
        }

    def add_members(self, image_ids: list[str], projects: list[str]) -> None:
        """Grant launch permission to other AWS accounts."""
        for image_id in image_ids:
            try:
                self.client.modify_image_attribute(
                    ImageId=image_id,
                    LaunchPermission={"Add": [{"UserId": account} for account in projects]},
                )
            except ClientError as e:
                _handle(e, f"Failed to share image '{image_id}'")

    def update_min_disk(self, image_id: str, min_disk_gb: int) -> None:
        """Record the minimum disk size as the ``MinDiskGB`` tag."""
        try:
            self.client.create_tags(
                Resources=[image_id], Tags=[{"Key": MIN_DISK_TAG, "Value": str(min_disk_gb)}]
            )
        except ClientError as e:
            _handle(e, f"Failed to update image '{image_id}'")

    def delete_image(self, image_id: str) -> None:
        """Deregister an AMI and delete the snapshots backing it."""
        image = self._describe(image_id)
        snapshots = [
            m["Ebs"]["SnapshotId"]
            for m in image.get("BlockDeviceMappings", [])
            if m.get("Ebs", {}).get("SnapshotId")
        ]
        try:
            self.client.deregister_image(ImageId=image_id)
            for snapshot_id in snapshots:
                self.client.delete_snapshot(SnapshotId=snapshot_id)
        except ClientError as e:
            _handle(e, f"Failed to delete image '{image_id}'")

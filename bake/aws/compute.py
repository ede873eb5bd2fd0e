"""AWS EC2 implementation of the Compute blueprint."""

from __future__ import annotations

from typing import Any, NoReturn

import boto3
from botocore.exceptions import ClientError

from bake.base.compute import (
    ComputeBlueprint,
    INSTANCE_ACTIVE,
    INSTANCE_BUILD,
    INSTANCE_DELETED,
    INSTANCE_DELETING,
    INSTANCE_SHUTOFF,
)
from bake.base.config import AWSConfig
from bake.base.exceptions import (
    CloudbakeError,
    ComputeError,
    FlavorNotFoundError,
    InstanceNotFoundError,
    JobNotFoundError,
    KeyPairNotFoundError,
    UnsupportedOperationError,
    VolumeNotFoundError,
)
from bake.base.jobs import JOB_FAIL, JOB_INIT, JOB_RUNNING, JOB_SUCCESS

_ERROR_MAP: dict[str, type[CloudbakeError]] = {
    "InvalidInstanceID.NotFound": InstanceNotFoundError,
    "InvalidInstanceID.Malformed": InstanceNotFoundError,
    "InvalidInstanceType": FlavorNotFoundError,
    "InvalidKeyPair.NotFound": KeyPairNotFoundError,
    "InvalidVolume.NotFound": VolumeNotFoundError,
}

_STATE_MAP = {
    "pending": INSTANCE_BUILD,
    "running": INSTANCE_ACTIVE,
    "stopping": INSTANCE_ACTIVE,
    "stopped": INSTANCE_SHUTOFF,
    "shutting-down": INSTANCE_DELETING,
    "terminated": INSTANCE_DELETED,
}

_ATTACH_STATUS = {"attaching": JOB_RUNNING, "attached": JOB_SUCCESS, "busy": JOB_SUCCESS}

# Devices handed out to data volumes, in order.
_DATA_DEVICES = [f"/dev/sd{letter}" for letter in "fghijklmnop"]


def _handle(e: ClientError, msg: str) -> NoReturn:
    exc = _ERROR_MAP.get(e.response["Error"]["Code"])
    raise (exc or ComputeError)(msg) from e


def _name_tag(tags: list[dict[str, str]]) -> str:
    for tag in tags:
        if tag["Key"] == "Name":
            return tag["Value"]
    return ""


class Compute(ComputeBlueprint):
    """AWS EC2 compute service.

    Volume attachments are not jobs on EC2, so :meth:`attach_volume` and
    :meth:`detach_volume` return synthetic job IDs
    (``attach:<volume>:<instance>``) that :meth:`get_job` resolves by
    looking at the volume's attachment state.

    Attributes:
        client: boto3 EC2 client.
    """

    def __init__(self, config: AWSConfig) -> None:
        """Initialize the EC2 client.

        Args:
            config: AWS configuration object containing credentials and region.
        """
        self.client = boto3.client("ec2", **config.client_kwargs())

    def _describe(self, instance_id: str) -> dict[str, Any]:
        resp = self.client.describe_instances(InstanceIds=[instance_id])
        reservations = resp.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            raise InstanceNotFoundError(f"Instance '{instance_id}' not found")
        return reservations[0]["Instances"][0]  # type: ignore[no-any-return]

    # --- placement ---

    def list_availability_zones(self) -> list[str]:
        try:
            resp = self.client.describe_availability_zones(
                Filters=[{"Name": "state", "Values": ["available"]}]
            )
        except ClientError as e:
            _handle(e, "Failed to list availability zones")
        return [zone["ZoneName"] for zone in resp.get("AvailabilityZones", [])]

    def get_flavor(self, flavor: str, zone: str | None = None) -> dict[str, Any]:
        """Describe an instance type, optionally checking it is offered in *zone*.

        Raises:
            FlavorNotFoundError: If the type does not exist or is not offered.
        """
        try:
            resp = self.client.describe_instance_types(InstanceTypes=[flavor])
            types = resp.get("InstanceTypes", [])
            if not types:
                raise FlavorNotFoundError(f"Instance type '{flavor}' not found")
            if zone:
                offerings = self.client.describe_instance_type_offerings(
                    LocationType="availability-zone",
                    Filters=[
                        {"Name": "instance-type", "Values": [flavor]},
                        {"Name": "location", "Values": [zone]},
                    ],
                )
                if not offerings.get("InstanceTypeOfferings"):
                    raise FlavorNotFoundError(
                        f"Instance type '{flavor}' is not offered in zone '{zone}'"
                    )
        except ClientError as e:
            _handle(e, f"Failed to get instance type '{flavor}'")

        info = types[0]
        return {
            "flavor_id": info["InstanceType"],
            "vcpus": info.get("VCpuInfo", {}).get("DefaultVCpus"),
            "memory_mb": info.get("MemoryInfo", {}).get("SizeInMiB"),
        }

    # --- keypairs ---

    def create_keypair(self, name: str, public_key: str | None = None) -> dict[str, Any]:
        try:
            if public_key:
                resp = self.client.import_key_pair(
                    KeyName=name, PublicKeyMaterial=public_key.encode()
                )
                return {
                    "name": name,
                    "fingerprint": resp.get("KeyFingerprint", ""),
                    "private_key": "",
                }
            resp = self.client.create_key_pair(KeyName=name, KeyType="rsa", KeyFormat="pem")
        except ClientError as e:
            _handle(e, f"Failed to create keypair '{name}'")
        return {
            "name": name,
            "fingerprint": resp.get("KeyFingerprint", ""),
            "private_key": resp.get("KeyMaterial", ""),
        }

    def delete_keypair(self, name: str) -> None:
        try:
            self.client.delete_key_pair(KeyName=name)
        except ClientError as e:
            _handle(e, f"Failed to delete keypair '{name}'")

    # --- instances ---

    def create_instance(
        self,
        name: str,
        flavor: str,
        image_id: str,
        **kwargs: Any,
    ) -> str:
        """Launch an EC2 instance.

        ``metadata`` entries become instance tags.  Booting from an
        existing volume is not possible on EC2.

        Returns:
            Instance ID.
        """
        if kwargs.get("boot_volume_id"):
            raise UnsupportedOperationError("EC2 instances cannot boot from an existing volume")

        tags = [{"Key": "Name", "Value": name}]
        tags += [{"Key": k, "Value": v} for k, v in (kwargs.get("metadata") or {}).items()]
        params: dict[str, Any] = {
            "ImageId": image_id,
            "InstanceType": flavor,
            "MinCount": 1,
            "MaxCount": 1,
            "TagSpecifications": [{"ResourceType": "instance", "Tags": tags}],
        }
        if kwargs.get("zone"):
            params["Placement"] = {"AvailabilityZone": kwargs["zone"]}
        if kwargs.get("subnet_ids"):
            params["SubnetId"] = kwargs["subnet_ids"][0]
        if kwargs.get("security_groups"):
            params["SecurityGroupIds"] = kwargs["security_groups"]
        if kwargs.get("keypair_name"):
            params["KeyName"] = kwargs["keypair_name"]
        if kwargs.get("user_data"):
            user_data = kwargs["user_data"]
            params["UserData"] = user_data.decode() if isinstance(user_data, bytes) else user_data

        try:
            if kwargs.get("root_volume_type") or kwargs.get("root_volume_size"):
                params["BlockDeviceMappings"] = [self._root_mapping(image_id, kwargs)]
            resp = self.client.run_instances(**params)
        except ClientError as e:
            _handle(e, f"Failed to create instance '{name}'")
        return resp["Instances"][0]["InstanceId"]  # type: ignore[no-any-return]

    def _root_mapping(self, image_id: str, kwargs: dict[str, Any]) -> dict[str, Any]:
        images = self.client.describe_images(ImageIds=[image_id]).get("Images", [])
        root_device = images[0]["RootDeviceName"] if images else "/dev/xvda"
        ebs: dict[str, Any] = {"DeleteOnTermination": True}
        if kwargs.get("root_volume_type"):
            ebs["VolumeType"] = kwargs["root_volume_type"]
        if kwargs.get("root_volume_size"):
            ebs["VolumeSize"] = kwargs["root_volume_size"]
        return {"DeviceName": root_device, "Ebs": ebs}

    def get_instance(self, instance_id: str) -> dict[str, Any]:
        """Get details for a single EC2 instance.

        A ``terminated`` instance whose state reason is a server-side
        error (``Server.*``) reports that reason as ``fault``.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
        """
        try:
            inst = self._describe(instance_id)
        except ClientError as e:
            _handle(e, f"Failed to get instance '{instance_id}'")

        native = inst["State"]["Name"]
        reason = inst.get("StateReason", {})
        fault = ""
        if native == "terminated" and reason.get("Code", "").startswith("Server."):
            fault = reason.get("Message", reason["Code"])
        return {
            "instance_id": inst["InstanceId"],
            "name": _name_tag(inst.get("Tags", [])),
            "state": _STATE_MAP.get(native, native),
            "private_ip": inst.get("PrivateIpAddress"),
            "public_ip": inst.get("PublicIpAddress"),
            "fault": fault,
        }

    def stop_instance(self, instance_id: str) -> None:
        try:
            self.client.stop_instances(InstanceIds=[instance_id])
        except ClientError as e:
            _handle(e, f"Failed to stop instance '{instance_id}'")

    def delete_instance(self, instance_id: str) -> None:
        try:
            self.client.terminate_instances(InstanceIds=[instance_id])
        except ClientError as e:
            _handle(e, f"Failed to terminate instance '{instance_id}'")

    def list_interfaces(self, instance_id: str) -> list[dict[str, Any]]:
        try:
            inst = self._describe(instance_id)
        except ClientError as e:
            _handle(e, f"Failed to list interfaces of instance '{instance_id}'")
        interfaces = sorted(
            inst.get("NetworkInterfaces", []),
            key=lambda i: i.get("Attachment", {}).get("DeviceIndex", 0),
        )
        return [
            {"port_id": i["NetworkInterfaceId"], "private_ip": i.get("PrivateIpAddress")}
            for i in interfaces
        ]

    def get_encrypted_password(self, instance_id: str) -> str:
        try:
            resp = self.client.get_password_data(InstanceId=instance_id)
        except ClientError as e:
            _handle(e, f"Failed to get password data of instance '{instance_id}'")
        return resp.get("PasswordData", "").strip()  # type: ignore[no-any-return]

    # --- volumes ---

    def attach_volume(self, instance_id: str, volume_id: str) -> str:
        try:
            inst = self._describe(instance_id)
            used = {m["DeviceName"] for m in inst.get("BlockDeviceMappings", [])}
            free = [d for d in _DATA_DEVICES if d not in used]
            if not free:
                raise ComputeError(f"No free device name left on instance '{instance_id}'")
            self.client.attach_volume(Device=free[0], InstanceId=instance_id, VolumeId=volume_id)
        except ClientError as e:
            _handle(e, f"Failed to attach volume '{volume_id}' to '{instance_id}'")
        return f"attach:{volume_id}:{instance_id}"

    def detach_volume(self, instance_id: str, volume_id: str) -> str:
        try:
            self.client.detach_volume(InstanceId=instance_id, VolumeId=volume_id)
        except ClientError as e:
            _handle(e, f"Failed to detach volume '{volume_id}' from '{instance_id}'")
        return f"detach:{volume_id}:{instance_id}"

    def list_volume_attachments(self, instance_id: str) -> list[dict[str, Any]]:
        try:
            inst = self._describe(instance_id)
        except ClientError as e:
            _handle(e, f"Failed to list volumes of instance '{instance_id}'")
        root = inst.get("RootDeviceName")
        attachments = []
        for index, mapping in enumerate(inst.get("BlockDeviceMappings", [])):
            if "Ebs" not in mapping:
                continue
            attachments.append(
                {
                    "volume_id": mapping["Ebs"]["VolumeId"],
                    "device": mapping["DeviceName"],
                    "boot_index": 0 if mapping["DeviceName"] == root else index + 1,
                }
            )
        return attachments

    # --- jobs ---

    def get_job(self, job_id: str) -> dict[str, Any]:
        """Resolve an ``attach:`` / ``detach:`` job from the volume's attachments."""
        action, _, rest = job_id.partition(":")
        volume_id, _, instance_id = rest.partition(":")
        if action not in ("attach", "detach") or not volume_id or not instance_id:
            raise JobNotFoundError(f"Unknown job '{job_id}'")

        job: dict[str, Any] = {
            "job_id": job_id,
            "entities": {"volume_id": volume_id},
            "fail_reason": "",
        }
        try:
            resp = self.client.describe_volumes(VolumeIds=[volume_id])
        except ClientError as e:
            if e.response["Error"]["Code"] == "InvalidVolume.NotFound":
                if action == "detach":
                    return {**job, "status": JOB_SUCCESS}
                return {**job, "status": JOB_FAIL, "fail_reason": f"volume {volume_id} is gone"}
            _handle(e, f"Failed to get job '{job_id}'")

        volumes = resp.get("Volumes", [])
        attachment = next(
            (
                a
                for v in volumes
                for a in v.get("Attachments", [])
                if a.get("InstanceId") == instance_id
            ),
            None,
        )
        if action == "detach":
            status = JOB_RUNNING if attachment and attachment["State"] != "detached" else JOB_SUCCESS
        elif attachment is None:
            # not visible yet
            status = JOB_INIT
        else:
            status = _ATTACH_STATUS.get(attachment["State"], JOB_FAIL)
            if status == JOB_FAIL:
                job["fail_reason"] = f"volume {volume_id} is {attachment['State']}"
        return {**job, "status": status}

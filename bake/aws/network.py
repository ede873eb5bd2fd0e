"""AWS VPC implementation of the Network blueprint."""

from __future__ import annotations

import logging
from typing import Any, NoReturn

import boto3
from botocore.exceptions import ClientError

from bake.base.config import AWSConfig
from bake.base.exceptions import (
    AddressNotFoundError,
    NetworkError,
    NetworkInUseError,
    NetworkNotFoundError,
)
from bake.base.network import NETWORK_ACTIVE, NETWORK_PENDING, NetworkBlueprint

logger = logging.getLogger("cloudbake")

_ERROR_MAP: dict[str, type[NetworkError]] = {
    "InvalidVpcID.NotFound": NetworkNotFoundError,
    "InvalidSubnetID.NotFound": NetworkNotFoundError,
    "InvalidAllocationID.NotFound": AddressNotFoundError,
    "InvalidAddress.NotFound": AddressNotFoundError,
    "DependencyViolation": NetworkInUseError,
}

_STATE_MAP = {"pending": NETWORK_PENDING, "available": NETWORK_ACTIVE}


def _handle(e: ClientError, msg: str) -> NoReturn:
    exc = _ERROR_MAP.get(e.response["Error"]["Code"])
    raise (exc or NetworkError)(msg) from e


def _name_tags(resource_type: str, name: str) -> list[dict[str, Any]]:
    return [{"ResourceType": resource_type, "Tags": [{"Key": "Name", "Value": name}]}]


class Network(NetworkBlueprint):
    """AWS VPC service.

    Elastic IPs are allocated in the ``vpc`` domain and are usable as soon
    as the allocation call returns.

    Attributes:
        client: boto3 EC2 client.
    """

    def __init__(self, config: AWSConfig) -> None:
        self.client = boto3.client("ec2", **config.client_kwargs())

    # --- VPCs ---

    def create_vpc(self, name: str, cidr: str, **kwargs: Any) -> str:
        try:
            resp = self.client.create_vpc(
                CidrBlock=cidr, TagSpecifications=_name_tags("vpc", name)
            )
        except ClientError as e:
            _handle(e, f"Failed to create VPC '{name}'")
        return resp["Vpc"]["VpcId"]  # type: ignore[no-any-return]

    def get_vpc(self, vpc_id: str) -> dict[str, Any]:
        try:
            resp = self.client.describe_vpcs(VpcIds=[vpc_id])
        except ClientError as e:
            _handle(e, f"Failed to get VPC '{vpc_id}'")
        vpcs = resp.get("Vpcs", [])
        if not vpcs:
            raise NetworkNotFoundError(f"VPC '{vpc_id}' not found")
        vpc = vpcs[0]
        return {
            "vpc_id": vpc["VpcId"],
            "name": next((t["Value"] for t in vpc.get("Tags", []) if t["Key"] == "Name"), ""),
            "state": _STATE_MAP.get(vpc["State"], vpc["State"]),
        }

    def delete_vpc(self, vpc_id: str) -> None:
        try:
            self.client.delete_vpc(VpcId=vpc_id)
        except ClientError as e:
            _handle(e, f"Failed to delete VPC '{vpc_id}'")

    # --- subnets ---

    def create_subnet(self, vpc_id: str, name: str, cidr: str, **kwargs: Any) -> str:
        """Create a subnet.

        ``gateway_ip`` and ``dns_list`` are managed by AWS and ignored here.
        """
        params: dict[str, Any] = {
            "VpcId": vpc_id,
            "CidrBlock": cidr,
            "TagSpecifications": _name_tags("subnet", name),
        }
        if kwargs.get("zone"):
            params["AvailabilityZone"] = kwargs["zone"]
        if kwargs.get("gateway_ip") or kwargs.get("dns_list"):
            logger.debug("[DEBUG] gateway_ip and dns_list are managed by AWS, ignoring them")
        try:
            resp = self.client.create_subnet(**params)
        except ClientError as e:
            _handle(e, f"Failed to create subnet '{name}'")
        return resp["Subnet"]["SubnetId"]  # type: ignore[no-any-return]

    def get_subnet(self, subnet_id: str) -> dict[str, Any]:
        try:
            resp = self.client.describe_subnets(SubnetIds=[subnet_id])
        except ClientError as e:
            _handle(e, f"Failed to get subnet '{subnet_id}'")
        subnets = resp.get("Subnets", [])
        if not subnets:
            raise NetworkNotFoundError(f"Subnet '{subnet_id}' not found")
        subnet = subnets[0]
        return {
            "subnet_id": subnet["SubnetId"],
            "vpc_id": subnet["VpcId"],
            "state": _STATE_MAP.get(subnet["State"], subnet["State"]),
        }

    def delete_subnet(self, subnet_id: str) -> None:
        try:
            self.client.delete_subnet(SubnetId=subnet_id)
        except ClientError as e:
            _handle(e, f"Failed to delete subnet '{subnet_id}'")

    # --- elastic IPs ---

    @staticmethod
    def _address(addr: dict[str, Any]) -> dict[str, Any]:
        return {
            "address_id": addr["AllocationId"],
            "ip": addr.get("PublicIp", ""),
            "state": NETWORK_ACTIVE,
            "port_id": addr.get("NetworkInterfaceId", ""),
        }

    def create_address(self, name: str, **kwargs: Any) -> dict[str, Any]:
        """Allocate an elastic IP.

        ``address_type`` and ``bandwidth_size`` have no EC2 equivalent.
        """
        try:
            resp = self.client.allocate_address(
                Domain="vpc", TagSpecifications=_name_tags("elastic-ip", name)
            )
        except ClientError as e:
            _handle(e, f"Failed to allocate address '{name}'")
        return {
            "address_id": resp["AllocationId"],
            "ip": resp.get("PublicIp", ""),
            "state": NETWORK_ACTIVE,
        }

    def get_address(self, address_id: str) -> dict[str, Any]:
        try:
            resp = self.client.describe_addresses(AllocationIds=[address_id])
        except ClientError as e:
            _handle(e, f"Failed to get address '{address_id}'")
        addresses = resp.get("Addresses", [])
        if not addresses:
            raise AddressNotFoundError(f"Address '{address_id}' not found")
        return self._address(addresses[0])

    def list_addresses(self) -> list[dict[str, Any]]:
        try:
            resp = self.client.describe_addresses(
                Filters=[{"Name": "domain", "Values": ["vpc"]}]
            )
        except ClientError as e:
            _handle(e, "Failed to list addresses")
        return [self._address(a) for a in resp.get("Addresses", [])]

    def associate_address(self, address_id: str, instance_id: str, port_id: str) -> None:
        try:
            self.client.associate_address(AllocationId=address_id, NetworkInterfaceId=port_id)
        except ClientError as e:
            _handle(e, f"Failed to associate address '{address_id}' with '{instance_id}'")

    def delete_address(self, address_id: str) -> None:
        try:
            self.client.release_address(AllocationId=address_id)
        except ClientError as e:
            _handle(e, f"Failed to release address '{address_id}'")

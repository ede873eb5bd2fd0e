"""GCP VPC implementation of the Network blueprint."""

from __future__ import annotations

import re
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.base.config import GCPConfig
from bake.base.exceptions import (
    AddressNotFoundError,
    NetworkError,
    NetworkInUseError,
    NetworkNotFoundError,
)
from bake.base.network import NETWORK_ACTIVE, NETWORK_PENDING, NetworkBlueprint
from bake.gcp.compute import split_id
from bake.gcp.operations import (
    OperationJobs,
    global_job,
    operation_errors,
    region_job,
)

_IN_USE_CODES = ("RESOURCE_IN_USE_BY_ANOTHER_RESOURCE", "RESOURCE_NOT_READY")

_ADDRESS_STATE = {
    "RESERVING": NETWORK_PENDING,
    "RESERVED": NETWORK_ACTIVE,
    "IN_USE": NETWORK_ACTIVE,
}


def resource_name(name: str) -> str:
    """Turn a free-form name into a valid Compute Engine resource name."""
    cleaned = re.sub(r"[^a-z0-9-]", "-", name.lower()).strip("-")
    if not cleaned or not cleaned[0].isalpha():
        cleaned = f"cb-{cleaned}"
    return cleaned[:63]


class Network(OperationJobs, NetworkBlueprint):
    """GCP VPC service.

    VPC IDs are network names and subnet IDs are subnetwork names in the
    configured region.  Addresses are regional external addresses; the
    ``port_id`` used for association is the instance's interface name
    (``nic0``).

    Attributes:
        project_id: GCP project ID.
        region: Region for subnets and addresses.
    """

    def __init__(self, config: GCPConfig) -> None:
        assert config.project_id is not None  # guaranteed by GCPConfig validator
        self.project_id: str = config.project_id
        self.region: str = config.region
        self.zone: str = config.zone
        self._networks = compute_v1.NetworksClient(**config.client_kwargs())
        self._subnetworks = compute_v1.SubnetworksClient(**config.client_kwargs())
        self._addresses = compute_v1.AddressesClient(**config.client_kwargs())
        self._instances = compute_v1.InstancesClient(**config.client_kwargs())
        self._init_operations(config)

    def _check_insert(self, key: str, msg: str) -> None:
        """Raise the errors of a failed insert for a resource that is not found."""
        failure = self._insert_failure(key)
        if failure:
            raise NetworkError(f"{msg}: {failure}")

    def _finish_delete(self, job_id: str, msg: str) -> None:
        errors = operation_errors(self._wait_operation(job_id))
        if not errors:
            return
        if any(code in errors for code in _IN_USE_CODES):
            raise NetworkInUseError(f"{msg}: {errors}")
        raise NetworkError(f"{msg}: {errors}")

    # --- VPCs ---

    def create_vpc(self, name: str, cidr: str, **kwargs: Any) -> str:
        """Create a custom-mode network.

        GCP networks carry no address range; *cidr* only applies to subnets.
        Returns once the insert is accepted; a failed insert is raised by
        :meth:`get_vpc`.
        """
        name = resource_name(name)
        network = compute_v1.Network(name=name, auto_create_subnetworks=False)
        try:
            op = self._networks.insert(project=self.project_id, network_resource=network)
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to create network '{name}'") from e
        self._track_insert(f"network/{name}", global_job(op))
        return name

    def get_vpc(self, vpc_id: str) -> dict[str, Any]:
        try:
            network = self._networks.get(project=self.project_id, network=vpc_id)
        except gcp_exceptions.NotFound as e:
            self._check_insert(f"network/{vpc_id}", f"Failed to create network '{vpc_id}'")
            raise NetworkNotFoundError(f"Network '{vpc_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to get network '{vpc_id}'") from e
        return {"vpc_id": network.name, "name": network.name, "state": NETWORK_ACTIVE}

    def delete_vpc(self, vpc_id: str) -> None:
        try:
            op = self._networks.delete(project=self.project_id, network=vpc_id)
            self._finish_delete(global_job(op), f"Failed to delete network '{vpc_id}'")
        except gcp_exceptions.NotFound as e:
            raise NetworkNotFoundError(f"Network '{vpc_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to delete network '{vpc_id}'") from e

    # --- subnets ---

    def create_subnet(self, vpc_id: str, name: str, cidr: str, **kwargs: Any) -> str:
        """Create a subnetwork in the configured region.

        The gateway and DNS servers are managed by GCP; ``gateway_ip`` and
        ``dns_list`` are ignored.
        """
        name = resource_name(name)
        subnet = compute_v1.Subnetwork(
            name=name,
            ip_cidr_range=cidr,
            network=f"projects/{self.project_id}/global/networks/{vpc_id}",
            region=self.region,
        )
        try:
            op = self._subnetworks.insert(
                project=self.project_id, region=self.region, subnetwork_resource=subnet
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to create subnet '{name}'") from e
        self._track_insert(f"subnet/{name}", region_job(self.region, op))
        return name

    def get_subnet(self, subnet_id: str) -> dict[str, Any]:
        try:
            subnet = self._subnetworks.get(
                project=self.project_id, region=self.region, subnetwork=subnet_id
            )
        except gcp_exceptions.NotFound as e:
            self._check_insert(f"subnet/{subnet_id}", f"Failed to create subnet '{subnet_id}'")
            raise NetworkNotFoundError(f"Subnet '{subnet_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to get subnet '{subnet_id}'") from e
        return {
            "subnet_id": subnet.name,
            "vpc_id": subnet.network.rsplit("/", 1)[-1],
            "state": NETWORK_PENDING if subnet.state == "DRAINING" else NETWORK_ACTIVE,
        }

    def delete_subnet(self, subnet_id: str) -> None:
        try:
            op = self._subnetworks.delete(
                project=self.project_id, region=self.region, subnetwork=subnet_id
            )
            self._finish_delete(
                region_job(self.region, op), f"Failed to delete subnet '{subnet_id}'"
            )
        except gcp_exceptions.NotFound as e:
            raise NetworkNotFoundError(f"Subnet '{subnet_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to delete subnet '{subnet_id}'") from e

    # --- addresses ---

    @staticmethod
    def _address(addr: Any) -> dict[str, Any]:
        users = list(addr.users or [])
        return {
            "address_id": addr.name,
            "ip": addr.address,
            "state": _ADDRESS_STATE.get(addr.status, addr.status),
            "port_id": users[0] if users else "",
        }

    def create_address(self, name: str, **kwargs: Any) -> dict[str, Any]:
        """Reserve a regional external address.

        ``address_type`` selects the network tier when it is ``PREMIUM`` or
        ``STANDARD``; ``bandwidth_size`` has no GCP equivalent.  The address
        is returned ``PENDING`` and without an IP; poll :meth:`get_address`.
        """
        name = resource_name(name)
        address = compute_v1.Address(name=name, address_type="EXTERNAL")
        if kwargs.get("address_type") in ("PREMIUM", "STANDARD"):
            address.network_tier = kwargs["address_type"]
        try:
            op = self._addresses.insert(
                project=self.project_id, region=self.region, address_resource=address
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to reserve address '{name}'") from e
        self._track_insert(f"address/{name}", region_job(self.region, op))
        return {"address_id": name, "ip": "", "state": NETWORK_PENDING, "port_id": ""}

    def get_address(self, address_id: str) -> dict[str, Any]:
        try:
            addr = self._addresses.get(
                project=self.project_id, region=self.region, address=address_id
            )
        except gcp_exceptions.NotFound as e:
            self._check_insert(
                f"address/{address_id}", f"Failed to reserve address '{address_id}'"
            )
            raise AddressNotFoundError(f"Address '{address_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to get address '{address_id}'") from e
        return self._address(addr)

    def list_addresses(self) -> list[dict[str, Any]]:
        try:
            addresses = self._addresses.list(project=self.project_id, region=self.region)
            return [self._address(a) for a in addresses if a.address_type == "EXTERNAL"]
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError("Failed to list addresses") from e

    def associate_address(self, address_id: str, instance_id: str, port_id: str) -> None:
        """Add a one-to-one NAT access config using the address to interface *port_id*."""
        ip = self.get_address(address_id)["ip"]
        zone, name = split_id(instance_id, self.zone)
        access_config = compute_v1.AccessConfig(
            name="External NAT", nat_i_p=ip, type_="ONE_TO_ONE_NAT"
        )
        try:
            self._instances.add_access_config(
                project=self.project_id,
                zone=zone,
                instance=name,
                network_interface=port_id,
                access_config_resource=access_config,
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(
                f"Failed to associate address '{address_id}' with '{instance_id}'"
            ) from e

    def delete_address(self, address_id: str) -> None:
        try:
            self._addresses.delete(
                project=self.project_id, region=self.region, address=address_id
            )
        except gcp_exceptions.NotFound as e:
            raise AddressNotFoundError(f"Address '{address_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise NetworkError(f"Failed to release address '{address_id}'") from e

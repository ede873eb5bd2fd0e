"""Network service blueprint: VPCs, subnets and public addresses."""

from abc import ABC, abstractmethod
from typing import Any

NETWORK_PENDING = "PENDING"
NETWORK_ACTIVE = "ACTIVE"


class NetworkBlueprint(ABC):
    """Abstract interface for the temporary network of a build.

    Maps to AWS VPC / Elastic IPs and GCP VPC networks / static addresses.
    States returned by the getters are ``PENDING`` or ``ACTIVE``.
    """

    @abstractmethod
    def create_vpc(self, name: str, cidr: str, **kwargs: Any) -> str:
        """Create a VPC and return its ID."""

    @abstractmethod
    def get_vpc(self, vpc_id: str) -> dict[str, Any]:
        """Return ``vpc_id``, ``name`` and ``state`` for a VPC.

        Raises:
            NetworkNotFoundError: If the VPC does not exist.
        """

    @abstractmethod
    def delete_vpc(self, vpc_id: str) -> None:
        """Delete a VPC.

        Raises:
            NetworkNotFoundError: If the VPC does not exist.
            NetworkInUseError: If the VPC still has dependent resources.
        """

    @abstractmethod
    def create_subnet(
        self,
        vpc_id: str,
        name: str,
        cidr: str,
        **kwargs: Any,
    ) -> str:
        """Create a subnet and return its ID.

        Args:
            vpc_id: Parent VPC.
            name: Subnet name.
            cidr: Subnet CIDR block.
            **kwargs: ``zone``, ``gateway_ip``, ``dns_list``.
        """

    @abstractmethod
    def get_subnet(self, subnet_id: str) -> dict[str, Any]:
        """Return ``subnet_id``, ``vpc_id`` and ``state`` for a subnet.

        Raises:
            NetworkNotFoundError: If the subnet does not exist.
        """

    @abstractmethod
    def delete_subnet(self, subnet_id: str) -> None:
        """Delete a subnet.

        Raises:
            NetworkNotFoundError: If the subnet does not exist.
            NetworkInUseError: If the subnet is still in use.
        """

    @abstractmethod
    def create_address(self, name: str, **kwargs: Any) -> dict[str, Any]:
        """Allocate a public address.

        Args:
            name: Address / bandwidth name.
            **kwargs: ``address_type`` and ``bandwidth_size`` where supported.

        Returns:
            Dict with ``address_id``, ``ip`` and ``state``.
        """

    @abstractmethod
    def get_address(self, address_id: str) -> dict[str, Any]:
        """Return ``address_id``, ``ip``, ``state`` and ``port_id``.

        ``port_id`` is empty when the address is not associated.

        Raises:
            AddressNotFoundError: If the address does not exist.
        """

    @abstractmethod
    def list_addresses(self) -> list[dict[str, Any]]:
        """Return every address of the project, same shape as ``get_address``."""

    @abstractmethod
    def associate_address(self, address_id: str, instance_id: str, port_id: str) -> None:
        """Bind a public address to an instance network interface."""

    @abstractmethod
    def delete_address(self, address_id: str) -> None:
        """Release a public address.

        Raises:
            AddressNotFoundError: If the address does not exist.
        """

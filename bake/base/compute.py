"""Compute (VM) service blueprint."""

from abc import abstractmethod
from typing import Any

from .jobs import JobBlueprint

# Canonical instance states returned by ``get_instance``.
INSTANCE_BUILD = "BUILD"
INSTANCE_ACTIVE = "ACTIVE"
INSTANCE_SHUTOFF = "SHUTOFF"
INSTANCE_DELETING = "DELETING"
INSTANCE_DELETED = "DELETED"
INSTANCE_ERROR = "ERROR"


class ComputeBlueprint(JobBlueprint):
    """Abstract interface for the temporary build instance and its keypair.

    Maps to AWS EC2 and GCP Compute Engine.
    """

    @abstractmethod
    def list_availability_zones(self) -> list[str]:
        """Return the names of the zones that are currently available.

        Raises:
            ComputeError: If no zone is available.
        """

    @abstractmethod
    def get_flavor(self, flavor: str, zone: str | None = None) -> dict[str, Any]:
        """Return details for a flavor (instance type / machine type).

        Returns:
            Dict with ``flavor_id``, ``vcpus`` and ``memory_mb``.

        Raises:
            FlavorNotFoundError: If the flavor does not exist.
        """

    @abstractmethod
    def create_keypair(self, name: str, public_key: str | None = None) -> dict[str, Any]:
        """Create or register an SSH keypair.

        Args:
            name: Keypair name.
            public_key: OpenSSH public key to register.  When omitted the
                provider generates the pair and returns the private key.

        Returns:
            Dict with ``name``, ``fingerprint`` and ``private_key``
            (empty when a public key was registered).
        """

    @abstractmethod
    def delete_keypair(self, name: str) -> None:
        """Delete a keypair.

        Raises:
            KeyPairNotFoundError: If the keypair does not exist.
        """

    @abstractmethod
    def create_instance(
        self,
        name: str,
        flavor: str,
        image_id: str,
        **kwargs: Any,
    ) -> str:
        """Launch a new VM instance and return its ID.

        Args:
            name: Display name for the instance.
            flavor: Instance / machine type.
            image_id: Source image identifier.
            **kwargs: Provider-neutral options:

                - ``zone``: Availability zone.
                - ``subnet_ids``: Subnets to attach, first one is primary.
                - ``security_groups``: Security group IDs / network tags.
                - ``keypair_name``: Keypair created by ``create_keypair``.
                - ``ssh_username``: Login user the keypair is installed for.
                - ``user_data``: Bootstrap script (bytes or str).
                - ``metadata``: Dict of instance metadata.
                - ``boot_volume_id``: Boot from this existing volume.
                - ``root_volume_type`` / ``root_volume_size``: Root disk.

        Returns:
            Instance ID.
        """

    @abstractmethod
    def get_instance(self, instance_id: str) -> dict[str, Any]:
        """Return details for a single instance.

        Returns:
            Dict with ``instance_id``, ``name``, ``state`` (canonical:
            BUILD / ACTIVE / SHUTOFF / DELETING / DELETED / ERROR),
            ``private_ip``, ``public_ip`` and ``fault``.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
        """

    @abstractmethod
    def stop_instance(self, instance_id: str) -> None:
        """Stop a running instance (keep disks)."""

    @abstractmethod
    def delete_instance(self, instance_id: str) -> None:
        """Terminate (destroy) an instance.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
        """

    @abstractmethod
    def list_interfaces(self, instance_id: str) -> list[dict[str, Any]]:
        """Return the network interfaces of an instance.

        Each dict contains ``port_id`` and ``private_ip``.
        """

    @abstractmethod
    def get_encrypted_password(self, instance_id: str) -> str:
        """Return the generated, encrypted administrator password.

        Returns an empty string while the password is not available yet.
        """

    @abstractmethod
    def attach_volume(self, instance_id: str, volume_id: str) -> str:
        """Attach a data volume and return the job ID of the attachment."""

    @abstractmethod
    def detach_volume(self, instance_id: str, volume_id: str) -> str:
        """Detach a data volume and return the job ID of the detachment."""

    @abstractmethod
    def list_volume_attachments(self, instance_id: str) -> list[dict[str, Any]]:
        """Return the volumes attached to an instance.

        Each dict contains ``volume_id``, ``device`` and ``boot_index``
        (0 for the boot volume).
        """

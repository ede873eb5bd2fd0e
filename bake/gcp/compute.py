"""GCP Compute Engine implementation of the Compute blueprint."""

from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.base import keys
from bake.base.compute import (
    ComputeBlueprint,
    INSTANCE_ACTIVE,
    INSTANCE_BUILD,
    INSTANCE_ERROR,
    INSTANCE_SHUTOFF,
)
from bake.base.config import GCPConfig
from bake.base.exceptions import (
    ComputeError,
    FlavorNotFoundError,
    InstanceNotFoundError,
    KeyPairNotFoundError,
    UnsupportedOperationError,
    VolumeNotFoundError,
)
from bake.gcp.operations import OperationJobs, zone_job

_STATE_MAP = {
    "PROVISIONING": INSTANCE_BUILD,
    "STAGING": INSTANCE_BUILD,
    "RUNNING": INSTANCE_ACTIVE,
    "STOPPING": INSTANCE_ACTIVE,
    "SUSPENDING": INSTANCE_ACTIVE,
    "REPAIRING": INSTANCE_ERROR,
    "STOPPED": INSTANCE_SHUTOFF,
    "SUSPENDED": INSTANCE_SHUTOFF,
    "TERMINATED": INSTANCE_SHUTOFF,
}


def split_id(resource_id: str, default_zone: str) -> tuple[str, str]:
    """Split a ``zone/name`` ID; a bare name lives in *default_zone*."""
    zone, _, name = resource_id.rpartition("/")
    return zone or default_zone, name


class Compute(OperationJobs, ComputeBlueprint):
    """GCP Compute Engine service.

    Instance IDs have the form ``<zone>/<name>``.  Compute Engine has no
    keypair resource: keypairs are generated or registered locally and
    installed through the ``ssh-keys`` instance metadata.

    Attributes:
        project_id: GCP project ID.
        region: Region holding the build subnets.
        zone: Default zone for instance operations.
        client: Compute Engine instances client.
    """

    def __init__(self, config: GCPConfig) -> None:
        """Initialize the Compute Engine clients.

        Args:
            config: GCP configuration object (project, credentials, region, zone).
        """
        assert config.project_id is not None  # guaranteed by GCPConfig validator
        self.project_id: str = config.project_id
        self.region: str = config.region
        self.zone: str = config.zone
        self.client = compute_v1.InstancesClient(**config.client_kwargs())
        self._zones = compute_v1.ZonesClient(**config.client_kwargs())
        self._machine_types = compute_v1.MachineTypesClient(**config.client_kwargs())
        self._init_operations(config)
        self._keypairs: dict[str, str] = {}

    # --- placement ---

    def list_availability_zones(self) -> list[str]:
        try:
            zones = self._zones.list(project=self.project_id)
            return [
                z.name
                for z in zones
                if z.status == "UP" and z.name.startswith(f"{self.region}-")
            ]
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError("Failed to list zones") from e

    def get_flavor(self, flavor: str, zone: str | None = None) -> dict[str, Any]:
        try:
            machine_type = self._machine_types.get(
                project=self.project_id, zone=zone or self.zone, machine_type=flavor
            )
        except gcp_exceptions.NotFound as e:
            raise FlavorNotFoundError(f"Machine type '{flavor}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to get machine type '{flavor}'") from e
        return {
            "flavor_id": machine_type.name,
            "vcpus": machine_type.guest_cpus,
            "memory_mb": machine_type.memory_mb,
        }

    # --- keypairs ---

    def create_keypair(self, name: str, public_key: str | None = None) -> dict[str, Any]:
        private_key = ""
        if not public_key:
            private_key, public_key = keys.generate_keypair()
        self._keypairs[name] = public_key
        return {
            "name": name,
            "fingerprint": keys.fingerprint(public_key),
            "private_key": private_key,
        }

    def delete_keypair(self, name: str) -> None:
        if self._keypairs.pop(name, None) is None:
            raise KeyPairNotFoundError(f"Keypair '{name}' not found")

    # --- instances ---

    def _subnetwork(self, subnet_id: str) -> str:
        if "/" in subnet_id:
            return subnet_id
        return f"projects/{self.project_id}/regions/{self.region}/subnetworks/{subnet_id}"

    def _boot_disk(self, zone: str, image_id: str, kwargs: dict[str, Any]) -> Any:
        disk = compute_v1.AttachedDisk()
        disk.boot = True
        disk.auto_delete = True
        if kwargs.get("boot_volume_id"):
            volume_zone, volume_name = split_id(kwargs["boot_volume_id"], zone)
            disk.source = f"projects/{self.project_id}/zones/{volume_zone}/disks/{volume_name}"
            return disk

        init = compute_v1.AttachedDiskInitializeParams()
        init.source_image = (
            image_id if "/" in image_id else f"projects/{self.project_id}/global/images/{image_id}"
        )
        if kwargs.get("root_volume_size"):
            init.disk_size_gb = kwargs["root_volume_size"]
        if kwargs.get("root_volume_type"):
            init.disk_type = f"zones/{zone}/diskTypes/{kwargs['root_volume_type']}"
        disk.initialize_params = init
        return disk

    def _metadata(self, kwargs: dict[str, Any]) -> Any:
        items = dict(kwargs.get("metadata") or {})
        if kwargs.get("user_data"):
            user_data = kwargs["user_data"]
            items["user-data"] = user_data.decode() if isinstance(user_data, bytes) else user_data
        keypair = kwargs.get("keypair_name")
        if keypair:
            if keypair not in self._keypairs:
                raise KeyPairNotFoundError(f"Keypair '{keypair}' not found")
            username = kwargs.get("ssh_username") or "root"
            items["ssh-keys"] = f"{username}:{self._keypairs[keypair]}"

        metadata = compute_v1.Metadata()
        metadata.items = [compute_v1.Items(key=k, value=v) for k, v in items.items()]
        return metadata

    def create_instance(
        self,
        name: str,
        flavor: str,
        image_id: str,
        **kwargs: Any,
    ) -> str:
        """Launch a Compute Engine instance.

        ``security_groups`` become network tags.  The instance has no
        external address until one is associated.  The call returns once the
        insert is accepted; a failed insert surfaces through
        :meth:`get_instance` as an ``ERROR`` instance.

        Returns:
            Instance ID (``<zone>/<name>``).
        """
        zone = kwargs.get("zone") or self.zone
        try:
            instance = compute_v1.Instance()
            instance.name = name
            instance.machine_type = f"zones/{zone}/machineTypes/{flavor}"
            instance.disks = [self._boot_disk(zone, image_id, kwargs)]
            instance.metadata = self._metadata(kwargs)
            if kwargs.get("security_groups"):
                instance.tags = compute_v1.Tags(items=list(kwargs["security_groups"]))

            network_interface = compute_v1.NetworkInterface()
            if kwargs.get("subnet_ids"):
                network_interface.subnetwork = self._subnetwork(kwargs["subnet_ids"][0])
            else:
                network_interface.network = "global/networks/default"
            instance.network_interfaces = [network_interface]

            op = self.client.insert(
                project=self.project_id, zone=zone, instance_resource=instance
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to create instance '{name}'") from e
        instance_id = f"{zone}/{name}"
        self._track_insert(f"instance/{instance_id}", zone_job(zone, op))
        return instance_id

    def _get(self, instance_id: str) -> Any:
        zone, name = split_id(instance_id, self.zone)
        try:
            return self.client.get(project=self.project_id, zone=zone, instance=name)
        except gcp_exceptions.NotFound as e:
            raise InstanceNotFoundError(f"Instance '{instance_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to get instance '{instance_id}'") from e

    def get_instance(self, instance_id: str) -> dict[str, Any]:
        """Get details for a single Compute Engine instance.

        Raises:
            InstanceNotFoundError: If the instance does not exist.
        """
        try:
            inst = self._get(instance_id)
        except InstanceNotFoundError:
            failure = self._insert_failure(f"instance/{instance_id}")
            if not failure:
                raise
            return {
                "instance_id": instance_id,
                "name": split_id(instance_id, self.zone)[1],
                "state": INSTANCE_ERROR,
                "private_ip": None,
                "public_ip": None,
                "fault": failure,
            }
        ips = []
        for iface in inst.network_interfaces or []:
            for ac in iface.access_configs or []:
                if ac.nat_i_p:
                    ips.append(ac.nat_i_p)
        return {
            "instance_id": instance_id,
            "name": inst.name,
            "state": _STATE_MAP.get(inst.status, inst.status),
            "private_ip": (
                inst.network_interfaces[0].network_i_p if inst.network_interfaces else None
            ),
            "public_ip": ips[0] if ips else None,
            "fault": inst.status_message or "",
        }

    def stop_instance(self, instance_id: str) -> None:
        zone, name = split_id(instance_id, self.zone)
        try:
            self.client.stop(project=self.project_id, zone=zone, instance=name)
        except gcp_exceptions.NotFound as e:
            raise InstanceNotFoundError(f"Instance '{instance_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to stop '{instance_id}'") from e

    def delete_instance(self, instance_id: str) -> None:
        zone, name = split_id(instance_id, self.zone)
        try:
            self.client.delete(project=self.project_id, zone=zone, instance=name)
        except gcp_exceptions.NotFound as e:
            raise InstanceNotFoundError(f"Instance '{instance_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to delete '{instance_id}'") from e

    def list_interfaces(self, instance_id: str) -> list[dict[str, Any]]:
        inst = self._get(instance_id)
        return [
            {"port_id": iface.name, "private_ip": iface.network_i_p}
            for iface in inst.network_interfaces or []
        ]

    def get_encrypted_password(self, instance_id: str) -> str:
        raise UnsupportedOperationError(
            "Compute Engine does not generate Windows passwords; set winrm_password"
        )

    # --- volumes ---

    def attach_volume(self, instance_id: str, volume_id: str) -> str:
        zone, name = split_id(instance_id, self.zone)
        volume_zone, volume_name = split_id(volume_id, zone)
        disk = compute_v1.AttachedDisk()
        disk.source = f"projects/{self.project_id}/zones/{volume_zone}/disks/{volume_name}"
        disk.device_name = volume_name
        try:
            op = self.client.attach_disk(
                project=self.project_id, zone=zone, instance=name, attached_disk_resource=disk
            )
        except gcp_exceptions.NotFound as e:
            raise VolumeNotFoundError(f"Volume '{volume_id}' or instance not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to attach '{volume_id}' to '{instance_id}'") from e
        return zone_job(zone, op)

    def detach_volume(self, instance_id: str, volume_id: str) -> str:
        zone, name = split_id(instance_id, self.zone)
        _, volume_name = split_id(volume_id, zone)
        try:
            op = self.client.detach_disk(
                project=self.project_id, zone=zone, instance=name, device_name=volume_name
            )
        except gcp_exceptions.NotFound as e:
            raise InstanceNotFoundError(f"Instance '{instance_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ComputeError(f"Failed to detach '{volume_id}' from '{instance_id}'") from e
        return zone_job(zone, op)

    def list_volume_attachments(self, instance_id: str) -> list[dict[str, Any]]:
        zone, _ = split_id(instance_id, self.zone)
        inst = self._get(instance_id)
        return [
            {
                "volume_id": f"{zone}/{disk.source.rsplit('/', 1)[-1]}",
                "device": disk.device_name,
                "boot_index": 0 if disk.boot else disk.index,
            }
            for disk in inst.disks or []
        ]

"""GCP image and machine image implementation of the Image blueprint."""

from __future__ import annotations

import logging
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.base.config import GCPConfig
from bake.base.exceptions import ImageError, ImageNotFoundError
from bake.base.image import ImageBlueprint
from bake.gcp.compute import split_id
from bake.gcp.operations import OperationJobs, global_job

logger = logging.getLogger("cloudbake")

_STATE_MAP = {"PENDING": "PENDING", "READY": "ACTIVE", "FAILED": "ERROR", "DELETING": "DELETING"}

MIN_DISK_LABEL = "min-disk-gb"
IMAGE_USER_ROLE = "roles/compute.imageUser"
MACHINE_IMAGE_PREFIX = "machineImages/"


def _labels(tags: dict[str, str] | None) -> dict[str, str]:
    """Labels only allow lowercase keys and values."""
    return {k.lower(): str(v).lower() for k, v in (tags or {}).items()}


class Image(OperationJobs, ImageBlueprint):
    """GCP image service.

    System and data images are Compute Engine images, whose IDs are bare
    image names.  Whole-instance captures are machine images, with IDs of
    the form ``machineImages/<name>``.  Capture calls return global
    operation job IDs.

    Attributes:
        project_id: GCP project ID.
        client: Compute Engine images client.
    """

    def __init__(self, config: GCPConfig) -> None:
        assert config.project_id is not None  # guaranteed by GCPConfig validator
        self.project_id: str = config.project_id
        self.zone: str = config.zone
        self.client = compute_v1.ImagesClient(**config.client_kwargs())
        self._machine_images = compute_v1.MachineImagesClient(**config.client_kwargs())
        self._instances = compute_v1.InstancesClient(**config.client_kwargs())
        self._init_operations(config)

    def _image(self, image: Any) -> dict[str, Any]:
        return {
            "image_id": image.name,
            "name": image.name,
            "created_at": image.creation_timestamp,
            "min_disk_gb": int(image.labels.get(MIN_DISK_LABEL) or image.disk_size_gb or 0),
        }

    def find_images(
        self,
        *,
        name: str = "",
        owner: str = "",
        visibility: str = "",
        properties: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Search images in *owner*'s project (default: this project).

        ``properties`` are matched as labels.  ``visibility`` has no GCP
        equivalent and is ignored.
        """
        clauses = ['status = "READY"']
        if name:
            clauses.append(f'name = "{name}"')
        for key, value in _labels(properties).items():
            clauses.append(f'labels.{key} = "{value}"')
        request = compute_v1.ListImagesRequest(
            project=owner or self.project_id, filter=" AND ".join(clauses)
        )
        try:
            images = list(self.client.list(request=request))
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError("Failed to search images") from e
        images.sort(key=lambda i: i.creation_timestamp, reverse=True)
        return [self._image(i) for i in images]

    def get_image(self, image_id: str) -> dict[str, Any]:
        if image_id.startswith(MACHINE_IMAGE_PREFIX):
            name = image_id[len(MACHINE_IMAGE_PREFIX):]
            try:
                machine_image = self._machine_images.get(
                    project=self.project_id, machine_image=name
                )
            except gcp_exceptions.NotFound as e:
                raise ImageNotFoundError(f"Image '{image_id}' not found") from e
            except gcp_exceptions.GoogleAPICallError as e:
                raise ImageError(f"Failed to get image '{image_id}'") from e
            return {
                "image_id": image_id,
                "name": machine_image.name,
                "state": _STATE_MAP.get(machine_image.status, machine_image.status),
                "min_disk_gb": 0,
            }

        try:
            image = self.client.get(project=self.project_id, image=image_id)
        except gcp_exceptions.NotFound as e:
            raise ImageNotFoundError(f"Image '{image_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError(f"Failed to get image '{image_id}'") from e
        info = self._image(image)
        return {
            "image_id": info["image_id"],
            "name": info["name"],
            "state": _STATE_MAP.get(image.status, image.status),
            "min_disk_gb": info["min_disk_gb"],
        }

    def _boot_disk(self, instance_id: str) -> str:
        zone, name = split_id(instance_id, self.zone)
        inst = self._instances.get(project=self.project_id, zone=zone, instance=name)
        for disk in inst.disks:
            if disk.boot:
                return disk.source  # type: ignore[no-any-return]
        raise ImageError(f"Instance '{instance_id}' has no boot disk")

    def _insert(self, name: str, source_disk: str, kwargs: dict[str, Any]) -> str:
        image = compute_v1.Image(
            name=name,
            source_disk=source_disk,
            description=kwargs.get("description", ""),
            labels=_labels(kwargs.get("tags")),
        )
        op = self.client.insert(
            project=self.project_id, image_resource=image, force_create=True
        )
        return global_job(op)

    def create_system_image(self, name: str, instance_id: str, **kwargs: Any) -> str:
        """Create an image from the boot disk; the instance may be running.

        ``include_data_volumes`` is not supported by images; use
        :meth:`create_whole_image` for that.
        """
        try:
            return self._insert(name, self._boot_disk(instance_id), kwargs)
        except gcp_exceptions.NotFound as e:
            raise ImageError(f"Source instance '{instance_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError(f"Failed to create image '{name}'") from e

    def create_data_image(self, name: str, volume_id: str, **kwargs: Any) -> str:
        zone, disk = split_id(volume_id, self.zone)
        source = f"projects/{self.project_id}/zones/{zone}/disks/{disk}"
        try:
            return self._insert(name, source, kwargs)
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError(f"Failed to create image '{name}'") from e

    def create_whole_image(self, name: str, instance_id: str, **kwargs: Any) -> str:
        """Create a machine image of the instance with all of its disks.

        ``vault_id`` has no GCP equivalent and is ignored.
        """
        if kwargs.get("vault_id"):
            logger.debug("[DEBUG] vault_id is not used by Compute Engine, ignoring it")
        zone, instance = split_id(instance_id, self.zone)
        machine_image = compute_v1.MachineImage(
            name=name,
            description=kwargs.get("description", ""),
            source_instance=f"projects/{self.project_id}/zones/{zone}/instances/{instance}",
        )
        try:
            op = self._machine_images.insert(
                project=self.project_id, machine_image_resource=machine_image
            )
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError(f"Failed to create machine image '{name}'") from e
        return global_job(op)

    def add_members(self, image_ids: list[str], projects: list[str]) -> None:
        """Grant ``roles/compute.imageUser`` to the given members.

        Members are IAM principals such as ``user:a@example.com``; a bare
        project ID is granted to that project's viewers (``projectViewer:``).
        """
        members = [m if ":" in m else f"projectViewer:{m}" for m in projects]
        for image_id in image_ids:
            if image_id.startswith(MACHINE_IMAGE_PREFIX):
                raise ImageError(f"Sharing machine image '{image_id}' is not supported")
            try:
                policy = self.client.get_iam_policy(project=self.project_id, resource=image_id)
                binding = next((b for b in policy.bindings if b.role == IMAGE_USER_ROLE), None)
                if binding is None:
                    policy.bindings.append(
                        compute_v1.Binding(role=IMAGE_USER_ROLE, members=members)
                    )
                else:
                    binding.members.extend(m for m in members if m not in binding.members)
                self.client.set_iam_policy(
                    project=self.project_id,
                    resource=image_id,
                    global_set_policy_request_resource=compute_v1.GlobalSetPolicyRequest(
                        policy=policy
                    ),
                )
            except gcp_exceptions.NotFound as e:
                raise ImageNotFoundError(f"Image '{image_id}' not found") from e
            except gcp_exceptions.GoogleAPICallError as e:
                raise ImageError(f"Failed to share image '{image_id}'") from e

    def update_min_disk(self, image_id: str, min_disk_gb: int) -> None:
        """Record the minimum disk size as the ``min-disk-gb`` label."""
        try:
            image = self.client.get(project=self.project_id, image=image_id)
            labels = dict(image.labels)
            labels[MIN_DISK_LABEL] = str(min_disk_gb)
            self.client.set_labels(
                project=self.project_id,
                resource=image_id,
                global_set_labels_request_resource=compute_v1.GlobalSetLabelsRequest(
                    labels=labels, label_fingerprint=image.label_fingerprint
                ),
            )
        except gcp_exceptions.NotFound as e:
            raise ImageNotFoundError(f"Image '{image_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError(f"Failed to update image '{image_id}'") from e

    def delete_image(self, image_id: str) -> None:
        try:
            if image_id.startswith(MACHINE_IMAGE_PREFIX):
                self._machine_images.delete(
                    project=self.project_id,
                    machine_image=image_id[len(MACHINE_IMAGE_PREFIX):],
                )
            else:
                self.client.delete(project=self.project_id, image=image_id)
        except gcp_exceptions.NotFound as e:
            raise ImageNotFoundError(f"Image '{image_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise ImageError(f"Failed to delete image '{image_id}'") from e

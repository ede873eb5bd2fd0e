"""Tests for GCP Image service."""

from unittest.mock import patch
import pytest

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.gcp.image import Image
from bake.base.config import GCPConfig
from bake.base.exceptions import ImageError, ImageNotFoundError


def _op(name="op-img"):
    return compute_v1.Operation(name=name, status=compute_v1.Operation.Status.RUNNING)


@pytest.fixture
def svc():
    with (
        patch("bake.gcp.image.compute_v1.ImagesClient") as MockImages,
        patch("bake.gcp.image.compute_v1.MachineImagesClient") as MockMachineImages,
        patch("bake.gcp.image.compute_v1.InstancesClient") as MockInstances,
        patch("bake.gcp.operations.compute_v1.ZoneOperationsClient"),
        patch("bake.gcp.operations.compute_v1.RegionOperationsClient"),
        patch("bake.gcp.operations.compute_v1.GlobalOperationsClient"),
    ):
        mocks = {
            "images": MockImages.return_value,
            "machine_images": MockMachineImages.return_value,
            "instances": MockInstances.return_value,
        }
        mocks["images"].insert.return_value = _op()
        mocks["machine_images"].insert.return_value = _op("op-mi")
        instance = Image(GCPConfig(project_id="my-project", region="us-central1"))
        yield instance, mocks


class TestFindImages:
    def test_newest_first(self, svc):
        img, mocks = svc
        mocks["images"].list.return_value = [
            compute_v1.Image(name="web-old", creation_timestamp="2024-01-01T00:00:00.000-07:00",
                             disk_size_gb=10),
            compute_v1.Image(name="web-new", creation_timestamp="2025-01-01T00:00:00.000-07:00",
                             disk_size_gb=20, labels={"min-disk-gb": "40"}),
        ]
        images = img.find_images(name="web", owner="debian-cloud", properties={"OS": "Linux"})
        assert [i["image_id"] for i in images] == ["web-new", "web-old"]
        assert images[0]["min_disk_gb"] == 40
        assert images[1]["min_disk_gb"] == 10

        request = mocks["images"].list.call_args[1]["request"]
        assert request.project == "debian-cloud"
        assert request.filter == 'status = "READY" AND name = "web" AND labels.os = "linux"'

    def test_own_project_by_default(self, svc):
        img, mocks = svc
        mocks["images"].list.return_value = []
        assert img.find_images(visibility="private") == []
        assert mocks["images"].list.call_args[1]["request"].project == "my-project"


class TestGetImage:
    def test_image(self, svc):
        img, mocks = svc
        mocks["images"].get.return_value = compute_v1.Image(
            name="web", status="READY", disk_size_gb=10
        )
        assert img.get_image("web") == {
            "image_id": "web", "name": "web", "state": "ACTIVE", "min_disk_gb": 10,
        }

    def test_machine_image(self, svc):
        img, mocks = svc
        mocks["machine_images"].get.return_value = compute_v1.MachineImage(
            name="web", status="CREATING"
        )
        info = img.get_image("machineImages/web")
        assert info["image_id"] == "machineImages/web"
        assert info["state"] == "CREATING"
        mocks["machine_images"].get.assert_called_once_with(
            project="my-project", machine_image="web"
        )

    def test_not_found(self, svc):
        img, mocks = svc
        mocks["images"].get.side_effect = gcp_exceptions.NotFound("nope")
        with pytest.raises(ImageNotFoundError):
            img.get_image("ghost")


class TestCapture:
    def test_system_image_from_boot_disk(self, svc):
        img, mocks = svc
        mocks["instances"].get.return_value = compute_v1.Instance(disks=[
            compute_v1.AttachedDisk(boot=False, source="zones/z/disks/data-0"),
            compute_v1.AttachedDisk(boot=True, source="zones/z/disks/web"),
        ])
        job_id = img.create_system_image("web", "us-central1-b/web", tags={"Team": "Web"})
        assert job_id == "global/op-img"
        assert mocks["instances"].get.call_args[1]["zone"] == "us-central1-b"
        call_kwargs = mocks["images"].insert.call_args[1]
        assert call_kwargs["force_create"] is True
        assert call_kwargs["image_resource"].source_disk == "zones/z/disks/web"
        assert dict(call_kwargs["image_resource"].labels) == {"team": "web"}

    def test_system_image_without_boot_disk(self, svc):
        img, mocks = svc
        mocks["instances"].get.return_value = compute_v1.Instance()
        with pytest.raises(ImageError, match="no boot disk"):
            img.create_system_image("web", "us-central1-a/web")

    def test_system_image_missing_instance(self, svc):
        img, mocks = svc
        mocks["instances"].get.side_effect = gcp_exceptions.NotFound("nope")
        with pytest.raises(ImageError):
            img.create_system_image("web", "us-central1-a/ghost")

    def test_data_image(self, svc):
        img, mocks = svc
        assert img.create_data_image("web-data", "us-central1-a/data-0") == "global/op-img"
        resource = mocks["images"].insert.call_args[1]["image_resource"]
        assert resource.source_disk == "projects/my-project/zones/us-central1-a/disks/data-0"

    def test_whole_image(self, svc):
        img, mocks = svc
        job_id = img.create_whole_image("web", "us-central1-a/web", vault_id="ignored")
        assert job_id == "global/op-mi"
        resource = mocks["machine_images"].insert.call_args[1]["machine_image_resource"]
        assert resource.source_instance == "projects/my-project/zones/us-central1-a/instances/web"

    def test_insert_error(self, svc):
        img, mocks = svc
        mocks["images"].insert.side_effect = gcp_exceptions.Conflict("exists")
        with pytest.raises(ImageError):
            img.create_data_image("web-data", "us-central1-a/data-0")


class TestManagement:
    def test_add_members_new_binding(self, svc):
        img, mocks = svc
        mocks["images"].get_iam_policy.return_value = compute_v1.Policy()
        img.add_members(["web"], ["other-project", "user:a@example.com"])
        request = mocks["images"].set_iam_policy.call_args[1]["global_set_policy_request_resource"]
        binding = request.policy.bindings[0]
        assert binding.role == "roles/compute.imageUser"
        assert list(binding.members) == ["projectViewer:other-project", "user:a@example.com"]

    def test_add_members_extends_binding(self, svc):
        img, mocks = svc
        mocks["images"].get_iam_policy.return_value = compute_v1.Policy(bindings=[
            compute_v1.Binding(role="roles/compute.imageUser", members=["user:a@example.com"])
        ])
        img.add_members(["web"], ["user:a@example.com", "user:b@example.com"])
        request = mocks["images"].set_iam_policy.call_args[1]["global_set_policy_request_resource"]
        assert list(request.policy.bindings[0].members) == [
            "user:a@example.com", "user:b@example.com",
        ]

    def test_add_members_machine_image(self, svc):
        img, _ = svc
        with pytest.raises(ImageError):
            img.add_members(["machineImages/web"], ["other-project"])

    def test_update_min_disk(self, svc):
        img, mocks = svc
        mocks["images"].get.return_value = compute_v1.Image(
            name="web", labels={"team": "web"}, label_fingerprint="fp"
        )
        img.update_min_disk("web", 40)
        request = mocks["images"].set_labels.call_args[1]["global_set_labels_request_resource"]
        assert dict(request.labels) == {"team": "web", "min-disk-gb": "40"}
        assert request.label_fingerprint == "fp"

    def test_delete_machine_image(self, svc):
        img, mocks = svc
        img.delete_image("machineImages/web")
        mocks["machine_images"].delete.assert_called_once_with(
            project="my-project", machine_image="web"
        )
        mocks["images"].delete.assert_not_called()

    def test_delete_missing(self, svc):
        img, mocks = svc
        mocks["images"].delete.side_effect = gcp_exceptions.NotFound("nope")
        with pytest.raises(ImageNotFoundError):
            img.delete_image("ghost")

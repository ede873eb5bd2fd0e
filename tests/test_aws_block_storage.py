"""Tests for AWS EBS BlockStorage service."""

from unittest.mock import patch, MagicMock
import pytest
from botocore.exceptions import ClientError

from bake.aws.block_storage import BlockStorage
from bake.base.config import AWSConfig
from bake.base.exceptions import (
    BlockStorageError,
    ImageNotFoundError,
    SnapshotNotFoundError,
    VolumeNotFoundError,
)


def _client_error(code: str, msg: str = "error") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": msg}}, "op")


@pytest.fixture
def svc():
    with patch("bake.aws.block_storage.boto3") as mock_boto:
        mock_client = MagicMock()
        mock_boto.client.return_value = mock_client
        instance = BlockStorage(AWSConfig(
            aws_access_key_id="key",
            aws_secret_access_key="secret",
            region_name="us-east-1",
        ))
        yield instance, mock_client


class TestCreateVolume:
    def test_sized_volume(self, svc):
        storage, client = svc
        client.create_volume.return_value = {"VolumeId": "vol-1"}
        assert storage.create_volume("data", 10, "us-east-1a", volume_type="gp3") == "vol-1"
        call_kwargs = client.create_volume.call_args[1]
        assert call_kwargs["Size"] == 10
        assert call_kwargs["VolumeType"] == "gp3"
        assert call_kwargs["AvailabilityZone"] == "us-east-1a"

    def test_unknown_type_uses_default(self, svc):
        storage, client = svc
        client.create_volume.return_value = {"VolumeId": "vol-1"}
        storage.create_volume("data", 10, "us-east-1a", volume_type="SSD")
        assert "VolumeType" not in client.create_volume.call_args[1]

    def test_from_snapshot(self, svc):
        storage, client = svc
        client.create_volume.return_value = {"VolumeId": "vol-2"}
        storage.create_volume("data", 0, "us-east-1a", snapshot_id="snap-1")
        call_kwargs = client.create_volume.call_args[1]
        assert call_kwargs["SnapshotId"] == "snap-1"
        assert "Size" not in call_kwargs

    def test_from_image_uses_root_snapshot(self, svc):
        storage, client = svc
        client.describe_images.return_value = {"Images": [{
            "RootDeviceName": "/dev/xvda",
            "BlockDeviceMappings": [
                {"DeviceName": "/dev/sdb", "VirtualName": "ephemeral0"},
                {"DeviceName": "/dev/xvda", "Ebs": {"SnapshotId": "snap-root"}},
            ],
        }]}
        client.create_volume.return_value = {"VolumeId": "vol-3"}
        storage.create_volume("boot", 20, "us-east-1a", image_id="ami-1")
        assert client.create_volume.call_args[1]["SnapshotId"] == "snap-root"

    def test_from_missing_image(self, svc):
        storage, client = svc
        client.describe_images.return_value = {"Images": []}
        with pytest.raises(ImageNotFoundError):
            storage.create_volume("boot", 20, "us-east-1a", image_id="ami-x")

    def test_error(self, svc):
        storage, client = svc
        client.create_volume.side_effect = _client_error("VolumeLimitExceeded")
        with pytest.raises(BlockStorageError):
            storage.create_volume("data", 10, "us-east-1a")


class TestVolumes:
    def test_get(self, svc):
        storage, client = svc
        client.describe_volumes.return_value = {"Volumes": [
            {"VolumeId": "vol-1", "State": "in-use", "Size": 10, "Tags": [],
             "AvailabilityZone": "us-east-1b"}
        ]}
        assert storage.get_volume("vol-1") == {
            "volume_id": "vol-1", "name": "", "state": "IN_USE", "size_gb": 10,
            "zone": "us-east-1b",
        }

    def test_get_missing(self, svc):
        storage, client = svc
        client.describe_volumes.side_effect = _client_error("InvalidVolume.NotFound")
        with pytest.raises(VolumeNotFoundError):
            storage.get_volume("vol-x")

    def test_delete(self, svc):
        storage, client = svc
        storage.delete_volume("vol-1")
        client.delete_volume.assert_called_once_with(VolumeId="vol-1")


class TestSnapshots:
    def test_get(self, svc):
        storage, client = svc
        client.describe_snapshots.return_value = {
            "Snapshots": [{"SnapshotId": "snap-1", "VolumeSize": 50}]
        }
        assert storage.get_snapshot("snap-1") == {"snapshot_id": "snap-1", "size_gb": 50}

    def test_missing(self, svc):
        storage, client = svc
        client.describe_snapshots.side_effect = _client_error("InvalidSnapshot.NotFound")
        with pytest.raises(SnapshotNotFoundError):
            storage.get_snapshot("snap-x")

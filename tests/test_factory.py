from unittest.mock import patch, MagicMock
import pytest
from pydantic import ValidationError

from bake.base.config import AWSConfig
from bake.factory import universal_factory
from bake.base import (
    BlockStorageBlueprint,
    ComputeBlueprint,
    ImageBlueprint,
    NetworkBlueprint,
)

AWS_CONFIG = {
    "aws_access_key_id": "k",
    "aws_secret_access_key": "s",
    "region_name": "us-east-1",
}


class TestUniversalFactory:
    @patch("bake.aws.compute.boto3")
    def test_aws_compute(self, mock_boto):
        mock_boto.client.return_value = MagicMock()
        result = universal_factory("compute", "aws", AWS_CONFIG)
        assert isinstance(result, ComputeBlueprint)
        assert mock_boto.client.call_args[0][0] == "ec2"

    @patch("bake.aws.network.boto3")
    def test_aws_network(self, mock_boto):
        mock_boto.client.return_value = MagicMock()
        assert isinstance(universal_factory("network", "aws", AWS_CONFIG), NetworkBlueprint)

    @patch("bake.aws.block_storage.boto3")
    def test_aws_block_storage(self, mock_boto):
        mock_boto.client.return_value = MagicMock()
        result = universal_factory("block_storage", "aws", AWS_CONFIG)
        assert isinstance(result, BlockStorageBlueprint)

    @patch("bake.aws.image.boto3")
    def test_aws_image(self, mock_boto):
        mock_boto.client.return_value = MagicMock()
        assert isinstance(universal_factory("image", "aws", AWS_CONFIG), ImageBlueprint)

    @patch("bake.gcp.operations.compute_v1")
    @patch("bake.gcp.compute.compute_v1")
    def test_gcp_compute(self, mock_compute, mock_ops):
        result = universal_factory("compute", "gcp", {"project_id": "p"})
        assert isinstance(result, ComputeBlueprint)
        assert result.zone == "us-central1-a"

    @patch("bake.gcp.operations.compute_v1")
    @patch("bake.gcp.image.compute_v1")
    def test_gcp_image(self, mock_compute, mock_ops):
        assert isinstance(universal_factory("image", "gcp", {"project_id": "p"}), ImageBlueprint)

    def test_invalid_config(self):
        with pytest.raises(ValidationError):
            universal_factory("compute", "aws", {"bogus": 1})

    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match="Unsupported cloud provider"):
            universal_factory("compute", "azure", {})

    def test_unsupported_service(self):
        with pytest.raises(ValueError, match="Unsupported service"):
            universal_factory("database", "aws", {})

    @patch("bake.aws.image.boto3")
    def test_validated_model(self, mock_boto):
        access = AWSConfig(**AWS_CONFIG)
        result = universal_factory("image", "aws", access)
        assert isinstance(result, ImageBlueprint)
        assert mock_boto.client.call_args[1]["region_name"] == "us-east-1"

    def test_model_of_other_provider(self):
        with pytest.raises(ValueError, match="cannot configure provider 'gcp'"):
            universal_factory("image", "gcp", AWSConfig(**AWS_CONFIG))

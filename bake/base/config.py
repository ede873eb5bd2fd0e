"""
Pydantic configuration models for cloud provider access.

A build talks to a single region of a single provider: images, snapshots
and servers are regional resources, so the region is required and every
service client of the build is created from the same model through
:meth:`AWSConfig.client_kwargs` / :meth:`GCPConfig.client_kwargs`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from botocore.config import Config as BotoConfig
from google.api_core.client_options import ClientOptions
from google.api_core.gapic_v1.client_info import ClientInfo
from pydantic import BaseModel, ConfigDict, Field, model_validator

USER_AGENT = "cloudbake/0.1.0"


class AWSConfig(BaseModel):
    """Access configuration for the EC2 API.

    Values are resolved in order:
    1. Explicit values passed in the config dict.
    2. Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY,
       AWS_SESSION_TOKEN, AWS_DEFAULT_REGION, AWS_ENDPOINT_URL_EC2).
    3. Credentials left as None fall back to boto3's own chain (instance
       metadata, ~/.aws/credentials, etc.).  The region has no fallback.
    """

    model_config = ConfigDict(extra="forbid")

    aws_access_key_id: str | None = Field(default=None, description="AWS access key ID")
    aws_secret_access_key: str | None = Field(default=None, description="AWS secret access key")
    aws_session_token: str | None = Field(default=None, description="AWS session token")
    region_name: str | None = Field(default=None, description="AWS region (e.g. 'us-east-1')")
    endpoint_url: str | None = Field(default=None, description="Custom EC2 endpoint")
    insecure: bool = Field(default=False, description="Skip TLS certificate verification")

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Fall back to environment variables for missing access values."""
        env_map = {
            "aws_access_key_id": "AWS_ACCESS_KEY_ID",
            "aws_secret_access_key": "AWS_SECRET_ACCESS_KEY",
            "aws_session_token": "AWS_SESSION_TOKEN",
            "region_name": "AWS_DEFAULT_REGION",
            "endpoint_url": "AWS_ENDPOINT_URL_EC2",
        }
        for field, env_var in env_map.items():
            if not values.get(field):
                values[field] = os.environ.get(env_var)
        return values

    @model_validator(mode="after")
    def require_region(self) -> AWSConfig:
        if not self.region_name:
            raise ValueError(
                "AWS region_name is required. Set it explicitly or via AWS_DEFAULT_REGION."
            )
        return self

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``boto3.client("ec2", ...)``."""
        return {
            "aws_access_key_id": self.aws_access_key_id,
            "aws_secret_access_key": self.aws_secret_access_key,
            "aws_session_token": self.aws_session_token,
            "region_name": self.region_name,
            "endpoint_url": self.endpoint_url,
            "verify": not self.insecure,
            "config": BotoConfig(user_agent_extra=USER_AGENT),
        }


class GCPConfig(BaseModel):
    """Access configuration for the Compute Engine API.

    Values are resolved in order:
    1. Explicit values passed in the config dict.
    2. Environment variables (GOOGLE_CLOUD_PROJECT, GOOGLE_APPLICATION_CREDENTIALS,
       CLOUDSDK_COMPUTE_REGION, CLOUDSDK_COMPUTE_ZONE).
    3. Credentials left as None fall back to Application Default
       Credentials (ADC).  The zone defaults to ``<region>-a``.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    project_id: str | None = Field(default=None, description="GCP project ID")
    credentials: Any | None = Field(default=None, description="GCP credentials object")
    credentials_path: str | None = Field(
        default=None, description="Path to service account JSON key file"
    )
    region: str = Field(default="us-central1", description="Region for subnets and addresses")
    zone: str = Field(default="", description="Default zone; derived from region when empty")
    api_endpoint: str | None = Field(default=None, description="Custom Compute Engine endpoint")

    @model_validator(mode="before")
    @classmethod
    def resolve_from_env(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Fall back to environment variables for missing config."""
        if not values.get("project_id"):
            values["project_id"] = os.environ.get("GOOGLE_CLOUD_PROJECT") or os.environ.get(
                "GCLOUD_PROJECT"
            )
        if not values.get("credentials_path"):
            values["credentials_path"] = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if not values.get("region") and os.environ.get("CLOUDSDK_COMPUTE_REGION"):
            values["region"] = os.environ["CLOUDSDK_COMPUTE_REGION"]
        if not values.get("zone") and os.environ.get("CLOUDSDK_COMPUTE_ZONE"):
            values["zone"] = os.environ["CLOUDSDK_COMPUTE_ZONE"]
        return values

    @model_validator(mode="after")
    def validate_project_and_credentials(self) -> GCPConfig:
        """Ensure project_id is set and load credentials from path if needed."""
        if not self.zone:
            self.zone = f"{self.region}-a"
        elif not self.zone.startswith(f"{self.region}-"):
            raise ValueError(f"Zone '{self.zone}' is not in region '{self.region}'")
        if self.project_id is None:
            raise ValueError(
                "GCP project_id is required. Set it explicitly or via "
                "GOOGLE_CLOUD_PROJECT / GCLOUD_PROJECT environment variable."
            )
        if self.credentials is None and self.credentials_path:
            path = Path(self.credentials_path)
            if not path.exists():
                raise ValueError(f"Credentials file not found: {self.credentials_path}")
            from google.oauth2 import service_account  # lazy import

            self.credentials = service_account.Credentials.from_service_account_file(
                str(path)
            )
        return self

    def client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for every ``compute_v1`` client constructor."""
        kwargs: dict[str, Any] = {
            "credentials": self.credentials,
            "client_info": ClientInfo(user_agent=USER_AGENT),
        }
        if self.api_endpoint:
            kwargs["client_options"] = ClientOptions(api_endpoint=self.api_endpoint)
        return kwargs


# Map provider names to their config models for dynamic validation
CONFIG_REGISTRY: dict[str, type[BaseModel]] = {
    "aws": AWSConfig,
    "gcp": GCPConfig,
}


def validate_config(cloud_provider: str, config: dict) -> BaseModel:
    """Validate and return a typed config model for the given provider.

    Args:
        cloud_provider: The cloud provider name (e.g. 'aws', 'gcp').
        config: Raw configuration dictionary.

    Returns:
        A validated Pydantic config model.

    Raises:
        ValueError: If the provider is unknown.
        pydantic.ValidationError: If the config is invalid.
    """
    model = CONFIG_REGISTRY.get(cloud_provider)
    if model is None:
        raise ValueError(f"No config model registered for provider: {cloud_provider}")
    return model(**config)


__all__ = [
    "AWSConfig",
    "GCPConfig",
    "CONFIG_REGISTRY",
    "USER_AGENT",
    "validate_config",
]

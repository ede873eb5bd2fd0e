"""Universal service factory.

Provides :func:`universal_factory`, the single entry-point for creating
cloud service clients.  The function dispatches to provider-specific
factories (AWS, GCP) based on ``cloud_provider`` and returns a typed
instance via ``@overload`` signatures so IDEs can autocomplete methods.
"""

from typing import overload, Literal, Any

from pydantic import BaseModel

from bake.base import (
    ComputeBlueprint,
    NetworkBlueprint,
    BlockStorageBlueprint,
    ImageBlueprint,
    existing_services,
    existing_cloud_providers,
)
from bake.base.config import CONFIG_REGISTRY, validate_config
from bake.aws.factory import SERVICE_REGISTRY as AWS_SERVICES
from bake.gcp.factory import SERVICE_REGISTRY as GCP_SERVICES


_FACTORY_REGISTRY: dict[str, dict[str, type]] = {
    "aws": AWS_SERVICES,
    "gcp": GCP_SERVICES,
}


@overload
def universal_factory(
    service_name: Literal["compute"],
    cloud_provider: existing_cloud_providers,
    config: dict | BaseModel,
) -> ComputeBlueprint: ...


@overload
def universal_factory(
    service_name: Literal["network"],
    cloud_provider: existing_cloud_providers,
    config: dict | BaseModel,
) -> NetworkBlueprint: ...


@overload
def universal_factory(
    service_name: Literal["block_storage"],
    cloud_provider: existing_cloud_providers,
    config: dict | BaseModel,
) -> BlockStorageBlueprint: ...


@overload
def universal_factory(
    service_name: Literal["image"],
    cloud_provider: existing_cloud_providers,
    config: dict | BaseModel,
) -> ImageBlueprint: ...


def universal_factory(
    service_name: existing_services,
    cloud_provider: existing_cloud_providers,
    config: dict | BaseModel,
) -> Any:
    """
    Create the service client a build needs for one cloud provider.

    Args:
        service_name: The name of the service (e.g., 'compute').
        cloud_provider: The cloud provider (e.g., 'aws', 'gcp').
        config: Provider access configuration, either a raw dict (validated
            here) or a model already returned by :func:`validate_config`.
    Returns:
        An instance of the requested service class.
    Raises:
        ValueError: If the cloud provider or service is not supported, or
            *config* is a model of another provider.
        pydantic.ValidationError: If the provider configuration is invalid.
    """
    if cloud_provider not in _FACTORY_REGISTRY:
        raise ValueError(f"Unsupported cloud provider: {cloud_provider}")

    provider_services = _FACTORY_REGISTRY[cloud_provider]

    if service_name not in provider_services:
        raise ValueError(
            f"Unsupported service '{service_name}' for provider '{cloud_provider}'"
        )

    if isinstance(config, BaseModel):
        expected = CONFIG_REGISTRY[cloud_provider]
        if not isinstance(config, expected):
            raise ValueError(
                f"{type(config).__name__} cannot configure provider '{cloud_provider}'"
            )
        config_obj = config
    else:
        config_obj = validate_config(cloud_provider, config)
    return provider_services[service_name](config_obj)

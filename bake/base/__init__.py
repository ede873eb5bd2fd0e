"""Abstract service blueprints and core utilities.

Every cloud service used by a build inherits from one of the blueprints
defined here.  Import them to type-hint your own code or to plug in a
custom provider.
"""

from .jobs import JobBlueprint
from .compute import ComputeBlueprint
from .network import NetworkBlueprint
from .block_storage import BlockStorageBlueprint
from .image import ImageBlueprint
from .supported_services import existing_services, existing_cloud_providers


__all__ = [
    "JobBlueprint",
    "ComputeBlueprint",
    "NetworkBlueprint",
    "BlockStorageBlueprint",
    "ImageBlueprint",
    "existing_services",
    "existing_cloud_providers",
]

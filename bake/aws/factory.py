"""AWS service factory.

Maps service names to their AWS SDK implementations.
``SERVICE_REGISTRY`` is consumed by :func:`bake.factory.universal_factory`.
"""

from bake.aws.compute import Compute
from bake.aws.network import Network
from bake.aws.block_storage import BlockStorage
from bake.aws.image import Image


SERVICE_REGISTRY: dict[str, type] = {
    "compute": Compute,
    "network": Network,
    "block_storage": BlockStorage,
    "image": Image,
}

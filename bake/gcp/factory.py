"""GCP service factory.

Maps service names to their GCP SDK implementations.
``SERVICE_REGISTRY`` is consumed by :func:`bake.factory.universal_factory`.
"""

from bake.gcp.compute import Compute
from bake.gcp.network import Network
from bake.gcp.block_storage import BlockStorage
from bake.gcp.image import Image


SERVICE_REGISTRY: dict[str, type] = {
    "compute": Compute,
    "network": Network,
    "block_storage": BlockStorage,
    "image": Image,
}

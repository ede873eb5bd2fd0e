"""GCP provider implementations."""

from .block_storage import BlockStorage
from .compute import Compute
from .image import Image
from .network import Network

__all__ = [
    "BlockStorage",
    "Compute",
    "Image",
    "Network",
]

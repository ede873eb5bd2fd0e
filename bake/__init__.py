"""Cloudbake: machine-image builds on AWS and GCP.

Entry point for the library.  Build an image with :class:`ImageBuilder`,
or create a single service client with :func:`universal_factory`::

    from bake import ImageBuilder

    artifact = ImageBuilder(template, "aws", {"region_name": "us-east-1"}).run()
"""

from .base import (
    BlockStorageBlueprint,
    ComputeBlueprint,
    ImageBlueprint,
    NetworkBlueprint,
)
from .artifact import Artifact
from .builder import BUILDER_ID, ImageBuilder
from .config import BuildConfig
from .engine import CancelSignal
from .factory import universal_factory

__all__ = [
    "Artifact",
    "BUILDER_ID",
    "BlockStorageBlueprint",
    "BuildConfig",
    "CancelSignal",
    "ComputeBlueprint",
    "ImageBlueprint",
    "ImageBuilder",
    "NetworkBlueprint",
    "universal_factory",
]

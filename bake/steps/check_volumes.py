"""Validate the data volumes before anything is launched."""

from __future__ import annotations

import logging

from bake.base.exceptions import CloudbakeError
from bake.config import DataVolume
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction

logger = logging.getLogger(__name__)


def resolve_size(state: BuildState, volume: DataVolume) -> int:
    """Size in GiB of the data volume *volume* describes.

    An existing volume must live in the build's availability zone.
    Snapshots and images are not zonal on either provider, so only their
    existence is checked.
    """
    if volume.source == "volume_id":
        found = state.block_storage.get_volume(volume.volume_id)
        zone = found.get("zone")
        if zone and zone != state.availability_zone:
            raise CloudbakeError(
                f"can not find the volume {volume.volume_id} in {state.availability_zone}"
                f" (it is in {zone})"
            )
        size = found["size_gb"]
        logger.debug("[DEBUG] the volume size of %s is %d GB", volume.volume_id, size)
        return size
    if volume.source == "snapshot_id":
        size = state.block_storage.get_snapshot(volume.snapshot_id)["size_gb"]
        logger.debug("[DEBUG] the target volume size of snapshot %s is %d GB",
                     volume.snapshot_id, size)
        return size
    if volume.source == "data_image_id":
        size = state.image.get_image(volume.data_image_id)["min_disk_gb"]
        logger.debug("[DEBUG] the minimum target volume size of image %s is %d GB",
                     volume.data_image_id, size)
        return size
    return volume.volume_size


class CheckVolumes(Step):
    """Resolve every data volume in the chosen zone before the server launches.

    A mistyped volume, snapshot or image, or a volume in another zone,
    stops the build while nothing exists yet.  All problems are reported
    at once.  Produces ``data_volume_sizes``, one entry per data volume.
    """

    def __init__(self, data_volumes: list[DataVolume] | None = None) -> None:
        self.data_volumes = list(data_volumes or [])

    def run(self, state: BuildState) -> StepAction:
        if not self.data_volumes:
            return StepAction.CONTINUE

        state.ui.say("Checking data volumes ...")
        sizes = []
        errors = []
        for index, volume in enumerate(self.data_volumes):
            try:
                sizes.append(resolve_size(state, volume))
            except CloudbakeError as e:
                errors.append(f"data_volumes[{index}]: {e}")
        if errors:
            return self.halt(state, CloudbakeError("; ".join(errors)))

        state.data_volume_sizes = sizes
        return StepAction.CONTINUE

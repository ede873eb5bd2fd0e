"""Boot volume for instances that boot from block storage."""

from __future__ import annotations

from bake.base.exceptions import CloudbakeError, VolumeNotFoundError, WaitError
from bake.engine.refresh import volume_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState, ResourceHandle, ResourceKind
from bake.pipeline.step import Step, StepAction


class CreateVolume(Step):
    """Create a volume from the source image for the instance to boot from.

    Skipped unless ``use_blockstorage_volume`` is set.  Requires
    ``source_image`` and ``availability_zone``; produces ``boot_volume``.
    """

    def __init__(
        self,
        volume_name: str,
        volume_type: str = "",
        volume_size: int = 0,
        *,
        enabled: bool = True,
        timeout: float = 600.0,
        delay: float = 0.0,
        min_timeout: float = 2.0,
    ) -> None:
        self.volume_name = volume_name
        self.volume_type = volume_type
        self.volume_size = volume_size
        self.enabled = enabled
        self.timeout = timeout
        self.delay = delay
        self.min_timeout = min_timeout

    def run(self, state: BuildState) -> StepAction:
        if not self.enabled:
            return StepAction.CONTINUE

        ui = state.ui
        size = self.volume_size
        if size == 0:
            try:
                size = state.image.get_image(state.source_image)["min_disk_gb"]
            except CloudbakeError as e:
                return self.halt(state, CloudbakeError(f"Error creating volume: {e}"))

        ui.say("Creating volume...")
        try:
            volume_id = state.block_storage.create_volume(
                self.volume_name,
                size,
                state.availability_zone,
                volume_type=self.volume_type,
                image_id=state.source_image,
            )
        except CloudbakeError as e:
            return self.halt(state, CloudbakeError(f"Error creating volume: {e}"))
        state.boot_volume = ResourceHandle(ResourceKind.VOLUME, volume_id)

        ui.say(
            f"Waiting for volume {self.volume_name} (volume id: {volume_id}) "
            "to become available..."
        )
        try:
            self._wait_available(state, volume_id, cancellable=True)
        except WaitError as e:
            return self.halt(state, CloudbakeError(f"Error waiting for volume: {e}"))

        ui.message(f"Volume ID: {volume_id}")
        return StepAction.CONTINUE

    def _wait_available(self, state: BuildState, volume_id: str, *, cancellable: bool) -> None:
        options = state.wait_options() if cancellable else state.wait_options(cancel=None)
        StateChangeConf(
            refresh=volume_state_refresh(state.block_storage, volume_id),
            pending=["CREATING", "DELETING", "IN_USE"],
            target=["AVAILABLE"],
            timeout=self.timeout,
            delay=self.delay,
            min_timeout=self.min_timeout,
            **options,
        ).wait_for_state()

    def cleanup(self, state: BuildState) -> None:
        handle = state.boot_volume
        if not handle.is_live:
            return

        ui = state.ui
        storage = state.block_storage
        try:
            status = storage.get_volume(handle.id)["state"]
        except VolumeNotFoundError:
            handle.release()
            return
        except CloudbakeError:
            ui.error(
                "Error getting the volume information. Please delete the volume "
                f"manually: {handle.id}"
            )
            return

        if status != "AVAILABLE":
            ui.say(
                f"Waiting for volume {self.volume_name} (volume id: {handle.id}) "
                "to become available..."
            )
            try:
                self._wait_available(state, handle.id, cancellable=False)
            except CloudbakeError:
                ui.error(
                    "Error getting the volume information. Please delete the volume "
                    f"manually: {handle.id}"
                )
                return

        ui.say(f"Deleting volume: {handle.id} ...")
        try:
            storage.delete_volume(handle.id)
        except VolumeNotFoundError:
            pass
        except CloudbakeError:
            ui.error(f"Error cleaning up volume. Please delete the volume manually: {handle.id}")
            return
        handle.release()

"""Data volumes of the build instance."""

from __future__ import annotations

from bake.base.exceptions import (
    CloudbakeError,
    InstanceNotFoundError,
    VolumeNotFoundError,
    WaitError,
)
from bake.config import DataVolume
from bake.engine.refresh import job_state_refresh, volume_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState, ResourceHandle, ResourceKind
from bake.pipeline.step import Step, StepAction
from bake.steps.check_volumes import resolve_size


class AttachVolume(Step):
    """Attach the configured data volumes to the build instance.

    A data volume is either an existing volume (``volume_id``) or a new one
    sized explicitly, or created from a data image or a snapshot.  New
    volumes are owned by the build and deleted during cleanup; existing
    ones are only detached.

    Requires ``server``; produces ``data_volumes`` and ``attached_volume_ids``.
    """

    def __init__(
        self,
        data_volumes: list[DataVolume] | None = None,
        prefix_name: str = "cloudbake",
        *,
        timeout: float = 600.0,
        delay: float = 10.0,
        poll_interval: float = 10.0,
    ) -> None:
        self.data_volumes = list(data_volumes or [])
        self.prefix_name = prefix_name
        self.timeout = timeout
        self.delay = delay
        self.poll_interval = poll_interval
        self._detached: set[str] = set()

    def run(self, state: BuildState) -> StepAction:
        if not self.data_volumes:
            return StepAction.CONTINUE

        for index, volume in enumerate(self.data_volumes):
            try:
                if volume.source == "volume_id":
                    volume_id = volume.volume_id
                else:
                    volume_id = self._create(state, index, volume)
                self._attach(state, volume_id)
            except CloudbakeError as e:
                return self.halt(state, e)
        return StepAction.CONTINUE

    def _create(self, state: BuildState, index: int, volume: DataVolume) -> str:
        ui = state.ui
        if index < len(state.data_volume_sizes):
            size = state.data_volume_sizes[index]
        else:
            size = resolve_size(state, volume)

        ui.say("Creating volume...")
        volume_id = state.block_storage.create_volume(
            f"{self.prefix_name}-data-{index}",
            size,
            state.availability_zone,
            volume_type=volume.volume_type,
            image_id=volume.data_image_id or None,
            snapshot_id=volume.snapshot_id or None,
        )
        state.data_volumes.append(ResourceHandle(ResourceKind.VOLUME, volume_id))

        ui.message("Waiting for create volume success...")
        conf = StateChangeConf(
            refresh=volume_state_refresh(state.block_storage, volume_id),
            pending=["CREATING"],
            target=["AVAILABLE"],
            timeout=self.timeout,
            delay=self.delay,
            poll_interval=self.poll_interval,
            **state.wait_options(),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            raise CloudbakeError(
                f"error waiting for create volume ({volume_id}) to become ready: {e}"
            ) from e
        return volume_id

    def _attach(self, state: BuildState, volume_id: str) -> None:
        ui = state.ui
        ui.say("Attaching volume to instance...")
        job_id = state.compute.attach_volume(state.server_id, volume_id)
        state.attached_volume_ids.append(volume_id)

        ui.message("Waiting for volume to attach...")
        conf = StateChangeConf(
            refresh=job_state_refresh(state.compute, job_id, action="attach volume"),
            pending=["INIT", "RUNNING"],
            target=["SUCCESS"],
            timeout=self.timeout,
            delay=self.delay,
            poll_interval=self.poll_interval,
            **state.wait_options(),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            raise CloudbakeError(
                f"error waiting for volume ({job_id}) to become ready: {e}"
            ) from e

    def cleanup(self, state: BuildState) -> None:
        ui = state.ui
        if state.server.is_live:
            for volume_id in reversed(state.attached_volume_ids):
                if volume_id not in self._detached:
                    self._detach(state, volume_id)

        for handle in reversed(state.data_volumes):
            if not handle.is_live:
                continue
            ui.say(f"Deleting data volume: {handle.id} ...")
            try:
                state.block_storage.delete_volume(handle.id)
            except VolumeNotFoundError:
                pass
            except CloudbakeError as e:
                ui.error(
                    f"Error cleaning up volume. Please delete the volume manually: {handle.id}: {e}"
                )
                continue
            handle.release()

    def _detach(self, state: BuildState, volume_id: str) -> None:
        ui = state.ui
        ui.say(f"Detaching volume {volume_id} ...")
        try:
            job_id = state.compute.detach_volume(state.server_id, volume_id)
        except (InstanceNotFoundError, VolumeNotFoundError):
            self._detached.add(volume_id)
            return
        except CloudbakeError as e:
            ui.error(f"Error detaching volume {volume_id}: {e}")
            return

        conf = StateChangeConf(
            refresh=job_state_refresh(state.compute, job_id, action="detach volume"),
            pending=["INIT", "RUNNING"],
            target=["SUCCESS"],
            timeout=self.timeout,
            poll_interval=self.poll_interval,
            **state.wait_options(cancel=None),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            ui.error(f"Error waiting for volume {volume_id} to detach: {e}")
            return
        self._detached.add(volume_id)

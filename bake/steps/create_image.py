"""Capture the build instance into one or more images."""

from __future__ import annotations

from typing import Callable

from bake.base.exceptions import CloudbakeError, ImageError, WaitError
from bake.config import (
    DATA_IMAGE_TYPE,
    FULL_IMAGE_TYPE,
    SYSTEM_DATA_IMAGE_TYPE,
    SYSTEM_IMAGE_TYPE,
)
from bake.engine.refresh import job_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class CreateImage(Step):
    """Create the image(s) selected by ``image_type``.

    ``system``
        One image of the boot disk.
    ``full-ecs``
        One whole-instance image backed up to ``vault_id``.
    ``data-disk``
        One image per attached data disk, named ``<image_name>-<device>``.
    ``system-data``
        The system image followed by the data disk images.

    Failures of single data disk images are reported; the step only fails
    when none of them could be created.  Produces ``image_ids``.
    """

    def __init__(
        self,
        image_name: str,
        image_type: str = SYSTEM_IMAGE_TYPE,
        *,
        description: str = "",
        tags: dict[str, str] | None = None,
        vault_id: str = "",
        timeout: float = 30 * 60.0,
        delay: float = 60.0,
        poll_interval: float = 10.0,
    ) -> None:
        self.image_name = image_name
        self.image_type = image_type
        self.description = description
        self.tags = dict(tags or {})
        self.vault_id = vault_id
        self.timeout = timeout
        self.delay = delay
        self.poll_interval = poll_interval

    def run(self, state: BuildState) -> StepAction:
        try:
            if self.image_type == FULL_IMAGE_TYPE:
                self._create_whole_image(state)
            elif self.image_type == DATA_IMAGE_TYPE:
                self._create_data_images(state)
            elif self.image_type == SYSTEM_DATA_IMAGE_TYPE:
                self._create_system_image(state)
                self._create_data_images(state)
            else:
                self._create_system_image(state)
        except CloudbakeError as e:
            return self.halt(state, e)
        return StepAction.CONTINUE

    def _create_system_image(self, state: BuildState) -> None:
        state.ui.say(f"Creating system image: {self.image_name}")
        image_id = self._capture(
            state,
            lambda: state.image.create_system_image(
                self.image_name,
                state.server_id,
                description=self.description,
                tags=self.tags,
            ),
        )
        state.image_ids.append(image_id)

    def _create_whole_image(self, state: BuildState) -> None:
        state.ui.say(f"Creating whole image: {self.image_name}")
        image_id = self._capture(
            state,
            lambda: state.image.create_whole_image(
                self.image_name,
                state.server_id,
                description=self.description,
                tags=self.tags,
                vault_id=self.vault_id,
            ),
        )
        state.image_ids.append(image_id)

    def _create_data_images(self, state: BuildState) -> None:
        ui = state.ui
        attachments = [
            a for a in state.compute.list_volume_attachments(state.server_id) if a["boot_index"] != 0
        ]
        if not attachments:
            raise ImageError("no data disk is attached to the instance")

        created = []
        for attachment in attachments:
            device = attachment["device"].rsplit("/", 1)[-1]
            name = f"{self.image_name}-{device}"
            ui.say(f"Creating data image {name} from volume {attachment['volume_id']}")
            try:
                image_id = self._capture(
                    state,
                    lambda: state.image.create_data_image(
                        name,
                        attachment["volume_id"],
                        description=self.description,
                        tags=self.tags,
                    ),
                )
            except CloudbakeError as e:
                ui.message(f"failed to create data image {name}: {e}")
                continue
            created.append(image_id)

        if not created:
            raise ImageError("failed to create any data image")
        state.image_ids.extend(created)

    def _capture(self, state: BuildState, start: Callable[[], str]) -> str:
        """Start a capture job, wait for it and return the image ID."""
        ui = state.ui
        try:
            job_id = start()
        except CloudbakeError as e:
            raise ImageError(f"Error creating image: {e}") from e

        ui.message(f"Waiting for image to become ready (job {job_id}) ...")
        conf = StateChangeConf(
            refresh=job_state_refresh(state.image, job_id, action="create image"),
            pending=["INIT", "RUNNING"],
            target=["SUCCESS"],
            timeout=self.timeout,
            delay=self.delay,
            poll_interval=self.poll_interval,
            **state.wait_options(),
        )
        try:
            job = conf.wait_for_state()
        except WaitError as e:
            raise ImageError(f"Error waiting for image: {e}") from e

        image_id = job.get("entities", {}).get("image_id", "")
        if not image_id:
            raise ImageError(f"job {job_id} finished without an image ID")
        ui.message(f"Image created: {image_id}")
        return image_id

"""Pick the availability zone for the build."""

from __future__ import annotations

import random

from bake.base.exceptions import ComputeError
from bake.pipeline.state import BuildState
from bake.pipeline.step import Step, StepAction


class LoadZones(Step):
    """Validate the configured zone, or pick a random available one.

    Produces ``state.availability_zone``.
    """

    def __init__(self, availability_zone: str = "") -> None:
        self.availability_zone = availability_zone

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        ui.say("Loading available zones ...")
        try:
            zones = state.compute.list_availability_zones()
        except ComputeError as e:
            return self.halt(state, e)
        if not zones:
            return self.halt(state, ComputeError("No available zones"))

        if self.availability_zone:
            if self.availability_zone not in zones:
                return self.halt(
                    state,
                    ComputeError(
                        f"the specified availability_zone {self.availability_zone} "
                        "is not exist or available"
                    ),
                )
            ui.message(f"the specified availability_zone {self.availability_zone} is available")
            zone = self.availability_zone
        else:
            ui.message(f"Available zones: {' '.join(zones)}")
            zone = random.choice(zones)
            ui.message(f"Select {zone} as the available zone")

        state.availability_zone = zone
        return StepAction.CONTINUE

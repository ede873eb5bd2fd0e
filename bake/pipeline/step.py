"""Provisioning step contract."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

from .state import BuildState


class StepAction(enum.Enum):
    CONTINUE = "continue"
    HALT = "halt"


class StepPolicy(enum.Enum):
    """How the runner treats an exception escaping :meth:`Step.run`.

    ``REQUIRED`` steps halt the build; ``BEST_EFFORT`` steps only produce a
    warning, for enrichment that must not invalidate a finished image.
    """

    REQUIRED = "required"
    BEST_EFFORT = "best_effort"


class Step(ABC):
    """One unit of build work plus its compensating cleanup.

    ``cleanup`` is called for every step whose ``run`` was started, even
    when ``run`` failed half way, so it must:

    * do nothing for a handle that was never populated,
    * be safe to call twice,
    * treat "already deleted" as success,
    * report failures through the UI instead of raising.
    """

    policy: StepPolicy = StepPolicy.REQUIRED

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def run(self, state: BuildState) -> StepAction:
        """Do the work of the step."""

    def cleanup(self, state: BuildState) -> None:
        """Undo whatever :meth:`run` created.  No-op by default."""

    @staticmethod
    def halt(state: BuildState, err: BaseException) -> StepAction:
        """Record *err* as the build error, show it, and stop the build."""
        state.set_error(err)
        state.ui.error(str(err))
        return StepAction.HALT

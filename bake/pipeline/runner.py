"""
Sequential step runner with reverse-order cleanup.

Steps run one after another against a single :class:`BuildState`.  The
first fatal error stops the build; then ``cleanup`` is called on every
step that was started, newest first, so an instance is always deleted
before the network it sits in.  Cleanup also runs after a successful
build to tear the temporary resources down.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from bake.base.exceptions import BuildCancelledError, BuildError

from .state import BuildState
from .step import Step, StepAction, StepPolicy

logger = logging.getLogger("cloudbake")


def _halt_on_failure(step: Step, state: BuildState, exc: Exception) -> StepAction:
    return Step.halt(state, exc)


def _warn_and_continue(step: Step, state: BuildState, exc: Exception) -> StepAction:
    state.ui.message(f"WARN: {step.name} failed: {exc}")
    logger.warning("[WARN] best-effort step %s failed: %s", step.name, exc)
    return StepAction.CONTINUE


FAILURE_POLICY: dict[StepPolicy, Callable[[Step, BuildState, Exception], StepAction]] = {
    StepPolicy.REQUIRED: _halt_on_failure,
    StepPolicy.BEST_EFFORT: _warn_and_continue,
}


class Runner:
    """Run a fixed list of steps.

    Attributes:
        steps: Steps in execution order.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        self.steps = list(steps)

    def run(self, state: BuildState) -> None:
        """Run every step, clean up, and re-raise the build error if any.

        Raises:
            BaseException: ``state.error`` after cleanup, when the build failed.
        """
        started: list[Step] = []
        try:
            for step in self.steps:
                if state.cancel.is_set():
                    state.set_error(BuildCancelledError("Build was cancelled"))
                    break

                started.append(step)
                state.ui.step = step.name
                logger.debug("[DEBUG] running step %s", step.name)
                try:
                    action = step.run(state)
                except Exception as exc:
                    action = FAILURE_POLICY[step.policy](step, state, exc)

                if action is StepAction.HALT and state.error is None:
                    state.set_error(BuildError(f"step {step.name} halted the build"))
                if state.error is not None:
                    break
        finally:
            self._cleanup(started, state)

        if state.error is not None:
            raise state.error

    @staticmethod
    def _cleanup(started: list[Step], state: BuildState) -> None:
        for step in reversed(started):
            state.ui.step = step.name
            try:
                step.cleanup(state)
            except Exception as exc:
                state.ui.error(f"Error during cleanup of {step.name}: {exc}")
                logger.exception("[ERROR] cleanup of step %s failed", step.name)
        state.ui.step = None

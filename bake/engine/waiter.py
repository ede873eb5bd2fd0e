"""
State-convergence engine.

:class:`StateChangeConf` describes one wait: a refresh function to poll,
the labels that mean "keep waiting" and "done", and the timing policy.
:meth:`StateChangeConf.wait_for_state` blocks the caller until the
resource converges, fails, is cancelled, or the timeout (plus a short
grace period for an in-flight poll) runs out.

The refresh function is polled on a dedicated daemon thread; the caller
only ever reads from a queue.  On timeout the poller is asked to stop, not
killed, so a poll that is already running always completes and its
observation is still considered.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from bake.base.exceptions import (
    NotFoundRetriesExceededError,
    RefreshFailedError,
    UnexpectedStateError,
    WaitCancelledError,
    WaitError,
    WaitTimeoutError,
)
from bake.engine.cancel import CancelSignal

logger = logging.getLogger("cloudbake")

# A refresh function returns ``(observation, state)``.  ``None`` as the
# observation means the resource could not be found.
RefreshFunc = Callable[[], "tuple[Any, str]"]

REFRESH_GRACE_PERIOD = 30.0
DEFAULT_TIMEOUT = 600.0
DEFAULT_NOT_FOUND_CHECKS = 20
DEFAULT_MAX_BACKOFF = 10.0
INITIAL_BACKOFF = 0.1
MAX_POLL_INTERVAL = 180.0


@dataclass
class _Observation:
    result: Any = None
    state: str = ""
    error: BaseException | None = None
    done: bool = False
    final: bool = False


@dataclass
class StateChangeConf:
    """Configuration for one call to :meth:`wait_for_state`.

    Attributes:
        refresh: Zero-argument callable returning ``(observation, state)``.
        pending: States that are allowed and mean "keep polling".
        target: States that mean success.  Empty means "wait for the
            resource to be gone".
        timeout: Overall deadline in seconds, measured from the call.
        delay: Seconds to wait before the first poll.
        min_timeout: Floor for the backoff interval.
        poll_interval: Fixed interval overriding the backoff when it lies
            in ``(0, 180)`` seconds.
        not_found_checks: Consecutive "not found" polls tolerated.
        continuous_target_occurence: Consecutive target observations
            required before declaring success.
        max_backoff: Ceiling for the backoff interval.
        grace_period: Seconds to wait for an in-flight poll after timeout.
        cancel: Build cancel signal, checked between polls.
    """

    refresh: RefreshFunc
    pending: Sequence[str] = ()
    target: Sequence[str] = ()
    timeout: float = DEFAULT_TIMEOUT
    delay: float = 0.0
    min_timeout: float = 0.0
    poll_interval: float = 0.0
    not_found_checks: int = DEFAULT_NOT_FOUND_CHECKS
    continuous_target_occurence: int = 1
    max_backoff: float = DEFAULT_MAX_BACKOFF
    grace_period: float = REFRESH_GRACE_PERIOD
    cancel: CancelSignal | None = field(default=None, repr=False)

    def wait_for_state(self) -> Any:
        """Poll until the resource reaches a target state.

        Returns:
            The observation from the refresh call that satisfied the target
            (``None`` when waiting for a resource to disappear).

        Raises:
            RefreshFailedError: The refresh function raised.
            UnexpectedStateError: A state outside pending and target was seen.
            NotFoundRetriesExceededError: The resource stayed absent too long.
            WaitCancelledError: The cancel signal was set.
            WaitTimeoutError: The deadline and grace period passed.
        """
        logger.debug("[DEBUG] Waiting for state to become: %s", list(self.target))

        results: queue.Queue[_Observation] = queue.Queue()
        stop = threading.Event()
        unsubscribe = self.cancel.subscribe(stop.set) if self.cancel is not None else None

        deadline = time.monotonic() + self.timeout
        poller = threading.Thread(
            target=self._poll,
            args=(results, stop),
            name="cloudbake-wait-for-state",
            daemon=True,
        )
        poller.start()
        try:
            last = _Observation()
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    observation = results.get(timeout=remaining)
                except queue.Empty:
                    break
                if observation.final:
                    return self._finish(observation)
                last = observation

            logger.warning("[WARN] WaitForState timeout after %gs", self.timeout)
            logger.warning(
                "[WARN] WaitForState starting %gs refresh grace period", self.grace_period
            )
            stop.set()
            last = self._drain_grace_period(results, last)
            if last.done:
                logger.info("[INFO] WaitForState converged during refresh grace period")
                return last.result
            raise WaitTimeoutError(
                last_error=last.error,
                last_state=last.state,
                timeout=self.timeout,
                expected_state=self.target,
                last_result=last.result,
            )
        finally:
            stop.set()
            if unsubscribe is not None:
                unsubscribe()

    def _drain_grace_period(
        self, results: queue.Queue[_Observation], last: _Observation
    ) -> _Observation:
        """Read what the poller still reports after it was told to stop.

        Returns the converged observation if the in-flight poll reached the
        target, otherwise the most informative observation for the
        timeout error.
        """
        grace_deadline = time.monotonic() + self.grace_period
        while True:
            remaining = grace_deadline - time.monotonic()
            if remaining <= 0:
                logger.error("[ERROR] WaitForState exceeded refresh grace period")
                return last
            try:
                observation = results.get(timeout=remaining)
            except queue.Empty:
                logger.error("[ERROR] WaitForState exceeded refresh grace period")
                return last
            if observation.done:
                return observation
            if observation.final:
                return observation if observation.error is not None else last
            last = observation

    @staticmethod
    def _finish(observation: _Observation) -> Any:
        if observation.done:
            return observation.result
        if observation.error is not None:
            raise observation.error
        raise WaitError("state poller stopped without a result")

    def _poll(self, results: queue.Queue[_Observation], stop: threading.Event) -> None:
        last_state = ""
        not_found_tick = 0
        target_occurence = 0

        if self.delay > 0 and stop.wait(self.delay):
            results.put(self._stopped(last_state))
            return

        # first round has no wait
        wait = 0.0
        while True:
            if wait > 0 and stop.wait(wait):
                results.put(self._stopped(last_state))
                return
            if self._cancelled():
                results.put(self._stopped(last_state))
                return
            if wait == 0:
                wait = INITIAL_BACKOFF

            try:
                result, state = self.refresh()
            except Exception as exc:
                error = RefreshFailedError(str(exc), last_state=last_state)
                error.__cause__ = exc
                results.put(_Observation(state=last_state, error=error, final=True))
                return
            last_state = state or last_state

            if result is None and not self.target:
                # waiting for the absence of a thing
                target_occurence += 1
                if target_occurence >= self.continuous_target_occurence:
                    results.put(_Observation(result, state, done=True, final=True))
                    return
            elif result is None:
                not_found_tick += 1
                if not_found_tick > self.not_found_checks:
                    error = NotFoundRetriesExceededError(not_found_tick)
                    results.put(_Observation(result, state, error=error, final=True))
                    return
            else:
                not_found_tick = 0
                if state in self.target:
                    target_occurence += 1
                    if target_occurence >= self.continuous_target_occurence:
                        results.put(_Observation(result, state, done=True, final=True))
                        return
                elif state in self.pending:
                    target_occurence = 0
                elif self.pending:
                    error = UnexpectedStateError(state, self.target)
                    results.put(_Observation(result, state, error=error, final=True))
                    return

            results.put(_Observation(result, state))

            if self._cancelled():
                results.put(self._stopped(last_state))
                return

            # Back off exponentially, except while waiting for the target
            # state to reoccur.
            if target_occurence == 0:
                wait *= 2
            if 0 < self.poll_interval < MAX_POLL_INTERVAL:
                wait = self.poll_interval
            else:
                wait = min(max(wait, self.min_timeout), self.max_backoff)

            logger.debug("[TRACE] Waiting %.2fs before next try", wait)

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def _stopped(self, last_state: str) -> _Observation:
        """Final observation for a poller that was told to stop."""
        error = WaitCancelledError("forced cancel") if self._cancelled() else None
        return _Observation(state=last_state, error=error, final=True)

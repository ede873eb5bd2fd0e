"""
Cloudbake exception hierarchy.

Every cloud service has a top-level error that inherits from
:class:`CloudbakeError` and provider-specific sub-exceptions
for common failure modes (not-found, in-use, etc.).  Waiting and
pipeline failures live at the bottom of the module.
"""

from __future__ import annotations

from typing import Any, Sequence


# ── Base ──────────────────────────────────────────────────────────────
class CloudbakeError(Exception):
    """Root exception for all Cloudbake errors."""


class UnsupportedOperationError(CloudbakeError):
    """The selected provider has no equivalent for the requested operation."""


class ConfigError(CloudbakeError):
    """Build template or provider config is invalid."""


# ── Compute ───────────────────────────────────────────────────────────
class ComputeError(CloudbakeError):
    """Base exception for compute/VM operations."""


class InstanceNotFoundError(ComputeError):
    """VM instance not found."""


class FlavorNotFoundError(ComputeError):
    """Flavor (instance / machine type) not found."""


class KeyPairNotFoundError(ComputeError):
    """SSH keypair not found."""


# ── Network ───────────────────────────────────────────────────────────
class NetworkError(CloudbakeError):
    """Base exception for VPC, subnet and address operations."""


class NetworkNotFoundError(NetworkError):
    """VPC or subnet not found."""


class NetworkInUseError(NetworkError):
    """VPC or subnet still has dependent resources."""


class AddressNotFoundError(NetworkError):
    """Elastic / static IP address not found."""


# ── Block storage ────────────────────────────────────────────────────
class BlockStorageError(CloudbakeError):
    """Base exception for volume operations."""


class VolumeNotFoundError(BlockStorageError):
    """Volume (disk) not found."""


class SnapshotNotFoundError(BlockStorageError):
    """Volume snapshot not found."""


# ── Images ────────────────────────────────────────────────────────────
class ImageError(CloudbakeError):
    """Base exception for image operations."""


class ImageNotFoundError(ImageError):
    """Image not found."""


# ── Jobs ──────────────────────────────────────────────────────────────
class JobError(CloudbakeError):
    """Base exception for asynchronous job queries."""


class JobNotFoundError(JobError):
    """Job / operation not found."""


# ── Remote terminal failures ─────────────────────────────────────────
class ResourceFailedError(CloudbakeError):
    """The remote side reported a terminal failure state for a resource.

    Attributes:
        state: Failure label reported by the remote API (e.g. ``ERROR``).
        reason: Failure reason text supplied by the remote API.
    """

    def __init__(self, message: str, *, state: str = "ERROR", reason: str = "") -> None:
        super().__init__(message)
        self.state = state
        self.reason = reason


class JobFailedError(ResourceFailedError):
    """An asynchronous job finished with status ``FAIL``."""

    def __init__(self, message: str, *, reason: str = "") -> None:
        super().__init__(message, state="FAIL", reason=reason)


# ── Waiting ───────────────────────────────────────────────────────────
class WaitError(CloudbakeError):
    """Base exception for state-convergence waits."""


class RefreshFailedError(WaitError):
    """The refresh function raised while polling.

    Attributes:
        last_state: Last state label observed before the failure, if any.
    """

    def __init__(self, message: str, *, last_state: str = "") -> None:
        super().__init__(message)
        self.last_state = last_state


class UnexpectedStateError(WaitError):
    """An observed state is neither pending nor target."""

    def __init__(self, state: str, target: Sequence[str]) -> None:
        super().__init__(
            f"unexpected state '{state}', wanted target '{', '.join(target)}'"
        )
        self.state = state
        self.target = tuple(target)


class NotFoundRetriesExceededError(WaitError):
    """The resource stayed absent for too many consecutive polls."""

    def __init__(self, retries: int) -> None:
        super().__init__(f"couldn't find resource ({retries} retries)")
        self.retries = retries


class WaitCancelledError(WaitError):
    """The wait was interrupted by the build's cancel signal."""


class WaitTimeoutError(WaitError):
    """The target state was not reached before the timeout.

    Attributes:
        last_error: Last error seen while polling, if any.
        last_state: Last state label observed.
        timeout: Configured timeout in seconds.
        expected_state: Target labels the wait was looking for.
        last_result: Last observation returned by the refresh function.
    """

    def __init__(
        self,
        *,
        last_error: BaseException | None = None,
        last_state: str = "",
        timeout: float = 0,
        expected_state: Sequence[str] = (),
        last_result: Any = None,
    ) -> None:
        self.last_error = last_error
        self.last_state = last_state
        self.timeout = timeout
        self.expected_state = tuple(expected_state)
        self.last_result = last_result
        super().__init__(self._render())

    def _render(self) -> str:
        expected = "resource to be gone"
        if self.expected_state:
            expected = f"state to become '{', '.join(self.expected_state)}'"

        extra: list[str] = []
        if self.last_state:
            extra.append(f"last state: '{self.last_state}'")
        if self.timeout > 0:
            extra.append(f"timeout: {self.timeout:g}s")
        suffix = f" ({', '.join(extra)})" if extra else ""

        if self.last_error is not None:
            return f"timeout while waiting for {expected}{suffix}: {self.last_error}"
        return f"timeout while waiting for {expected}{suffix}"


# ── Pipeline ──────────────────────────────────────────────────────────
class BuildError(CloudbakeError):
    """Base exception for image build failures."""


class BuildCancelledError(BuildError):
    """The build was cancelled before it completed."""

"""Build pipeline: shared state, step contract and runner."""

from .runner import FAILURE_POLICY, Runner
from .state import BuildState, PublicAddress, ResourceHandle, ResourceKind
from .step import Step, StepAction, StepPolicy

__all__ = [
    "BuildState",
    "FAILURE_POLICY",
    "PublicAddress",
    "ResourceHandle",
    "ResourceKind",
    "Runner",
    "Step",
    "StepAction",
    "StepPolicy",
]

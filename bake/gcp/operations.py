"""Compute Engine operations exposed as blueprint jobs.

Long-running Compute Engine calls return an ``Operation``.  Its job ID
records the operation scope so that :meth:`OperationJobs.get_job` knows
which operations client to ask:

* ``zone/<zone>/<operation>``
* ``region/<region>/<operation>``
* ``global/<operation>``
"""

from __future__ import annotations

from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.base.config import GCPConfig
from bake.base.exceptions import CloudbakeError, JobNotFoundError
from bake.base.jobs import JOB_FAIL, JOB_INIT, JOB_RUNNING, JOB_SUCCESS, JobBlueprint

_STATUS_MAP = {
    compute_v1.Operation.Status.PENDING: JOB_INIT,
    compute_v1.Operation.Status.RUNNING: JOB_RUNNING,
}


def zone_job(zone: str, operation: Any) -> str:
    return f"zone/{zone}/{operation.name}"


def region_job(region: str, operation: Any) -> str:
    return f"region/{region}/{operation.name}"


def global_job(operation: Any) -> str:
    return f"global/{operation.name}"


def operation_errors(operation: Any) -> str:
    """Return the error messages of a finished operation, or ``""``."""
    if not operation.error or not operation.error.errors:
        return ""
    return "; ".join(f"{err.code}: {err.message}" for err in operation.error.errors)


def image_id_from_link(target_link: str) -> str:
    """``.../global/images/web`` -> ``web``; machine images keep their collection."""
    if "/machineImages/" in target_link:
        return f"machineImages/{target_link.rsplit('/', 1)[-1]}"
    if "/images/" in target_link:
        return target_link.rsplit("/", 1)[-1]
    return ""


class OperationJobs(JobBlueprint):
    """Mix-in implementing :meth:`get_job` on top of Compute Engine operations.

    Subclasses set ``project_id`` and call :meth:`_init_operations` with
    their :class:`~bake.base.config.GCPConfig`.  Creates return as soon as the
    insert is accepted; :meth:`_insert_failure` reports an insert that
    later failed.
    """

    project_id: str

    def _init_operations(self, config: GCPConfig) -> None:
        self._zone_ops = compute_v1.ZoneOperationsClient(**config.client_kwargs())
        self._region_ops = compute_v1.RegionOperationsClient(**config.client_kwargs())
        self._global_ops = compute_v1.GlobalOperationsClient(**config.client_kwargs())
        self._inserts: dict[str, str] = {}

    def _track_insert(self, key: str, job_id: str) -> None:
        """Remember the insert operation of a resource that may not be visible yet."""
        self._inserts[key] = job_id

    def _insert_failure(self, key: str) -> str:
        """Errors of a finished insert for *key*, or ``""``.

        Looked up when a freshly created resource is not found: an insert
        that failed leaves nothing behind to poll.
        """
        job_id = self._inserts.get(key)
        if job_id is None:
            return ""
        try:
            job = self.get_job(job_id)
        except JobNotFoundError:
            self._inserts.pop(key, None)
            return ""
        if job["status"] == JOB_SUCCESS:
            self._inserts.pop(key, None)
        return job["fail_reason"] if job["status"] == JOB_FAIL else ""

    def _get_operation(self, job_id: str) -> Any:
        parts = job_id.split("/")
        if len(parts) == 3 and parts[0] == "zone":
            return self._zone_ops.get(project=self.project_id, zone=parts[1], operation=parts[2])
        if len(parts) == 3 and parts[0] == "region":
            return self._region_ops.get(
                project=self.project_id, region=parts[1], operation=parts[2]
            )
        if len(parts) == 2 and parts[0] == "global":
            return self._global_ops.get(project=self.project_id, operation=parts[1])
        raise JobNotFoundError(f"Unknown job '{job_id}'")

    def _wait_operation(self, job_id: str) -> Any:
        """Block until an operation completes; check :func:`operation_errors` on the result."""
        parts = job_id.split("/")
        if parts[0] == "zone":
            op = self._zone_ops.wait(project=self.project_id, zone=parts[1], operation=parts[2])
        elif parts[0] == "region":
            op = self._region_ops.wait(
                project=self.project_id, region=parts[1], operation=parts[2]
            )
        else:
            op = self._global_ops.wait(project=self.project_id, operation=parts[-1])
        return op

    def get_job(self, job_id: str) -> dict[str, Any]:
        try:
            op = self._get_operation(job_id)
        except gcp_exceptions.NotFound as e:
            raise JobNotFoundError(f"Job '{job_id}' not found") from e
        except gcp_exceptions.GoogleAPICallError as e:
            raise CloudbakeError(f"Failed to get job '{job_id}'") from e

        errors = operation_errors(op)
        if op.status == compute_v1.Operation.Status.DONE:
            status = JOB_FAIL if errors else JOB_SUCCESS
        else:
            status = _STATUS_MAP.get(op.status, JOB_RUNNING)

        entities: dict[str, Any] = {"target": op.target_link}
        image_id = image_id_from_link(op.target_link or "")
        if image_id:
            entities["image_id"] = image_id
        return {
            "job_id": job_id,
            "status": status,
            "entities": entities,
            "fail_reason": errors,
        }

"""Asynchronous job lookup, shared by services that hand out job IDs."""

from abc import ABC, abstractmethod
from typing import Any

JOB_INIT = "INIT"
JOB_RUNNING = "RUNNING"
JOB_SUCCESS = "SUCCESS"
JOB_FAIL = "FAIL"


class JobBlueprint(ABC):
    """Mix-in for services whose long-running calls return a job ID.

    Create / attach / capture calls on those services return a job ID
    instead of a finished resource; callers poll :meth:`get_job` until the
    status is ``SUCCESS`` or ``FAIL``.
    """

    @abstractmethod
    def get_job(self, job_id: str) -> dict[str, Any]:
        """Return the current status of a job.

        Returns:
            Dict with:
                - ``job_id``
                - ``status``: one of ``INIT``, ``RUNNING``, ``SUCCESS``, ``FAIL``
                - ``entities``: dict of result entities (e.g. ``image_id``)
                - ``fail_reason``: remote failure text, empty unless ``FAIL``

        Raises:
            JobNotFoundError: If the job is unknown (possibly not yet visible).
        """

"""
Refresh functions for the resources a build waits on.

Each factory closes over a service client and a resource ID and returns a
zero-argument callable for :class:`~bake.engine.waiter.StateChangeConf`.
Blueprint implementations already translate provider states into the
canonical labels used here (``BUILD``, ``ACTIVE``, ``SHUTOFF``, ...).

Conventions:

* ``(None, ...)`` means the resource is not there (yet, or any more).
* A remote terminal failure (job ``FAIL``, resource ``ERROR``) is raised
  as :class:`~bake.base.exceptions.ResourceFailedError` carrying the
  reason text reported by the cloud, never returned as a plain label.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from bake.base.block_storage import BlockStorageBlueprint
from bake.base.compute import ComputeBlueprint
from bake.base.exceptions import (
    AddressNotFoundError,
    InstanceNotFoundError,
    JobFailedError,
    JobNotFoundError,
    NetworkInUseError,
    NetworkNotFoundError,
    ResourceFailedError,
    VolumeNotFoundError,
)
from bake.base.jobs import JOB_FAIL, JOB_SUCCESS, JobBlueprint
from bake.base.network import NetworkBlueprint
from bake.base.retry import retry
from bake.engine.waiter import RefreshFunc

logger = logging.getLogger("cloudbake")

DELETED = "DELETED"
ERROR = "ERROR"

# Transient query failures are retried inside the refresh function; the
# wait engine itself treats any raised error as fatal.
_transient = retry(max_attempts=3, base_delay=1.0, max_delay=5.0)


def instance_state_refresh(
    compute: ComputeBlueprint, instance_id: str, *, fail_on_error: bool = True
) -> RefreshFunc:
    """Watch a server; a vanished or terminated server reads as absent.

    With *fail_on_error* an ``ERROR`` server, or one the cloud terminated
    with a fault, raises; otherwise ``ERROR`` is returned as a plain label,
    for waits that delete a broken server.
    """

    @_transient
    def refresh() -> tuple[Any, str]:
        try:
            instance = compute.get_instance(instance_id)
        except InstanceNotFoundError:
            logger.info("[INFO] 404 on ServerStateRefresh, returning DELETED")
            return None, DELETED

        state = instance["state"]
        fault = instance.get("fault") or ""
        if state == DELETED:
            if fault and fail_on_error:
                # terminated by the cloud during launch
                raise ResourceFailedError(
                    f"server {instance_id} was terminated: {fault}", state=DELETED, reason=fault
                )
            return None, DELETED
        if state == ERROR and fail_on_error:
            fault = fault or "no fault reported"
            raise ResourceFailedError(
                f"server {instance_id} entered ERROR state: {fault}",
                state=ERROR,
                reason=fault,
            )
        return instance, state

    return refresh


def volume_state_refresh(storage: BlockStorageBlueprint, volume_id: str) -> RefreshFunc:
    """Watch a volume; a deleted volume reads as absent."""

    @_transient
    def refresh() -> tuple[Any, str]:
        try:
            volume = storage.get_volume(volume_id)
        except VolumeNotFoundError:
            return None, DELETED

        state = volume["state"]
        if state == ERROR:
            raise ResourceFailedError(
                f"volume {volume_id} entered ERROR state", state=ERROR
            )
        return volume, state

    return refresh


def vpc_state_refresh(network: NetworkBlueprint, vpc_id: str) -> RefreshFunc:
    @_transient
    def refresh() -> tuple[Any, str]:
        try:
            vpc = network.get_vpc(vpc_id)
        except NetworkNotFoundError:
            return None, ""
        return vpc, vpc["state"]

    return refresh


def subnet_state_refresh(network: NetworkBlueprint, subnet_id: str) -> RefreshFunc:
    @_transient
    def refresh() -> tuple[Any, str]:
        try:
            subnet = network.get_subnet(subnet_id)
        except NetworkNotFoundError:
            return None, ""
        return subnet, subnet["state"]

    return refresh


def address_state_refresh(network: NetworkBlueprint, address_id: str) -> RefreshFunc:
    """Watch an elastic IP until it is usable (``ACTIVE``)."""

    @_transient
    def refresh() -> tuple[Any, str]:
        try:
            address = network.get_address(address_id)
        except AddressNotFoundError:
            return None, ""
        return address, address["state"]

    return refresh


def job_state_refresh(client: JobBlueprint, job_id: str, *, action: str = "job") -> RefreshFunc:
    """Watch an asynchronous job until it reports ``SUCCESS``.

    Args:
        client: Any service client that can look up its own jobs.
        job_id: Job identifier returned by the create / attach call.
        action: Short description used in the failure message
            (e.g. ``"create image"``).
    """

    @_transient
    def refresh() -> tuple[Any, str]:
        try:
            job = client.get_job(job_id)
        except JobNotFoundError:
            return None, ""

        status = job["status"]
        if status == JOB_FAIL:
            reason = job.get("fail_reason") or "no reason reported"
            raise JobFailedError(
                f"failed to {action} (job {job_id} status is FAIL): {reason}",
                reason=reason,
            )
        return job, status

    return refresh


def password_refresh(compute: ComputeBlueprint, instance_id: str) -> RefreshFunc:
    """Poll for the encrypted password the cloud generates for a server."""

    @_transient
    def refresh() -> tuple[Any, str]:
        password = compute.get_encrypted_password(instance_id)
        if not password:
            return "", "PENDING"
        return password, JOB_SUCCESS

    return refresh


def delete_until_gone_refresh(
    delete: Callable[[str], None], resource_id: str, *, kind: str
) -> RefreshFunc:
    """Re-issue a delete until the resource is gone.

    Dependent resources (a subnet used by a just-terminated server, a VPC
    still holding a subnet) are released asynchronously, so the first
    deletes may be refused with "in use".  Those polls read as ``ACTIVE``;
    a successful delete or a not-found reads as absent.
    """

    def refresh() -> tuple[Any, str]:
        try:
            delete(resource_id)
        except NetworkNotFoundError:
            logger.info("[INFO] successfully delete %s %s", kind, resource_id)
            return None, DELETED
        except NetworkInUseError:
            logger.info("[INFO] the %s %s is still active", kind, resource_id)
            return {"id": resource_id}, "ACTIVE"
        return None, DELETED

    return refresh


__all__ = [
    "DELETED",
    "address_state_refresh",
    "delete_until_gone_refresh",
    "instance_state_refresh",
    "job_state_refresh",
    "password_refresh",
    "subnet_state_refresh",
    "volume_state_refresh",
    "vpc_state_refresh",
]

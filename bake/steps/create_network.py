"""Network placement of the build instance."""

from __future__ import annotations

import random
import string

from bake.base.exceptions import CloudbakeError, NetworkError, WaitError
from bake.engine.refresh import delete_until_gone_refresh, subnet_state_refresh, vpc_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState, ResourceHandle, ResourceKind
from bake.pipeline.step import Step, StepAction

VPC_CIDR = "172.16.0.0/16"
SUBNET_CIDR = "172.16.0.0/24"
SUBNET_GATEWAY = "172.16.0.1"
PUBLIC_DNS = ["8.8.8.8", "114.114.114.114"]


def _random_suffix(length: int = 6) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


class CreateNetwork(Step):
    """Use the configured VPC and subnets, or create temporary ones.

    Produces ``vpc_id`` and ``subnet_ids``; ``vpc`` / ``subnets`` hold the
    handles of a network this build created.
    """

    def __init__(
        self,
        vpc_id: str = "",
        subnets: list[str] | None = None,
        security_groups: list[str] | None = None,
        *,
        timeout: float = 180.0,
        delay: float = 5.0,
        min_timeout: float = 3.0,
    ) -> None:
        self.vpc_id = vpc_id
        self.subnets = list(subnets or [])
        self.security_groups = list(security_groups or [])
        self.timeout = timeout
        self.delay = delay
        self.min_timeout = min_timeout

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        network = state.network

        if self.vpc_id:
            if not self.subnets:
                return self.halt(state, NetworkError("subnets must be specified with vpc_id"))
            try:
                network.get_vpc(self.vpc_id)
            except NetworkError as e:
                return self.halt(state, NetworkError(f"Error loading VPC {self.vpc_id}: {e}"))
            state.vpc_id = self.vpc_id
            state.subnet_ids = list(self.subnets)
        else:
            if self.subnets:
                return self.halt(
                    state, NetworkError("subnets must be empty if the vpc_id was not specified")
                )
            ui.say("Creating temporary VPC...")
            try:
                vpc_id = self._create_vpc(state)
                ui.message(f"temporary VPC ID: {vpc_id}")
                ui.say("Creating temporary subnet...")
                subnet_id = self._create_subnet(state, vpc_id)
            except CloudbakeError as e:
                return self.halt(state, e)
            ui.message(f"temporary subnet ID: {subnet_id}")

        if self.security_groups:
            ui.message(f"the {self.security_groups} security groups will be used ...")
        else:
            ui.message("the [default] security groups will be used ...")
        return StepAction.CONTINUE

    def _create_vpc(self, state: BuildState) -> str:
        name = f"vpc-cloudbake-{_random_suffix()}"
        kwargs = {}
        if state.config.enterprise_project_id:
            kwargs["enterprise_project_id"] = state.config.enterprise_project_id
        try:
            vpc_id = state.network.create_vpc(name, VPC_CIDR, **kwargs)
        except NetworkError as e:
            raise NetworkError(f"Error creating VPC: {e}") from e

        state.vpc = ResourceHandle(ResourceKind.NETWORK, vpc_id)
        state.vpc_id = vpc_id

        conf = StateChangeConf(
            refresh=vpc_state_refresh(state.network, vpc_id),
            pending=["PENDING"],
            target=["ACTIVE"],
            timeout=self.timeout,
            delay=self.delay,
            min_timeout=self.min_timeout,
            **state.wait_options(),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            raise NetworkError(f"Error waiting for VPC {name}({vpc_id}): {e}") from e
        return vpc_id

    def _create_subnet(self, state: BuildState, vpc_id: str) -> str:
        name = f"subnet-cloudbake-{_random_suffix()}"
        try:
            subnet_id = state.network.create_subnet(
                vpc_id,
                name,
                SUBNET_CIDR,
                zone=state.availability_zone,
                gateway_ip=SUBNET_GATEWAY,
                dns_list=PUBLIC_DNS,
            )
        except NetworkError as e:
            raise NetworkError(f"Error creating subnet: {e}") from e

        state.subnets.append(ResourceHandle(ResourceKind.SUBNET, subnet_id))
        state.subnet_ids = [subnet_id]

        conf = StateChangeConf(
            refresh=subnet_state_refresh(state.network, subnet_id),
            pending=["PENDING"],
            target=["ACTIVE"],
            timeout=self.timeout,
            delay=self.delay,
            min_timeout=self.min_timeout,
            **state.wait_options(),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            raise NetworkError(f"Error waiting for subnet {name}({subnet_id}): {e}") from e
        return subnet_id

    def cleanup(self, state: BuildState) -> None:
        ui = state.ui
        for handle in reversed(state.subnets):
            if not handle.is_live:
                continue
            ui.say(f"Deleting temporary subnet: {handle.id}...")
            if self._delete_until_gone(state, state.network.delete_subnet, handle, "subnet"):
                handle.release()

        if not state.vpc.is_live:
            return
        ui.say(f"Deleting temporary VPC: {state.vpc.id}...")
        if self._delete_until_gone(state, state.network.delete_vpc, state.vpc, "VPC"):
            state.vpc.release()

    def _delete_until_gone(self, state, delete, handle: ResourceHandle, kind: str) -> bool:
        conf = StateChangeConf(
            refresh=delete_until_gone_refresh(delete, handle.id, kind=kind),
            pending=["ACTIVE"],
            timeout=self.timeout,
            delay=self.delay,
            min_timeout=self.min_timeout,
            **state.wait_options(cancel=None),
        )
        try:
            conf.wait_for_state()
        except WaitError as e:
            state.ui.error(
                f"Error cleaning up {kind} {handle.id}. Please delete it manually: {e}"
            )
            return False
        return True

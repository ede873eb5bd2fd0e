"""Public address for reaching the build instance."""

from __future__ import annotations

import time

from bake.base.exceptions import AddressNotFoundError, NetworkError, WaitError
from bake.engine.refresh import address_state_refresh
from bake.engine.waiter import StateChangeConf
from bake.pipeline.state import BuildState, PublicAddress, ResourceHandle, ResourceKind
from bake.pipeline.step import Step, StepAction

DEFAULT_EIP_TYPE = "5_bgp"


class CreateEIP(Step):
    """Pick the public IP, in order of preference:

    1. the address given as ``floating_ip``,
    2. a free address of the project when ``reuse_ips`` is set,
    3. a new address when ``eip_bandwidth_size`` is set.

    Only a newly created address is deleted again.  Produces ``access_eip``.
    """

    def __init__(
        self,
        floating_ip: str = "",
        reuse_ips: bool = False,
        eip_type: str = "",
        eip_bandwidth_size: int = 0,
        *,
        timeout: float = 300.0,
        delay: float = 5.0,
        min_timeout: float = 3.0,
    ) -> None:
        self.floating_ip = floating_ip
        self.reuse_ips = reuse_ips
        self.eip_type = eip_type
        self.eip_bandwidth_size = eip_bandwidth_size
        self.timeout = timeout
        self.delay = delay
        self.min_timeout = min_timeout

    def run(self, state: BuildState) -> StepAction:
        ui = state.ui
        network = state.network

        if self.floating_ip:
            ui.say(f"Checking the provided public IP {self.floating_ip} ...")
            try:
                address = network.get_address(self.floating_ip)
            except NetworkError as e:
                return self.halt(
                    state,
                    NetworkError(f"Error using provided public IP '{self.floating_ip}': {e}"),
                )
            if address.get("port_id"):
                return self.halt(
                    state,
                    NetworkError(
                        f"Error using provided public IP '{self.floating_ip}': the provided "
                        f"public IP '{self.floating_ip}' is already associated with port "
                        f"'{address['port_id']}'"
                    ),
                )
            state.access_eip = self._borrowed(address)
        elif self.reuse_ips:
            ui.say("Searching for unassociated public IP ...")
            try:
                free = [a for a in network.list_addresses() if not a.get("port_id")]
            except NetworkError as e:
                return self.halt(state, NetworkError(f"Error searching for public IP: {e}"))
            if not free:
                return self.halt(
                    state, NetworkError("Error searching for public IP: no free public IPs found")
                )
            state.access_eip = self._borrowed(free[0])
        elif self.eip_bandwidth_size:
            try:
                self._create(state)
            except NetworkError as e:
                return self.halt(state, e)
            return StepAction.CONTINUE
        else:
            return StepAction.CONTINUE

        eip = state.access_eip
        ui.message(f"Selected public IP: '{eip.handle.id}' ({eip.address})")
        return StepAction.CONTINUE

    @staticmethod
    def _borrowed(address: dict) -> PublicAddress:
        return PublicAddress(
            handle=ResourceHandle(ResourceKind.EIP, address["address_id"]),
            address=address["ip"],
            owned=False,
        )

    def _create(self, state: BuildState) -> None:
        ui = state.ui
        ui.say("Creating EIP ...")
        try:
            created = state.network.create_address(
                f"cloudbake-eip-{int(time.time())}",
                address_type=self.eip_type or DEFAULT_EIP_TYPE,
                bandwidth_size=self.eip_bandwidth_size,
            )
        except NetworkError as e:
            raise NetworkError(f"Error creating EIP: {e}") from e

        eip = PublicAddress(
            handle=ResourceHandle(ResourceKind.EIP, created["address_id"]),
            address=created.get("ip", ""),
            owned=True,
        )
        state.access_eip = eip
        ui.message(f"Created EIP: '{eip.handle.id}' ({eip.address})")

        conf = StateChangeConf(
            refresh=address_state_refresh(state.network, eip.handle.id),
            pending=["PENDING"],
            target=["ACTIVE"],
            timeout=self.timeout,
            delay=self.delay,
            min_timeout=self.min_timeout,
            **state.wait_options(),
        )
        try:
            address = conf.wait_for_state()
        except WaitError as e:
            raise NetworkError(f"Error waiting eip to be active: {e}") from e
        eip.address = address.get("ip") or eip.address

    def cleanup(self, state: BuildState) -> None:
        eip = state.access_eip
        if not eip.owned or not eip.handle.is_live:
            return

        ui = state.ui
        try:
            state.network.delete_address(eip.handle.id)
        except AddressNotFoundError:
            pass
        except NetworkError as e:
            ui.error(f"Error deleting temporary public IP '{eip.handle.id}' ({eip.address}): {e}")
            return
        eip.handle.release()
        ui.say(f"Deleted temporary public IP '{eip.handle.id}' ({eip.address})")

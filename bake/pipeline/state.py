"""
Per-build shared state.

One :class:`BuildState` exists per build.  The runner owns it and hands
the same instance to every step; each step documents which fields it
reads and which it fills in.  Fields are only ever filled in: once a step
has written a concrete value, later steps rely on its type, and ``error``
is never cleared.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable

from bake.base.block_storage import BlockStorageBlueprint
from bake.base.compute import ComputeBlueprint
from bake.base.image import ImageBlueprint
from bake.base.network import NetworkBlueprint
from bake.base.ui import Ui
from bake.config import BuildConfig
from bake.engine.cancel import CancelSignal


class ResourceKind(str, enum.Enum):
    SERVER = "server"
    JOB = "job"
    VOLUME = "volume"
    NETWORK = "network"
    SUBNET = "subnet"
    EIP = "eip"
    KEYPAIR = "keypair"
    IMAGE = "image"


@dataclass
class ResourceHandle:
    """A remote resource created by this build.

    An empty ``id`` means the resource was never created.  ``released`` is
    set once the owning step has deleted it, so a second cleanup is a no-op.
    """

    kind: ResourceKind
    id: str = ""
    released: bool = False

    @property
    def is_live(self) -> bool:
        return bool(self.id) and not self.released

    def release(self) -> None:
        self.released = True

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id or '<none>'}"


@dataclass
class PublicAddress:
    """The public IP used to reach the build instance."""

    handle: ResourceHandle = field(default_factory=lambda: ResourceHandle(ResourceKind.EIP))
    address: str = ""
    # False for a user-supplied or reused address, which is never deleted.
    owned: bool = False


ProvisionHook = Callable[["BuildState"], None]


@dataclass
class BuildState:
    """Everything the steps of one build share.

    Attributes:
        config: Validated build template.
        compute / network / block_storage / image: Provider service clients.
        ui: Operator output sink.
        cancel: Build cancel signal.
        hooks: Provisioning callables run against the live instance.
        availability_zone: Zone chosen by ``LoadZones``.
        flavor_id: Flavor verified by ``LoadFlavor``.
        keypair: Temporary keypair created by ``KeyPair``.
        private_key: PEM private key used to reach the instance.
        source_image: Image the instance boots from.
        vpc_id / subnet_ids: Network the instance is placed in.
        vpc / subnets: Handles for a network this build created.
        access_eip: Public address for the instance.
        boot_volume: Boot volume created by ``CreateVolume``.
        server: Handle for the build instance.
        server_info: Last observation of the instance.
        data_volume_sizes: Sizes of the configured data volumes, from ``CheckVolumes``.
        data_volumes: Data volumes this build created.
        attached_volume_ids: Every data volume attached to the instance.
        password: Administrator password decrypted by ``GetPassword``.
        image_ids: Captured image IDs.
        error: First fatal error of the build.
    """

    config: BuildConfig
    compute: ComputeBlueprint
    network: NetworkBlueprint
    block_storage: BlockStorageBlueprint
    image: ImageBlueprint
    ui: Ui
    cancel: CancelSignal = field(default_factory=CancelSignal)
    hooks: list[ProvisionHook] = field(default_factory=list)

    availability_zone: str = ""
    flavor_id: str = ""
    keypair: ResourceHandle = field(default_factory=lambda: ResourceHandle(ResourceKind.KEYPAIR))
    private_key: str = ""
    source_image: str = ""
    vpc_id: str = ""
    subnet_ids: list[str] = field(default_factory=list)
    vpc: ResourceHandle = field(default_factory=lambda: ResourceHandle(ResourceKind.NETWORK))
    subnets: list[ResourceHandle] = field(default_factory=list)
    access_eip: PublicAddress = field(default_factory=PublicAddress)
    boot_volume: ResourceHandle = field(default_factory=lambda: ResourceHandle(ResourceKind.VOLUME))
    server: ResourceHandle = field(default_factory=lambda: ResourceHandle(ResourceKind.SERVER))
    server_info: dict[str, Any] = field(default_factory=dict)
    data_volume_sizes: list[int] = field(default_factory=list)
    data_volumes: list[ResourceHandle] = field(default_factory=list)
    attached_volume_ids: list[str] = field(default_factory=list)
    password: str = ""
    image_ids: list[str] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def server_id(self) -> str:
        return self.server.id

    def set_error(self, err: BaseException) -> None:
        """Record the fatal error of the build.  The first one wins."""
        if self.error is None:
            self.error = err

    def wait_options(self, **overrides: Any) -> dict[str, Any]:
        """Keyword arguments for :class:`StateChangeConf` from the build's wait policy."""
        waits = self.config.waits
        options: dict[str, Any] = {
            "not_found_checks": waits.not_found_checks,
            "max_backoff": waits.max_backoff,
            "grace_period": waits.grace_period,
            "cancel": self.cancel,
        }
        options.update(overrides)
        return options

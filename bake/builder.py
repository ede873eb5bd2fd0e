"""
Image builder: wires the provider clients and the build steps together.

Example::

    from bake import ImageBuilder

    builder = ImageBuilder(
        {"image_name": "web", "flavor": "t3.small", "source_image": "ami-123"},
        provider="aws",
        provider_config={"region_name": "us-east-1"},
    )
    artifact = builder.run()
    print(artifact)
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from bake.artifact import Artifact
from bake.base.async_support import async_wrap
from bake.base.client_cache import ClientCache
from bake.base.config import validate_config
from bake.base.exceptions import BuildCancelledError, CloudbakeError, ConfigError
from bake.base.logger import BakeLogger
from bake.base.ui import Ui
from bake.config import BuildConfig
from bake.engine.cancel import CancelSignal
from bake.factory import universal_factory
from bake.pipeline.runner import Runner
from bake.pipeline.state import BuildState, ProvisionHook
from bake.pipeline.step import Step
from bake.steps import (
    AddImageMembers,
    AssociateEIP,
    AttachVolume,
    CheckVolumes,
    CreateEIP,
    CreateImage,
    CreateNetwork,
    CreateVolume,
    GetPassword,
    KeyPair,
    LoadFlavor,
    LoadZones,
    Provision,
    RunSourceServer,
    SourceImage,
    StopServer,
    UpdateImageMinDisk,
)

BUILDER_ID = "cloudbake.image"


class ImageBuilder:
    """Build one machine image on one cloud provider.

    Args:
        config: Build template, either validated or as a raw dict.
        provider: ``"aws"`` or ``"gcp"``.
        provider_config: Provider access configuration (credentials, region).
        hooks: Provisioning callables run against the live instance.
        ui: Output sink; a default one writing to stdout is created if omitted.

    Raises:
        ConfigError: If the template or the provider configuration is invalid.
    """

    def __init__(
        self,
        config: BuildConfig | dict[str, Any],
        provider: str,
        provider_config: dict[str, Any] | None = None,
        *,
        hooks: list[ProvisionHook] | None = None,
        ui: Ui | None = None,
    ) -> None:
        try:
            self.config = (
                config if isinstance(config, BuildConfig) else BuildConfig.model_validate(config)
            )
            access = validate_config(provider, provider_config or {})
        except (ValidationError, ValueError) as e:
            raise ConfigError(str(e)) from e

        self.provider = provider
        self.access = access
        self.hooks = list(hooks or [])
        self.ui = ui or Ui(
            self.config.build_name,
            logger=BakeLogger(provider=provider),
        )
        self._clients = ClientCache(provider, access, universal_factory)

    def client(self, service_name: str) -> Any:
        return self._clients.get(service_name)

    def steps(self) -> list[Step]:
        """The build steps in dependency order."""
        c = self.config
        return [
            LoadZones(c.availability_zone),
            CheckVolumes(c.data_volumes),
            LoadFlavor(c.flavor),
            KeyPair(debug=c.debug, debug_key_path=f"cloudbake_{c.build_name}.pem"),
            SourceImage(c.source_image, c.source_image_name, c.source_image_filter),
            CreateNetwork(c.vpc_id, c.subnets, c.security_groups),
            CreateEIP(c.floating_ip, c.reuse_ips, c.eip_type, c.eip_bandwidth_size),
            CreateVolume(
                c.volume_name,
                c.volume_type,
                c.volume_size,
                enabled=c.use_blockstorage_volume,
            ),
            RunSourceServer(
                c.instance_name,
                security_groups=c.security_groups,
                user_data=c.user_data,
                user_data_file=c.user_data_file,
                instance_metadata=c.instance_metadata,
                root_volume_type=c.volume_type,
                root_volume_size=c.volume_size,
            ),
            AttachVolume(c.data_volumes),
            GetPassword(),
            AssociateEIP(),
            Provision(),
            StopServer(),
            CreateImage(
                c.image_name,
                c.image_type,
                description=c.image_description,
                tags=c.image_tags,
                vault_id=c.vault_id,
                timeout=c.wait_image_ready_timeout,
            ),
            UpdateImageMinDisk(c.image_min_disk),
            AddImageMembers(c.image_members, c.image_auto_accept_members),
        ]

    def run(self, cancel: CancelSignal | None = None) -> Artifact | None:
        """Run the build and return the artifact.

        Temporary resources are deleted whether the build succeeds or not.

        Returns:
            The artifact, or ``None`` if no image was produced.

        Raises:
            BuildCancelledError: If *cancel* was set during the build.
            CloudbakeError: The first fatal error of the build.
        """
        cancel = cancel or CancelSignal()
        state = BuildState(
            config=self.config,
            compute=self.client("compute"),
            network=self.client("network"),
            block_storage=self.client("block_storage"),
            image=self.client("image"),
            ui=self.ui,
            cancel=cancel,
            hooks=self.hooks,
        )
        try:
            Runner(self.steps()).run(state)
        except CloudbakeError as e:
            if cancel.is_set() and not isinstance(e, BuildCancelledError):
                raise BuildCancelledError("Build was cancelled") from e
            raise

        if not state.image_ids:
            return None
        return Artifact(state.image_ids, BUILDER_ID, state.image)

    arun = async_wrap(run, cancel_kwarg="cancel")

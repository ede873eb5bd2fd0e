"""
Build template models.

A build template describes the image to produce and the temporary
instance used to produce it.  It is validated once, up front, so that the
provisioning steps can trust every field they read.
"""

from __future__ import annotations

import re
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SYSTEM_IMAGE_TYPE = "system"
DATA_IMAGE_TYPE = "data-disk"
SYSTEM_DATA_IMAGE_TYPE = "system-data"
FULL_IMAGE_TYPE = "full-ecs"

IMAGE_TYPES = (SYSTEM_IMAGE_TYPE, DATA_IMAGE_TYPE, SYSTEM_DATA_IMAGE_TYPE, FULL_IMAGE_TYPE)
IMAGE_VISIBILITIES = ("public", "private", "community", "shared")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: str | int | float) -> float:
    """Parse a duration such as ``"30m"``, ``"1h30m"`` or ``"1.5h"`` into seconds.

    Plain numbers are taken as seconds.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


def temporary_name(prefix: str = "cloudbake") -> str:
    """Return a unique name for a temporary cloud resource.

    Only lowercase letters, digits and dashes are used so that the name is
    valid on every provider.
    """
    return f"{prefix}-{uuid.uuid1().hex}"


class WaitPolicy(BaseModel):
    """Defaults applied to every state-convergence wait of a build.

    Call sites may still override individual values per wait.
    """

    model_config = ConfigDict(extra="forbid")

    not_found_checks: int = Field(default=20, ge=0)
    max_backoff: float = Field(default=10.0, gt=0)
    grace_period: float = Field(default=30.0, ge=0)


class DataVolume(BaseModel):
    """An extra disk to attach to the temporary instance.

    Exactly one of ``volume_id``, ``volume_size``, ``data_image_id`` and
    ``snapshot_id`` must be set.
    """

    model_config = ConfigDict(extra="forbid")

    volume_type: str = "SSD"
    volume_size: int = Field(default=0, ge=0)
    volume_id: str = ""
    data_image_id: str = ""
    snapshot_id: str = ""

    @property
    def source(self) -> str:
        """Name of the field that identifies where the volume comes from."""
        return self.specified()[0]

    def specified(self) -> list[str]:
        found = []
        if self.volume_id:
            found.append("volume_id")
        if self.volume_size > 0:
            found.append("volume_size")
        if self.data_image_id:
            found.append("data_image_id")
        if self.snapshot_id:
            found.append("snapshot_id")
        return found

    @model_validator(mode="after")
    def exactly_one_source(self) -> DataVolume:
        specified = self.specified()
        if not specified:
            raise ValueError(
                "one of volume_id, volume_size, data_image_id, snapshot_id must be specified"
            )
        if len(specified) > 1:
            raise ValueError(
                "only one of volume_id, volume_size, data_image_id, snapshot_id can be "
                f"specified, but `{','.join(specified)}` were specified"
            )
        return self


class ImageFilterOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    owner: str = ""
    visibility: str = ""
    properties: dict[str, str] = Field(default_factory=dict)

    @field_validator("visibility")
    @classmethod
    def known_visibility(cls, value: str) -> str:
        if value and value not in IMAGE_VISIBILITIES:
            raise ValueError(f"Not a valid visibility: {value}")
        return value

    def empty(self) -> bool:
        return not (self.name or self.owner or self.visibility or self.properties)


class ImageFilter(BaseModel):
    """Filters used to pick ``source_image`` when no ID is given.

    The lookup fails unless exactly one image matches, or ``most_recent``
    is set, in which case the newest match wins.
    """

    model_config = ConfigDict(extra="forbid")

    filters: ImageFilterOptions = Field(default_factory=ImageFilterOptions)
    most_recent: bool = False


class CommunicatorConfig(BaseModel):
    """How the provisioning hook reaches the temporary instance."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["ssh", "winrm", "none"] = "ssh"
    ssh_username: str = "root"
    ssh_password: str = ""
    ssh_keypair_name: str = ""
    ssh_temporary_key_pair_name: str = ""
    ssh_private_key_file: str = ""
    ssh_agent_auth: bool = False
    ssh_host: str = ""
    ssh_interface: Literal["", "public", "private"] = ""
    ssh_ip_version: Literal["", "4", "6"] = ""
    winrm_username: str = "Administrator"
    winrm_password: str = ""


class BuildConfig(BaseModel):
    """Validated build template.

    Attributes mirror the template keys one to one.  After validation
    ``image_type`` and ``instance_name`` are always populated, and a
    temporary keypair name is generated when no key material is configured.
    """

    model_config = ConfigDict(extra="forbid")

    # image
    image_name: str = ""
    image_description: str = ""
    image_type: str = ""
    image_tags: dict[str, str] = Field(default_factory=dict)
    image_members: list[str] = Field(default_factory=list)
    image_auto_accept_members: bool = False
    image_min_disk: int = Field(default=0, ge=0)
    wait_image_ready_timeout: float = Field(default=30 * 60.0)
    vault_id: str = ""
    enterprise_project_id: str = ""

    # run
    flavor: str = ""
    availability_zone: str = ""
    source_image: str = ""
    source_image_name: str = ""
    source_image_filter: ImageFilter = Field(default_factory=ImageFilter)
    vpc_id: str = ""
    subnets: list[str] = Field(default_factory=list)
    security_groups: list[str] = Field(default_factory=list)
    floating_ip: str = ""
    reuse_ips: bool = False
    eip_type: str = ""
    eip_bandwidth_size: int = Field(default=0, ge=0)
    user_data: str = ""
    user_data_file: str = ""
    instance_name: str = ""
    instance_metadata: dict[str, str] = Field(default_factory=dict)
    use_blockstorage_volume: bool = False
    volume_name: str = ""
    volume_type: str = ""
    volume_size: int = Field(default=0, ge=0)
    data_volumes: list[DataVolume] = Field(default_factory=list)

    communicator: CommunicatorConfig = Field(default_factory=CommunicatorConfig)
    waits: WaitPolicy = Field(default_factory=WaitPolicy)
    debug: bool = False
    build_name: str = "cloudbake"

    @field_validator("wait_image_ready_timeout", mode="before")
    @classmethod
    def parse_timeout(cls, value: str | int | float) -> float:
        return parse_duration(value)

    @field_validator("instance_metadata")
    @classmethod
    def metadata_length(cls, value: dict[str, str]) -> dict[str, str]:
        for key, item in value.items():
            if len(key.encode()) > 255:
                raise ValueError(f"Instance metadata key too long (max 255 bytes): {key}")
            if len(item.encode()) > 255:
                raise ValueError(f"Instance metadata value too long (max 255 bytes): {item}")
        return value

    @model_validator(mode="after")
    def check_template(self) -> BuildConfig:
        if not self.image_name:
            raise ValueError("image_name must be specified")
        if not self.flavor:
            raise ValueError("A flavor must be specified")

        if (
            not self.source_image
            and not self.source_image_name
            and self.source_image_filter.filters.empty()
        ):
            raise ValueError(
                "Either a source_image, a source_image_name, or source_image_filter "
                "must be specified"
            )
        if self.source_image and self.source_image_name:
            raise ValueError(
                "Only a source_image or a source_image_name can be specified, not both."
            )

        if self.vpc_id and not self.subnets:
            raise ValueError("subnets must be specified with vpc_id")
        if self.subnets and not self.vpc_id:
            raise ValueError("subnets must be empty if the vpc_id was not specified")

        self.image_type = self._resolve_image_type()
        self._check_communicator()

        if not self.instance_name:
            self.instance_name = self.image_name
        if not self.volume_name:
            self.volume_name = temporary_name()
        return self

    def _resolve_image_type(self) -> str:
        if not self.image_type:
            if not self.data_volumes:
                return SYSTEM_IMAGE_TYPE
            return FULL_IMAGE_TYPE if self.vault_id else DATA_IMAGE_TYPE

        if self.image_type not in IMAGE_TYPES:
            raise ValueError(
                f"expected 'image_type' to be one of {list(IMAGE_TYPES)}, got {self.image_type}"
            )
        if self.image_type == FULL_IMAGE_TYPE and not self.vault_id:
            raise ValueError("vault_id is missing for full-ecs image")
        return self.image_type

    def _check_communicator(self) -> None:
        comm = self.communicator
        if (
            not comm.ssh_keypair_name
            and not comm.ssh_temporary_key_pair_name
            and not comm.ssh_private_key_file
            and not comm.ssh_password
        ):
            comm.ssh_temporary_key_pair_name = temporary_name()

        if comm.ssh_keypair_name:
            if comm.type == "winrm" and not comm.winrm_password and not comm.ssh_private_key_file:
                raise ValueError(
                    "A ssh_private_key_file must be provided to retrieve the winrm password "
                    "when using ssh_keypair_name."
                )
            if comm.type != "winrm" and not comm.ssh_private_key_file and not comm.ssh_agent_auth:
                raise ValueError(
                    "A ssh_private_key_file must be provided or ssh_agent_auth enabled "
                    "when ssh_keypair_name is specified."
                )


__all__ = [
    "BuildConfig",
    "CommunicatorConfig",
    "DataVolume",
    "ImageFilter",
    "ImageFilterOptions",
    "WaitPolicy",
    "parse_duration",
    "temporary_name",
    "IMAGE_TYPES",
    "SYSTEM_IMAGE_TYPE",
    "DATA_IMAGE_TYPE",
    "SYSTEM_DATA_IMAGE_TYPE",
    "FULL_IMAGE_TYPE",
]

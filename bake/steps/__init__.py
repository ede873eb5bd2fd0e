"""Build steps, in pipeline order."""

from .load_zones import LoadZones
from .check_volumes import CheckVolumes
from .load_flavor import LoadFlavor
from .key_pair import KeyPair
from .source_image import SourceImage
from .create_network import CreateNetwork
from .create_eip import CreateEIP
from .create_volume import CreateVolume
from .run_source_server import RunSourceServer
from .attach_volume import AttachVolume
from .get_password import GetPassword
from .associate_eip import AssociateEIP
from .provision import Provision
from .stop_server import StopServer
from .create_image import CreateImage
from .update_image import UpdateImageMinDisk
from .add_image_members import AddImageMembers

__all__ = [
    "LoadZones",
    "CheckVolumes",
    "LoadFlavor",
    "KeyPair",
    "SourceImage",
    "CreateNetwork",
    "CreateEIP",
    "CreateVolume",
    "RunSourceServer",
    "AttachVolume",
    "GetPassword",
    "AssociateEIP",
    "Provision",
    "StopServer",
    "CreateImage",
    "UpdateImageMinDisk",
    "AddImageMembers",
]

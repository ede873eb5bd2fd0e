"""Tests for the individual build steps against mocked service clients."""

import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding

from bake.base import keys
from bake.base.exceptions import (
    ComputeError,
    ImageError,
    NetworkError,
    NetworkInUseError,
    SnapshotNotFoundError,
    VolumeNotFoundError,
)
from bake.config import DataVolume, ImageFilter
from bake.pipeline.state import PublicAddress, ResourceHandle, ResourceKind
from bake.pipeline.step import StepAction, StepPolicy
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

from conftest import make_config, make_state


def _with_server(state, server_id="i-1"):
    state.server = ResourceHandle(ResourceKind.SERVER, server_id)
    return state


# --- LoadZones / LoadFlavor ---

class TestLoadZones:
    def test_configured_zone(self, state):
        state.compute.list_availability_zones.return_value = ["us-east-1a", "us-east-1b"]
        assert LoadZones("us-east-1b").run(state) is StepAction.CONTINUE
        assert state.availability_zone == "us-east-1b"

    def test_random_zone(self, state):
        state.compute.list_availability_zones.return_value = ["us-east-1a", "us-east-1b"]
        LoadZones().run(state)
        assert state.availability_zone in ("us-east-1a", "us-east-1b")

    def test_unknown_zone_halts(self, state):
        state.compute.list_availability_zones.return_value = ["us-east-1a"]
        assert LoadZones("us-east-1z").run(state) is StepAction.HALT
        assert "us-east-1z" in str(state.error)

    def test_no_zones_halts(self, state):
        state.compute.list_availability_zones.return_value = []
        assert LoadZones().run(state) is StepAction.HALT


class TestLoadFlavor:
    def test_success(self, state):
        state.availability_zone = "us-east-1a"
        state.compute.get_flavor.return_value = {
            "flavor_id": "t3.small", "vcpus": 2, "memory_mb": 2048,
        }
        LoadFlavor("t3.small").run(state)
        assert state.flavor_id == "t3.small"
        state.compute.get_flavor.assert_called_once_with("t3.small", zone="us-east-1a")

    def test_missing_flavor_halts(self, state):
        state.compute.get_flavor.side_effect = ComputeError("unknown flavor")
        assert LoadFlavor("huge").run(state) is StepAction.HALT


# --- KeyPair ---

class TestKeyPair:
    def test_temporary_keypair(self, state):
        name = state.config.communicator.ssh_temporary_key_pair_name
        state.compute.create_keypair.return_value = {
            "name": name, "fingerprint": "aa:bb", "private_key": "PEM",
        }
        assert KeyPair().run(state) is StepAction.CONTINUE
        state.compute.create_keypair.assert_called_once_with(name)
        assert state.keypair.id == name
        assert state.private_key == "PEM"

    def test_blank_private_key_halts_but_keeps_handle(self, state):
        state.compute.create_keypair.return_value = {"fingerprint": "aa", "private_key": ""}
        assert KeyPair().run(state) is StepAction.HALT
        assert state.keypair.is_live

    def test_debug_key_is_saved(self, state, tmp_path):
        state.compute.create_keypair.return_value = {"fingerprint": "aa", "private_key": "PEM"}
        path = tmp_path / "debug.pem"
        KeyPair(debug=True, debug_key_path=str(path)).run(state)
        assert path.read_text() == "PEM"

    def test_private_key_file(self, tmp_path):
        private_pem, public_key = keys.generate_keypair()
        key_file = tmp_path / "id_rsa"
        key_file.write_text(private_pem)
        state = make_state(make_config(communicator={"ssh_private_key_file": str(key_file)}))
        state.compute.create_keypair.return_value = {"fingerprint": "aa", "private_key": ""}

        assert KeyPair().run(state) is StepAction.CONTINUE
        args, kwargs = state.compute.create_keypair.call_args
        assert kwargs["public_key"] == public_key
        assert state.private_key == private_pem
        assert args[0].startswith("cloudbake-")

    def test_agent_auth_creates_nothing(self):
        state = make_state(
            make_config(communicator={"ssh_agent_auth": True, "ssh_keypair_name": "mine"})
        )
        assert KeyPair().run(state) is StepAction.CONTINUE
        state.compute.create_keypair.assert_not_called()
        assert not state.keypair.is_live

    def test_cleanup_deletes_keypair(self, state):
        state.keypair = ResourceHandle(ResourceKind.KEYPAIR, "kp-1")
        KeyPair().cleanup(state)
        state.compute.delete_keypair.assert_called_once_with("kp-1")
        assert state.keypair.released


# --- SourceImage ---

class TestSourceImage:
    def test_explicit_id(self, state):
        SourceImage("ami-1").run(state)
        assert state.source_image == "ami-1"
        state.image.find_images.assert_not_called()

    def test_lookup_by_name(self, state):
        state.image.find_images.return_value = [{"image_id": "ami-2"}]
        SourceImage(source_image_name="ubuntu").run(state)
        assert state.source_image == "ami-2"
        assert state.image.find_images.call_args[1]["name"] == "ubuntu"

    def test_ambiguous_lookup_halts(self, state):
        state.image.find_images.return_value = [{"image_id": "ami-2"}, {"image_id": "ami-3"}]
        assert SourceImage(source_image_name="ubuntu").run(state) is StepAction.HALT
        assert "more than one result" in str(state.error)

    def test_most_recent(self, state):
        state.image.find_images.return_value = [{"image_id": "ami-new"}, {"image_id": "ami-old"}]
        image_filter = ImageFilter(filters={"owner": "self"}, most_recent=True)
        SourceImage(source_image_filter=image_filter).run(state)
        assert state.source_image == "ami-new"
        assert state.image.find_images.call_args[1]["owner"] == "self"

    def test_no_match_halts(self, state):
        state.image.find_images.return_value = []
        assert SourceImage(source_image_name="nothing").run(state) is StepAction.HALT


# --- CreateNetwork ---

class TestCreateNetwork:
    def test_existing_vpc(self, state):
        step = CreateNetwork("vpc-1", ["sub-1", "sub-2"])
        assert step.run(state) is StepAction.CONTINUE
        assert state.vpc_id == "vpc-1"
        assert state.subnet_ids == ["sub-1", "sub-2"]
        state.network.create_vpc.assert_not_called()

    def test_missing_existing_vpc_halts(self, state):
        state.network.get_vpc.side_effect = NetworkError("no such vpc")
        assert CreateNetwork("vpc-1", ["sub-1"]).run(state) is StepAction.HALT

    def test_creates_temporary_network(self, state):
        state.network.create_vpc.return_value = "vpc-9"
        state.network.get_vpc.return_value = {"state": "ACTIVE"}
        state.network.create_subnet.return_value = "sub-9"
        state.network.get_subnet.return_value = {"state": "ACTIVE"}
        CreateNetwork(delay=0, min_timeout=0).run(state)
        assert state.vpc.id == "vpc-9"
        assert [h.id for h in state.subnets] == ["sub-9"]
        assert state.subnet_ids == ["sub-9"]

    def test_cleanup_retries_while_in_use(self, state):
        state.vpc = ResourceHandle(ResourceKind.NETWORK, "vpc-9")
        state.subnets = [ResourceHandle(ResourceKind.SUBNET, "sub-9")]
        state.network.delete_subnet.side_effect = [NetworkInUseError("busy"), None]
        CreateNetwork(delay=0, min_timeout=0).cleanup(state)
        assert state.network.delete_subnet.call_count == 2
        state.network.delete_vpc.assert_called_once_with("vpc-9")
        assert state.vpc.released
        assert state.subnets[0].released


# --- CreateEIP / AssociateEIP ---

class TestCreateEIP:
    def test_no_address_requested(self, state):
        assert CreateEIP().run(state) is StepAction.CONTINUE
        assert not state.access_eip.handle.id

    def test_provided_address_already_bound_halts(self, state):
        state.network.get_address.return_value = {
            "address_id": "eip-1", "ip": "1.2.3.4", "port_id": "eni-9",
        }
        assert CreateEIP("eip-1").run(state) is StepAction.HALT
        assert "already associated" in str(state.error)

    def test_reuse_free_address(self, state):
        state.network.list_addresses.return_value = [
            {"address_id": "eip-1", "ip": "1.1.1.1", "port_id": "eni-1"},
            {"address_id": "eip-2", "ip": "2.2.2.2", "port_id": ""},
        ]
        CreateEIP(reuse_ips=True).run(state)
        assert state.access_eip.handle.id == "eip-2"
        assert not state.access_eip.owned

    def test_create_and_cleanup(self, state):
        state.network.create_address.return_value = {
            "address_id": "eip-7", "ip": "", "state": "PENDING",
        }
        state.network.get_address.side_effect = [
            {"address_id": "eip-7", "ip": "", "state": "PENDING"},
            {"address_id": "eip-7", "ip": "7.7.7.7", "state": "ACTIVE"},
        ]
        step = CreateEIP(eip_bandwidth_size=5, delay=0, min_timeout=0)
        assert step.run(state) is StepAction.CONTINUE
        assert state.access_eip.address == "7.7.7.7"
        assert state.access_eip.owned

        step.cleanup(state)
        state.network.delete_address.assert_called_once_with("eip-7")
        assert state.access_eip.handle.released

    def test_borrowed_address_is_not_deleted(self, state):
        state.access_eip = PublicAddress(ResourceHandle(ResourceKind.EIP, "eip-1"), "1.1.1.1")
        CreateEIP().cleanup(state)
        state.network.delete_address.assert_not_called()


class TestAssociateEIP:
    def test_skipped_without_address(self, state):
        AssociateEIP().run(state)
        state.network.associate_address.assert_not_called()

    def test_associates_first_port(self, state):
        _with_server(state)
        state.access_eip = PublicAddress(ResourceHandle(ResourceKind.EIP, "eip-1"), "1.1.1.1")
        state.compute.list_interfaces.return_value = [{"port_id": "eni-1"}, {"port_id": "eni-2"}]
        assert AssociateEIP().run(state) is StepAction.CONTINUE
        state.network.associate_address.assert_called_once_with("eip-1", "i-1", "eni-1")

    def test_no_interface_halts(self, state):
        _with_server(state)
        state.access_eip = PublicAddress(ResourceHandle(ResourceKind.EIP, "eip-1"), "1.1.1.1")
        state.compute.list_interfaces.return_value = []
        assert AssociateEIP().run(state) is StepAction.HALT


# --- CreateVolume ---

class TestCreateVolume:
    def test_disabled(self, state):
        CreateVolume("boot", enabled=False).run(state)
        state.block_storage.create_volume.assert_not_called()

    def test_size_from_image(self, state):
        state.source_image = "ami-1"
        state.availability_zone = "us-east-1a"
        state.image.get_image.return_value = {"min_disk_gb": 20}
        state.block_storage.create_volume.return_value = "vol-1"
        state.block_storage.get_volume.side_effect = [
            {"state": "CREATING"},
            {"state": "AVAILABLE"},
        ]
        assert CreateVolume("boot", "gp3", min_timeout=0).run(state) is StepAction.CONTINUE
        state.block_storage.create_volume.assert_called_once_with(
            "boot", 20, "us-east-1a", volume_type="gp3", image_id="ami-1"
        )
        assert state.boot_volume.id == "vol-1"

    def test_cleanup_deletes_available_volume(self, state):
        state.boot_volume = ResourceHandle(ResourceKind.VOLUME, "vol-1")
        state.block_storage.get_volume.return_value = {"state": "AVAILABLE"}
        CreateVolume("boot").cleanup(state)
        state.block_storage.delete_volume.assert_called_once_with("vol-1")
        assert state.boot_volume.released

    def test_cleanup_of_vanished_volume(self, state):
        state.boot_volume = ResourceHandle(ResourceKind.VOLUME, "vol-1")
        state.block_storage.get_volume.side_effect = VolumeNotFoundError("vol-1")
        CreateVolume("boot").cleanup(state)
        state.block_storage.delete_volume.assert_not_called()
        assert state.boot_volume.released


# --- RunSourceServer ---

class TestRunSourceServer:
    def test_instance_name_is_separate_from_step_name(self, state):
        step = RunSourceServer("web-builder")
        assert step.name == "RunSourceServer"
        assert step.instance_name == "web-builder"
        state.compute.create_instance.return_value = "i-1"
        state.compute.get_instance.return_value = {"state": "ACTIVE", "fault": ""}
        step.run(state)
        assert state.compute.create_instance.call_args[0][0] == "web-builder"

    def test_launch_and_wait(self, state):
        state.availability_zone = "us-east-1a"
        state.flavor_id = "t3.small"
        state.source_image = "ami-1"
        state.subnet_ids = ["sub-1"]
        state.keypair = ResourceHandle(ResourceKind.KEYPAIR, "kp-1")
        state.compute.create_instance.return_value = "i-1"
        state.compute.get_instance.side_effect = [
            {"state": "BUILD", "fault": ""},
            {"state": "ACTIVE", "fault": "", "public_ip": "3.3.3.3"},
        ]
        step = RunSourceServer("web", user_data="#!/bin/sh", root_volume_size=30, min_timeout=0)
        assert step.run(state) is StepAction.CONTINUE

        args, kwargs = state.compute.create_instance.call_args
        assert args == ("web", "t3.small", "ami-1")
        assert kwargs["keypair_name"] == "kp-1"
        assert kwargs["ssh_username"] == "root"
        assert kwargs["subnet_ids"] == ["sub-1"]
        assert kwargs["user_data"] == b"#!/bin/sh"
        assert kwargs["root_volume_size"] == 30
        assert state.server.id == "i-1"
        assert state.server_info["public_ip"] == "3.3.3.3"

    def test_boots_from_volume(self, state):
        state.boot_volume = ResourceHandle(ResourceKind.VOLUME, "vol-1")
        state.compute.create_instance.return_value = "i-1"
        state.compute.get_instance.return_value = {"state": "ACTIVE", "fault": ""}
        RunSourceServer("web", root_volume_size=30, min_timeout=0).run(state)
        kwargs = state.compute.create_instance.call_args[1]
        assert kwargs["boot_volume_id"] == "vol-1"
        assert "root_volume_size" not in kwargs

    def test_launch_error_halts_without_handle(self, state):
        state.compute.create_instance.side_effect = ComputeError("capacity")
        assert RunSourceServer("web").run(state) is StepAction.HALT
        assert not state.server.is_live


# --- CheckVolumes ---

class TestCheckVolumes:
    def test_no_volumes(self, state):
        assert CheckVolumes().run(state) is StepAction.CONTINUE
        state.block_storage.get_volume.assert_not_called()

    def test_sizes_resolved_in_order(self, state):
        state.availability_zone = "us-east-1a"
        state.block_storage.get_volume.return_value = {"size_gb": 20, "zone": "us-east-1a"}
        state.block_storage.get_snapshot.return_value = {"snapshot_id": "snap-1", "size_gb": 50}
        state.image.get_image.return_value = {"image_id": "ami-d", "min_disk_gb": 40}
        volumes = [
            DataVolume(volume_size=10),
            DataVolume(volume_id="vol-x"),
            DataVolume(snapshot_id="snap-1"),
            DataVolume(data_image_id="ami-d"),
        ]
        assert CheckVolumes(volumes).run(state) is StepAction.CONTINUE
        assert state.data_volume_sizes == [10, 20, 50, 40]

    def test_volume_in_other_zone_halts(self, state):
        state.availability_zone = "us-east-1a"
        state.block_storage.get_volume.return_value = {"size_gb": 20, "zone": "us-east-1c"}
        step = CheckVolumes([DataVolume(volume_id="vol-x")])
        assert step.run(state) is StepAction.HALT
        assert "data_volumes[0]: can not find the volume vol-x in us-east-1a" in str(state.error)
        assert state.data_volume_sizes == []

    def test_every_problem_reported(self, state):
        state.availability_zone = "us-east-1a"
        state.block_storage.get_volume.side_effect = VolumeNotFoundError("Volume 'vol-x' not found")
        state.block_storage.get_snapshot.side_effect = SnapshotNotFoundError("no snap-9")
        step = CheckVolumes([
            DataVolume(volume_id="vol-x"),
            DataVolume(volume_size=5),
            DataVolume(snapshot_id="snap-9"),
        ])
        assert step.run(state) is StepAction.HALT
        message = str(state.error)
        assert "data_volumes[0]: Volume 'vol-x' not found" in message
        assert "data_volumes[2]: no snap-9" in message
        state.compute.create_instance.assert_not_called()


# --- AttachVolume ---

class TestAttachVolume:
    def _ready(self, state):
        _with_server(state)
        state.availability_zone = "us-east-1a"
        state.block_storage.create_volume.return_value = "vol-d"
        state.block_storage.get_volume.return_value = {"state": "AVAILABLE"}
        state.compute.attach_volume.return_value = "attach:vol-d:i-1"
        state.compute.detach_volume.return_value = "detach:vol-d:i-1"
        state.compute.get_job.return_value = {"status": "SUCCESS", "entities": {}}

    def test_create_attach_detach_delete(self, state):
        self._ready(state)
        step = AttachVolume([DataVolume(volume_size=10)], delay=0, poll_interval=0.01)
        assert step.run(state) is StepAction.CONTINUE
        state.block_storage.create_volume.assert_called_once_with(
            "cloudbake-data-0", 10, "us-east-1a",
            volume_type="SSD", image_id=None, snapshot_id=None,
        )
        state.compute.attach_volume.assert_called_once_with("i-1", "vol-d")
        assert state.attached_volume_ids == ["vol-d"]

        step.cleanup(state)
        step.cleanup(state)
        state.compute.detach_volume.assert_called_once_with("i-1", "vol-d")
        state.block_storage.delete_volume.assert_called_once_with("vol-d")

    def test_existing_volume_is_only_detached(self, state):
        self._ready(state)
        step = AttachVolume([DataVolume(volume_id="vol-x")], delay=0, poll_interval=0.01)
        step.run(state)
        state.block_storage.create_volume.assert_not_called()
        step.cleanup(state)
        state.compute.detach_volume.assert_called_once_with("i-1", "vol-x")
        state.block_storage.delete_volume.assert_not_called()

    def test_snapshot_sizes_volume(self, state):
        self._ready(state)
        state.block_storage.get_snapshot.return_value = {"snapshot_id": "snap-1", "size_gb": 50}
        AttachVolume([DataVolume(snapshot_id="snap-1")], delay=0, poll_interval=0.01).run(state)
        assert state.block_storage.create_volume.call_args[0][1] == 50

    def test_uses_checked_sizes(self, state):
        self._ready(state)
        state.data_volume_sizes = [50]
        AttachVolume([DataVolume(snapshot_id="snap-1")], delay=0, poll_interval=0.01).run(state)
        state.block_storage.get_snapshot.assert_not_called()
        assert state.block_storage.create_volume.call_args[0][1] == 50

    def test_failed_attach_job_halts(self, state):
        self._ready(state)
        state.compute.get_job.return_value = {"status": "FAIL", "fail_reason": "device busy"}
        step = AttachVolume([DataVolume(volume_size=10)], delay=0, poll_interval=0.01)
        assert step.run(state) is StepAction.HALT
        assert "device busy" in str(state.error)


# --- GetPassword ---

def _encrypt(public_openssh, text):
    public_key = serialization.load_ssh_public_key(public_openssh.encode())
    return base64.b64encode(public_key.encrypt(text.encode(), padding.PKCS1v15())).decode()


class TestGetPassword:
    def test_skipped_for_ssh(self, state):
        GetPassword().run(state)
        state.compute.get_encrypted_password.assert_not_called()

    def test_decrypts_password(self):
        private_pem, public_key = keys.generate_keypair()
        state = _with_server(make_state(make_config(communicator={"type": "winrm"})))
        state.private_key = private_pem
        state.compute.get_encrypted_password.side_effect = ["", _encrypt(public_key, "s3cret!")]

        assert GetPassword(delay=0, poll_interval=0.01).run(state) is StepAction.CONTINUE
        assert state.password == "s3cret!"
        assert state.config.communicator.winrm_password == "s3cret!"

    def test_undecryptable_password_halts(self):
        private_pem, _ = keys.generate_keypair()
        state = _with_server(make_state(make_config(communicator={"type": "winrm"})))
        state.private_key = private_pem
        state.compute.get_encrypted_password.return_value = base64.b64encode(b"junk").decode()
        assert GetPassword(delay=0, poll_interval=0.01).run(state) is StepAction.HALT
        assert "Error decrypting password" in str(state.error)


# --- Provision / StopServer ---

class TestProvision:
    def test_hooks_run_in_order(self, state):
        calls = []

        def first(st):
            calls.append("first")

        def second(st):
            calls.append("second")

        state.hooks = [first, second]
        Provision().run(state)
        assert calls == ["first", "second"]
        assert "Running provisioner 1/2: first" in state.out.getvalue()

    def test_no_hooks(self, state):
        Provision().run(state)
        assert "No provisioners configured" in state.out.getvalue()


class TestStopServer:
    def test_stop_and_wait(self, state):
        _with_server(state)
        state.compute.get_instance.side_effect = [
            {"state": "ACTIVE", "fault": ""},
            {"state": "SHUTOFF", "fault": ""},
        ]
        StopServer(delay=0, poll_interval=0.01).run(state)
        state.compute.stop_instance.assert_called_once_with("i-1")
        assert state.server_info["state"] == "SHUTOFF"


# --- CreateImage ---

class TestCreateImage:
    def _step(self, image_type="system", **kwargs):
        return CreateImage("web", image_type, delay=0, poll_interval=0.01, **kwargs)

    def test_system_image(self, state):
        _with_server(state)
        state.image.create_system_image.return_value = "image:ami-9"
        state.image.get_job.side_effect = [
            {"status": "RUNNING", "entities": {}},
            {"status": "SUCCESS", "entities": {"image_id": "ami-9"}},
        ]
        assert self._step(tags={"team": "web"}).run(state) is StepAction.CONTINUE
        state.image.create_system_image.assert_called_once_with(
            "web", "i-1", description="", tags={"team": "web"}
        )
        assert state.image_ids == ["ami-9"]

    def test_whole_image_uses_vault(self, state):
        _with_server(state)
        state.image.create_whole_image.return_value = "job-1"
        state.image.get_job.return_value = {"status": "SUCCESS", "entities": {"image_id": "mi-1"}}
        self._step("full-ecs", vault_id="vault-1").run(state)
        assert state.image.create_whole_image.call_args[1]["vault_id"] == "vault-1"
        assert state.image_ids == ["mi-1"]

    def test_data_images_tolerate_single_failures(self, state):
        _with_server(state)
        state.compute.list_volume_attachments.return_value = [
            {"volume_id": "v0", "device": "/dev/sda1", "boot_index": 0},
            {"volume_id": "v1", "device": "/dev/sdf", "boot_index": 1},
            {"volume_id": "v2", "device": "/dev/sdg", "boot_index": 2},
        ]
        state.image.create_data_image.side_effect = ["job-1", ImageError("quota")]
        state.image.get_job.return_value = {
            "status": "SUCCESS", "entities": {"image_id": "img-sdf"},
        }
        assert self._step("data-disk").run(state) is StepAction.CONTINUE
        names = [c[0][0] for c in state.image.create_data_image.call_args_list]
        assert names == ["web-sdf", "web-sdg"]
        assert state.image_ids == ["img-sdf"]
        assert "failed to create data image web-sdg" in state.out.getvalue()

    def test_data_images_require_a_data_disk(self, state):
        _with_server(state)
        state.compute.list_volume_attachments.return_value = [
            {"volume_id": "v0", "device": "/dev/sda1", "boot_index": 0},
        ]
        assert self._step("data-disk").run(state) is StepAction.HALT

    def test_failed_job_reports_remote_reason(self, state):
        _with_server(state)
        state.image.create_system_image.return_value = "image:ami-9"
        state.image.get_job.return_value = {"status": "FAIL", "fail_reason": "snapshot limit"}
        assert self._step().run(state) is StepAction.HALT
        assert "snapshot limit" in str(state.error)
        assert state.image_ids == []


# --- UpdateImageMinDisk / AddImageMembers ---

class TestUpdateImageMinDisk:
    def test_skipped_when_zero(self, state):
        state.image_ids = ["ami-1"]
        UpdateImageMinDisk(0).run(state)
        state.image.update_min_disk.assert_not_called()

    def test_updates_every_image(self, state):
        state.image_ids = ["ami-1", "ami-2"]
        UpdateImageMinDisk(40).run(state)
        assert state.image.update_min_disk.call_count == 2

    def test_failure_halts(self, state):
        state.image_ids = ["ami-1"]
        state.image.update_min_disk.side_effect = ImageError("denied")
        assert UpdateImageMinDisk(40).run(state) is StepAction.HALT


class TestAddImageMembers:
    def test_shares_images(self, state):
        state.image_ids = ["ami-1"]
        AddImageMembers(["123456789012"]).run(state)
        state.image.add_members.assert_called_once_with(["ami-1"], ["123456789012"])

    def test_failure_only_warns(self, state):
        state.image_ids = ["ami-1"]
        state.image.add_members.side_effect = ImageError("denied")
        assert AddImageMembers(["123"]).run(state) is StepAction.CONTINUE
        assert state.error is None
        assert "please share the image manually" in state.out.getvalue()

    def test_auto_accept_warns(self, state):
        state.image_ids = ["ami-1"]
        AddImageMembers(["123"], auto_accept=True).run(state)
        assert "not supported" in state.out.getvalue()


@pytest.mark.parametrize("step_cls", [AddImageMembers, StopServer])
def test_best_effort_steps(step_cls):
    assert step_cls.policy is StepPolicy.BEST_EFFORT

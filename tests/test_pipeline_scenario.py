"""End-to-end rollback of resources created before a failed instance launch."""

from unittest.mock import patch

import pytest
from google.api_core import exceptions as gcp_exceptions
from google.cloud import compute_v1

from bake.base.config import GCPConfig
from bake.base.exceptions import CloudbakeError, InstanceNotFoundError
from bake.gcp.compute import Compute
from bake.pipeline.runner import Runner
from bake.steps import CreateImage, CreateNetwork, RunSourceServer


def _instance(state, fault=""):
    return {"instance_id": "srv-1", "state": state, "fault": fault}


def test_failed_launch_rolls_back_instance_then_network(state):
    deleted = []
    network = state.network
    network.create_vpc.return_value = "net-1"
    network.get_vpc.side_effect = [
        {"vpc_id": "net-1", "state": "PENDING"},
        {"vpc_id": "net-1", "state": "ACTIVE"},
    ]
    network.create_subnet.return_value = "sub-1"
    network.get_subnet.return_value = {"subnet_id": "sub-1", "state": "ACTIVE"}
    network.delete_subnet.side_effect = lambda sid: deleted.append(("subnet", sid))
    network.delete_vpc.side_effect = lambda vid: deleted.append(("vpc", vid))

    compute = state.compute
    compute.create_instance.return_value = "srv-1"
    compute.get_instance.side_effect = [
        _instance("BUILD"),
        _instance("BUILD"),
        _instance("ERROR", fault="No valid host was found"),
        InstanceNotFoundError("srv-1"),
    ]
    compute.delete_instance.side_effect = lambda iid: deleted.append(("server", iid))

    steps = [
        CreateNetwork(delay=0, min_timeout=0),
        RunSourceServer("web", min_timeout=0),
        CreateImage("web", delay=0),
    ]
    with pytest.raises(CloudbakeError) as exc_info:
        Runner(steps).run(state)

    assert "No valid host was found" in str(exc_info.value)
    assert network.get_vpc.call_count == 2
    assert compute.get_instance.call_count == 4
    assert deleted == [("server", "srv-1"), ("subnet", "sub-1"), ("vpc", "net-1")]
    assert state.server.released
    assert state.vpc.released
    state.image.create_system_image.assert_not_called()
    state.block_storage.create_volume.assert_not_called()
    assert network.create_vpc.call_count == 1
    assert compute.create_instance.call_count == 1


def test_rejected_gcp_insert_is_still_rolled_back(state):
    failed = compute_v1.Operation(name="op-9", status=compute_v1.Operation.Status.DONE)
    failed.error = compute_v1.Error(
        errors=[compute_v1.Errors(code="ZONE_RESOURCE_POOL_EXHAUSTED", message="no capacity")]
    )
    with (
        patch("bake.gcp.compute.compute_v1.InstancesClient") as MockInstances,
        patch("bake.gcp.compute.compute_v1.ZonesClient"),
        patch("bake.gcp.compute.compute_v1.MachineTypesClient"),
        patch("bake.gcp.operations.compute_v1.ZoneOperationsClient") as MockOps,
        patch("bake.gcp.operations.compute_v1.RegionOperationsClient"),
        patch("bake.gcp.operations.compute_v1.GlobalOperationsClient"),
    ):
        instances = MockInstances.return_value
        instances.insert.return_value = compute_v1.Operation(name="op-9")
        instances.get.side_effect = gcp_exceptions.NotFound("nope")
        instances.delete.side_effect = gcp_exceptions.NotFound("nope")
        MockOps.return_value.get.return_value = failed
        state.compute = Compute(GCPConfig(project_id="my-project", region="us-central1"))

        with pytest.raises(CloudbakeError, match="no capacity"):
            Runner([RunSourceServer("web", min_timeout=0)]).run(state)

    assert instances.insert.call_count == 1
    assert instances.delete.call_args[1]["instance"] == "web"
    assert state.server.released
    MockOps.return_value.wait.assert_not_called()

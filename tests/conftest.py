"""Shared fixtures: a build state wired to mocked service clients."""

import io
from unittest.mock import MagicMock

import pytest

from bake.base.logger import BakeLogger
from bake.base.ui import Ui
from bake.config import BuildConfig
from bake.engine.cancel import CancelSignal
from bake.pipeline.state import BuildState

BASE_TEMPLATE = {
    "image_name": "web",
    "flavor": "t3.small",
    "source_image": "ami-123",
    # keep every wait in the tests fast
    "waits": {"max_backoff": 0.01, "grace_period": 0.5},
}


def make_config(**overrides):
    return BuildConfig.model_validate({**BASE_TEMPLATE, **overrides})


def make_state(config=None, **fields):
    out = io.StringIO()
    err = io.StringIO()
    ui = Ui("test", stream=out, error_stream=err, logger=BakeLogger("cloudbake.test"))
    state = BuildState(
        config=config or make_config(),
        compute=MagicMock(name="compute"),
        network=MagicMock(name="network"),
        block_storage=MagicMock(name="block_storage"),
        image=MagicMock(name="image"),
        ui=ui,
        cancel=CancelSignal(),
    )
    for key, value in fields.items():
        setattr(state, key, value)
    state.out = out
    state.err = err
    return state


@pytest.fixture(autouse=True)
def _isolated_cloud_env(monkeypatch):
    # a developer's cloud CLI settings must not leak into the access configs
    for var in ("GOOGLE_APPLICATION_CREDENTIALS", "CLOUDSDK_COMPUTE_REGION", "CLOUDSDK_COMPUTE_ZONE",
                "AWS_ENDPOINT_URL_EC2"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def state():
    return make_state()

"""Tests for the cloudbake command line."""

import json
from unittest.mock import patch

import pytest

from bake.base.exceptions import BuildCancelledError, ComputeError, ConfigError
from bake.cli import EXIT_CANCELLED, EXIT_FAILURE, main

from conftest import BASE_TEMPLATE

AWS_CONFIG = json.dumps({"region_name": "us-east-1"})


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "web.json"
    path.write_text(json.dumps(BASE_TEMPLATE))
    return str(path)


def _run(*argv):
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    return exc_info.value.code


class TestValidate:
    def test_valid_template(self, template, capsys):
        main(["-p", "aws", "-c", AWS_CONFIG, "validate", template])
        assert "Template validated successfully." in capsys.readouterr().out

    def test_invalid_template(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"flavor": "t3.small"}))
        assert _run("-p", "aws", "-c", AWS_CONFIG, "validate", str(path)) == EXIT_FAILURE
        assert "Invalid template" in capsys.readouterr().err

    def test_bad_config_json(self, template, capsys):
        assert _run("-p", "aws", "-c", "{nope", "validate", template) == EXIT_FAILURE
        assert "Invalid --config JSON" in capsys.readouterr().err

    def test_template_must_be_object(self, tmp_path, capsys):
        path = tmp_path / "list.json"
        path.write_text("[]")
        assert _run("-p", "aws", "validate", str(path)) == EXIT_FAILURE
        assert "expected an object" in capsys.readouterr().err

    def test_missing_template(self, tmp_path, capsys):
        assert _run("-p", "aws", "validate", str(tmp_path / "nope.json")) == EXIT_FAILURE
        assert "Cannot read template" in capsys.readouterr().err

    def test_unknown_provider(self, template):
        assert _run("-p", "azure", "validate", template) == 2


class TestBuild:
    @patch("bake.builder.ImageBuilder")
    def test_success(self, mock_builder, template, capsys):
        mock_builder.return_value.run.return_value = "An image was created: ami-1"
        main(["-p", "aws", "-c", AWS_CONFIG, "build", template])
        assert "An image was created: ami-1" in capsys.readouterr().out
        mock_builder.assert_called_once_with(BASE_TEMPLATE, "aws", {"region_name": "us-east-1"})

    @patch("bake.builder.ImageBuilder")
    def test_no_image(self, mock_builder, template, capsys):
        mock_builder.return_value.run.return_value = None
        main(["-p", "aws", "build", template])
        assert "no image was produced" in capsys.readouterr().out

    @patch("bake.builder.ImageBuilder")
    def test_failure_exit_code(self, mock_builder, template, capsys):
        mock_builder.return_value.run.side_effect = ComputeError("quota exceeded")
        assert _run("-p", "aws", "build", template) == EXIT_FAILURE
        assert "Build failed: quota exceeded" in capsys.readouterr().err

    @patch("bake.builder.ImageBuilder")
    def test_cancel_exit_code(self, mock_builder, template, capsys):
        mock_builder.return_value.run.side_effect = BuildCancelledError("Build was cancelled")
        assert _run("-p", "aws", "build", template) == EXIT_CANCELLED
        assert "Build was cancelled." in capsys.readouterr().err

    @patch("bake.builder.ImageBuilder")
    def test_config_error(self, mock_builder, template):
        mock_builder.side_effect = ConfigError("bad")
        assert _run("-p", "aws", "build", template) == EXIT_FAILURE

    @patch("bake.builder.ImageBuilder")
    def test_sigint_handler_restored(self, mock_builder, template):
        import signal

        before = signal.getsignal(signal.SIGINT)
        mock_builder.return_value.run.return_value = None
        main(["-p", "aws", "build", template])
        assert signal.getsignal(signal.SIGINT) is before

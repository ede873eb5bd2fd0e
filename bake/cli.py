"""Cloudbake CLI: build or validate a machine image template.

Usage examples::

    cloudbake --provider aws --config '{"region_name":"us-east-1"}' build web.json
    cloudbake --provider gcp --config '{"project_id":"my-project"}' validate web.json
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from typing import Any

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ``cloudbake`` CLI.

    Returns:
        Configured :class:`~argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        prog="cloudbake",
        description="Build machine images on AWS and GCP",
    )
    parser.add_argument(
        "--provider", "-p",
        required=True,
        choices=["aws", "gcp"],
        help="Cloud provider",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default="{}",
        help='JSON provider config (e.g. \'{"region_name":"us-east-1"}\')',
    )
    sub = parser.add_subparsers(dest="command", required=True)
    build = sub.add_parser("build", help="Run a build and print the artifact")
    build.add_argument("template", help="Path to the JSON build template")
    validate = sub.add_parser("validate", help="Check a template without building")
    validate.add_argument("template", help="Path to the JSON build template")
    return parser


def _load_json(text: str, what: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        print(f"Invalid {what} JSON: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    if not isinstance(data, dict):
        print(f"Invalid {what} JSON: expected an object", file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    return data


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    ``validate`` only checks the template and the provider config.
    ``build`` runs the build; Ctrl-C cancels it and still deletes the
    temporary resources.

    Args:
        argv: Optional argument list (defaults to ``sys.argv``).
    """
    parser = _build_parser()
    ns = parser.parse_args(argv)
    provider_config = _load_json(ns.config, "--config")

    try:
        with open(ns.template, encoding="utf-8") as f:
            template = _load_json(f.read(), "template")
    except OSError as e:
        print(f"Cannot read template: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    # Lazy-import to avoid loading all SDKs unconditionally
    from bake.base.exceptions import BuildCancelledError, CloudbakeError, ConfigError
    from bake.builder import ImageBuilder
    from bake.engine.cancel import CancelSignal

    try:
        builder = ImageBuilder(template, ns.provider, provider_config)
    except ConfigError as e:
        print(f"Invalid template: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    if ns.command == "validate":
        print("Template validated successfully.")
        return

    cancel = CancelSignal()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        artifact = builder.run(cancel)
    except BuildCancelledError:
        print("Build was cancelled.", file=sys.stderr)
        sys.exit(EXIT_CANCELLED)
    except CloudbakeError as e:
        print(f"Build failed: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    finally:
        signal.signal(signal.SIGINT, previous)

    if artifact is None:
        print("Build finished but no image was produced.")
    else:
        print(artifact)


if __name__ == "__main__":
    main()

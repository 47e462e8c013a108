"""kubeapp command line.

    kubeapp run        run the controller (and, by default, its webhooks)
    kubeapp validate   check an Application manifest against admission rules
    kubeapp hash       print the revision hash and name for a manifest
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Any

import click

from kubeapp import __version__
from kubeapp.admission import default_application, validate_application
from kubeapp.errors import CanonicalizationError, ValidationError
from kubeapp.hashing import content_hash, revision_name, template_payload
from kubeapp.observability.logging import setup_logging


def _load_manifest(path: Path) -> dict[str, Any]:
    try:
        obj = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path}: not valid JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise click.ClickException(f"{path}: expected a JSON object")
    return obj


@click.group()
@click.version_option(__version__, prog_name="kubeapp")
def cli() -> None:
    """Application controller for Kubernetes."""


@cli.command()
@click.option("--namespace", default=None, help="Only reconcile Applications in this namespace.")
@click.option("--workers", type=click.IntRange(1, 64), default=None, help="Concurrent reconcile workers.")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None)
@click.option("--webhooks/--no-webhooks", default=True, help="Serve the admission webhooks and /metrics.")
def run(namespace: str | None, workers: int | None, log_level: str | None, webhooks: bool) -> None:
    """Run the controller until SIGTERM / SIGINT.

    Settings come from KUBEAPP_* environment variables; options override them.
    """
    from kubeapp.app import main
    from kubeapp.config import load_config

    config = load_config()
    if namespace is not None:
        config.controller = dataclasses.replace(config.controller, namespace=namespace)
    if workers is not None:
        config.controller = dataclasses.replace(config.controller, workers=workers)
    if log_level is not None:
        config.log = dataclasses.replace(config.log, level=log_level)
    asyncio.run(main(config=config, webhooks=webhooks))


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(manifest: Path) -> None:
    """Default and validate an Application manifest (JSON)."""
    setup_logging("warning", json_output=False)
    obj = default_application(_load_manifest(manifest))
    try:
        validate_application(obj)
    except ValidationError as exc:
        for err in exc.field_errors:
            click.echo(err, err=True)
        raise click.ClickException(f'Application "{exc.name}" is invalid') from exc
    click.echo(f"{manifest}: valid")


@cli.command("hash")
@click.argument("manifest", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def hash_command(manifest: Path) -> None:
    """Print the content hash and ControllerRevision name of a manifest."""
    obj = _load_manifest(manifest)
    name = str((obj.get("metadata") or {}).get("name", ""))
    if not name:
        raise click.ClickException(f"{manifest}: metadata.name is required")
    resources = (obj.get("spec") or {}).get("resources") or []
    try:
        value = content_hash(template_payload(resources))
    except CanonicalizationError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"hash:     {value}")
    click.echo(f"revision: {revision_name(name, value)}")

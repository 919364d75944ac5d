"""Offline command line interface (iaas-service).

Builds and checks requests without talking to the remote API.

Usage:
    iaas-service preview server --current server.yaml --patch update.yaml
    iaas-service validate vpc-router update update.yaml
    iaas-service config show --profile profile.yaml
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click
import pydantic
import yaml
from pydantic import BaseModel

from . import __version__, container_registry, enhanced_db, proxylb, server, ssh_key, vpc_router
from .config import Config, ConfigurationError
from .errors import IaaSServiceError, PreconditionError, ValidationError
from .loader import DocumentLoadError, load_document, read_mapping
from .models import (
    ContainerRegistry,
    ContainerRegistryUsers,
    EnhancedDB,
    ProxyLB,
    Server,
    SSHKey,
    VPCRouter,
)


@dataclass(frozen=True)
class ResourceKind:
    """Snapshot model, request models and update builder of one resource type."""

    snapshot: type[BaseModel]
    requests: dict[str, type[BaseModel]]
    build: Callable[[BaseModel, BaseModel], BaseModel]


RESOURCES: dict[str, ResourceKind] = {
    "server": ResourceKind(
        snapshot=Server,
        requests={
            "create": server.CreateRequest,
            "read": server.ReadRequest,
            "update": server.UpdateRequest,
            "delete": server.DeleteRequest,
            "find": server.FindRequest,
            "change-plan": server.ChangePlanRequest,
        },
        build=lambda patch, current: patch.apply_request(current),
    ),
    "enhanced-db": ResourceKind(
        snapshot=EnhancedDB,
        requests={
            "create": enhanced_db.CreateRequest,
            "read": enhanced_db.ReadRequest,
            "update": enhanced_db.UpdateRequest,
            "delete": enhanced_db.DeleteRequest,
            "find": enhanced_db.FindRequest,
        },
        build=lambda patch, current: patch.apply_request(current),
    ),
    "proxylb": ResourceKind(
        snapshot=ProxyLB,
        requests={
            "create": proxylb.CreateRequest,
            "read": proxylb.ReadRequest,
            "update": proxylb.UpdateRequest,
            "delete": proxylb.DeleteRequest,
            "find": proxylb.FindRequest,
        },
        build=lambda patch, current: patch.request_parameter(current),
    ),
    "vpc-router": ResourceKind(
        snapshot=VPCRouter,
        requests={
            "create": vpc_router.CreateRequest,
            "read": vpc_router.ReadRequest,
            "update": vpc_router.UpdateRequest,
            "delete": vpc_router.DeleteRequest,
            "find": vpc_router.FindRequest,
        },
        build=lambda patch, current: patch.apply_request(current),
    ),
    "container-registry": ResourceKind(
        snapshot=ContainerRegistry,
        requests={
            "create": container_registry.CreateRequest,
            "read": container_registry.ReadRequest,
            "update": container_registry.UpdateRequest,
            "delete": container_registry.DeleteRequest,
            "find": container_registry.FindRequest,
        },
        # Users are supplied separately through --users
        build=lambda patch, current: patch.apply_request(current, None),
    ),
    "ssh-key": ResourceKind(
        snapshot=SSHKey,
        requests={
            "create": ssh_key.CreateRequest,
            "read": ssh_key.ReadRequest,
            "update": ssh_key.UpdateRequest,
            "delete": ssh_key.DeleteRequest,
            "find": ssh_key.FindRequest,
        },
        build=lambda patch, current: patch.request_parameter(current),
    ),
}

OPERATIONS = sorted({op for kind in RESOURCES.values() for op in kind.requests})


def dump_yaml(model: BaseModel) -> str:
    return yaml.safe_dump(model.model_dump(mode="json"), sort_keys=False, allow_unicode=True)


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="iaas-service")
def cli() -> None:
    """IaaS service CLI.

    Offline tooling for the request reconciliation layer.

    \b
    Quick Start:
        iaas-service validate server update patch.yaml
        iaas-service preview server --current server.yaml --patch patch.yaml
    """
    pass


# =============================================================================
# Request Commands
# =============================================================================


@cli.command()
@click.argument("resource", type=click.Choice(sorted(RESOURCES)))
@click.option(
    "--current",
    "current_path",
    type=click.Path(path_type=Path),
    required=True,
    help="YAML snapshot of the current resource.",
)
@click.option(
    "--patch",
    "patch_path",
    type=click.Path(path_type=Path),
    required=True,
    help="YAML update request.",
)
@click.option(
    "--users",
    "users_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML user list (container-registry only).",
)
def preview(resource: str, current_path: Path, patch_path: Path, users_path: Path | None) -> None:
    """Print the apply request an update would send.

    Business rule guards run against the snapshot, so a rejected update
    fails here exactly as it would against the remote API.
    """
    kind = RESOURCES[resource]
    if users_path is not None and resource != "container-registry":
        raise click.UsageError("--users is only valid for container-registry")

    try:
        current = load_document(current_path, kind.snapshot)
        patch = load_document(patch_path, kind.requests["update"])
        if users_path is not None:
            users = load_document(users_path, ContainerRegistryUsers)
            apply = patch.apply_request(current, users)
        else:
            apply = kind.build(patch, current)
    except DocumentLoadError as e:
        raise click.ClickException(str(e)) from e
    except PreconditionError as e:
        raise click.ClickException(f"Rejected ({e.reason.value}): {e}") from e
    except IaaSServiceError as e:
        raise click.ClickException(str(e)) from e

    click.echo(dump_yaml(apply), nl=False)


@cli.command()
@click.argument("resource", type=click.Choice(sorted(RESOURCES)))
@click.argument("operation", type=click.Choice(OPERATIONS))
@click.argument("document", type=click.Path(path_type=Path))
def validate(resource: str, operation: str, document: Path) -> None:
    """Validate a request document against its field rules."""
    model = RESOURCES[resource].requests.get(operation)
    if model is None:
        raise click.UsageError(f"{resource} has no {operation} operation")

    try:
        raw = read_mapping(document)
    except DocumentLoadError as e:
        raise click.ClickException(str(e)) from e

    try:
        model.model_validate(raw)
    except pydantic.ValidationError as e:
        errors = ValidationError.from_pydantic(e)
        click.secho(f"✗ {document}: {len(errors.errors)} error(s)", fg="red", err=True)
        for error in errors.errors:
            click.echo(f"  - {error}", err=True)
        raise SystemExit(1) from e

    click.secho(f"✓ {document} is a valid {resource} {operation} request", fg="green")


# =============================================================================
# Configuration Commands
# =============================================================================


@cli.group()
def config() -> None:
    """Configuration commands."""
    pass


@config.command("show")
@click.option(
    "--profile",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML profile, overridden by environment variables.",
)
def config_show(profile: Path | None) -> None:
    """Print the effective configuration with secrets masked."""
    try:
        cfg = Config.from_profile(profile) if profile is not None else Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    click.echo(yaml.safe_dump(cfg.masked(), sort_keys=False), nl=False)

"""Server requests, apply request builder and service.

Update flow:
1. Read the current server
2. Guard: plan changes need a stopped server (or force_shutdown)
3. Build the apply request from the snapshot, then merge the sparse patch
4. Hand the apply request to the remote update endpoint
"""

from __future__ import annotations

import logging
import re
from typing import ClassVar

from pydantic import Field, field_validator, model_validator

from . import guards
from .api import CallContext, ServerAPI
from .errors import RemoteError
from .merge import merge
from .models import Server, ServerChangePlanRequest, ServerConnectedDisk, ServerInterface
from .requests import Request, RequestModel, ZonedFindRequest, ZonedIDRequest
from .service import BaseService
from .types import Commitment, DiskConnection, DiskPlan, InterfaceDriver, PlanGeneration, UpstreamType

logger = logging.getLogger(__name__)

UPSTREAM_SHARED = "shared"
UPSTREAM_DISCONNECTED = "disconnected"
MAX_DESCRIPTION_LENGTH = 512

_SWITCH_ID_PATTERN = re.compile(r"^[0-9]+$")

# Patch fields that make an update a plan change
PLAN_FIELDS = ("cpu", "memory_gb", "gpu", "commitment", "generation")


# =============================================================================
# Nested Settings
# =============================================================================


class NetworkInterface(RequestModel):
    """A NIC slot: "shared", "disconnected" or the id of a switch."""

    upstream: str
    packet_filter_id: int = 0
    user_ip_address: str = ""

    @field_validator("upstream")
    @classmethod
    def validate_upstream(cls, v: str) -> str:
        if v in (UPSTREAM_SHARED, UPSTREAM_DISCONNECTED) or _SWITCH_ID_PATTERN.match(v):
            return v
        raise ValueError("upstream must be 'shared', 'disconnected' or a switch id")

    @classmethod
    def from_interface(cls, nic: ServerInterface) -> NetworkInterface:
        if nic.upstream_type == UpstreamType.SHARED:
            upstream = UPSTREAM_SHARED
        elif nic.upstream_type == UpstreamType.SWITCH:
            upstream = str(nic.switch_id)
        else:
            upstream = UPSTREAM_DISCONNECTED
        return cls(
            upstream=upstream,
            packet_filter_id=nic.packet_filter_id,
            user_ip_address=nic.user_ip_address,
        )


class DiskSetting(RequestModel):
    """A disk to attach. id 0 asks the remote to create the disk.

    New disks are sized in whole GB through ``size_gb``. Disks read from a
    snapshot carry their exact ``size_mb`` and their name as stored, which may
    be empty.
    """

    id: int = 0
    name: str = ""
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] = Field(default_factory=list)
    disk_plan_id: DiskPlan = DiskPlan.SSD
    connection: DiskConnection = DiskConnection.VIRTIO
    size_gb: int = Field(default=20, ge=0)
    # Takes precedence over size_gb when non-zero
    size_mb: int = Field(default=0, ge=0)
    server_id: int = 0

    @model_validator(mode="after")
    def validate_new_disk(self) -> DiskSetting:
        if self.id == 0:
            if not self.name:
                raise ValueError("new disks need a name")
            if self.size_mb == 0 and self.size_gb == 0:
                raise ValueError("new disks need a size")
        return self

    @property
    def effective_size_mb(self) -> int:
        return self.size_mb or self.size_gb * 1024

    @classmethod
    def from_disk(cls, disk: ServerConnectedDisk, server_id: int) -> DiskSetting:
        return cls(
            id=disk.id,
            name=disk.name,
            description=disk.description,
            tags=list(disk.tags),
            disk_plan_id=disk.disk_plan_id,
            connection=disk.connection,
            size_gb=0,
            size_mb=disk.size_mb,
            server_id=server_id,
        )


# =============================================================================
# Apply Request
# =============================================================================


class ApplyRequest(RequestModel):
    """Fully resolved server payload for the remote create and update endpoints."""

    zone: str
    id: int = 0
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    cpu: int = 1
    memory_gb: int = 1
    gpu: int = 0
    commitment: Commitment = Commitment.STANDARD
    generation: PlanGeneration = PlanGeneration.DEFAULT
    interface_driver: InterfaceDriver = InterfaceDriver.VIRTIO
    boot_after_create: bool = False
    cdrom_id: int = 0
    private_host_id: int = 0
    network_interfaces: list[NetworkInterface] = Field(default_factory=list)
    disks: list[DiskSetting] = Field(default_factory=list)
    no_wait: bool = False
    force_shutdown: bool = False

    @classmethod
    def from_snapshot(cls, zone: str, current: Server) -> ApplyRequest:
        return cls(
            zone=zone,
            id=current.id,
            name=current.name,
            description=current.description,
            tags=list(current.tags),
            icon_id=current.icon_id,
            cpu=current.cpu,
            memory_gb=current.memory_gb,
            gpu=current.gpu,
            commitment=current.commitment,
            generation=current.generation,
            interface_driver=current.interface_driver,
            cdrom_id=current.cdrom_id,
            private_host_id=current.private_host_id,
            network_interfaces=[NetworkInterface.from_interface(nic) for nic in current.interfaces],
            disks=[DiskSetting.from_disk(disk, current.id) for disk in current.disks],
        )


# =============================================================================
# Requests
# =============================================================================


class CreateRequest(Request):
    zone: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    cpu: int = Field(default=1, gt=0)
    memory_gb: int = Field(default=1, gt=0)
    gpu: int = Field(default=0, ge=0)
    commitment: Commitment = Commitment.STANDARD
    generation: PlanGeneration = PlanGeneration.DEFAULT
    interface_driver: InterfaceDriver = InterfaceDriver.VIRTIO
    boot_after_create: bool = False
    cdrom_id: int = 0
    private_host_id: int = 0
    network_interfaces: list[NetworkInterface] = Field(default_factory=list)
    disks: list[DiskSetting] = Field(default_factory=list)
    no_wait: bool = False

    def apply_request(self) -> ApplyRequest:
        return ApplyRequest(
            zone=self.zone,
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            icon_id=self.icon_id,
            cpu=self.cpu,
            memory_gb=self.memory_gb,
            gpu=self.gpu,
            commitment=self.commitment,
            generation=self.generation,
            interface_driver=self.interface_driver,
            boot_after_create=self.boot_after_create,
            cdrom_id=self.cdrom_id,
            private_host_id=self.private_host_id,
            network_interfaces=[nic.model_copy(deep=True) for nic in self.network_interfaces],
            disks=[disk.model_copy(deep=True) for disk in self.disks],
            no_wait=self.no_wait,
        )


class ReadRequest(ZonedIDRequest):
    pass


class FindRequest(ZonedFindRequest):
    pass


class UpdateRequest(Request):
    """Sparse server update. Fields left as None keep their current value."""

    merge_exclude: ClassVar[frozenset[str]] = frozenset({"zone", "id", "no_wait", "force_shutdown"})

    zone: str = Field(min_length=1)
    id: int = Field(gt=0)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] | None = None
    icon_id: int | None = None
    cpu: int | None = Field(default=None, gt=0)
    memory_gb: int | None = Field(default=None, gt=0)
    gpu: int | None = Field(default=None, ge=0)
    commitment: Commitment | None = None
    generation: PlanGeneration | None = None
    interface_driver: InterfaceDriver | None = None
    cdrom_id: int | None = None
    private_host_id: int | None = None
    network_interfaces: list[NetworkInterface] | None = None
    disks: list[DiskSetting] | None = None

    no_wait: bool = False
    force_shutdown: bool = False

    def changes_plan(self, current: Server) -> bool:
        """True if any present plan field differs from the snapshot."""
        for name in PLAN_FIELDS:
            requested = getattr(self, name)
            if requested is not None and requested != getattr(current, name):
                return True
        return False

    def apply_request(self, current: Server) -> ApplyRequest:
        """Merge this patch onto the snapshot.

        Raises:
            PreconditionError: If the plan changes while the server runs
                and force_shutdown is not set.
        """
        if self.changes_plan(current):
            guards.require_instance_down_or_forced(current, force_shutdown=self.force_shutdown)

        apply = ApplyRequest.from_snapshot(self.zone, current)
        merge(self, apply)
        apply.no_wait = self.no_wait
        apply.force_shutdown = self.force_shutdown
        return apply


class DeleteRequest(ZonedIDRequest):
    with_disks: bool = False
    force_shutdown: bool = False


class ChangePlanRequest(Request):
    """Sparse plan change. Absent fields keep the current plan values."""

    merge_exclude: ClassVar[frozenset[str]] = frozenset({"zone", "id"})

    zone: str = Field(min_length=1)
    id: int = Field(gt=0)

    cpu: int | None = Field(default=None, gt=0)
    memory_mb: int | None = Field(default=None, gt=0)
    gpu: int | None = Field(default=None, ge=0)
    commitment: Commitment | None = None
    generation: PlanGeneration | None = None

    def change_request(self, current: Server) -> ServerChangePlanRequest:
        guards.require_instance_down(current)
        change = ServerChangePlanRequest(
            cpu=current.cpu,
            memory_mb=current.memory_mb,
            gpu=current.gpu,
            commitment=current.commitment,
            generation=current.generation,
        )
        return merge(self, change)


# =============================================================================
# Service
# =============================================================================


class ServerService(BaseService[ServerAPI]):
    """CRUD and plan change for servers."""

    resource_name = "server"

    def find(self, req: FindRequest, ctx: CallContext | None = None) -> list[Server]:
        ctx = self._begin(req, ctx)
        return self._client.find(ctx, req.zone, req.condition())

    def create(self, req: CreateRequest, ctx: CallContext | None = None) -> Server:
        ctx = self._begin(req, ctx)
        return self.apply(req.apply_request(), ctx)

    def read(self, req: ReadRequest, ctx: CallContext | None = None) -> Server:
        ctx = self._begin(req, ctx)
        return self._client.read(ctx, req.zone, req.id)

    def update(self, req: UpdateRequest, ctx: CallContext | None = None) -> Server:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.zone, req.id)
        apply = req.apply_request(current)
        return self.apply(apply, ctx)

    def apply(self, apply: ApplyRequest, ctx: CallContext | None = None) -> Server:
        """Create the server if ``apply.id`` is 0, otherwise update it."""
        ctx = ctx or CallContext.background()
        ctx.raise_if_done()
        logger.info(
            "Applying server",
            extra={"zone": apply.zone, "server_id": apply.id, "server_name": apply.name},
        )
        try:
            if apply.id == 0:
                return self._client.create(ctx, apply.zone, apply)
            return self._client.update(ctx, apply.zone, apply.id, apply)
        except RemoteError as e:
            self._log_write_failure("apply", e, zone=apply.zone, server_id=apply.id)
            raise

    def delete(self, req: DeleteRequest, ctx: CallContext | None = None) -> None:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.zone, req.id)
        guards.require_instance_down_or_forced(current, force_shutdown=req.force_shutdown)

        ctx.raise_if_done()
        if not current.instance_status.is_down():
            logger.info("Forcing shutdown before delete", extra={"zone": req.zone, "server_id": req.id})
            self._client.shutdown(ctx, req.zone, req.id, force=True)
        self._client.delete(ctx, req.zone, req.id, with_disks=req.with_disks)

    def change_plan(self, req: ChangePlanRequest, ctx: CallContext | None = None) -> Server:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.zone, req.id)
        change = req.change_request(current)

        ctx.raise_if_done()
        logger.info(
            "Changing server plan",
            extra={"zone": req.zone, "server_id": req.id, "cpu": change.cpu, "memory_mb": change.memory_mb},
        )
        return self._client.change_plan(ctx, req.zone, req.id, change)

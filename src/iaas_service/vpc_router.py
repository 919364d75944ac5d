"""VPC router requests, apply request builder and service.

Settings updates are only accepted for routers above the standard plan that
are in the available state.

ADDITIONAL NIC SETTINGS:
The remote lists additional interfaces positionally, but each entry is
identified by its ``index`` (1-7; index 0 is the primary interface and is
handled by ``nic_setting``). Patches for this collection are merged by index,
and any index the patch does not list is dropped from the apply request.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import Field, model_validator

from . import guards
from .api import CallContext, VPCRouterAPI
from .errors import RemoteError
from .merge import merge, merge_by_key
from .models import (
    VPCRouter,
    VPCRouterDHCPServer,
    VPCRouterDHCPStaticMapping,
    VPCRouterDNSForwarding,
    VPCRouterFirewall,
    VPCRouterL2TPIPsecServer,
    VPCRouterPortForwarding,
    VPCRouterPPTPServer,
    VPCRouterRemoteAccessUser,
    VPCRouterScheduledMaintenance,
    VPCRouterSetting,
    VPCRouterSiteToSiteIPsecVPN,
    VPCRouterStaticNAT,
    VPCRouterStaticRoute,
    VPCRouterWireGuard,
)
from .requests import Request, RequestModel, ZonedFindRequest, ZonedIDRequest
from .service import BaseService
from .types import MAX_ADDITIONAL_NIC_INDEX, PRIMARY_NIC_INDEX, VPCRouterPlan

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 512

# Premium and higher plans run a redundant pair: two real addresses plus a VIP
PREMIUM_IP_ADDRESS_COUNT = 2


def _require_unique_indices(settings: list | None) -> None:
    if not settings:
        return
    seen: set[int] = set()
    for setting in settings:
        if setting.index in seen:
            raise ValueError(f"duplicate additional NIC index: {setting.index}")
        seen.add(setting.index)


# =============================================================================
# Settings
# =============================================================================


class PremiumNICSetting(RequestModel):
    """Primary interface (index 0)."""

    switch_id: int = 0
    ip_addresses: list[str] = Field(default_factory=list)
    virtual_ip_address: str = ""
    ip_aliases: list[str] = Field(default_factory=list)


class AdditionalNICSetting(RequestModel):
    """An additional interface, identified by ``index``."""

    switch_id: int = 0
    ip_addresses: list[str] = Field(default_factory=list)
    virtual_ip_address: str = ""
    network_mask_len: int = 0
    index: int = 0


class RouterSetting(RequestModel):
    """Router configuration other than interface addressing."""

    vrid: int = 0
    internet_connection_enabled: bool = True
    static_nat: list[VPCRouterStaticNAT] = Field(default_factory=list)
    port_forwarding: list[VPCRouterPortForwarding] = Field(default_factory=list)
    firewall: list[VPCRouterFirewall] = Field(default_factory=list)
    dhcp_server: list[VPCRouterDHCPServer] = Field(default_factory=list)
    dhcp_static_mapping: list[VPCRouterDHCPStaticMapping] = Field(default_factory=list)
    dns_forwarding: VPCRouterDNSForwarding | None = None
    pptp_server: VPCRouterPPTPServer | None = None
    l2tp_ipsec_server: VPCRouterL2TPIPsecServer | None = None
    wire_guard: VPCRouterWireGuard | None = None
    remote_access_users: list[VPCRouterRemoteAccessUser] = Field(default_factory=list)
    site_to_site_ipsec_vpn: VPCRouterSiteToSiteIPsecVPN | None = None
    static_route: list[VPCRouterStaticRoute] = Field(default_factory=list)
    syslog_host: str = ""
    scheduled_maintenance: VPCRouterScheduledMaintenance | None = None

    @classmethod
    def from_settings(cls, settings: VPCRouterSetting) -> RouterSetting:
        return cls.model_validate(settings.model_dump(exclude={"interfaces"}))


# =============================================================================
# Apply Request
# =============================================================================


class ApplyRequest(RequestModel):
    """Fully resolved VPC router payload for the remote create and update endpoints."""

    zone: str
    id: int = 0
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    plan_id: VPCRouterPlan = VPCRouterPlan.STANDARD
    version: int = 2
    nic_setting: PremiumNICSetting | None = None
    additional_nic_settings: list[AdditionalNICSetting] = Field(default_factory=list)
    router_setting: RouterSetting = Field(default_factory=RouterSetting)
    no_wait: bool = False
    settings_hash: str = ""

    @classmethod
    def from_snapshot(cls, zone: str, current: VPCRouter) -> ApplyRequest:
        nic_setting = None
        primary = current.settings.interface_setting(PRIMARY_NIC_INDEX)
        if primary is not None:
            primary_nic = current.interface(PRIMARY_NIC_INDEX)
            nic_setting = PremiumNICSetting(
                switch_id=primary_nic.switch_id if primary_nic else 0,
                ip_addresses=list(primary.ip_address),
                virtual_ip_address=primary.virtual_ip_address,
                ip_aliases=list(primary.ip_aliases),
            )

        additional_nics: list[AdditionalNICSetting] = []
        for nic in current.interfaces:
            if nic.index == PRIMARY_NIC_INDEX:
                continue
            setting = current.settings.interface_setting(nic.index)
            if setting is None:
                continue
            additional_nics.append(
                AdditionalNICSetting(
                    switch_id=nic.switch_id,
                    ip_addresses=list(setting.ip_address),
                    virtual_ip_address=setting.virtual_ip_address,
                    network_mask_len=setting.network_mask_len,
                    index=setting.index,
                )
            )

        return cls(
            zone=zone,
            id=current.id,
            name=current.name,
            description=current.description,
            tags=list(current.tags),
            icon_id=current.icon_id,
            plan_id=current.plan_id,
            version=current.version,
            nic_setting=nic_setting,
            additional_nic_settings=additional_nics,
            router_setting=RouterSetting.from_settings(current.settings),
            settings_hash=current.settings_hash,
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
    plan_id: VPCRouterPlan = VPCRouterPlan.STANDARD
    version: int = 2
    nic_setting: PremiumNICSetting | None = None
    additional_nic_settings: list[AdditionalNICSetting] = Field(default_factory=list)
    router_setting: RouterSetting = Field(default_factory=RouterSetting)
    no_wait: bool = False

    @model_validator(mode="after")
    def validate_interfaces(self) -> CreateRequest:
        if self.plan_id > VPCRouterPlan.STANDARD:
            if self.nic_setting is None:
                raise ValueError("nic_setting is required for premium and higher plans")
            if len(self.nic_setting.ip_addresses) != PREMIUM_IP_ADDRESS_COUNT:
                raise ValueError(f"nic_setting.ip_addresses requires {PREMIUM_IP_ADDRESS_COUNT} addresses")
        for nic in self.additional_nic_settings:
            if not PRIMARY_NIC_INDEX < nic.index <= MAX_ADDITIONAL_NIC_INDEX:
                raise ValueError(f"additional NIC index must be between 1 and {MAX_ADDITIONAL_NIC_INDEX}")
        _require_unique_indices(self.additional_nic_settings)
        return self

    def apply_request(self) -> ApplyRequest:
        return ApplyRequest(
            zone=self.zone,
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            icon_id=self.icon_id,
            plan_id=self.plan_id,
            version=self.version,
            nic_setting=self.nic_setting.model_copy(deep=True) if self.nic_setting else None,
            additional_nic_settings=[nic.model_copy(deep=True) for nic in self.additional_nic_settings],
            router_setting=self.router_setting.model_copy(deep=True),
            no_wait=self.no_wait,
        )


class ReadRequest(ZonedIDRequest):
    pass


class FindRequest(ZonedFindRequest):
    pass


class DeleteRequest(ZonedIDRequest):
    pass


class PremiumNICSettingUpdate(RequestModel):
    ip_addresses: list[str] | None = None
    virtual_ip_address: str | None = None
    ip_aliases: list[str] | None = None


class AdditionalNICSettingUpdate(RequestModel):
    switch_id: int | None = None
    ip_addresses: list[str] | None = None
    virtual_ip_address: str | None = None
    network_mask_len: int | None = Field(default=None, ge=8, le=29)
    index: int = Field(gt=PRIMARY_NIC_INDEX, le=MAX_ADDITIONAL_NIC_INDEX)


class RouterSettingUpdate(RequestModel):
    internet_connection_enabled: bool | None = None
    static_nat: list[VPCRouterStaticNAT] | None = None
    port_forwarding: list[VPCRouterPortForwarding] | None = None
    firewall: list[VPCRouterFirewall] | None = None
    dhcp_server: list[VPCRouterDHCPServer] | None = None
    dhcp_static_mapping: list[VPCRouterDHCPStaticMapping] | None = None
    dns_forwarding: VPCRouterDNSForwarding | None = None
    pptp_server: VPCRouterPPTPServer | None = None
    l2tp_ipsec_server: VPCRouterL2TPIPsecServer | None = None
    wire_guard: VPCRouterWireGuard | None = None
    remote_access_users: list[VPCRouterRemoteAccessUser] | None = None
    site_to_site_ipsec_vpn: VPCRouterSiteToSiteIPsecVPN | None = None
    static_route: list[VPCRouterStaticRoute] | None = None
    syslog_host: str | None = None
    scheduled_maintenance: VPCRouterScheduledMaintenance | None = None


class UpdateRequest(Request):
    """Sparse VPC router update.

    Every field keeps its current value when left as None, with one
    exception: ``additional_nic_settings``. When that list is given, it
    REPLACES the current set of additional interfaces. Entries are merged
    with the current interface of the same index, but any index missing from
    the list is removed. Resubmit every index you want to keep.
    """

    merge_exclude: ClassVar[frozenset[str]] = frozenset(
        {"zone", "id", "additional_nic_settings", "no_wait"}
    )
    merge_recursive: ClassVar[frozenset[str]] = frozenset({"nic_setting", "router_setting"})

    zone: str = Field(min_length=1)
    id: int = Field(gt=0)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] | None = None
    icon_id: int | None = None

    nic_setting: PremiumNICSettingUpdate | None = None
    additional_nic_settings: list[AdditionalNICSettingUpdate] | None = None
    router_setting: RouterSettingUpdate | None = None
    no_wait: bool = False

    settings_hash: str | None = None

    @model_validator(mode="after")
    def validate_indices(self) -> UpdateRequest:
        _require_unique_indices(self.additional_nic_settings)
        return self

    def apply_request(self, current: VPCRouter) -> ApplyRequest:
        """Merge this patch onto the snapshot.

        Raises:
            PreconditionError: If the router is on the standard plan or is
                not available.
        """
        guards.require_plan_above(current.plan_id, zone=self.zone, id=self.id)
        guards.require_available(current.availability, zone=self.zone, id=self.id)

        apply = ApplyRequest.from_snapshot(self.zone, current)
        merge(self, apply)

        if self.additional_nic_settings is not None:
            apply.additional_nic_settings = merge_by_key(
                apply.additional_nic_settings,
                self.additional_nic_settings,
                key="index",
                factory=AdditionalNICSetting,
            )
        apply.no_wait = self.no_wait
        return apply


# =============================================================================
# Service
# =============================================================================


class VPCRouterService(BaseService[VPCRouterAPI]):
    """CRUD for VPC routers."""

    resource_name = "vpc_router"

    def find(self, req: FindRequest, ctx: CallContext | None = None) -> list[VPCRouter]:
        ctx = self._begin(req, ctx)
        return self._client.find(ctx, req.zone, req.condition())

    def create(self, req: CreateRequest, ctx: CallContext | None = None) -> VPCRouter:
        ctx = self._begin(req, ctx)
        return self.apply(req.apply_request(), ctx)

    def read(self, req: ReadRequest, ctx: CallContext | None = None) -> VPCRouter:
        ctx = self._begin(req, ctx)
        return self._client.read(ctx, req.zone, req.id)

    def update(self, req: UpdateRequest, ctx: CallContext | None = None) -> VPCRouter:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.zone, req.id)
        return self.apply(req.apply_request(current), ctx)

    def apply(self, apply: ApplyRequest, ctx: CallContext | None = None) -> VPCRouter:
        """Create the router if ``apply.id`` is 0, otherwise update it."""
        ctx = ctx or CallContext.background()
        ctx.raise_if_done()
        logger.info(
            "Applying VPC router",
            extra={
                "zone": apply.zone,
                "router_id": apply.id,
                "nic_indices": [nic.index for nic in apply.additional_nic_settings],
            },
        )
        try:
            if apply.id == 0:
                return self._client.create(ctx, apply.zone, apply)
            return self._client.update(ctx, apply.zone, apply.id, apply)
        except RemoteError as e:
            self._log_write_failure("apply", e, zone=apply.zone, router_id=apply.id)
            raise

    def delete(self, req: DeleteRequest, ctx: CallContext | None = None) -> None:
        ctx = self._begin(req, ctx)
        self._client.delete(ctx, req.zone, req.id)

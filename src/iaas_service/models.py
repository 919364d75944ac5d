"""Pydantic models for remote resource snapshots and remote request shapes.

These models mirror what the remote management API returns and accepts:
1. Snapshots: the full current state of a resource, every field populated
2. Remote-only request shapes used where the service layer does not own an
   apply request of its own (plan changes, ProxyLB, SSH keys, registry users)

All models accept camelCase wire names and snake_case field names.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .types import (
    Availability,
    Commitment,
    ContainerRegistryAccessLevel,
    ContainerRegistryPermission,
    DiskConnection,
    DiskPlan,
    InstanceStatus,
    InterfaceDriver,
    PlanGeneration,
    ProxyLBPlan,
    ProxyLBRegion,
    UpstreamType,
    VPCRouterPlan,
)

# =============================================================================
# Base Models
# =============================================================================


class RemoteModel(BaseModel):
    """Base for every model exchanged with the remote API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",  # Remote payloads carry fields this layer does not use
    )


class FindCondition(RemoteModel):
    """Filter passed to the remote list endpoints."""

    names: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    count: int = 0
    offset: int = 0


# =============================================================================
# Server
# =============================================================================


class ServerInterface(RemoteModel):
    """A NIC attached to a server, in slot order."""

    id: int = 0
    switch_id: int = 0
    upstream_type: UpstreamType = UpstreamType.NONE
    packet_filter_id: int = 0
    user_ip_address: str = ""
    ip_address: str = ""
    mac_address: str = ""


class ServerConnectedDisk(RemoteModel):
    """A disk attached to a server."""

    id: int
    name: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    disk_plan_id: DiskPlan = DiskPlan.SSD
    connection: DiskConnection = DiskConnection.VIRTIO
    size_mb: int = 0


class Server(RemoteModel):
    """Server snapshot."""

    id: int
    zone: str = ""
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    cpu: int = 1
    memory_mb: int = 1024
    gpu: int = 0
    commitment: Commitment = Commitment.STANDARD
    generation: PlanGeneration = PlanGeneration.DEFAULT
    interface_driver: InterfaceDriver = InterfaceDriver.VIRTIO
    instance_status: InstanceStatus = InstanceStatus.UNKNOWN
    availability: Availability = Availability.AVAILABLE
    cdrom_id: int = 0
    private_host_id: int = 0
    interfaces: list[ServerInterface] = Field(default_factory=list)
    disks: list[ServerConnectedDisk] = Field(default_factory=list)
    created_at: datetime | None = None

    @property
    def memory_gb(self) -> int:
        return self.memory_mb // 1024


class ServerChangePlanRequest(RemoteModel):
    """Payload of the server plan change endpoint."""

    cpu: int = 1
    memory_mb: int = 1024
    gpu: int = 0
    commitment: Commitment = Commitment.STANDARD
    generation: PlanGeneration = PlanGeneration.DEFAULT


# =============================================================================
# Enhanced Database
# =============================================================================


class EnhancedDB(RemoteModel):
    """Enhanced database snapshot."""

    id: int
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    database_name: str = ""
    database_type: str = "tidb"
    region: str = "is1"
    hostname: str = ""
    port: int = 3306
    availability: Availability = Availability.AVAILABLE
    settings_hash: str = ""


# =============================================================================
# ProxyLB
# =============================================================================


class ProxyLBHealthCheck(RemoteModel):
    protocol: str = "http"
    path: str = "/"
    host: str = ""
    delay_loop: int = 10


class ProxyLBSorryServer(RemoteModel):
    ip_address: str = ""
    port: int = 0


class ProxyLBResponseHeader(RemoteModel):
    header: str
    value: str


class ProxyLBBindPort(RemoteModel):
    proxy_mode: str = "http"
    port: int = 80
    redirect_to_https: bool = False
    support_http2: bool = False
    add_response_header: list[ProxyLBResponseHeader] = Field(default_factory=list)


class ProxyLBServer(RemoteModel):
    ip_address: str
    port: int
    server_group: str = ""
    enabled: bool = True


class ProxyLBRule(RemoteModel):
    host: str = ""
    path: str = ""
    server_group: str = ""
    action: str = "forward"
    fixed_status_code: int = 0
    fixed_content_type: str = ""
    fixed_message_body: str = ""
    redirect_location: str = ""
    redirect_status_code: int = 0


class ProxyLBACMESetting(RemoteModel):
    common_name: str = ""
    enabled: bool = False
    subject_alt_names: list[str] = Field(default_factory=list)


class ProxyLBStickySession(RemoteModel):
    enabled: bool = False
    method: str = "cookie"


class ProxyLBGzip(RemoteModel):
    enabled: bool = False


class ProxyLBBackendHttpKeepAlive(RemoteModel):
    mode: str = "safe"


class ProxyLBProxyProtocol(RemoteModel):
    enabled: bool = False


class ProxyLBSyslog(RemoteModel):
    server: str = ""
    port: int = 514


class ProxyLBTimeout(RemoteModel):
    inactive_sec: int = 10


class _ProxyLBSettings(RemoteModel):
    """Settings shared by the ProxyLB snapshot and its remote requests."""

    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    health_check: ProxyLBHealthCheck = Field(default_factory=ProxyLBHealthCheck)
    sorry_server: ProxyLBSorryServer = Field(default_factory=ProxyLBSorryServer)
    bind_ports: list[ProxyLBBindPort] = Field(default_factory=list)
    servers: list[ProxyLBServer] = Field(default_factory=list)
    rules: list[ProxyLBRule] = Field(default_factory=list)
    lets_encrypt: ProxyLBACMESetting = Field(default_factory=ProxyLBACMESetting)
    sticky_session: ProxyLBStickySession = Field(default_factory=ProxyLBStickySession)
    gzip: ProxyLBGzip = Field(default_factory=ProxyLBGzip)
    backend_http_keep_alive: ProxyLBBackendHttpKeepAlive = Field(
        default_factory=ProxyLBBackendHttpKeepAlive
    )
    proxy_protocol: ProxyLBProxyProtocol = Field(default_factory=ProxyLBProxyProtocol)
    syslog: ProxyLBSyslog = Field(default_factory=ProxyLBSyslog)
    timeout: ProxyLBTimeout = Field(default_factory=ProxyLBTimeout)


class ProxyLB(_ProxyLBSettings):
    """ProxyLB snapshot."""

    id: int
    plan: ProxyLBPlan = ProxyLBPlan.CPS100
    region: ProxyLBRegion = ProxyLBRegion.IS1
    fqdn: str = ""
    vip: str = ""
    proxy_networks: list[str] = Field(default_factory=list)
    availability: Availability = Availability.AVAILABLE
    settings_hash: str = ""


class ProxyLBCreateRequest(_ProxyLBSettings):
    """Payload of the ProxyLB create endpoint."""

    plan: ProxyLBPlan = ProxyLBPlan.CPS100
    region: ProxyLBRegion = ProxyLBRegion.IS1


class ProxyLBUpdateRequest(_ProxyLBSettings):
    """Payload of the ProxyLB update endpoint. Plan changes use their own endpoint."""

    settings_hash: str = ""


# =============================================================================
# VPC Router
# =============================================================================


class VPCRouterInterface(RemoteModel):
    """A physical interface of a VPC router, identified by its index."""

    index: int
    switch_id: int = 0
    upstream_type: UpstreamType = UpstreamType.SWITCH
    mac_address: str = ""


class VPCRouterInterfaceSetting(RemoteModel):
    """Address settings of one VPC router interface, identified by its index."""

    index: int
    ip_address: list[str] = Field(default_factory=list)
    virtual_ip_address: str = ""
    ip_aliases: list[str] = Field(default_factory=list)
    network_mask_len: int = 0


class VPCRouterStaticNAT(RemoteModel):
    global_address: str
    private_address: str
    description: str = ""


class VPCRouterPortForwarding(RemoteModel):
    protocol: str = "tcp"
    global_port: int
    private_address: str
    private_port: int
    description: str = ""


class VPCRouterFirewallRule(RemoteModel):
    protocol: str = "ip"
    source_network: str = ""
    source_port: str = ""
    destination_network: str = ""
    destination_port: str = ""
    action: str = "allow"
    logging: bool = False
    description: str = ""


class VPCRouterFirewall(RemoteModel):
    index: int = 0
    send: list[VPCRouterFirewallRule] = Field(default_factory=list)
    receive: list[VPCRouterFirewallRule] = Field(default_factory=list)


class VPCRouterDHCPServer(RemoteModel):
    interface: str = "eth1"
    range_start: str = ""
    range_stop: str = ""
    dns_servers: list[str] = Field(default_factory=list)


class VPCRouterDHCPStaticMapping(RemoteModel):
    mac_address: str
    ip_address: str


class VPCRouterDNSForwarding(RemoteModel):
    interface: str = "eth1"
    dns_servers: list[str] = Field(default_factory=list)


class VPCRouterPPTPServer(RemoteModel):
    range_start: str = ""
    range_stop: str = ""


class VPCRouterL2TPIPsecServer(RemoteModel):
    range_start: str = ""
    range_stop: str = ""
    pre_shared_secret: str = ""


class VPCRouterWireGuardPeer(RemoteModel):
    name: str
    ip_address: str
    public_key: str


class VPCRouterWireGuard(RemoteModel):
    ip_address: str = ""
    peers: list[VPCRouterWireGuardPeer] = Field(default_factory=list)


class VPCRouterRemoteAccessUser(RemoteModel):
    user_name: str
    password: str


class VPCRouterSiteToSiteIPsecVPNConfig(RemoteModel):
    peer: str
    remote_id: str
    pre_shared_secret: str
    routes: list[str] = Field(default_factory=list)
    local_prefix: list[str] = Field(default_factory=list)


class VPCRouterSiteToSiteIPsecVPN(RemoteModel):
    config: list[VPCRouterSiteToSiteIPsecVPNConfig] = Field(default_factory=list)
    ike_lifetime: int = 28800
    esp_lifetime: int = 1800


class VPCRouterStaticRoute(RemoteModel):
    prefix: str
    next_hop: str


class VPCRouterScheduledMaintenance(RemoteModel):
    day_of_week: int = 0
    hour: int = 3


class VPCRouterSetting(RemoteModel):
    """Router configuration as stored by the remote."""

    vrid: int = 0
    internet_connection_enabled: bool = True
    interfaces: list[VPCRouterInterfaceSetting] = Field(default_factory=list)
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

    def interface_setting(self, index: int) -> VPCRouterInterfaceSetting | None:
        """Return the settings entry with the given index, if any."""
        for setting in self.interfaces:
            if setting.index == index:
                return setting
        return None


class VPCRouter(RemoteModel):
    """VPC router snapshot."""

    id: int
    zone: str = ""
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    plan_id: VPCRouterPlan = VPCRouterPlan.STANDARD
    version: int = 2
    availability: Availability = Availability.AVAILABLE
    instance_status: InstanceStatus = InstanceStatus.UNKNOWN
    interfaces: list[VPCRouterInterface] = Field(default_factory=list)
    settings: VPCRouterSetting = Field(default_factory=VPCRouterSetting)
    settings_hash: str = ""

    def interface(self, index: int) -> VPCRouterInterface | None:
        """Return the physical interface with the given index, if attached."""
        for nic in self.interfaces:
            if nic.index == index:
                return nic
        return None


# =============================================================================
# Container Registry
# =============================================================================


class ContainerRegistry(RemoteModel):
    """Container registry snapshot. Users are read through a separate endpoint."""

    id: int
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    access_level: ContainerRegistryAccessLevel = ContainerRegistryAccessLevel.NONE
    virtual_domain: str = ""
    subdomain_label: str = ""
    fqdn: str = ""
    availability: Availability = Availability.AVAILABLE
    settings_hash: str = ""


class ContainerRegistryUser(RemoteModel):
    """A registry user as listed by the remote. Passwords are never returned."""

    user_name: str
    permission: ContainerRegistryPermission = ContainerRegistryPermission.READ_ONLY


class ContainerRegistryUsers(RemoteModel):
    users: list[ContainerRegistryUser] = Field(default_factory=list)


class ContainerRegistryUserCreateRequest(RemoteModel):
    user_name: str
    password: str
    permission: ContainerRegistryPermission


class ContainerRegistryUserUpdateRequest(RemoteModel):
    """An empty password leaves the stored password unchanged."""

    password: str = ""
    permission: ContainerRegistryPermission


# =============================================================================
# SSH Key
# =============================================================================


class SSHKey(RemoteModel):
    """SSH key snapshot."""

    id: int
    name: str
    description: str = ""
    public_key: str = ""
    fingerprint: str = ""
    created_at: datetime | None = None


class SSHKeyCreateRequest(RemoteModel):
    name: str
    description: str = ""
    public_key: str


class SSHKeyUpdateRequest(RemoteModel):
    name: str
    description: str = ""

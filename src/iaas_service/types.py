"""Enumerations and value types shared by the remote models and requests."""

from __future__ import annotations

from enum import Enum, IntEnum

# Zones accepted by the management API
ZONES = ("is1a", "is1b", "tk1a", "tk1b", "tk1v")

# Index 0 is the primary interface; additional interfaces use 1..7
PRIMARY_NIC_INDEX = 0
MAX_ADDITIONAL_NIC_INDEX = 7


class InstanceStatus(str, Enum):
    """Server power state."""

    UP = "up"
    CLEANING = "cleaning"
    DOWN = "down"
    UNKNOWN = ""

    def is_down(self) -> bool:
        return self == InstanceStatus.DOWN

    def is_up(self) -> bool:
        return self == InstanceStatus.UP


class Availability(str, Enum):
    """Lifecycle state of a remote resource."""

    AVAILABLE = "available"
    UPLOADING = "uploading"
    FAILED = "failed"
    MIGRATING = "migrating"
    TRANSFERRING = "transferring"
    DISCONTINUED = "discontinued"
    UNKNOWN = ""


class Commitment(str, Enum):
    """Server CPU commitment."""

    STANDARD = "standard"
    DEDICATED_CPU = "dedicatedcpu"


class PlanGeneration(IntEnum):
    """Server plan generation. DEFAULT lets the remote pick."""

    DEFAULT = 0
    G100 = 100
    G200 = 200


class InterfaceDriver(str, Enum):
    """Server NIC driver."""

    VIRTIO = "virtio"
    E1000 = "e1000"


class UpstreamType(str, Enum):
    """What a server interface is connected to."""

    SHARED = "shared"
    SWITCH = "switch"
    NONE = "none"


class DiskPlan(IntEnum):
    """Disk storage class."""

    HDD = 2
    SSD = 4


class DiskConnection(str, Enum):
    """Disk bus."""

    VIRTIO = "virtio"
    IDE = "ide"


class VPCRouterPlan(IntEnum):
    """VPC router plan tiers, ordered from lowest to highest."""

    STANDARD = 1
    PREMIUM = 2
    HIGH_SPEC = 3
    HIGH_SPEC_4000 = 4


class ProxyLBPlan(IntEnum):
    """ProxyLB plans, named by connections per second."""

    CPS100 = 100
    CPS500 = 500
    CPS1000 = 1000
    CPS5000 = 5000
    CPS10000 = 10000
    CPS50000 = 50000
    CPS100000 = 100000
    CPS400000 = 400000


class ProxyLBRegion(str, Enum):
    """Where the ProxyLB VIP is announced."""

    TK1 = "tk1"
    IS1 = "is1"
    ANYCAST = "anycast"


class ContainerRegistryAccessLevel(str, Enum):
    """Who may pull from the registry."""

    READ_WRITE = "readwrite"
    READ_ONLY = "readonly"
    NONE = "none"


class ContainerRegistryPermission(str, Enum):
    """Per-user registry permission."""

    ALL = "all"
    READ_WRITE = "readwrite"
    READ_ONLY = "readonly"

"""Business rule guards evaluated against a freshly fetched snapshot.

Guards run after the snapshot is read and before any merge or write. A
failing guard raises PreconditionError and the operation issues no write.
"""

from __future__ import annotations

import logging

from .errors import PreconditionError, PreconditionReason
from .models import Server
from .types import Availability, VPCRouterPlan

logger = logging.getLogger(__name__)


def _reject(message: str, reason: PreconditionReason, **context: object) -> PreconditionError:
    logger.warning("Guard rejected operation", extra={"reason": reason.value, **context})
    return PreconditionError(message, reason)


def require_instance_down(server: Server) -> None:
    """Plan changes are only accepted while the server is stopped."""
    if not server.instance_status.is_down():
        raise _reject(
            f"server[{server.id}] is still running",
            PreconditionReason.INSTANCE_RUNNING,
            server_id=server.id,
            instance_status=server.instance_status.value,
        )


def require_instance_down_or_forced(server: Server, *, force_shutdown: bool) -> None:
    """A running server may only be touched when a forced shutdown was requested."""
    if force_shutdown:
        return
    require_instance_down(server)


def require_database_name_unchanged(current: str, requested: str | None) -> None:
    """The database name is set at creation and never changes."""
    if requested is not None and requested != current:
        raise _reject(
            "DatabaseName cannot be changed",
            PreconditionReason.IMMUTABLE_FIELD_CHANGED,
            current=current,
            requested=requested,
        )


def require_plan_above(
    plan: VPCRouterPlan,
    *,
    baseline: VPCRouterPlan = VPCRouterPlan.STANDARD,
    zone: str = "",
    id: int = 0,
) -> None:
    """Reject resources whose plan is not above ``baseline``."""
    if plan <= baseline:
        raise _reject(
            f"target is not a premium or higher plan: Zone={zone} ID={id}",
            PreconditionReason.PLAN_TOO_LOW,
            zone=zone,
            resource_id=id,
            plan=int(plan),
        )


def require_available(availability: Availability, *, zone: str = "", id: int = 0) -> None:
    """Reject resources that are not in the available state."""
    if availability != Availability.AVAILABLE:
        raise _reject(
            f"target has invalid Availability: Zone={zone} ID={id} Availability={availability.value}",
            PreconditionReason.RESOURCE_NOT_READY,
            zone=zone,
            resource_id=id,
            availability=availability.value,
        )

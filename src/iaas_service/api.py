"""Remote management API surface consumed by the services.

The remote client is an external collaborator. Each resource type is
described by a Protocol; services receive an implementation at construction
time and never hold a global client.

Every method takes the caller's CallContext as its first argument and must
pass it to the transport unchanged. Implementations report failures by
raising the RemoteError hierarchy from ``iaas_service.errors``
(NotFoundError for unknown identifiers).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from .errors import OperationCancelledError

if TYPE_CHECKING:
    from .container_registry import ApplyRequest as ContainerRegistryApplyRequest
    from .enhanced_db import ApplyRequest as EnhancedDBApplyRequest
    from .models import (
        ContainerRegistry,
        ContainerRegistryUserCreateRequest,
        ContainerRegistryUsers,
        ContainerRegistryUserUpdateRequest,
        EnhancedDB,
        FindCondition,
        ProxyLB,
        ProxyLBCreateRequest,
        ProxyLBUpdateRequest,
        Server,
        ServerChangePlanRequest,
        SSHKey,
        SSHKeyCreateRequest,
        SSHKeyUpdateRequest,
        VPCRouter,
    )
    from .server import ApplyRequest as ServerApplyRequest
    from .types import ProxyLBPlan
    from .vpc_router import ApplyRequest as VPCRouterApplyRequest


# =============================================================================
# Call Context
# =============================================================================


@dataclass(frozen=True)
class CallContext:
    """Cancellation and deadline signal carried through every remote call.

    The service layer only checks the signal between remote calls. An
    in-flight call is the transport's business.
    """

    deadline: datetime | None = None
    cancel_event: threading.Event | None = field(default=None, compare=False)

    @classmethod
    def background(cls) -> CallContext:
        """A context that never fires."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float, *, cancel_event: threading.Event | None = None) -> CallContext:
        """A context whose deadline is ``seconds`` from now."""
        return cls(deadline=datetime.now(UTC) + timedelta(seconds=seconds), cancel_event=cancel_event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and datetime.now(UTC) >= self.deadline

    def remaining_seconds(self) -> float | None:
        """Seconds left until the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, (self.deadline - datetime.now(UTC)).total_seconds())

    def raise_if_done(self) -> None:
        """Raise OperationCancelledError if the context has fired."""
        if self.cancelled:
            raise OperationCancelledError("operation cancelled by caller")
        if self.expired:
            raise OperationCancelledError(f"deadline exceeded at {self.deadline.isoformat()}")


# =============================================================================
# Resource APIs
# =============================================================================


class ServerAPI(Protocol):
    """Zone-scoped server endpoints."""

    def find(self, ctx: CallContext, zone: str, condition: FindCondition) -> list[Server]: ...

    def read(self, ctx: CallContext, zone: str, id: int) -> Server: ...

    def create(self, ctx: CallContext, zone: str, request: ServerApplyRequest) -> Server: ...

    def update(self, ctx: CallContext, zone: str, id: int, request: ServerApplyRequest) -> Server: ...

    def change_plan(
        self, ctx: CallContext, zone: str, id: int, request: ServerChangePlanRequest
    ) -> Server:
        """Change the plan of a stopped server. The returned server may carry a new id."""
        ...

    def shutdown(self, ctx: CallContext, zone: str, id: int, *, force: bool) -> None: ...

    def delete(self, ctx: CallContext, zone: str, id: int, *, with_disks: bool) -> None: ...


class EnhancedDBAPI(Protocol):
    """Global enhanced database endpoints.

    ``create`` and ``update`` ignore the password field; passwords are only
    written through ``set_password``.
    """

    def find(self, ctx: CallContext, condition: FindCondition) -> list[EnhancedDB]: ...

    def read(self, ctx: CallContext, id: int) -> EnhancedDB: ...

    def create(self, ctx: CallContext, request: EnhancedDBApplyRequest) -> EnhancedDB: ...

    def update(self, ctx: CallContext, id: int, request: EnhancedDBApplyRequest) -> EnhancedDB: ...

    def set_password(self, ctx: CallContext, id: int, password: str) -> None: ...

    def delete(self, ctx: CallContext, id: int) -> None: ...


class ProxyLBAPI(Protocol):
    """Global ProxyLB endpoints."""

    def find(self, ctx: CallContext, condition: FindCondition) -> list[ProxyLB]: ...

    def read(self, ctx: CallContext, id: int) -> ProxyLB: ...

    def create(self, ctx: CallContext, request: ProxyLBCreateRequest) -> ProxyLB: ...

    def update(self, ctx: CallContext, id: int, request: ProxyLBUpdateRequest) -> ProxyLB: ...

    def change_plan(self, ctx: CallContext, id: int, plan: ProxyLBPlan) -> ProxyLB: ...

    def delete(self, ctx: CallContext, id: int) -> None: ...


class VPCRouterAPI(Protocol):
    """Zone-scoped VPC router endpoints."""

    def find(self, ctx: CallContext, zone: str, condition: FindCondition) -> list[VPCRouter]: ...

    def read(self, ctx: CallContext, zone: str, id: int) -> VPCRouter: ...

    def create(self, ctx: CallContext, zone: str, request: VPCRouterApplyRequest) -> VPCRouter: ...

    def update(
        self, ctx: CallContext, zone: str, id: int, request: VPCRouterApplyRequest
    ) -> VPCRouter: ...

    def delete(self, ctx: CallContext, zone: str, id: int) -> None: ...


class ContainerRegistryAPI(Protocol):
    """Global container registry endpoints.

    ``create`` and ``update`` ignore the users field; users are managed
    through the user endpoints.
    """

    def find(self, ctx: CallContext, condition: FindCondition) -> list[ContainerRegistry]: ...

    def read(self, ctx: CallContext, id: int) -> ContainerRegistry: ...

    def list_users(self, ctx: CallContext, id: int) -> ContainerRegistryUsers | None:
        """List users. Returns an empty result (not NotFoundError) when none exist."""
        ...

    def create(self, ctx: CallContext, request: ContainerRegistryApplyRequest) -> ContainerRegistry: ...

    def update(
        self, ctx: CallContext, id: int, request: ContainerRegistryApplyRequest
    ) -> ContainerRegistry: ...

    def add_user(self, ctx: CallContext, id: int, request: ContainerRegistryUserCreateRequest) -> None: ...

    def update_user(
        self, ctx: CallContext, id: int, user_name: str, request: ContainerRegistryUserUpdateRequest
    ) -> None: ...

    def delete_user(self, ctx: CallContext, id: int, user_name: str) -> None: ...

    def delete(self, ctx: CallContext, id: int) -> None: ...


class SSHKeyAPI(Protocol):
    """Global SSH key endpoints."""

    def find(self, ctx: CallContext, condition: FindCondition) -> list[SSHKey]: ...

    def read(self, ctx: CallContext, id: int) -> SSHKey: ...

    def create(self, ctx: CallContext, request: SSHKeyCreateRequest) -> SSHKey: ...

    def update(self, ctx: CallContext, id: int, request: SSHKeyUpdateRequest) -> SSHKey: ...

    def delete(self, ctx: CallContext, id: int) -> None: ...

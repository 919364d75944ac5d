"""Error taxonomy for the service layer.

Every error is surfaced to the caller immediately. Nothing here is retried
or recovered locally:

- ValidationError: bad caller input, raised before any remote call
- PreconditionError: a business rule guard rejected the operation
- SchemaMismatchError: merge engine fed incompatible models (a defect)
- RemoteError and subclasses: failures reported by the remote API
- OperationCancelledError: the caller's call context fired
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pydantic


class IaaSServiceError(Exception):
    """Base class for all service layer errors."""

    pass


# =============================================================================
# Caller Input
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A single failed field rule."""

    field: str
    rule: str
    message: str = ""

    def __str__(self) -> str:
        if self.message:
            return f"{self.field}: {self.message} ({self.rule})"
        return f"{self.field}: {self.rule}"


class ValidationError(IaaSServiceError):
    """Raised when a request fails its declarative field rules."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__("Request validation failed:\n  - " + "\n  - ".join(str(e) for e in errors))

    @property
    def fields(self) -> list[str]:
        """Names of the fields that failed."""
        return [e.field for e in self.errors]

    @classmethod
    def from_pydantic(cls, exc: pydantic.ValidationError) -> ValidationError:
        """Convert a pydantic validation failure into field/rule pairs."""
        errors = [
            FieldError(
                field=".".join(str(part) for part in err["loc"]) or "__root__",
                rule=err["type"],
                message=err["msg"],
            )
            for err in exc.errors()
        ]
        return cls(errors)


# =============================================================================
# Business Rules
# =============================================================================


class PreconditionReason(str, Enum):
    """Why a guard rejected an operation."""

    INSTANCE_RUNNING = "instance_running"
    IMMUTABLE_FIELD_CHANGED = "immutable_field_changed"
    PLAN_TOO_LOW = "plan_too_low"
    RESOURCE_NOT_READY = "resource_not_ready"


class PreconditionError(IaaSServiceError):
    """Raised when a guard rejects an operation against the current snapshot."""

    def __init__(self, message: str, reason: PreconditionReason) -> None:
        super().__init__(message)
        self.reason = reason


# =============================================================================
# Programming Defects
# =============================================================================


class SchemaMismatchError(IaaSServiceError):
    """Raised when a patch field has no counterpart on the merge target."""

    def __init__(self, patch_type: str, base_type: str, field: str) -> None:
        super().__init__(f"{patch_type}.{field} has no counterpart on {base_type}")
        self.patch_type = patch_type
        self.base_type = base_type
        self.field = field


# =============================================================================
# Remote API
# =============================================================================


class RemoteError(IaaSServiceError):
    """Opaque failure reported by the remote API or its transport."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(RemoteError):
    """The identifier does not resolve to an existing remote resource."""

    pass


class ConflictError(RemoteError):
    """The remote rejected a write, usually because the settings hash is stale."""

    pass


class InvalidParameterError(RemoteError):
    """The remote rejected the request payload."""

    pass


class OperationCancelledError(IaaSServiceError):
    """The caller's call context was cancelled or its deadline passed."""

    pass

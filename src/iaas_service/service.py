"""Common plumbing for the per-resource services."""

from __future__ import annotations

import logging
from typing import Generic, TypeVar

from .api import CallContext
from .errors import RemoteError
from .requests import Request

logger = logging.getLogger(__name__)

ClientT = TypeVar("ClientT")


class BaseService(Generic[ClientT]):
    """A service bound to one remote API client.

    The client is injected at construction. Services hold no other state and
    never retry: every error reaches the caller unchanged.
    """

    resource_name = "resource"

    def __init__(self, client: ClientT) -> None:
        self._client = client

    @property
    def client(self) -> ClientT:
        return self._client

    def _begin(self, request: Request, ctx: CallContext | None) -> CallContext:
        """Validate the request and check the call context before any remote call."""
        request.validate_request()
        ctx = ctx or CallContext.background()
        ctx.raise_if_done()
        return ctx

    def _log_write_failure(self, operation: str, exc: RemoteError, **context: object) -> None:
        logger.error(
            f"Remote {self.resource_name} {operation} failed",
            exc_info=exc,
            extra={"resource": self.resource_name, "operation": operation, **context},
        )

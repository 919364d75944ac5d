"""ProxyLB requests, update parameter builder and service.

The remote update endpoint does not accept a plan. A plan change requested
through UpdateRequest is sent to the change-plan endpoint first, and the
settings update is then applied to the resource it returns.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import Field

from .api import CallContext, ProxyLBAPI
from .errors import RemoteError
from .merge import merge
from .models import (
    ProxyLB,
    ProxyLBACMESetting,
    ProxyLBBackendHttpKeepAlive,
    ProxyLBBindPort,
    ProxyLBCreateRequest,
    ProxyLBGzip,
    ProxyLBHealthCheck,
    ProxyLBProxyProtocol,
    ProxyLBRule,
    ProxyLBServer,
    ProxyLBSorryServer,
    ProxyLBStickySession,
    ProxyLBSyslog,
    ProxyLBTimeout,
    ProxyLBUpdateRequest,
)
from .requests import FindRequest as _FindRequest
from .requests import IDRequest, Request
from .service import BaseService
from .types import ProxyLBPlan, ProxyLBRegion

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 512

# Snapshot fields carried into the update payload
_UPDATE_FIELDS = frozenset(ProxyLBUpdateRequest.model_fields)


class CreateRequest(Request):
    name: str = Field(min_length=1)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    plan: ProxyLBPlan = ProxyLBPlan.CPS100
    region: ProxyLBRegion = ProxyLBRegion.IS1
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

    def request_parameter(self) -> ProxyLBCreateRequest:
        return ProxyLBCreateRequest.model_validate(self.model_dump())


class ReadRequest(IDRequest):
    pass


class FindRequest(_FindRequest):
    pass


class DeleteRequest(IDRequest):
    pass


class UpdateRequest(Request):
    """Sparse ProxyLB update. Nested settings replace the current ones whole."""

    merge_exclude: ClassVar[frozenset[str]] = frozenset({"id", "plan"})

    id: int = Field(gt=0)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] | None = None
    icon_id: int | None = None
    plan: ProxyLBPlan | None = None
    health_check: ProxyLBHealthCheck | None = None
    sorry_server: ProxyLBSorryServer | None = None
    bind_ports: list[ProxyLBBindPort] | None = None
    servers: list[ProxyLBServer] | None = None
    rules: list[ProxyLBRule] | None = None
    lets_encrypt: ProxyLBACMESetting | None = None
    sticky_session: ProxyLBStickySession | None = None
    gzip: ProxyLBGzip | None = None
    backend_http_keep_alive: ProxyLBBackendHttpKeepAlive | None = None
    proxy_protocol: ProxyLBProxyProtocol | None = None
    syslog: ProxyLBSyslog | None = None
    timeout: ProxyLBTimeout | None = None
    settings_hash: str | None = None

    def changes_plan(self, current: ProxyLB) -> bool:
        return self.plan is not None and self.plan != current.plan

    def request_parameter(self, current: ProxyLB) -> ProxyLBUpdateRequest:
        """Build the update payload from the snapshot, then merge this patch."""
        params = ProxyLBUpdateRequest.model_validate(current.model_dump(include=_UPDATE_FIELDS))
        return merge(self, params)


class ProxyLBService(BaseService[ProxyLBAPI]):
    """CRUD for ProxyLB."""

    resource_name = "proxylb"

    def find(self, req: FindRequest, ctx: CallContext | None = None) -> list[ProxyLB]:
        ctx = self._begin(req, ctx)
        return self._client.find(ctx, req.condition())

    def create(self, req: CreateRequest, ctx: CallContext | None = None) -> ProxyLB:
        ctx = self._begin(req, ctx)
        logger.info("Creating ProxyLB", extra={"proxylb_name": req.name, "plan": int(req.plan)})
        try:
            return self._client.create(ctx, req.request_parameter())
        except RemoteError as e:
            self._log_write_failure("create", e)
            raise

    def read(self, req: ReadRequest, ctx: CallContext | None = None) -> ProxyLB:
        ctx = self._begin(req, ctx)
        return self._client.read(ctx, req.id)

    def update(self, req: UpdateRequest, ctx: CallContext | None = None) -> ProxyLB:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.id)
        params = req.request_parameter(current)

        resource_id = req.id
        try:
            if req.changes_plan(current):
                ctx.raise_if_done()
                logger.info(
                    "Changing ProxyLB plan",
                    extra={"proxylb_id": req.id, "from_plan": int(current.plan), "to_plan": int(req.plan)},
                )
                changed = self._client.change_plan(ctx, req.id, req.plan)
                resource_id = changed.id
                if req.settings_hash is None:
                    params.settings_hash = changed.settings_hash

            ctx.raise_if_done()
            return self._client.update(ctx, resource_id, params)
        except RemoteError as e:
            self._log_write_failure("update", e, proxylb_id=resource_id)
            raise

    def delete(self, req: DeleteRequest, ctx: CallContext | None = None) -> None:
        ctx = self._begin(req, ctx)
        self._client.delete(ctx, req.id)

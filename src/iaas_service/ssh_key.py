"""SSH key requests and service. The public key is fixed once registered."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import Field

from .api import CallContext, SSHKeyAPI
from .errors import RemoteError
from .merge import merge
from .models import SSHKey, SSHKeyCreateRequest, SSHKeyUpdateRequest
from .requests import FindRequest as _FindRequest
from .requests import IDRequest, Request
from .service import BaseService

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 512


class CreateRequest(Request):
    name: str = Field(min_length=1)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    public_key: str = Field(min_length=1)

    def request_parameter(self) -> SSHKeyCreateRequest:
        return SSHKeyCreateRequest(name=self.name, description=self.description, public_key=self.public_key)


class ReadRequest(IDRequest):
    pass


class FindRequest(_FindRequest):
    pass


class DeleteRequest(IDRequest):
    pass


class UpdateRequest(Request):
    merge_exclude: ClassVar[frozenset[str]] = frozenset({"id"})

    id: int = Field(gt=0)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)

    def request_parameter(self, current: SSHKey) -> SSHKeyUpdateRequest:
        params = SSHKeyUpdateRequest(name=current.name, description=current.description)
        return merge(self, params)


class SSHKeyService(BaseService[SSHKeyAPI]):
    """CRUD for SSH keys."""

    resource_name = "ssh_key"

    def find(self, req: FindRequest, ctx: CallContext | None = None) -> list[SSHKey]:
        ctx = self._begin(req, ctx)
        return self._client.find(ctx, req.condition())

    def create(self, req: CreateRequest, ctx: CallContext | None = None) -> SSHKey:
        ctx = self._begin(req, ctx)
        logger.info("Registering SSH key", extra={"key_name": req.name})
        try:
            return self._client.create(ctx, req.request_parameter())
        except RemoteError as e:
            self._log_write_failure("create", e)
            raise

    def read(self, req: ReadRequest, ctx: CallContext | None = None) -> SSHKey:
        ctx = self._begin(req, ctx)
        return self._client.read(ctx, req.id)

    def update(self, req: UpdateRequest, ctx: CallContext | None = None) -> SSHKey:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.id)
        params = req.request_parameter(current)

        ctx.raise_if_done()
        try:
            return self._client.update(ctx, req.id, params)
        except RemoteError as e:
            self._log_write_failure("update", e, key_id=req.id)
            raise

    def delete(self, req: DeleteRequest, ctx: CallContext | None = None) -> None:
        ctx = self._begin(req, ctx)
        self._client.delete(ctx, req.id)

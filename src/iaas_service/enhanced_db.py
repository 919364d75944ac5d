"""Enhanced database requests, apply request builder and service.

The database name is chosen at creation and is immutable afterwards.
Passwords cannot be read back; they are written through a separate endpoint
after create, and after update only when the caller supplies one.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import Field

from . import guards
from .api import CallContext, EnhancedDBAPI
from .errors import RemoteError
from .merge import merge
from .models import EnhancedDB
from .requests import FindRequest as _FindRequest
from .requests import IDRequest, Request, RequestModel
from .service import BaseService

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 512


class ApplyRequest(RequestModel):
    """Fully resolved enhanced database payload. id 0 means create."""

    id: int = 0
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    database_name: str = ""
    password: str = ""
    settings_hash: str = ""


class CreateRequest(Request):
    name: str = Field(min_length=1)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    database_name: str = Field(min_length=1)
    password: str = Field(min_length=1)

    def apply_request(self) -> ApplyRequest:
        return ApplyRequest(
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            icon_id=self.icon_id,
            database_name=self.database_name,
            password=self.password,
        )


class ReadRequest(IDRequest):
    pass


class FindRequest(_FindRequest):
    pass


class DeleteRequest(IDRequest):
    pass


class UpdateRequest(Request):
    """Sparse enhanced database update.

    ``database_name`` may only repeat the current name; any other value is
    rejected. ``password`` is written only when present and non-empty.
    """

    merge_exclude: ClassVar[frozenset[str]] = frozenset({"id"})

    id: int = Field(gt=0)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] | None = None
    icon_id: int | None = None
    database_name: str | None = None
    password: str | None = None
    settings_hash: str | None = None

    def apply_request(self, current: EnhancedDB) -> ApplyRequest:
        """Merge this patch onto the snapshot.

        Raises:
            PreconditionError: If database_name differs from the current one.
        """
        guards.require_database_name_unchanged(current.database_name, self.database_name)

        apply = ApplyRequest(
            id=self.id,
            name=current.name,
            description=current.description,
            tags=list(current.tags),
            icon_id=current.icon_id,
            database_name=current.database_name,
            settings_hash=current.settings_hash,
        )
        return merge(self, apply)


class EnhancedDBService(BaseService[EnhancedDBAPI]):
    """CRUD for enhanced databases."""

    resource_name = "enhanced_db"

    def find(self, req: FindRequest, ctx: CallContext | None = None) -> list[EnhancedDB]:
        ctx = self._begin(req, ctx)
        return self._client.find(ctx, req.condition())

    def create(self, req: CreateRequest, ctx: CallContext | None = None) -> EnhancedDB:
        ctx = self._begin(req, ctx)
        return self.apply(req.apply_request(), ctx)

    def read(self, req: ReadRequest, ctx: CallContext | None = None) -> EnhancedDB:
        ctx = self._begin(req, ctx)
        return self._client.read(ctx, req.id)

    def update(self, req: UpdateRequest, ctx: CallContext | None = None) -> EnhancedDB:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.id)
        return self.apply(req.apply_request(current), ctx)

    def delete(self, req: DeleteRequest, ctx: CallContext | None = None) -> None:
        ctx = self._begin(req, ctx)
        self._client.delete(ctx, req.id)

    def apply(self, apply: ApplyRequest, ctx: CallContext | None = None) -> EnhancedDB:
        """Create or update, set the password if given, then re-read.

        Returns:
            The snapshot read after every write has completed.
        """
        ctx = ctx or CallContext.background()
        ctx.raise_if_done()
        try:
            if apply.id == 0:
                logger.info("Creating enhanced database", extra={"db_name": apply.name})
                resource_id = self._client.create(ctx, apply).id
            else:
                logger.info("Updating enhanced database", extra={"db_id": apply.id})
                resource_id = self._client.update(ctx, apply.id, apply).id

            if apply.password:
                ctx.raise_if_done()
                self._client.set_password(ctx, resource_id, apply.password)
        except RemoteError as e:
            self._log_write_failure("apply", e, db_id=apply.id)
            raise

        return self._client.read(ctx, resource_id)

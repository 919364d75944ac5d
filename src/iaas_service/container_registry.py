"""Container registry requests, apply request builder and service.

Registry users live behind their own endpoints. Reading the current state
therefore takes two round trips: the registry itself and its user list. The
user list endpoint answers with an empty result when no users exist, which
must not be mistaken for a missing registry.

Passwords cannot be read back, so users carried over from the snapshot have
an empty password; the remote keeps the stored password for those.
"""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import Field, model_validator

from .api import CallContext, ContainerRegistryAPI
from .errors import FieldError, RemoteError, ValidationError
from .merge import merge
from .models import (
    ContainerRegistry,
    ContainerRegistryUserCreateRequest,
    ContainerRegistryUsers,
    ContainerRegistryUserUpdateRequest,
)
from .requests import FindRequest as _FindRequest
from .requests import IDRequest, Request, RequestModel
from .service import BaseService
from .types import ContainerRegistryAccessLevel, ContainerRegistryPermission

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 512


def _require_unique_user_names(users: list[User] | None) -> None:
    if not users:
        return
    names = [user.user_name for user in users]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"duplicate user names: {duplicates}")


def _require_new_user_passwords(desired: list[User], existing: ContainerRegistryUsers | None) -> None:
    """Users the registry does not have yet cannot be added without a password."""
    known = {user.user_name for user in (existing.users if existing is not None else [])}
    missing = [
        FieldError(field=f"users.{user.user_name}.password", rule="required", message="new users need a password")
        for user in desired
        if user.user_name not in known and not user.password
    ]
    if missing:
        raise ValidationError(missing)


class User(RequestModel):
    """A registry user. An empty password keeps the stored one."""

    user_name: str = Field(min_length=1)
    password: str = ""
    permission: ContainerRegistryPermission = ContainerRegistryPermission.READ_ONLY


class ApplyRequest(RequestModel):
    """Fully resolved container registry payload. id 0 means create."""

    id: int = 0
    name: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    access_level: ContainerRegistryAccessLevel = ContainerRegistryAccessLevel.NONE
    virtual_domain: str = ""
    subdomain_label: str = ""
    users: list[User] = Field(default_factory=list)
    settings_hash: str = ""

    @classmethod
    def from_snapshot(
        cls, current: ContainerRegistry, users: ContainerRegistryUsers | None
    ) -> ApplyRequest:
        return cls(
            id=current.id,
            name=current.name,
            description=current.description,
            tags=list(current.tags),
            icon_id=current.icon_id,
            access_level=current.access_level,
            virtual_domain=current.virtual_domain,
            subdomain_label=current.subdomain_label,
            users=[
                User(user_name=user.user_name, password="", permission=user.permission)
                for user in (users.users if users is not None else [])
            ],
            settings_hash=current.settings_hash,
        )


class CreateRequest(Request):
    name: str = Field(min_length=1)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] = Field(default_factory=list)
    icon_id: int = 0
    access_level: ContainerRegistryAccessLevel = ContainerRegistryAccessLevel.NONE
    virtual_domain: str = ""
    subdomain_label: str = Field(min_length=1, max_length=64)
    users: list[User] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_users(self) -> CreateRequest:
        _require_unique_user_names(self.users)
        for user in self.users:
            if not user.password:
                raise ValueError(f"password is required for new user {user.user_name}")
        return self

    def apply_request(self) -> ApplyRequest:
        return ApplyRequest(
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            icon_id=self.icon_id,
            access_level=self.access_level,
            virtual_domain=self.virtual_domain,
            subdomain_label=self.subdomain_label,
            users=[user.model_copy() for user in self.users],
        )


class ReadRequest(IDRequest):
    pass


class FindRequest(_FindRequest):
    pass


class DeleteRequest(IDRequest):
    pass


class UpdateRequest(Request):
    """Sparse container registry update. ``users`` replaces the whole user list."""

    merge_exclude: ClassVar[frozenset[str]] = frozenset({"id"})

    id: int = Field(gt=0)

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    tags: list[str] | None = None
    icon_id: int | None = None
    access_level: ContainerRegistryAccessLevel | None = None
    virtual_domain: str | None = None
    users: list[User] | None = None
    settings_hash: str | None = None

    @model_validator(mode="after")
    def validate_users(self) -> UpdateRequest:
        _require_unique_user_names(self.users)
        return self

    def apply_request(
        self, current: ContainerRegistry, users: ContainerRegistryUsers | None
    ) -> ApplyRequest:
        """Merge this patch onto the registry snapshot and its user list.

        Raises:
            ValidationError: If the patch adds a user without a password.
        """
        if self.users is not None:
            _require_new_user_passwords(self.users, users)
        return merge(self, ApplyRequest.from_snapshot(current, users))


class ContainerRegistryService(BaseService[ContainerRegistryAPI]):
    """CRUD for container registries, including their users."""

    resource_name = "container_registry"

    def find(self, req: FindRequest, ctx: CallContext | None = None) -> list[ContainerRegistry]:
        ctx = self._begin(req, ctx)
        return self._client.find(ctx, req.condition())

    def create(self, req: CreateRequest, ctx: CallContext | None = None) -> ContainerRegistry:
        ctx = self._begin(req, ctx)
        return self.apply(req.apply_request(), ctx)

    def read(self, req: ReadRequest, ctx: CallContext | None = None) -> ContainerRegistry:
        ctx = self._begin(req, ctx)
        return self._client.read(ctx, req.id)

    def update(self, req: UpdateRequest, ctx: CallContext | None = None) -> ContainerRegistry:
        ctx = self._begin(req, ctx)
        current = self._client.read(ctx, req.id)
        users = self._client.list_users(ctx, req.id)
        apply = req.apply_request(current, users)
        _require_new_user_passwords(apply.users, users)
        return self._write(ctx, apply, users)

    def delete(self, req: DeleteRequest, ctx: CallContext | None = None) -> None:
        ctx = self._begin(req, ctx)
        self._client.delete(ctx, req.id)

    def apply(self, apply: ApplyRequest, ctx: CallContext | None = None) -> ContainerRegistry:
        """Create or update the registry, then reconcile its users.

        Raises:
            ValidationError: If a user to be added has no password. Nothing
                is written in that case.
        """
        ctx = ctx or CallContext.background()
        ctx.raise_if_done()
        listed = self._client.list_users(ctx, apply.id) if apply.id != 0 else None
        _require_new_user_passwords(apply.users, listed)
        return self._write(ctx, apply, listed)

    def _write(
        self, ctx: CallContext, apply: ApplyRequest, listed: ContainerRegistryUsers | None
    ) -> ContainerRegistry:
        ctx.raise_if_done()
        try:
            if apply.id == 0:
                logger.info("Creating container registry", extra={"registry_name": apply.name})
                registry = self._client.create(ctx, apply)
            else:
                logger.info("Updating container registry", extra={"registry_id": apply.id})
                registry = self._client.update(ctx, apply.id, apply)
            self._reconcile_users(ctx, registry.id, apply.users, listed)
        except RemoteError as e:
            self._log_write_failure("apply", e, registry_id=apply.id)
            raise
        return registry

    def _reconcile_users(
        self,
        ctx: CallContext,
        registry_id: int,
        desired: list[User],
        listed: ContainerRegistryUsers | None,
    ) -> None:
        """Add, update and delete users so the registry holds exactly ``desired``.

        ``listed`` is the user list read before the registry write.
        """
        existing = {user.user_name: user for user in (listed.users if listed is not None else [])}

        wanted = {user.user_name for user in desired}
        for name in existing:
            if name not in wanted:
                ctx.raise_if_done()
                self._client.delete_user(ctx, registry_id, name)

        for user in desired:
            ctx.raise_if_done()
            current = existing.get(user.user_name)
            if current is None:
                self._client.add_user(
                    ctx,
                    registry_id,
                    ContainerRegistryUserCreateRequest(
                        user_name=user.user_name,
                        password=user.password,
                        permission=user.permission,
                    ),
                )
            elif user.password or user.permission != current.permission:
                self._client.update_user(
                    ctx,
                    registry_id,
                    user.user_name,
                    ContainerRegistryUserUpdateRequest(password=user.password, permission=user.permission),
                )

        logger.debug(
            "Reconciled registry users",
            extra={"registry_id": registry_id, "users": sorted(wanted)},
        )

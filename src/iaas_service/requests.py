"""Request models shared by every resource service.

Requests are pydantic models, so field rules run when a request is built.
``validate_request()`` re-runs them on demand (for requests that were built
with ``model_construct`` or mutated afterwards) and reports failures as
``iaas_service.errors.ValidationError`` before any remote call is made.
"""

from __future__ import annotations

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import ValidationError
from .models import FindCondition


class RequestModel(BaseModel):
    """Base for caller-supplied models. Unknown fields are rejected."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        loc_by_alias=False,
    )


class Request(RequestModel):
    """A top-level request handed to a service operation."""

    def validate_request(self) -> None:
        """Re-run the declarative field rules.

        Raises:
            ValidationError: With one FieldError per failed rule.
        """
        try:
            type(self).model_validate(self.model_dump(round_trip=True))
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic(e) from e


# =============================================================================
# Identifier Requests
# =============================================================================


class IDRequest(Request):
    """Request addressing a global resource by id."""

    id: int = Field(gt=0)


class ZonedIDRequest(Request):
    """Request addressing a zone-scoped resource by zone and id."""

    zone: str = Field(min_length=1)
    id: int = Field(gt=0)


class FindRequest(Request):
    """List resources, optionally filtered by name and tags."""

    names: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    count: int = Field(default=0, ge=0)
    offset: int = Field(default=0, ge=0)

    def condition(self) -> FindCondition:
        return FindCondition(
            names=list(self.names),
            tags=list(self.tags),
            count=self.count,
            offset=self.offset,
        )


class ZonedFindRequest(FindRequest):
    zone: str = Field(min_length=1)

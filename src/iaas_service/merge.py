"""Field-merge engine and index-keyed list reconciler.

merge(patch, base) copies every present field of a sparse patch model onto a
fully populated base model:

- A field whose value is None is absent: the base keeps its value
- Any other value (including "", 0, False and []) overwrites the base
- Fields named in the patch class's ``merge_exclude`` are skipped and must be
  reconciled by the caller
- Fields named in ``merge_recursive`` whose value is a model are merged field
  by field into the nested base model instead of replacing it

Field correspondence is by name. A patch field with no counterpart on the
base is a programming defect and raises SchemaMismatchError, whether or not
the field is present in this particular patch.
"""

from __future__ import annotations

import copy
import logging
import types
import typing
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from .errors import SchemaMismatchError

logger = logging.getLogger(__name__)

BaseT = TypeVar("BaseT", bound=BaseModel)


def merge_exclusions(patch_type: type[BaseModel]) -> frozenset[str]:
    """Fields of ``patch_type`` the engine never touches."""
    return frozenset(getattr(patch_type, "merge_exclude", frozenset()))


def merge_recursions(patch_type: type[BaseModel]) -> frozenset[str]:
    """Fields of ``patch_type`` merged into nested models rather than replaced."""
    return frozenset(getattr(patch_type, "merge_recursive", frozenset()))


def _nested_model_type(base_type: type[BaseModel], name: str) -> type[BaseModel]:
    """Resolve the model class behind an (optionally nullable) base field."""
    annotation = base_type.model_fields[name].annotation
    candidates: tuple[Any, ...] = (annotation,)
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        candidates = typing.get_args(annotation)
    for candidate in candidates:
        if isinstance(candidate, type) and issubclass(candidate, BaseModel):
            return candidate
    raise SchemaMismatchError(base_type.__name__, base_type.__name__, name)


def merge(patch: BaseModel, base: BaseT) -> BaseT:
    """Merge the present fields of ``patch`` onto ``base``.

    Args:
        patch: Sparse model. None-valued fields are left alone.
        base: Fully populated target. Mutated in place.

    Returns:
        The same ``base`` instance.

    Raises:
        SchemaMismatchError: If a mergeable patch field does not exist on base.
    """
    patch_type = type(patch)
    base_type = type(base)
    excluded = merge_exclusions(patch_type)
    recursive = merge_recursions(patch_type)

    for name in patch_type.model_fields:
        if name in excluded:
            continue
        if name not in base_type.model_fields:
            raise SchemaMismatchError(patch_type.__name__, base_type.__name__, name)

        value = getattr(patch, name)
        if value is None:
            continue

        if name in recursive and isinstance(value, BaseModel):
            target = getattr(base, name)
            if target is None:
                target = _nested_model_type(base_type, name)()
            setattr(base, name, merge(value, target))
        else:
            setattr(base, name, copy.deepcopy(value))

    return base


def merge_by_key(
    baseline: Sequence[BaseT],
    patches: Sequence[BaseModel],
    *,
    key: str,
    factory: Callable[[], BaseT],
) -> list[BaseT]:
    """Merge a list of patches onto baseline entries matched by ``key``.

    Entries are matched by the value of their ``key`` field, not by position.
    A patch with no matching baseline entry starts from ``factory()``.

    The result holds one entry per patch, in patch order. Baseline entries
    that no patch mentions are NOT carried over: omitting an entry drops it.

    Args:
        baseline: Current entries, unmodified by this call.
        patches: Sparse entries, each carrying ``key``.
        key: Name of the identity field on both sides.
        factory: Builds an empty entry for keys absent from the baseline.

    Returns:
        New list of merged entries.
    """
    by_key = {getattr(entry, key): entry for entry in baseline}
    merged: list[BaseT] = []
    for patch in patches:
        identity = getattr(patch, key)
        current = by_key.get(identity)
        target = current.model_copy(deep=True) if current is not None else factory()
        merged.append(merge(patch, target))

    dropped = sorted(set(by_key) - {getattr(p, key) for p in patches})
    if dropped:
        logger.debug("Entries omitted from patch are dropped", extra={"key": key, "dropped": dropped})
    return merged

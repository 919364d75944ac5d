"""Call recording and error injection shared by the mock API clients."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any

from iaas_service.api import CallContext
from iaas_service.errors import ConflictError, RemoteError

# Methods that never change remote state
READ_METHODS = frozenset({"find", "read", "list_users"})


@dataclass(frozen=True)
class MockCall:
    """One recorded call: method name, the context it carried and its arguments."""

    method: str
    ctx: CallContext
    args: tuple[Any, ...]

    @property
    def is_write(self) -> bool:
        return self.method not in READ_METHODS


class MockAPI:
    """Base for the in-memory API clients.

    Every call is appended to ``calls`` before it is served, so failed calls
    are recorded too. ``fail_on`` makes the next calls to a method raise.
    """

    _ids = itertools.count(990000000001)
    _hashes = itertools.count(1)

    def __init__(self) -> None:
        self.calls: list[MockCall] = []
        self._failures: dict[str, RemoteError] = {}

    def fail_on(self, method: str, error: RemoteError) -> None:
        """Raise ``error`` from every subsequent call to ``method``."""
        self._failures[method] = error

    def clear_failures(self) -> None:
        self._failures.clear()

    @property
    def call_names(self) -> list[str]:
        return [call.method for call in self.calls]

    @property
    def write_calls(self) -> list[MockCall]:
        return [call for call in self.calls if call.is_write]

    def calls_to(self, method: str) -> list[MockCall]:
        return [call for call in self.calls if call.method == method]

    def _record(self, method: str, ctx: CallContext, *args: Any) -> None:
        self.calls.append(MockCall(method=method, ctx=ctx, args=args))
        error = self._failures.get(method)
        if error is not None:
            raise error

    def _new_id(self) -> int:
        return next(self._ids)

    def _new_hash(self) -> str:
        return f"hash-{next(self._hashes):06d}"

    @staticmethod
    def _check_hash(stored: str, requested: str, resource: str) -> None:
        """Reject writes carrying a stale settings hash."""
        if requested and stored and requested != stored:
            raise ConflictError(f"{resource}: settings hash {requested} is stale", status_code=409)


def matches(name: str, tags: list[str], condition: Any) -> bool:
    """True if a resource passes the name and tag filter of a FindCondition."""
    if condition.names and not any(part in name for part in condition.names):
        return False
    return all(tag in tags for tag in condition.tags)


def page(items: list[Any], condition: Any) -> list[Any]:
    items = items[condition.offset :]
    if condition.count:
        items = items[: condition.count]
    return items

"""
Deferred units of work.

begin() hands out an empty Transaction. add(), remove() and delete() append
PendingActions to it without touching storage, and end() runs them through
run_actions():

    Transaction [UPSERT, ENSURE_INDEX, UNSET, REMOVE, ...]
         │
         ▼  one at a time, append order
    execute(action) ──error──▶ stop, re-raise
         │ ok
         ▼
       next

Invariants:
    - Actions execute strictly in the order they were appended
    - The first failure stops the run; later actions are never attempted
    - Nothing is rolled back: actions before a failure stay applied

How to change safely:
    - A new ActionKind needs a handler in every backend's _execute()
    - Never batch or reorder actions inside run_actions()
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .buckets import BucketTarget

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """Storage operations a transaction can queue."""

    UPSERT = "upsert"
    UNSET = "unset"
    REMOVE = "remove"
    ENSURE_INDEX = "ensure_index"


@dataclass(frozen=True)
class PendingAction:
    """One queued storage operation with everything already resolved.

    Attributes:
        kind: Operation to perform
        collection: Target collection name
        filter: Record selector (empty for ENSURE_INDEX)
        fields: Encoded key field names (UPSERT / UNSET)
        index_keys: Index specification (ENSURE_INDEX)
    """

    kind: ActionKind
    collection: str
    filter: dict[str, Any] = field(default_factory=dict)
    fields: tuple[str, ...] = ()
    index_keys: tuple[tuple[str, int], ...] = ()

    @classmethod
    def upsert(cls, target: BucketTarget, fields: list[str]) -> PendingAction:
        return cls(ActionKind.UPSERT, target.collection, dict(target.filter), tuple(fields))

    @classmethod
    def unset(cls, target: BucketTarget, fields: list[str]) -> PendingAction:
        return cls(ActionKind.UNSET, target.collection, dict(target.filter), tuple(fields))

    @classmethod
    def remove(cls, target: BucketTarget) -> PendingAction:
        return cls(ActionKind.REMOVE, target.collection, dict(target.filter))

    @classmethod
    def ensure_index(cls, collection: str, keys: list[tuple[str, int]]) -> PendingAction:
        return cls(ActionKind.ENSURE_INDEX, collection, index_keys=tuple(keys))

    def document(self) -> dict[str, bool]:
        """Field document for $set / $unset."""
        return {name: True for name in self.fields}


class Transaction:
    """Ordered, append-only list of pending actions.

    Example:
        >>> tx = backend.begin()
        >>> backend.add(tx, "roles", "joe", ["admin"])
        >>> len(tx)
        2
        >>> await backend.end(tx)
    """

    def __init__(self) -> None:
        self._actions: list[PendingAction] = []

    def append(self, action: PendingAction) -> None:
        self._actions.append(action)

    @property
    def actions(self) -> tuple[PendingAction, ...]:
        return tuple(self._actions)

    def __iter__(self) -> Iterator[PendingAction]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        kinds = ", ".join(a.kind.value for a in self._actions)
        return f"Transaction([{kinds}])"


async def run_actions(
    transaction: Transaction,
    execute: Callable[[PendingAction], Awaitable[None]],
) -> None:
    """Execute a transaction's actions in order, stopping at the first error.

    Args:
        transaction: Actions to run
        execute: Backend coroutine applying one action

    Raises:
        Whatever execute() raised, unchanged.
    """
    total = len(transaction)
    for position, action in enumerate(transaction):
        try:
            await execute(action)
        except Exception:
            logger.warning(
                "Transaction action failed",
                extra={
                    "action": action.kind.value,
                    "collection": action.collection,
                    "position": position,
                    "skipped": total - position - 1,
                },
            )
            raise
    logger.debug("Transaction executed", extra={"actions": total})

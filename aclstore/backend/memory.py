"""
In-memory ACL backend for testing.

This module provides a document store held in process memory for:
- Unit tests
- Local development without a MongoDB server

It interprets the same PendingActions and the same filter dialect
(equality and $in) as the MongoDB backend, so both are observably identical
for the same inputs.

Invariants:
    - All data is lost on process exit
    - Same ordering and fail-fast guarantees as the MongoDB backend

How to change safely:
    - Keep the filter dialect in sync with what BucketResolver emits
    - Keep interface compatible with the AclBackend protocol
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Set, Tuple

from ..config import DEFAULT_RESOURCE_COLLECTION
from .base import DocumentBackend, Subject
from .encoding import as_list, encode_text, make_list
from .transaction import ActionKind, PendingAction

logger = logging.getLogger(__name__)


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for name, expected in query.items():
        if isinstance(expected, dict) and "$in" in expected:
            if document.get(name) not in expected["$in"]:
                return False
        elif name not in document or document[name] != expected:
            return False
    return True


class InMemoryBackend(DocumentBackend):
    """In-memory implementation of the ACL backend contract.

    Attributes:
        collections: Documents per collection name

    Thread safety:
        Uses an asyncio lock around every storage access. Safe to use
        from multiple coroutines.

    Example:
        >>> backend = InMemoryBackend(use_single=True)
        >>> tx = backend.begin()
        >>> backend.add(tx, "roles", "joe", "admin")
        >>> await backend.end(tx)
        >>> await backend.get("roles", "joe")
        ['admin']
    """

    def __init__(
        self,
        prefix: str = "",
        use_single: bool = False,
        resource_collection: str = DEFAULT_RESOURCE_COLLECTION,
    ) -> None:
        super().__init__(prefix, use_single, resource_collection)
        self.collections: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._indexes: Dict[str, Set[Tuple[Tuple[str, int], ...]]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def clean(self) -> None:
        """Drop every collection."""
        async with self._lock:
            count = len(self.collections)
            self.collections.clear()
            self._indexes.clear()
        logger.debug("Cleaned in-memory ACL storage", extra={"collections": count})

    async def get(self, bucket: str, subject: Subject) -> list[str]:
        """Get the keys stored for a subject."""
        self._check_read(bucket, [subject])
        target = self.resolver.resolve(bucket, encode_text(subject))
        async with self._lock:
            for doc in self.collections.get(target.collection, []):
                if _matches(doc, target.filter):
                    return self._visible_keys(doc)
        return []

    async def union(self, bucket: str, subjects: list[Subject]) -> list[str]:
        """Get the union of the keys stored for several subjects."""
        subject_list = as_list(subjects)
        self._check_read(bucket, subject_list)
        target = self.resolver.resolve_many(bucket, make_list(subject_list))

        keys: Dict[str, None] = {}
        async with self._lock:
            for doc in self.collections.get(target.collection, []):
                if _matches(doc, target.filter):
                    keys.update(dict.fromkeys(self._visible_keys(doc)))
        return list(keys)

    def indexes(self, collection: str) -> Set[Tuple[Tuple[str, int], ...]]:
        """Index specifications ensured on a collection (testing helper)."""
        return set(self._indexes.get(collection, set()))

    async def _execute(self, action: PendingAction) -> None:
        async with self._lock:
            docs = self.collections[action.collection]

            if action.kind in (ActionKind.UPSERT, ActionKind.UNSET):
                doc = next((d for d in docs if _matches(d, action.filter)), None)
                if doc is None:
                    doc = dict(action.filter)
                    docs.append(doc)
                for name in action.fields:
                    if action.kind == ActionKind.UPSERT:
                        doc[name] = True
                    else:
                        doc.pop(name, None)
            elif action.kind == ActionKind.REMOVE:
                docs[:] = [d for d in docs if not _matches(d, action.filter)]
            elif action.kind == ActionKind.ENSURE_INDEX:
                self._indexes[action.collection].add(action.index_keys)
            else:
                raise ValueError(f"Unknown action kind: {action.kind}")

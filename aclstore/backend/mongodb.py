"""
MongoDB ACL backend.

Stores one document per (bucket, subject) through the Motor asyncio driver:

    {"_id": ObjectId(...), "subject": "joe", "admin": true, "edit%2Epage": true}

plus "_bucketname" when all buckets share one collection. Keys are
top-level fields set to true; revoking a key unsets its field.

Invariants:
    - Writes are upserts: one document per subject per bucket
    - Reads never return _id, _bucketname or subject
    - MongoDB offers no multi-document transaction here: a failing
      action leaves earlier actions of the same end() applied

How to change safely:
    - Verify behavior against a real server (tests/integration)
    - Keep field-level $set/$unset; never replace whole documents
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..config import DEFAULT_RESOURCE_COLLECTION
from .base import DocumentBackend, Subject
from .encoding import as_list, encode_text, make_list
from .transaction import ActionKind, PendingAction

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


class MongoDBBackend(DocumentBackend):
    """MongoDB implementation of the ACL backend contract.

    Attributes:
        db: Motor database handle shared by all operations

    Thread safety:
        Holds no mutable state besides the driver's connection pool.
        Concurrent transactions may interleave their actions.

    Example:
        >>> client = AsyncIOMotorClient("mongodb://localhost:27017")
        >>> backend = MongoDBBackend(client["acl"], prefix="acl_")
        >>> tx = backend.begin()
        >>> backend.add(tx, "roles", "joe", ["admin", "editor"])
        >>> await backend.end(tx)
        >>> await backend.get("roles", "joe")
        ['admin', 'editor']
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        prefix: str = "",
        use_single: bool = False,
        resource_collection: str = DEFAULT_RESOURCE_COLLECTION,
    ) -> None:
        super().__init__(prefix, use_single, resource_collection)
        self.db = db

    async def clean(self) -> None:
        """Drop every collection in the database.

        Drops run concurrently. A failing drop is logged and ignored;
        only a failure to list the collections is raised.
        """
        names = await self.db.list_collection_names()
        results = await asyncio.gather(
            *(self.db.drop_collection(name) for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Ignoring failed collection drop",
                    extra={"collection": name, "error": str(result)},
                )
        logger.info("Cleaned ACL storage", extra={"collections": len(names)})

    async def get(self, bucket: str, subject: Subject) -> list[str]:
        """Get the keys stored for a subject.

        Returns:
            Decoded key names; empty if the subject has no record
        """
        self._check_read(bucket, [subject])
        target = self.resolver.resolve(bucket, encode_text(subject))
        doc = await self.db[target.collection].find_one(
            target.filter, self.resolver.projection()
        )
        return self._visible_keys(doc)

    async def union(self, bucket: str, subjects: list[Subject]) -> list[str]:
        """Get the union of the keys stored for several subjects.

        Returns:
            Decoded key names without duplicates, in first-seen order
        """
        subject_list = as_list(subjects)
        self._check_read(bucket, subject_list)
        target = self.resolver.resolve_many(bucket, make_list(subject_list))
        cursor = self.db[target.collection].find(target.filter, self.resolver.projection())
        docs = await cursor.to_list(length=None)

        keys: dict[str, None] = {}
        for doc in docs:
            keys.update(dict.fromkeys(self._visible_keys(doc)))
        return list(keys)

    async def _execute(self, action: PendingAction) -> None:
        collection = self.db[action.collection]

        if action.kind == ActionKind.UPSERT:
            await collection.update_one(action.filter, {"$set": action.document()}, upsert=True)
        elif action.kind == ActionKind.UNSET:
            await collection.update_one(
                action.filter, {"$unset": action.document()}, upsert=True
            )
        elif action.kind == ActionKind.REMOVE:
            await collection.delete_many(action.filter)
        elif action.kind == ActionKind.ENSURE_INDEX:
            await collection.create_index(list(action.index_keys))
        else:
            raise ValueError(f"Unknown action kind: {action.kind}")

        logger.debug(
            "Executed action",
            extra={"action": action.kind.value, "collection": action.collection},
        )


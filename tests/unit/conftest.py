"""
Shared fixtures for unit tests.

FakeDatabase mimics the slice of the Motor database/collection API the
MongoDB backend uses, records every storage call, and can be told to fail
specific calls.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional, Set

import pytest
from pymongo.errors import OperationFailure

from aclstore.backend.memory import InMemoryBackend
from aclstore.backend.mongodb import MongoDBBackend


def _matches(document: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for name, expected in query.items():
        if isinstance(expected, dict) and "$in" in expected:
            if document.get(name) not in expected["$in"]:
                return False
        elif document.get(name, object()) != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]) -> None:
        self._docs = docs

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        return list(self._docs)


class FakeCollection:
    def __init__(self, db: FakeDatabase, name: str) -> None:
        self.db = db
        self.name = name
        self.docs: List[Dict[str, Any]] = []
        self.indexes: List[List[tuple]] = []

    def _project(self, doc: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
        hidden = {name for name, flag in (projection or {}).items() if not flag}
        return {k: v for k, v in doc.items() if k not in hidden}

    async def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False):
        self.db.record("update_one", self.name, query=query, update=update, upsert=upsert)
        self.db.exists.add(self.name)
        doc = next((d for d in self.docs if _matches(d, query)), None)
        if doc is None:
            if not upsert:
                return
            doc = {"_id": next(self.db.ids)}
            doc.update({k: v for k, v in query.items() if not isinstance(v, dict)})
            self.docs.append(doc)
        for name, value in update.get("$set", {}).items():
            doc[name] = value
        for name in update.get("$unset", {}):
            doc.pop(name, None)

    async def delete_many(self, query: Dict[str, Any]):
        self.db.record("delete_many", self.name, query=query)
        self.docs[:] = [d for d in self.docs if not _matches(d, query)]

    async def create_index(self, keys: List[tuple]):
        self.db.record("create_index", self.name, keys=keys)
        self.db.exists.add(self.name)
        self.indexes.append(keys)
        return "_".join(f"{k}_{d}" for k, d in keys)

    async def find_one(self, query: Dict[str, Any], projection: Optional[Dict[str, int]] = None):
        self.db.record("find_one", self.name, query=query, projection=projection)
        for doc in self.docs:
            if _matches(doc, query):
                return self._project(doc, projection)
        return None

    def find(self, query: Dict[str, Any], projection: Optional[Dict[str, int]] = None) -> FakeCursor:
        self.db.record("find", self.name, query=query, projection=projection)
        return FakeCursor([self._project(d, projection) for d in self.docs if _matches(d, query)])


class FakeDatabase:
    """Records calls as (method, collection, kwargs) tuples.

    Attributes:
        fail_on: Method name -> exception raised by the next such call
        drop_errors: Collections whose drop raises
        list_error: Raised by list_collection_names when set
    """

    def __init__(self) -> None:
        self.collections: Dict[str, FakeCollection] = {}
        self.exists: Set[str] = set()
        self.calls: List[tuple] = []
        self.ids = itertools.count(1)
        self.fail_on: Dict[str, Exception] = {}
        self.drop_errors: Set[str] = set()
        self.list_error: Optional[Exception] = None

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    def record(self, method: str, collection: str, **kwargs: Any) -> None:
        self.calls.append((method, collection, kwargs))
        error = self.fail_on.pop(method, None)
        if error is not None:
            raise error

    def methods(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def list_collection_names(self) -> List[str]:
        if self.list_error is not None:
            raise self.list_error
        return sorted(self.exists)

    async def drop_collection(self, name: str) -> None:
        self.calls.append(("drop_collection", name, {}))
        if name in self.drop_errors:
            raise OperationFailure(f"cannot drop {name}")
        self.exists.discard(name)
        self.collections.pop(name, None)


@pytest.fixture
def fake_db():
    """Create an empty fake Motor database."""
    return FakeDatabase()


@pytest.fixture(params=["mongodb", "memory"])
def backend_kind(request):
    return request.param


@pytest.fixture(params=[False, True], ids=["multi", "single"])
def use_single(request):
    return request.param


@pytest.fixture
def backend(backend_kind, use_single, fake_db):
    """Every backend implementation in both collection modes."""
    if backend_kind == "mongodb":
        return MongoDBBackend(fake_db, prefix="acl_", use_single=use_single)
    return InMemoryBackend(prefix="acl_", use_single=use_single)

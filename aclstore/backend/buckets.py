"""
Bucket to collection resolution.

A bucket is a logical namespace of the ACL model ("roles", "allows_users",
...). Two addressing modes map buckets onto collections:

    multi-collection:   <prefix><bucket>                {subject: ...}
    single-collection:  <prefix><resource_collection>   {_bucketname: bucket, subject: ...}

Single-collection mode avoids one collection per bucket when the number of
buckets is large or dynamic.

Invariants:
    - The resolver is stateless apart from its frozen configuration
    - Filters never carry a discriminator in multi-collection mode
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..config import DEFAULT_RESOURCE_COLLECTION

# Record fields that never leave the backend as keys.
SUBJECT_FIELD = "subject"
BUCKET_FIELD = "_bucketname"
ID_FIELD = "_id"
RESERVED_FIELDS = frozenset({SUBJECT_FIELD, BUCKET_FIELD, ID_FIELD})


@dataclass(frozen=True)
class BucketTarget:
    """Where an operation lands.

    Attributes:
        collection: Physical collection name, prefix included
        filter: Query fragment selecting the record(s) inside it
    """

    collection: str
    filter: dict[str, Any]


@dataclass(frozen=True)
class BucketResolver:
    """Maps (bucket, subject) pairs to collections and filters.

    Attributes:
        prefix: Prepended to every collection name
        use_single: Share one collection between all buckets
        resource_collection: The shared collection's name

    Example:
        >>> BucketResolver(prefix="acl_").resolve("roles", "joe")
        BucketTarget(collection='acl_roles', filter={'subject': 'joe'})
    """

    prefix: str = ""
    use_single: bool = False
    resource_collection: str = DEFAULT_RESOURCE_COLLECTION

    def collection_for(self, bucket: str) -> str:
        name = self.resource_collection if self.use_single else bucket
        return self.prefix + name

    def _scoped(self, bucket: str, subject_match: Any) -> dict[str, Any]:
        if self.use_single:
            return {BUCKET_FIELD: bucket, SUBJECT_FIELD: subject_match}
        return {SUBJECT_FIELD: subject_match}

    def resolve(self, bucket: str, subject: Any) -> BucketTarget:
        """Target the single record of an (already encoded) subject."""
        return BucketTarget(self.collection_for(bucket), self._scoped(bucket, subject))

    def resolve_many(self, bucket: str, subjects: list[Any]) -> BucketTarget:
        """Target every record whose subject is in the (encoded) list."""
        return BucketTarget(
            self.collection_for(bucket),
            self._scoped(bucket, {"$in": list(subjects)}),
        )

    def index_keys(self) -> list[tuple[str, int]]:
        """Compound index supporting the lookups above."""
        if self.use_single:
            return [(BUCKET_FIELD, 1), (SUBJECT_FIELD, 1)]
        return [(SUBJECT_FIELD, 1)]

    def projection(self) -> dict[str, int]:
        """Read projection hiding the discriminator."""
        return {BUCKET_FIELD: 0}

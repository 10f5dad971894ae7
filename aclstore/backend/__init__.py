"""
Storage backends for aclstore.

This package provides the ACL storage contract and its implementations:
- MongoDB (production, via Motor)
- In-memory (testing and local development)

Every backend batches mutations into a Transaction that end() executes in
order, stopping at the first failure. There is no rollback.

Invariants:
    - Subject ids and key names are percent-encoded before storage
    - Reserved fields never appear in read results
    - Both backends behave identically in both collection modes

How to change safely:
    - New backends must subclass DocumentBackend or satisfy AclBackend
    - Run the shared contract tests against every implementation
"""

from .base import AclBackend, DocumentBackend
from .buckets import (
    BUCKET_FIELD,
    ID_FIELD,
    RESERVED_FIELDS,
    SUBJECT_FIELD,
    BucketResolver,
    BucketTarget,
)
from .connection import MongoConnection, create_backend
from .encoding import decode_text, encode_text
from .memory import InMemoryBackend
from .mongodb import MongoDBBackend
from .transaction import ActionKind, PendingAction, Transaction, run_actions

__all__ = [
    # Contract
    "AclBackend",
    "DocumentBackend",
    "Transaction",
    "PendingAction",
    "ActionKind",
    "run_actions",
    # Addressing and encoding
    "BucketResolver",
    "BucketTarget",
    "SUBJECT_FIELD",
    "BUCKET_FIELD",
    "ID_FIELD",
    "RESERVED_FIELDS",
    "encode_text",
    "decode_text",
    # Factory
    "MongoConnection",
    "create_backend",
    # Implementations
    "MongoDBBackend",
    "InMemoryBackend",
]

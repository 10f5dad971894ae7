"""
aclstore - document-store persistence for ACL permission models.

This package stores the subject -> granted keys mapping used by an ACL
engine, scoped inside named buckets ("roles", "allows_users", ...):

    ┌─────────────┐  begin/add/remove/delete  ┌──────────────┐
    │ ACL engine  │──────────────────────────▶│ Transaction  │
    │             │          end()            └──────┬───────┘
    │             │────────────────────────────────▶ │ (in order,
    │             │       get()/union()              ▼  fail-fast)
    │             │──────────────────────────▶┌──────────────┐
    └─────────────┘                           │  MongoDB /   │
                                              │  in-memory   │
                                              └──────────────┘

Invariants:
    - Mutations are queued without I/O and executed only by end()
    - Reserved fields (subject, _id, _bucketname) never reach callers
    - Subject ids and key names are stored percent-encoded

How to change safely:
    - Keep both backends observably identical for the same inputs
    - New action kinds must be handled by every backend executor
"""

from ._version import __version__
from .errors import AclStoreError, BackendConnectionError, ReservedKeyError, ValidationError

__all__ = [
    "__version__",
    "AclStoreError",
    "BackendConnectionError",
    "ReservedKeyError",
    "ValidationError",
]

"""
Backend contract shared by all ACL storage implementations.

The ACL engine only ever talks to a backend through these operations:

    begin()                                   -> Transaction   (no I/O)
    add(tx, bucket, subject, keys)            -> None          (queues)
    remove(tx, bucket, subject, keys)         -> None          (queues)
    delete(tx, bucket, subjects)              -> None          (queues)
    await end(tx)                             -> None          (executes)
    await get(bucket, subject)                -> list[str]
    await union(bucket, subjects)             -> list[str]
    await clean()                             -> None

Invariants:
    - Queuing operations validate their arguments and raise
      ValidationError before anything is appended
    - Storage errors surface from the awaited operations unchanged
    - Reserved fields are rejected as keys and hidden from reads

How to change safely:
    - Contract changes require updating every implementation
    - Keep the queuing side here so all backends validate identically
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

from ..config import DEFAULT_RESOURCE_COLLECTION
from ..errors import ReservedKeyError, ValidationError
from .buckets import RESERVED_FIELDS, BucketResolver
from .encoding import as_list, decode_keys, encode_text, field_name, make_list
from .transaction import PendingAction, Transaction, run_actions

logger = logging.getLogger(__name__)

Subject = Any  # str or int


@runtime_checkable
class AclBackend(Protocol):
    """Protocol for ACL storage backends.

    Transaction contract:
        - end() runs queued actions in append order
        - The first failing action stops execution and its error propagates
        - Already executed actions are not rolled back
    """

    def begin(self) -> Transaction:
        """Start a unit of work."""
        ...

    async def end(self, transaction: Transaction) -> None:
        """Execute a unit of work."""
        ...

    async def clean(self) -> None:
        """Drop every collection of the backing store."""
        ...

    async def get(self, bucket: str, subject: Subject) -> list[str]:
        """Keys granted to one subject."""
        ...

    async def union(self, bucket: str, subjects: list[Subject]) -> list[str]:
        """Union of the keys granted to several subjects."""
        ...

    def add(self, transaction: Transaction, bucket: str, subject: Subject, keys: Any) -> None:
        """Queue granting keys to a subject."""
        ...

    def delete(self, transaction: Transaction, bucket: str, subjects: Any) -> None:
        """Queue removal of subject records."""
        ...

    def remove(self, transaction: Transaction, bucket: str, subject: Subject, keys: Any) -> None:
        """Queue revoking keys from a subject."""
        ...


def _check_text(value: str, argument: str) -> None:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(
            f"{argument.capitalize()} is not valid UTF-8 text: {e.reason}",
            argument=argument,
            value=repr(value),
        ) from e


def _check_bucket(bucket: Any) -> None:
    if not isinstance(bucket, str) or not bucket:
        raise ValidationError("Bucket must be a non-empty string", argument="bucket", value=bucket)
    _check_text(bucket, "bucket")


def _check_subject(subject: Any, argument: str = "subject") -> None:
    # bool is an int subclass but never a meaningful id
    if isinstance(subject, bool) or not isinstance(subject, (str, int)):
        raise ValidationError(
            f"{argument.capitalize()} must be a string or an integer",
            argument=argument,
            value=subject,
        )
    if isinstance(subject, str):
        _check_text(subject, argument)


def _check_keys(keys: list[Any]) -> None:
    if not keys:
        raise ValidationError("At least one key is required", argument="keys", value=keys)
    for key in keys:
        _check_subject(key, argument="keys")
        if key == "":
            raise ValidationError("Key names must not be empty", argument="keys", value=key)
        if key in RESERVED_FIELDS:
            raise ReservedKeyError(key)


class DocumentBackend(ABC):
    """Base class for backends storing one document per subject.

    Implements the queuing half of the contract. Subclasses provide the
    storage half: _execute() for queued actions plus get(), union() and
    clean().

    Attributes:
        resolver: Bucket addressing (prefix and collection mode)
    """

    def __init__(
        self,
        prefix: str = "",
        use_single: bool = False,
        resource_collection: str = DEFAULT_RESOURCE_COLLECTION,
    ) -> None:
        self.resolver = BucketResolver(
            prefix=prefix,
            use_single=use_single,
            resource_collection=resource_collection,
        )

    @property
    def prefix(self) -> str:
        return self.resolver.prefix

    @property
    def use_single(self) -> bool:
        return self.resolver.use_single

    def begin(self) -> Transaction:
        """Begin a transaction.

        Returns:
            An empty Transaction; nothing is sent to storage.
        """
        return Transaction()

    async def end(self, transaction: Transaction) -> None:
        """End a transaction by executing its actions.

        Args:
            transaction: Transaction returned by begin()

        Raises:
            ValidationError: If transaction is not a Transaction
            Exception: The first storage error, unchanged. Actions before
                it remain applied; actions after it never run.
        """
        if not isinstance(transaction, Transaction):
            raise ValidationError(
                "Expected a Transaction from begin()",
                argument="transaction",
                value=type(transaction).__name__,
            )
        await run_actions(transaction, self._execute)

    def add(self, transaction: Transaction, bucket: str, subject: Subject, keys: Any) -> None:
        """Queue granting keys to a subject inside a bucket.

        The record is created if missing and merged otherwise. An index
        supporting subject lookups is ensured after the write.

        Args:
            transaction: Transaction to append to
            bucket: Bucket name
            subject: Subject id (str or int)
            keys: One key or a list of keys

        Raises:
            ReservedKeyError: If a key is a reserved field name
            ValidationError: If an argument has the wrong type or is empty
        """
        _check_bucket(bucket)
        _check_subject(subject)
        key_list = as_list(keys)
        _check_keys(key_list)

        target = self.resolver.resolve(bucket, encode_text(subject))
        fields = [field_name(key) for key in key_list]
        transaction.append(PendingAction.upsert(target, fields))
        transaction.append(
            PendingAction.ensure_index(target.collection, self.resolver.index_keys())
        )
        logger.debug(
            "Queued add",
            extra={"bucket": bucket, "collection": target.collection, "keys": len(fields)},
        )

    def delete(self, transaction: Transaction, bucket: str, subjects: Any) -> None:
        """Queue removal of every record of the given subjects.

        Args:
            transaction: Transaction to append to
            bucket: Bucket name
            subjects: One subject id or a list of them

        Raises:
            ValidationError: If an argument has the wrong type or is empty
        """
        _check_bucket(bucket)
        subject_list = as_list(subjects)
        for subject in subject_list:
            _check_subject(subject, argument="subjects")

        target = self.resolver.resolve_many(bucket, make_list(subject_list))
        transaction.append(PendingAction.remove(target))
        logger.debug(
            "Queued delete",
            extra={"bucket": bucket, "collection": target.collection, "subjects": len(subject_list)},
        )

    def remove(self, transaction: Transaction, bucket: str, subject: Subject, keys: Any) -> None:
        """Queue revoking keys from a subject inside a bucket.

        Unsetting is an upsert: a subject without a record gets an empty one.

        Args:
            transaction: Transaction to append to
            bucket: Bucket name
            subject: Subject id (str or int)
            keys: One key or a list of keys

        Raises:
            ReservedKeyError: If a key is a reserved field name
            ValidationError: If an argument has the wrong type or is empty
        """
        _check_bucket(bucket)
        _check_subject(subject)
        key_list = as_list(keys)
        _check_keys(key_list)

        target = self.resolver.resolve(bucket, encode_text(subject))
        fields = [field_name(key) for key in key_list]
        transaction.append(PendingAction.unset(target, fields))
        logger.debug(
            "Queued remove",
            extra={"bucket": bucket, "collection": target.collection, "keys": len(fields)},
        )

    @staticmethod
    def _visible_keys(document: Any) -> list[str]:
        """Decoded key names of a stored record, reserved fields excluded."""
        if not isinstance(document, dict):
            return []
        return [name for name in decode_keys(document) if name not in RESERVED_FIELDS]

    @staticmethod
    def _check_read(bucket: Any, subjects: list[Any]) -> None:
        _check_bucket(bucket)
        for subject in subjects:
            _check_subject(subject)

    @abstractmethod
    async def _execute(self, action: PendingAction) -> None:
        """Apply one queued action to storage."""

    @abstractmethod
    async def get(self, bucket: str, subject: Subject) -> list[str]:
        """Keys granted to one subject."""

    @abstractmethod
    async def union(self, bucket: str, subjects: list[Subject]) -> list[str]:
        """Union of the keys granted to several subjects."""

    @abstractmethod
    async def clean(self) -> None:
        """Drop every collection of the backing store."""

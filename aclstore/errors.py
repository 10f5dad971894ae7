"""
Error types for aclstore.

This module defines the exceptions raised by the backends themselves:
- AclStoreError: Base exception
- ValidationError: Bad arguments to a contract operation
- ReservedKeyError: A reserved field name was used as a key
- BackendConnectionError: Could not reach the storage server

Storage failures raised by the database client (pymongo errors) are not
wrapped. They propagate unchanged out of end(), get(), union() and clean().

Invariants:
    - Validation errors are raised before anything is queued or sent
    - All errors defined here inherit from AclStoreError
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AclStoreError(Exception):
    """Base exception for all aclstore errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "ACLSTORE_ERROR"
        self.details = details or {}


class ValidationError(AclStoreError):
    """Invalid arguments passed to a backend operation.

    Raised when:
    - Bucket name is not a non-empty string
    - Subject id is not a string or integer
    - Key list is empty or holds unsupported values
    """

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"argument": argument, "value": value},
        )
        self.argument = argument
        self.value = value


class ReservedKeyError(ValidationError):
    """A key name collides with a reserved record field."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key name '{key}' is not allowed.", argument="keys", value=key)
        self.code = "RESERVED_KEY"
        self.key = key


class BackendConnectionError(AclStoreError):
    """Failed to connect to the storage server.

    Raised when:
    - Server is unreachable or server selection times out
    - Authentication fails
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"address": address},
        )
        self.address = address

"""
Error types for EntMap.

This module defines all exception types raised by the mapping engine:
- EntMapError: Base exception
- SchemaError: Inconsistent entity declarations
- ValidationError: Request shape rejected by the backend
- ConcurrencyError: Conditional save failed (stale version or key collision)
- TransactionError: Committed write batch was cancelled
- TransactionStateError: Transaction lifecycle misuse

Invariants:
    - All errors inherit from EntMapError
    - Errors include context for debugging
    - Error messages name the entity type or table involved
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class EntMapError(Exception):
    """Base exception for all EntMap errors.

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
        self.code = code or "ENTMAP_ERROR"
        self.details = details or {}


class SchemaError(EntMapError):
    """Entity declarations are missing or duplicated.

    Raised when:
    - No table name is declared for a type
    - More than one table name is declared
    - No primary key (or more than one) is declared
    - More than one version field is declared
    """

    def __init__(
        self,
        message: str,
        type_name: str,
        concept: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"type_name": type_name, "concept": concept},
        )
        self.type_name = type_name
        self.concept = concept


class ValidationError(EntMapError):
    """The backend rejected the shape of a request.

    Raised when:
    - A primary key value is empty or missing
    - A key does not match the table's key attribute
    - A transaction touches the same item twice
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class ConcurrencyError(EntMapError):
    """A single save's condition failed.

    Either the stored version no longer matches the entity's version, or a
    freshly generated key already exists. No merge or retry is attempted.
    """

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        key: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="CONCURRENCY_ERROR",
            details={"table": table, "key": key},
        )
        self.table = table
        self.key = key


class TransactionError(EntMapError):
    """A committed write batch was rejected as a whole.

    At least one member's condition failed; none of the writes took effect.
    The failing member is not identified.
    """

    def __init__(
        self,
        message: str,
        operation_count: int = 0,
        reasons: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details={"operation_count": operation_count, "reasons": reasons or []},
        )
        self.operation_count = operation_count


class TransactionStateError(EntMapError):
    """Transaction lifecycle was used out of order."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="TRANSACTION_STATE_ERROR")

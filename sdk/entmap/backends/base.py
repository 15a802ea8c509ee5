"""
Base protocol and types for the key-value backend abstraction.

This module defines the KeyValueBackend protocol that all backends must
implement, the write requests accepted by transact_write(), and the
backend-level errors the entity manager translates.

Invariants:
    - Items and keys use the tagged-value shape from entmap.codec
    - delete_item() is idempotent
    - transact_write() is all-or-nothing

How to change safely:
    - Protocol changes require updating every backend
    - Keep condition semantics in entmap.expressions so backends agree
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from ..codec import StoredRecord
from ..expressions import Condition

if TYPE_CHECKING:
    from ..config import EntMapConfig


class BackendError(Exception):
    """Base exception for backend operations."""
    pass


class BackendConnectionError(BackendError):
    """Connection to the backend failed."""
    pass


class ConditionalCheckFailed(BackendError):
    """A conditional put's condition did not hold."""
    pass


class TransactionCanceled(BackendError):
    """A write batch was cancelled because a member condition failed.

    Attributes:
        reasons: Per-item cancellation codes as reported by the backend
    """

    def __init__(self, message: str, reasons: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.reasons = reasons or []


@dataclass(frozen=True)
class PutRequest:
    """Conditional put of one item inside a write batch."""

    table: str
    item: StoredRecord
    condition: Optional[Condition] = None


@dataclass(frozen=True)
class DeleteRequest:
    """Delete of one item inside a write batch."""

    table: str
    key: StoredRecord
    condition: Optional[Condition] = field(default=None)


WriteRequest = Union[PutRequest, DeleteRequest]


@runtime_checkable
class KeyValueBackend(Protocol):
    """Protocol for key-value/document store backends.

    Durability contract:
        - put_item() and delete_item() return after the write is durable
        - transact_write() applies every request or none of them

    Example:
        >>> backend = InMemoryBackend()
        >>> backend.create_table("widgets", "id")
        >>> await backend.put_item("widgets", {"id": {"S": "w1"}})
        >>> await backend.get_item("widgets", {"id": {"S": "w1"}})
        {'id': {'S': 'w1'}}
    """

    @abstractmethod
    async def get_item(self, table: str, key: StoredRecord) -> Optional[StoredRecord]:
        """Read one item by key.

        Returns:
            The stored record, or None if no item has this key

        Raises:
            ValidationError: If the key is malformed or empty
        """
        ...

    @abstractmethod
    async def put_item(
        self,
        table: str,
        item: StoredRecord,
        condition: Optional[Condition] = None,
    ) -> None:
        """Write one item, replacing any item with the same key.

        Raises:
            ConditionalCheckFailed: If ``condition`` does not hold
            ValidationError: If the item's key is malformed or empty
        """
        ...

    @abstractmethod
    async def delete_item(self, table: str, key: StoredRecord) -> None:
        """Delete one item by key. Deleting a missing item succeeds.

        Raises:
            ValidationError: If the key is malformed or empty
        """
        ...

    @abstractmethod
    async def transact_write(self, requests: Sequence[WriteRequest]) -> None:
        """Apply all requests atomically.

        Raises:
            TransactionCanceled: If any request's condition does not hold
            ValidationError: If the batch is malformed
        """
        ...


def create_backend(config: "EntMapConfig") -> KeyValueBackend:
    """Factory function to create a backend from configuration.

    Args:
        config: Library configuration

    Returns:
        Unconnected KeyValueBackend implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import BackendKind
    from .dynamodb import DynamoDBBackend
    from .memory import InMemoryBackend

    if config.backend == BackendKind.DYNAMODB:
        return DynamoDBBackend(config.dynamodb)
    elif config.backend == BackendKind.MEMORY:
        return InMemoryBackend()
    else:
        raise ValueError(f"Unsupported backend: {config.backend}")

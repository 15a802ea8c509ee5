"""
Key-value backends for EntMap.

This module provides a pluggable backend interface supporting:
- Amazon DynamoDB (production, via aiobotocore)
- In-memory (for testing and local development)

Invariants:
    - Conditional writes are evaluated atomically per item
    - transact_write() never applies a partial batch
    - Deletes are idempotent

How to change safely:
    - New backends must implement the KeyValueBackend protocol
    - Reuse entmap.expressions for condition semantics
"""

from .base import (
    BackendConnectionError,
    BackendError,
    ConditionalCheckFailed,
    DeleteRequest,
    KeyValueBackend,
    PutRequest,
    TransactionCanceled,
    WriteRequest,
    create_backend,
)
from .dynamodb import DynamoDBBackend
from .memory import InMemoryBackend

__all__ = [
    # Protocol and types
    "KeyValueBackend",
    "PutRequest",
    "DeleteRequest",
    "WriteRequest",
    "BackendError",
    "BackendConnectionError",
    "ConditionalCheckFailed",
    "TransactionCanceled",
    # Factory
    "create_backend",
    # Implementations
    "DynamoDBBackend",
    "InMemoryBackend",
]

"""
EntMap - entity mapping for key-value document stores.

This library lets plain Python classes be stored as records in a
schemaless key-value store such as DynamoDB:
- Schema declarations (table, primary key, version, attributes)
- Metadata registry with lazy validation
- EntityManager for get/save/delete with optimistic locking
- Atomic write transactions

Example:
    >>> from dataclasses import dataclass
    >>> from entmap import EntityManager, InMemoryBackend, attribute, primary_key, table, version
    >>>
    >>> @table("widgets")
    ... @primary_key("id")
    ... @version("version")
    ... @attribute("name")
    ... @dataclass
    ... class Widget:
    ...     id: str | None = None
    ...     version: int | None = None
    ...     name: str | None = None
    >>>
    >>> async with InMemoryBackend() as backend:
    ...     backend.create_table("widgets", "id")
    ...     manager = EntityManager(backend)
    ...     widget = await manager.save(Widget(name="a"))

Invariants:
    - Declarations are validated when a type is first used
    - Saves are conditional; conflicting writes are rejected, never merged
    - Transaction commits are all-or-nothing

Version: 1.0.0
"""

__version__ = "1.0.0"

from .backends import (
    BackendConnectionError,
    BackendError,
    DynamoDBBackend,
    InMemoryBackend,
    KeyValueBackend,
    create_backend,
)
from .config import BackendKind, DynamoDBConfig, EntMapConfig, ObservabilityConfig
from .errors import (
    ConcurrencyError,
    EntMapError,
    SchemaError,
    TransactionError,
    TransactionStateError,
    ValidationError,
)
from .manager import EntityManager
from .registry import (
    MetadataRegistry,
    attribute,
    get_registry,
    primary_key,
    register_attribute,
    register_primary_key,
    register_table,
    register_version,
    reset_registry,
    table,
    version,
)
from .schema import SchemaDescriptor

__all__ = [
    # Version
    "__version__",
    # Schema
    "SchemaDescriptor",
    # Registry
    "MetadataRegistry",
    "get_registry",
    "reset_registry",
    "register_table",
    "register_primary_key",
    "register_version",
    "register_attribute",
    "table",
    "primary_key",
    "version",
    "attribute",
    # Manager
    "EntityManager",
    # Backends
    "KeyValueBackend",
    "InMemoryBackend",
    "DynamoDBBackend",
    "create_backend",
    "BackendError",
    "BackendConnectionError",
    # Config
    "BackendKind",
    "DynamoDBConfig",
    "EntMapConfig",
    "ObservabilityConfig",
    # Errors
    "EntMapError",
    "SchemaError",
    "ValidationError",
    "ConcurrencyError",
    "TransactionError",
    "TransactionStateError",
]

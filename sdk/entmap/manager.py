"""
Entity manager for EntMap.

This module maps registered entity types onto a key-value backend:
- get: load a record into an example instance by primary key
- save: conditional upsert with optimistic locking
- delete: idempotent delete by primary key
- write transactions: queue saves and deletes, commit them atomically

Example:
    >>> manager = EntityManager(backend)
    >>> widget = await manager.save(Widget(name="a"))
    >>> widget.version
    1
    >>> manager.begin_write_transaction()
    >>> await manager.save(widget)
    >>> await manager.delete(other)
    >>> await manager.commit_write_transaction()

Invariants:
    - Schema errors are raised before any backend call
    - A save without a key requires that the generated key is unused
    - A versioned save requires the stored version to equal the entity's
    - At most one write transaction is open per manager
    - A failed commit applies none of its writes
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from .backends.base import (
    ConditionalCheckFailed,
    DeleteRequest,
    KeyValueBackend,
    PutRequest,
    TransactionCanceled,
    WriteRequest,
)
from .codec import StoredRecord, decode_item, encode_item
from .errors import ConcurrencyError, TransactionError, TransactionStateError
from .expressions import AttributeEquals, AttributeNotExists, Condition, all_of
from .registry import MetadataRegistry, get_registry
from .schema import SchemaDescriptor

logger = logging.getLogger(__name__)

E = TypeVar("E")


def _new_id() -> str:
    return str(uuid.uuid4())


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


class EntityManager:
    """Get, save and delete entities through a key-value backend.

    The manager is single-writer with respect to its transaction state;
    concurrent begin/commit calls need external synchronization. Outside a
    transaction every call maps to exactly one backend request.

    Example:
        >>> async with InMemoryBackend() as backend:
        ...     manager = EntityManager(backend)
        ...     saved = await manager.save(Widget(name="a"))
        ...     found = await manager.get(Widget(id=saved.id))
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        registry: MetadataRegistry | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            backend: Key-value backend receiving requests
            registry: Metadata registry (defaults to the global registry)
            id_factory: Source of new primary keys (defaults to UUID4 text)
        """
        self._backend = backend
        self.registry = registry or get_registry()
        self._id_factory = id_factory or _new_id
        self._pending: Optional[List[WriteRequest]] = None

    @property
    def in_transaction(self) -> bool:
        """Whether a write transaction is open."""
        return self._pending is not None

    @property
    def pending_operations(self) -> Tuple[WriteRequest, ...]:
        """Writes queued in the open transaction."""
        return tuple(self._pending or ())

    # =========================================================================
    # Transaction lifecycle
    # =========================================================================

    def begin_write_transaction(self) -> None:
        """Open a write transaction.

        Subsequent save() and delete() calls are queued until commit.

        Raises:
            TransactionStateError: If a transaction is already open
        """
        if self._pending is not None:
            raise TransactionStateError(
                f"A write transaction is already open with {len(self._pending)} pending operation(s)"
            )
        self._pending = []
        logger.debug("Write transaction opened")

    async def commit_write_transaction(self) -> None:
        """Commit the open transaction as one atomic write.

        An empty (or unopened) transaction commits without contacting the
        backend. The manager has no open transaction afterwards, whether
        the commit succeeded or not.

        Raises:
            TransactionError: If any queued write's condition failed; no
                write took effect
        """
        pending, self._pending = self._pending, None
        if not pending:
            logger.debug("Empty write transaction committed")
            return

        try:
            await self._backend.transact_write(pending)
        except TransactionCanceled as e:
            raise TransactionError(
                f"Transaction of {len(pending)} operation(s) was cancelled: "
                "at least one condition failed",
                operation_count=len(pending),
                reasons=e.reasons,
            ) from e

        logger.debug("Write transaction committed", extra={"count": len(pending)})

    # =========================================================================
    # Entity operations
    # =========================================================================

    async def get(self, example: E) -> Optional[E]:
        """Load the stored record for ``example``'s primary key.

        Args:
            example: Instance whose primary key field is set

        Returns:
            The same instance with key, version and attributes overwritten
            from the stored record, or None if there is no such record
            (the instance is then left untouched)

        Raises:
            SchemaError: If the type's declarations are invalid
            ValidationError: If the primary key is empty
        """
        schema = self.registry.resolve(example)
        key = self._key_of(schema, example)

        record = await self._backend.get_item(schema.table_name, key)
        if record is None:
            logger.debug("Entity not found", extra={"table": schema.table_name})
            return None

        values = decode_item(record)
        for name in schema.field_names():
            setattr(example, name, values.get(name))
        return example

    async def save(self, entity: E) -> E:
        """Insert or update ``entity`` with optimistic locking.

        A missing primary key is generated and must not exist yet. With a
        version field, an unset version must not exist yet and is written
        as 1; a set version must match the stored one and is incremented.

        Inside a transaction the put is queued and the entity's key and
        version are updated immediately.

        Returns:
            The same instance with its key and version updated

        Raises:
            SchemaError: If the type's declarations are invalid
            ConcurrencyError: If the stored version or key conflicts
        """
        schema = self.registry.resolve(entity)
        conditions: List[Condition] = []
        values: dict[str, Any] = {}

        key_value = getattr(entity, schema.primary_key, None)
        if _is_empty(key_value):
            conditions.append(AttributeNotExists(schema.primary_key))
            key_value = self._id_factory()
        values[schema.primary_key] = key_value

        if schema.version is not None:
            current = getattr(entity, schema.version, None)
            if _is_empty(current) or current == 0:
                conditions.append(AttributeNotExists(schema.version))
                values[schema.version] = 1
            else:
                conditions.append(AttributeEquals(schema.version, current))
                values[schema.version] = current + 1

        for name in schema.attributes:
            values[name] = getattr(entity, name, None)

        item = encode_item(values)
        condition = all_of(*conditions)

        if self._pending is not None:
            self._pending.append(PutRequest(schema.table_name, item, condition))
            self._apply_written(schema, entity, values)
            logger.debug("Save queued in write transaction", extra={"table": schema.table_name})
            return entity

        try:
            await self._backend.put_item(schema.table_name, item, condition)
        except ConditionalCheckFailed as e:
            raise ConcurrencyError(
                f"Could not save {schema.type_name} {key_value!r}: "
                "stale version or conflicting key",
                table=schema.table_name,
                key=key_value,
            ) from e

        self._apply_written(schema, entity, values)
        logger.debug("Entity saved", extra={"table": schema.table_name})
        return entity

    async def delete(self, example: Any) -> None:
        """Delete the stored record for ``example``'s primary key.

        Deleting a missing record succeeds. Inside a transaction the
        delete is queued. The instance itself is not modified.

        Raises:
            SchemaError: If the type's declarations are invalid
            ValidationError: If the primary key is empty
        """
        schema = self.registry.resolve(example)
        key = self._key_of(schema, example)

        if self._pending is not None:
            self._pending.append(DeleteRequest(schema.table_name, key))
            logger.debug("Delete queued in write transaction", extra={"table": schema.table_name})
            return

        await self._backend.delete_item(schema.table_name, key)
        logger.debug("Entity deleted", extra={"table": schema.table_name})

    @staticmethod
    def _key_of(schema: SchemaDescriptor, example: Any) -> StoredRecord:
        return encode_item({schema.primary_key: getattr(example, schema.primary_key, None)})

    @staticmethod
    def _apply_written(schema: SchemaDescriptor, entity: Any, values: dict[str, Any]) -> None:
        setattr(entity, schema.primary_key, values[schema.primary_key])
        if schema.version is not None:
            setattr(entity, schema.version, values[schema.version])

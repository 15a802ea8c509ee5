"""
In-memory key-value backend implementation for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without DynamoDB

It applies DynamoDB's request rules (key shape, conditional writes,
transaction limits) so code tested against it behaves the same in
production.

Invariants:
    - All data is lost on close() or process exit
    - Stored items are copied on the way in and out
    - transact_write() checks every condition before applying anything

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the KeyValueBackend protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple

from ..codec import NUMBER, STRING, StoredRecord
from ..errors import ValidationError
from ..expressions import Condition
from .base import (
    BackendConnectionError,
    BackendError,
    ConditionalCheckFailed,
    DeleteRequest,
    PutRequest,
    TransactionCanceled,
    WriteRequest,
)

logger = logging.getLogger(__name__)

MAX_TRANSACTION_ITEMS = 100

KeyToken = Tuple[str, str]


@dataclass
class InMemoryTable:
    """In-memory table storage."""
    key_attribute: str
    items: Dict[KeyToken, StoredRecord] = field(default_factory=dict)


class InMemoryBackend:
    """In-memory implementation of KeyValueBackend for testing.

    Tables must be created with create_table() before use, naming the
    key attribute, as a DynamoDB table definition would.

    Thread safety:
        Uses an asyncio lock. Safe to use from multiple coroutines.

    Example:
        >>> backend = InMemoryBackend()
        >>> backend.create_table("widgets", "id")
        >>> await backend.connect()
        >>> await backend.put_item("widgets", {"id": {"S": "w1"}})
    """

    def __init__(self) -> None:
        """Initialize in-memory backend."""
        self._tables: Dict[str, InMemoryTable] = {}
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryBackend connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._tables.clear()
        logger.debug("InMemoryBackend closed")

    async def __aenter__(self) -> InMemoryBackend:
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def create_table(self, name: str, key_attribute: str) -> None:
        """Create an empty table keyed by ``key_attribute``.

        Raises:
            ValueError: If the table already exists
        """
        if name in self._tables:
            raise ValueError(f"Table already exists: {name}")
        self._tables[name] = InMemoryTable(key_attribute=key_attribute)

    async def get_item(self, table: str, key: StoredRecord) -> Optional[StoredRecord]:
        """Read one item by key."""
        self._check_connected()
        tbl = self._table(table)
        token = self._key_token(tbl, key)

        async with self._lock:
            item = tbl.items.get(token)
            return copy.deepcopy(item) if item is not None else None

    async def put_item(
        self,
        table: str,
        item: StoredRecord,
        condition: Optional[Condition] = None,
    ) -> None:
        """Write one item if ``condition`` holds for the current record."""
        self._check_connected()
        tbl = self._table(table)
        token = self._item_token(tbl, item)

        async with self._lock:
            if condition is not None and not condition.evaluate(tbl.items.get(token)):
                raise ConditionalCheckFailed("The conditional request failed")
            tbl.items[token] = copy.deepcopy(item)

        logger.debug("Item written to in-memory table", extra={"table": table, "key": token[1]})

    async def delete_item(self, table: str, key: StoredRecord) -> None:
        """Delete one item; deleting a missing item succeeds."""
        self._check_connected()
        tbl = self._table(table)
        token = self._key_token(tbl, key)

        async with self._lock:
            tbl.items.pop(token, None)

        logger.debug("Item deleted from in-memory table", extra={"table": table, "key": token[1]})

    async def transact_write(self, requests: Sequence[WriteRequest]) -> None:
        """Apply all requests, or none if any condition fails."""
        self._check_connected()
        if not requests:
            raise ValidationError("Transaction must contain at least one request")
        if len(requests) > MAX_TRANSACTION_ITEMS:
            raise ValidationError(
                f"Transaction may contain at most {MAX_TRANSACTION_ITEMS} requests, "
                f"got {len(requests)}"
            )

        targets: List[Tuple[InMemoryTable, KeyToken, WriteRequest]] = []
        seen = set()
        for request in requests:
            tbl = self._table(request.table)
            if isinstance(request, PutRequest):
                token = self._item_token(tbl, request.item)
            elif isinstance(request, DeleteRequest):
                token = self._key_token(tbl, request.key)
            else:
                raise ValidationError(f"Unsupported transaction request: {type(request).__name__}")
            if (request.table, token) in seen:
                raise ValidationError(
                    "Transaction request cannot include multiple operations on one item"
                )
            seen.add((request.table, token))
            targets.append((tbl, token, request))

        async with self._lock:
            reasons = []
            for tbl, token, request in targets:
                ok = request.condition is None or request.condition.evaluate(tbl.items.get(token))
                reasons.append("None" if ok else "ConditionalCheckFailed")
            if "ConditionalCheckFailed" in reasons:
                raise TransactionCanceled(
                    "Transaction cancelled, please refer cancellation reasons for specific reasons "
                    f"[{', '.join(reasons)}]",
                    reasons=reasons,
                )

            for tbl, token, request in targets:
                if isinstance(request, PutRequest):
                    tbl.items[token] = copy.deepcopy(request.item)
                else:
                    tbl.items.pop(token, None)

        logger.debug("Transaction applied to in-memory tables", extra={"count": len(targets)})

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def items(self, table: str) -> List[StoredRecord]:
        """Get copies of every stored item in a table (for testing)."""
        return [copy.deepcopy(item) for item in self._table(table).items.values()]

    def clear(self) -> None:
        """Remove all items but keep table definitions (for testing)."""
        for tbl in self._tables.values():
            tbl.items.clear()

    # =========================================================================
    # Request validation
    # =========================================================================

    def _check_connected(self) -> None:
        if not self._connected:
            raise BackendConnectionError("Not connected")

    def _table(self, name: str) -> InMemoryTable:
        tbl = self._tables.get(name)
        if tbl is None:
            raise BackendError(f"Requested resource not found: Table: {name} not found")
        return tbl

    def _key_token(self, tbl: InMemoryTable, key: StoredRecord) -> KeyToken:
        if set(key) != {tbl.key_attribute}:
            raise ValidationError(
                "The provided key element does not match the schema",
                field_name=tbl.key_attribute,
            )
        return self._token_of(tbl.key_attribute, key[tbl.key_attribute])

    def _item_token(self, tbl: InMemoryTable, item: StoredRecord) -> KeyToken:
        if tbl.key_attribute not in item:
            raise ValidationError(
                f"Missing the key {tbl.key_attribute} in the item",
                field_name=tbl.key_attribute,
            )
        return self._token_of(tbl.key_attribute, item[tbl.key_attribute])

    @staticmethod
    def _token_of(attribute: str, tagged: Dict[str, object]) -> KeyToken:
        if len(tagged) != 1:
            raise ValidationError(
                f"Invalid attribute value for key {attribute}", field_name=attribute
            )
        tag, payload = next(iter(tagged.items()))
        if tag not in (STRING, NUMBER):
            raise ValidationError(
                "One or more parameter values were invalid: "
                f"Type mismatch for key {attribute}",
                field_name=attribute,
            )
        if tag == STRING and payload == "":
            raise ValidationError(
                "One or more parameter values are not valid. "
                f"The AttributeValue for a key attribute cannot contain an empty string value. "
                f"Key: {attribute}",
                field_name=attribute,
            )
        if tag == NUMBER:
            # "1" and "1.0" name the same key
            try:
                return tag, str(Decimal(str(payload)).normalize())
            except InvalidOperation:
                raise ValidationError(
                    f"Invalid number for key {attribute}: {payload}", field_name=attribute
                ) from None
        return tag, str(payload)

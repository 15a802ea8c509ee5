"""
Amazon DynamoDB backend implementation.

This module provides the production KeyValueBackend on DynamoDB.
It uses aiobotocore for async operations.

Invariants:
    - Requests carry tagged values unchanged (DynamoDB's own wire shape)
    - Condition failures map to ConditionalCheckFailed / TransactionCanceled
    - ValidationException maps to entmap ValidationError
    - Every other client or transport error propagates unchanged

How to change safely:
    - Test with DynamoDB Local before deploying to AWS
    - Keep error-code mapping in _reraise() in sync with the protocol
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from aiobotocore.session import get_session
from botocore.exceptions import ClientError, EndpointConnectionError

from ..codec import StoredRecord
from ..config import DynamoDBConfig
from ..errors import ValidationError
from ..expressions import Condition
from .base import (
    BackendConnectionError,
    ConditionalCheckFailed,
    DeleteRequest,
    PutRequest,
    TransactionCanceled,
    WriteRequest,
)

logger = logging.getLogger(__name__)


class DynamoDBBackend:
    """DynamoDB implementation of the KeyValueBackend protocol.

    Uses aiobotocore for async operations with Amazon DynamoDB or
    DynamoDB Local.

    Attributes:
        config: DynamoDB configuration

    Example:
        >>> config = DynamoDBConfig(region="us-east-1")
        >>> async with DynamoDBBackend(config) as backend:
        ...     item = await backend.get_item("widgets", {"id": {"S": "w1"}})
    """

    def __init__(self, config: Optional[DynamoDBConfig] = None) -> None:
        """Initialize DynamoDB backend.

        Args:
            config: DynamoDB configuration (defaults read from environment)
        """
        self.config = config or DynamoDBConfig.from_env()
        self._session = None
        self._client_ctx = None
        self._client = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Whether connected to DynamoDB."""
        return self._connected

    async def connect(self) -> None:
        """Connect to DynamoDB.

        Creates the boto session and client.

        Raises:
            BackendConnectionError: If connection fails
        """
        if self._connected:
            return

        client_config: Dict[str, Any] = {"region_name": self.config.region}
        if self.config.endpoint_url:
            client_config["endpoint_url"] = self.config.endpoint_url
        if self.config.access_key_id:
            client_config["aws_access_key_id"] = self.config.access_key_id
            client_config["aws_secret_access_key"] = self.config.secret_access_key

        try:
            self._session = get_session()
            self._client_ctx = self._session.create_client("dynamodb", **client_config)
            self._client = await self._client_ctx.__aenter__()
        except EndpointConnectionError as e:
            raise BackendConnectionError(f"Failed to connect to DynamoDB endpoint: {e}") from e

        self._connected = True
        logger.info(
            "Connected to DynamoDB",
            extra={
                "region": self.config.region,
                "endpoint": self.config.endpoint_url or "AWS",
            },
        )

    async def close(self) -> None:
        """Close DynamoDB connection."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)

        self._client = None
        self._client_ctx = None
        self._session = None
        self._connected = False
        logger.info("DynamoDB connection closed")

    async def __aenter__(self) -> DynamoDBBackend:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _require_client(self) -> Any:
        if self._client is None:
            raise BackendConnectionError("Not connected to DynamoDB")
        return self._client

    async def get_item(self, table: str, key: StoredRecord) -> Optional[StoredRecord]:
        """Read one item with GetItem."""
        client = self._require_client()
        try:
            response = await client.get_item(
                TableName=table,
                Key=key,
                ConsistentRead=self.config.consistent_read,
            )
        except ClientError as e:
            _reraise(e)
        return response.get("Item")

    async def put_item(
        self,
        table: str,
        item: StoredRecord,
        condition: Optional[Condition] = None,
    ) -> None:
        """Write one item with PutItem."""
        client = self._require_client()
        params: Dict[str, Any] = {"TableName": table, "Item": item}
        if condition is not None:
            params.update(condition.render().to_request())

        try:
            await client.put_item(**params)
        except ClientError as e:
            _reraise(e)

        logger.debug("Item written to DynamoDB", extra={"table": table})

    async def delete_item(self, table: str, key: StoredRecord) -> None:
        """Delete one item with DeleteItem."""
        client = self._require_client()
        try:
            await client.delete_item(TableName=table, Key=key)
        except ClientError as e:
            _reraise(e)

        logger.debug("Item deleted from DynamoDB", extra={"table": table})

    async def transact_write(self, requests: Sequence[WriteRequest]) -> None:
        """Apply all requests atomically with TransactWriteItems."""
        client = self._require_client()
        try:
            await client.transact_write_items(
                TransactItems=[_transact_item(request) for request in requests]
            )
        except ClientError as e:
            _reraise(e)

        logger.debug("Transaction committed to DynamoDB", extra={"count": len(requests)})

    async def create_table(self, name: str, key_attribute: str, key_type: str = "S") -> None:
        """Create an on-demand table with a hash key and wait for it.

        key_type is the DynamoDB scalar type of the key: "S", "N" or "B".

        Used by tests and local setups; production tables are provisioned
        outside the library.
        """
        client = self._require_client()
        await client.create_table(
            TableName=name,
            KeySchema=[{"AttributeName": key_attribute, "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": key_attribute, "AttributeType": key_type}],
            BillingMode="PAY_PER_REQUEST",
        )
        waiter = client.get_waiter("table_exists")
        await waiter.wait(TableName=name)
        logger.info("DynamoDB table created", extra={"table": name})

    async def delete_table(self, name: str) -> None:
        """Delete a table (for testing)."""
        client = self._require_client()
        await client.delete_table(TableName=name)


def _transact_item(request: WriteRequest) -> Dict[str, Any]:
    """Convert a write request into a TransactWriteItems entry."""
    if isinstance(request, PutRequest):
        body: Dict[str, Any] = {"TableName": request.table, "Item": request.item}
        kind = "Put"
    elif isinstance(request, DeleteRequest):
        body = {"TableName": request.table, "Key": request.key}
        kind = "Delete"
    else:
        raise ValidationError(f"Unsupported transaction request: {type(request).__name__}")

    if request.condition is not None:
        body.update(request.condition.render().to_request())
    return {kind: body}


def _reraise(error: ClientError) -> NoReturn:
    """Raise the backend-contract equivalent of a DynamoDB ClientError."""
    info = error.response.get("Error", {})
    code = info.get("Code", "")
    message = info.get("Message", str(error))

    if code == "ConditionalCheckFailedException":
        raise ConditionalCheckFailed(message) from error
    if code == "TransactionCanceledException":
        reasons: List[str] = [
            reason.get("Code", "None")
            for reason in error.response.get("CancellationReasons", [])
        ]
        raise TransactionCanceled(message, reasons=reasons) from error
    if code == "ValidationException":
        raise ValidationError(message, errors=[message]) from error
    raise error

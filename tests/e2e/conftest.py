"""
E2E test fixtures for EntMap.

These tests require DynamoDB Local to be running, e.g.:

    docker run -p 8000:8000 amazon/dynamodb-local

and ENTMAP_E2E_TESTS=1 in the environment.
"""

import os
import uuid

import pytest

from entmap.backends.dynamodb import DynamoDBBackend
from entmap.config import DynamoDBConfig


@pytest.fixture
def table_name():
    """Unique table name per test."""
    return f"entmap_e2e_{uuid.uuid4().hex[:12]}"


@pytest.fixture
async def dynamodb(table_name):
    """Connected backend with a fresh table, dropped afterwards."""
    config = DynamoDBConfig(
        region=os.environ.get("AWS_REGION", "us-east-1"),
        endpoint_url=os.environ.get("ENTMAP_DYNAMODB_ENDPOINT", "http://localhost:8000"),
        access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "local"),
        secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "local"),
    )
    backend = DynamoDBBackend(config)
    await backend.connect()
    await backend.create_table(table_name, "id")
    try:
        yield backend
    finally:
        await backend.delete_table(table_name)
        await backend.close()

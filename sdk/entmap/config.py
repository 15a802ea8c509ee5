"""
Configuration management for EntMap.

All configuration is done via environment variables.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Document new environment variables in the class docstring
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class BackendKind(Enum):
    """Supported key-value backends."""

    MEMORY = "memory"
    DYNAMODB = "dynamodb"


@dataclass(frozen=True)
class DynamoDBConfig:
    """DynamoDB backend configuration.

    Attributes:
        region: AWS region
        endpoint_url: Custom endpoint URL (for DynamoDB Local)
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
        consistent_read: Whether GetItem uses strongly consistent reads
    """

    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = field(default=None, repr=False)
    consistent_read: bool = True

    @classmethod
    def from_env(cls) -> DynamoDBConfig:
        """Load configuration from environment variables."""
        return cls(
            region=os.getenv(
                "ENTMAP_DYNAMODB_REGION", os.getenv("AWS_REGION", "us-east-1")
            ),
            endpoint_url=os.getenv("ENTMAP_DYNAMODB_ENDPOINT"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            consistent_read=os.getenv("ENTMAP_CONSISTENT_READ", "true").lower() == "true",
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class EntMapConfig:
    """Complete library configuration.

    Attributes:
        backend: Which key-value backend to use
        dynamodb: DynamoDB configuration (if backend is DYNAMODB)
        observability: Logging configuration
    """

    backend: BackendKind = BackendKind.MEMORY
    dynamodb: DynamoDBConfig = field(default_factory=DynamoDBConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> EntMapConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If configuration is invalid.
        """
        backend_str = os.getenv("ENTMAP_BACKEND", "memory").lower()
        try:
            backend = BackendKind(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid ENTMAP_BACKEND '{backend_str}'. Must be one of: memory, dynamodb"
            )

        config = cls(
            backend=backend,
            dynamodb=DynamoDBConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.backend == BackendKind.DYNAMODB and not self.dynamodb.region:
            raise ValueError("ENTMAP_DYNAMODB_REGION is required when ENTMAP_BACKEND=dynamodb")

        if bool(self.dynamodb.access_key_id) != bool(self.dynamodb.secret_access_key):
            raise ValueError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set together"
            )

        if self.observability.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Invalid LOG_LEVEL: {self.observability.log_level}")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(f"Invalid LOG_FORMAT: {self.observability.log_format}. Must be json or text")

        logger.debug("Configuration validated", extra={"backend": self.backend.value})

"""
Schema descriptor for EntMap entities.

A SchemaDescriptor is the resolved mapping between a Python type and its
stored record: which table it lives in, which field holds the primary key,
which (optional) field carries the optimistic-locking version, and which
other fields are persisted.

Invariants:
    - Exactly one table name and one primary key per type
    - At most one version field per type
    - Descriptors are immutable once resolved

Example:
    >>> descriptor = SchemaDescriptor(
    ...     type_name="Widget",
    ...     table_name="widgets",
    ...     primary_key="id",
    ...     version="version",
    ...     attributes=("name",),
    ... )
    >>> descriptor.field_names()
    ['id', 'version', 'name']
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any


@dataclass(frozen=True)
class SchemaDescriptor:
    """Resolved storage schema of one entity type.

    Attributes:
        type_name: Name of the mapped Python type
        table_name: Backend table holding the records
        primary_key: Field holding the record's unique identifier
        version: Field holding the version counter, or None
        attributes: Persisted fields besides key and version, in declaration order
    """

    type_name: str
    table_name: str
    primary_key: str
    version: str | None = None
    attributes: tuple[str, ...] = dataclass_field(default_factory=tuple)

    @property
    def versioned(self) -> bool:
        """Whether optimistic concurrency control applies."""
        return self.version is not None

    def field_names(self) -> list[str]:
        """All persisted field names, key first."""
        names = [self.primary_key]
        if self.version is not None:
            names.append(self.version)
        names.extend(self.attributes)
        return names

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "type_name": self.type_name,
            "table_name": self.table_name,
            "primary_key": self.primary_key,
            "attributes": list(self.attributes),
        }
        if self.version is not None:
            result["version"] = self.version
        return result

"""
Metadata registry for EntMap.

This module associates entity types with their storage schema:
- Table name, primary key, version and attribute declarations
- Lazy resolution into a validated SchemaDescriptor
- Class decorators for declaring a schema at type-definition time

Declarations are appended, never overwritten. A type declared with two table
names (or two primary keys, or two version fields) is accepted at declaration
time and rejected with a SchemaError when its descriptor is first resolved.

Example:
    >>> @table("widgets")
    ... @primary_key("id")
    ... @version("version")
    ... @attribute("name")
    ... @dataclass
    ... class Widget:
    ...     id: str | None = None
    ...     version: int | None = None
    ...     name: str | None = None
    >>> get_registry().resolve(Widget).table_name
    'widgets'
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, TypeVar

from .errors import SchemaError
from .schema import SchemaDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)

TABLE = "table"
PRIMARY_KEY = "primary_key"
VERSION = "version"
ATTRIBUTE = "attribute"

# Global registry
_global_registry: MetadataRegistry | None = None
_registry_lock = threading.Lock()


class MetadataRegistry:
    """Process-wide store of entity schema declarations.

    Each declaration kind is a multi-valued association keyed by type
    identity. resolve() validates the declarations and caches the
    resulting descriptor until another declaration arrives for that type.

    Example:
        >>> registry = MetadataRegistry()
        >>> registry.register_table(Widget, "widgets")
        >>> registry.register_primary_key(Widget, "id")
        >>> registry.resolve(Widget).primary_key
        'id'
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._declarations: dict[str, defaultdict[type, list[str]]] = {
            TABLE: defaultdict(list),
            PRIMARY_KEY: defaultdict(list),
            VERSION: defaultdict(list),
            ATTRIBUTE: defaultdict(list),
        }
        self._resolved: dict[type, SchemaDescriptor] = {}
        self._lock = threading.Lock()

    def _declare(self, kind: str, cls: type, name: str) -> None:
        with self._lock:
            self._declarations[kind][cls].append(name)
            self._resolved.pop(cls, None)

    def register_table(self, cls: type, name: str) -> None:
        """Declare that ``cls`` is stored in table ``name``."""
        self._declare(TABLE, cls, name)

    def register_primary_key(self, cls: type, field_name: str) -> None:
        """Declare the field holding the primary key of ``cls``."""
        self._declare(PRIMARY_KEY, cls, field_name)

    def register_version(self, cls: type, field_name: str) -> None:
        """Declare the version counter field of ``cls``."""
        self._declare(VERSION, cls, field_name)

    def register_attribute(self, cls: type, field_name: str) -> None:
        """Declare a persisted attribute field of ``cls``."""
        self._declare(ATTRIBUTE, cls, field_name)

    def is_registered(self, target: Any) -> bool:
        """Whether any declaration exists for the type of ``target``."""
        cls = _type_of(target)
        return any(cls in declared for declared in self._declarations.values())

    def resolve(self, target: Any) -> SchemaDescriptor:
        """Resolve the schema of a type or of an instance's type.

        Args:
            target: Entity type or entity instance

        Returns:
            Validated SchemaDescriptor

        Raises:
            SchemaError: If table, primary key or version declarations
                are missing or duplicated
        """
        cls = _type_of(target)
        cached = self._resolved.get(cls)
        if cached is not None:
            return cached

        with self._lock:
            type_name = cls.__name__
            tables = self._declarations[TABLE].get(cls, [])
            keys = self._declarations[PRIMARY_KEY].get(cls, [])
            versions = self._declarations[VERSION].get(cls, [])
            attributes = self._declarations[ATTRIBUTE].get(cls, [])

            if not tables:
                raise SchemaError(
                    f"The entity {type_name} should have a table declaration.",
                    type_name=type_name,
                    concept=TABLE,
                )
            if len(tables) != 1:
                raise SchemaError(
                    f"The entity {type_name} should only have one table declaration, "
                    "but multiple were found.",
                    type_name=type_name,
                    concept=TABLE,
                )
            if not keys:
                raise SchemaError(
                    f"The entity {type_name} should have a primary key field.",
                    type_name=type_name,
                    concept=PRIMARY_KEY,
                )
            if len(keys) != 1:
                raise SchemaError(
                    f"The entity {type_name} should only have one primary key field, "
                    "but multiple were found.",
                    type_name=type_name,
                    concept=PRIMARY_KEY,
                )
            if len(versions) > 1:
                raise SchemaError(
                    f"The entity {type_name} should only have one version field, "
                    "but multiple were found.",
                    type_name=type_name,
                    concept=VERSION,
                )

            descriptor = SchemaDescriptor(
                type_name=type_name,
                table_name=tables[0],
                primary_key=keys[0],
                version=versions[0] if versions else None,
                attributes=tuple(dict.fromkeys(attributes)),
            )
            self._resolved[cls] = descriptor

        logger.debug("Resolved entity schema", extra=descriptor.to_dict())
        return descriptor


def _type_of(target: Any) -> type:
    return target if isinstance(target, type) else type(target)


def get_registry() -> MetadataRegistry:
    """Get the global metadata registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = MetadataRegistry()
        return _global_registry


def reset_registry() -> None:
    """Reset the global registry (for testing only)."""
    global _global_registry
    with _registry_lock:
        _global_registry = None


def register_table(cls: type, name: str) -> None:
    """Declare a table name in the global registry."""
    get_registry().register_table(cls, name)


def register_primary_key(cls: type, field_name: str) -> None:
    """Declare a primary key field in the global registry."""
    get_registry().register_primary_key(cls, field_name)


def register_version(cls: type, field_name: str) -> None:
    """Declare a version field in the global registry."""
    get_registry().register_version(cls, field_name)


def register_attribute(cls: type, field_name: str) -> None:
    """Declare an attribute field in the global registry."""
    get_registry().register_attribute(cls, field_name)


def table(name: str, registry: MetadataRegistry | None = None) -> Callable[[T], T]:
    """Class decorator mapping the decorated type to table ``name``.

    Example:
        >>> @table("widgets")
        ... class Widget: ...
    """

    def decorate(cls: T) -> T:
        (registry or get_registry()).register_table(cls, name)
        return cls

    return decorate


def primary_key(field_name: str, registry: MetadataRegistry | None = None) -> Callable[[T], T]:
    """Class decorator marking ``field_name`` as the primary key."""

    def decorate(cls: T) -> T:
        (registry or get_registry()).register_primary_key(cls, field_name)
        return cls

    return decorate


def version(field_name: str, registry: MetadataRegistry | None = None) -> Callable[[T], T]:
    """Class decorator marking ``field_name`` as the version counter."""

    def decorate(cls: T) -> T:
        (registry or get_registry()).register_version(cls, field_name)
        return cls

    return decorate


def attribute(*field_names: str, registry: MetadataRegistry | None = None) -> Callable[[T], T]:
    """Class decorator marking one or more fields as persisted attributes.

    Example:
        >>> @attribute("name", "tags")
        ... class Widget: ...
    """

    def decorate(cls: T) -> T:
        target = registry or get_registry()
        for field_name in field_names:
            target.register_attribute(cls, field_name)
        return cls

    return decorate

"""
Unit tests for the metadata registry.

Tests cover:
- Declaration and resolution
- Missing and duplicate declarations
- Descriptor caching
- Class decorators and the global registry
"""

from dataclasses import dataclass

import pytest

from entmap.errors import SchemaError
from entmap.registry import (
    MetadataRegistry,
    attribute,
    get_registry,
    primary_key,
    register_primary_key,
    register_table,
    reset_registry,
    table,
    version,
)
from entmap.schema import SchemaDescriptor


class Widget:
    pass


class TestMetadataRegistry:
    """Tests for MetadataRegistry."""

    @pytest.fixture
    def registry(self):
        """Create an empty registry."""
        return MetadataRegistry()

    def test_resolve_full_declaration(self, registry):
        """All four declaration kinds resolve into one descriptor."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.register_version(Widget, "version")
        registry.register_attribute(Widget, "name")
        registry.register_attribute(Widget, "tags")

        descriptor = registry.resolve(Widget)

        assert descriptor == SchemaDescriptor(
            type_name="Widget",
            table_name="widgets",
            primary_key="id",
            version="version",
            attributes=("name", "tags"),
        )
        assert descriptor.versioned is True
        assert descriptor.field_names() == ["id", "version", "name", "tags"]

    def test_resolve_accepts_instance(self, registry):
        """Resolving an instance uses its type."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")

        assert registry.resolve(Widget()).table_name == "widgets"

    def test_version_and_attributes_optional(self, registry):
        """Zero version fields and zero attributes are valid."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")

        descriptor = registry.resolve(Widget)

        assert descriptor.version is None
        assert descriptor.versioned is False
        assert descriptor.attributes == ()
        assert descriptor.field_names() == ["id"]

    def test_missing_table_raises(self, registry):
        """A type without a table declaration cannot be resolved."""
        registry.register_primary_key(Widget, "id")

        with pytest.raises(SchemaError, match="The entity Widget should have a table declaration") as exc_info:
            registry.resolve(Widget)

        assert exc_info.value.type_name == "Widget"
        assert exc_info.value.concept == "table"
        assert exc_info.value.code == "SCHEMA_ERROR"

    def test_unregistered_type_raises(self, registry):
        """A type never declared reports the missing table."""
        with pytest.raises(SchemaError, match="Widget should have a table declaration"):
            registry.resolve(Widget)

    def test_duplicate_table_raises(self, registry):
        """Two table declarations are rejected at resolve time."""
        registry.register_table(Widget, "widgets")
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")

        with pytest.raises(SchemaError, match="should only have one table declaration"):
            registry.resolve(Widget)

    def test_missing_primary_key_raises(self, registry):
        """A type without a primary key cannot be resolved."""
        registry.register_table(Widget, "widgets")

        with pytest.raises(SchemaError, match="Widget should have a primary key field") as exc_info:
            registry.resolve(Widget)

        assert exc_info.value.concept == "primary_key"

    def test_duplicate_primary_key_same_field_raises(self, registry):
        """Declaring the same key field twice is a duplicate."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.register_primary_key(Widget, "id")

        with pytest.raises(SchemaError, match="should only have one primary key field"):
            registry.resolve(Widget)

    def test_duplicate_primary_key_different_fields_raises(self, registry):
        """Two different key fields are a duplicate."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.register_primary_key(Widget, "id2")

        with pytest.raises(SchemaError, match="should only have one primary key field"):
            registry.resolve(Widget)

    def test_duplicate_version_raises(self, registry):
        """Two version fields are rejected."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.register_version(Widget, "version")
        registry.register_version(Widget, "version2")

        with pytest.raises(SchemaError, match="should only have one version field") as exc_info:
            registry.resolve(Widget)

        assert exc_info.value.concept == "version"

    def test_duplicate_attribute_is_not_an_error(self, registry):
        """Repeated attribute declarations collapse to one field."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.register_attribute(Widget, "name")
        registry.register_attribute(Widget, "name")

        assert registry.resolve(Widget).attributes == ("name",)

    def test_resolve_is_cached(self, registry):
        """Resolving twice returns the same descriptor object."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")

        assert registry.resolve(Widget) is registry.resolve(Widget)

    def test_new_declaration_invalidates_cache(self, registry):
        """A declaration added after resolving is seen by the next resolve."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.resolve(Widget)

        registry.register_primary_key(Widget, "other")

        with pytest.raises(SchemaError, match="only have one primary key field"):
            registry.resolve(Widget)

    def test_types_are_independent(self, registry):
        """Declarations on one type do not leak into another."""

        class Gadget:
            pass

        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")

        assert registry.is_registered(Widget)
        assert not registry.is_registered(Gadget)
        with pytest.raises(SchemaError, match="Gadget"):
            registry.resolve(Gadget)

    def test_descriptor_to_dict(self, registry):
        """Descriptor serializes to a dict."""
        registry.register_table(Widget, "widgets")
        registry.register_primary_key(Widget, "id")
        registry.register_attribute(Widget, "name")

        d = registry.resolve(Widget).to_dict()

        assert d == {
            "type_name": "Widget",
            "table_name": "widgets",
            "primary_key": "id",
            "attributes": ["name"],
        }


class TestDecorators:
    """Tests for declaration decorators."""

    @pytest.fixture
    def registry(self):
        """Create an empty registry."""
        return MetadataRegistry()

    def test_decorators_declare_schema(self, registry):
        """Stacked decorators register every declaration."""

        @table("widgets", registry=registry)
        @primary_key("id", registry=registry)
        @version("version", registry=registry)
        @attribute("name", "tags", registry=registry)
        @dataclass
        class Decorated:
            id: str | None = None
            version: int | None = None
            name: str | None = None
            tags: list | None = None

        descriptor = registry.resolve(Decorated)

        assert descriptor.table_name == "widgets"
        assert descriptor.primary_key == "id"
        assert descriptor.version == "version"
        assert descriptor.attributes == ("name", "tags")

    def test_decorator_returns_class(self, registry):
        """Decorators leave the class usable."""

        @table("widgets", registry=registry)
        class Plain:
            pass

        assert isinstance(Plain(), Plain)

    def test_repeated_decorator_is_duplicate(self, registry):
        """The same decorator applied twice is a duplicate declaration."""

        @table("widgets", registry=registry)
        @table("widgets", registry=registry)
        @primary_key("id", registry=registry)
        class Twice:
            pass

        with pytest.raises(SchemaError, match="Twice should only have one table declaration"):
            registry.resolve(Twice)


class TestGlobalRegistry:
    """Tests for the process-wide registry."""

    @pytest.fixture(autouse=True)
    def fresh_registry(self):
        """Isolate the global registry."""
        reset_registry()
        yield
        reset_registry()

    def test_get_registry_is_singleton(self):
        """get_registry() returns the same instance until reset."""
        assert get_registry() is get_registry()

    def test_module_functions_use_global_registry(self):
        """register_* helpers write to the global registry."""
        register_table(Widget, "widgets")
        register_primary_key(Widget, "id")

        assert get_registry().resolve(Widget).table_name == "widgets"

    def test_reset_registry_forgets_declarations(self):
        """Reset drops all declarations."""
        register_table(Widget, "widgets")
        reset_registry()

        assert not get_registry().is_registered(Widget)

    def test_decorators_default_to_global_registry(self):
        """Decorators without registry= use the global registry."""

        @table("things")
        @primary_key("key")
        class Thing:
            pass

        assert get_registry().resolve(Thing).primary_key == "key"

"""
Condition expressions for conditional writes.

Conditions are small immutable trees that can be both rendered into a
DynamoDB ``ConditionExpression`` (with placeholder attribute names and
values) and evaluated directly against a stored record, so that every
backend applies identical semantics.

Example:
    >>> cond = all_of(AttributeNotExists("id"), AttributeEquals("version", 3))
    >>> cond.render()
    RenderedCondition(expression='(attribute_not_exists(#n0) AND #n1 = :v0)', ...)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .codec import StoredRecord, TaggedValue, from_tagged, to_tagged


@dataclass(frozen=True)
class RenderedCondition:
    """Condition in DynamoDB request form."""

    expression: str
    names: Dict[str, str] = field(default_factory=dict)
    values: Dict[str, TaggedValue] = field(default_factory=dict)

    def to_request(self) -> Dict[str, Any]:
        """Keyword arguments for a DynamoDB write call."""
        params: Dict[str, Any] = {
            "ConditionExpression": self.expression,
            "ExpressionAttributeNames": self.names,
        }
        if self.values:
            params["ExpressionAttributeValues"] = self.values
        return params


class _Placeholders:
    def __init__(self) -> None:
        self.names: Dict[str, str] = {}
        self.values: Dict[str, TaggedValue] = {}

    def name(self, attribute: str) -> str:
        for placeholder, existing in self.names.items():
            if existing == attribute:
                return placeholder
        placeholder = f"#n{len(self.names)}"
        self.names[placeholder] = attribute
        return placeholder

    def value(self, tagged: TaggedValue) -> str:
        placeholder = f":v{len(self.values)}"
        self.values[placeholder] = tagged
        return placeholder


class Condition(ABC):
    """A condition over one stored record."""

    @abstractmethod
    def evaluate(self, record: Optional[StoredRecord]) -> bool:
        """Whether the condition holds for ``record`` (None when absent)."""

    @abstractmethod
    def _render(self, placeholders: _Placeholders) -> str: ...

    def render(self) -> RenderedCondition:
        """Render into DynamoDB expression form."""
        placeholders = _Placeholders()
        expression = self._render(placeholders)
        return RenderedCondition(expression, placeholders.names, placeholders.values)


@dataclass(frozen=True)
class AttributeNotExists(Condition):
    """True when the record (or the named attribute) is absent."""

    attribute: str

    def evaluate(self, record: Optional[StoredRecord]) -> bool:
        return record is None or self.attribute not in record

    def _render(self, placeholders: _Placeholders) -> str:
        return f"attribute_not_exists({placeholders.name(self.attribute)})"


@dataclass(frozen=True)
class AttributeEquals(Condition):
    """True when the stored attribute equals ``value`` exactly."""

    attribute: str
    value: Any

    def evaluate(self, record: Optional[StoredRecord]) -> bool:
        if record is None or self.attribute not in record:
            return False
        return from_tagged(record[self.attribute]) == self.value

    def _render(self, placeholders: _Placeholders) -> str:
        name = placeholders.name(self.attribute)
        return f"{name} = {placeholders.value(to_tagged(self.value))}"


@dataclass(frozen=True)
class And(Condition):
    """Logical conjunction of conditions."""

    conditions: tuple[Condition, ...]

    def evaluate(self, record: Optional[StoredRecord]) -> bool:
        return all(c.evaluate(record) for c in self.conditions)

    def _render(self, placeholders: _Placeholders) -> str:
        parts = [c._render(placeholders) for c in self.conditions]
        return "(" + " AND ".join(parts) + ")"


def all_of(*conditions: Condition) -> Optional[Condition]:
    """Combine conditions with AND.

    Returns None for no conditions and the condition itself for one.
    """
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return And(tuple(conditions))

"""Condition Tree Implementation.

Provides the backend agnostic condition tree carried by request descriptors:
- Field comparisons combined with AND, OR and NOT
- Parsing of condition maps such as ``{"name": "a", "OR": {...}}``
- In-process evaluation for adapters without a native query language
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum

import typing as t
from typing import Any


class ComparisonOperator(Enum):
    """Comparison operators for specifications."""

    EQUALS = "eq"
    NOT_EQUALS = "ne"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    IN = "in"
    NOT_IN = "not_in"
    LIKE = "like"
    ILIKE = "ilike"  # Case-insensitive like
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    BETWEEN = "between"


# Operator suffixes accepted in condition map keys, e.g. {"age >=": 18}
_KEY_OPERATORS: dict[str, ComparisonOperator] = {
    "=": ComparisonOperator.EQUALS,
    "==": ComparisonOperator.EQUALS,
    "!=": ComparisonOperator.NOT_EQUALS,
    "<>": ComparisonOperator.NOT_EQUALS,
    ">": ComparisonOperator.GREATER_THAN,
    ">=": ComparisonOperator.GREATER_THAN_OR_EQUAL,
    "<": ComparisonOperator.LESS_THAN,
    "<=": ComparisonOperator.LESS_THAN_OR_EQUAL,
    "IN": ComparisonOperator.IN,
    "NOT IN": ComparisonOperator.NOT_IN,
    "LIKE": ComparisonOperator.LIKE,
    "ILIKE": ComparisonOperator.ILIKE,
    "IS": ComparisonOperator.IS_NULL,
    "IS NOT": ComparisonOperator.IS_NOT_NULL,
    "BETWEEN": ComparisonOperator.BETWEEN,
}


class Specification(ABC):
    """Abstract base class for query specifications.

    Specifications represent query criteria that can be combined
    using logical operators to build complex queries.
    """

    @abstractmethod
    def matches(self, row: Mapping[str, Any]) -> bool:
        """Evaluate the specification against a single row."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Convert specification to dictionary representation."""

    @abstractmethod
    def fields(self) -> list[str]:
        """Field names referenced by this specification, in order."""

    def __and__(self, other: "Specification") -> "AndSpecification":
        """Combine specifications with AND operator."""
        return AndSpecification([self, other])

    def __or__(self, other: "Specification") -> "OrSpecification":
        """Combine specifications with OR operator."""
        return OrSpecification([self, other])

    def __invert__(self) -> "NotSpecification":
        """Negate specification with NOT operator."""
        return NotSpecification(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Specification):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash(repr(self.to_dict()))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.to_dict()!r})"


class FieldSpecification(Specification):
    """Specification for field-based queries."""

    def __init__(self, field: str, operator: ComparisonOperator, value: Any) -> None:
        self.field = field
        self.operator = operator
        self.value = value

    def matches(self, row: Mapping[str, Any]) -> bool:  # noqa: C901
        actual = row.get(self.field)

        match self.operator:
            case ComparisonOperator.EQUALS:
                return bool(actual == self.value)
            case ComparisonOperator.NOT_EQUALS:
                return bool(actual != self.value)
            case ComparisonOperator.GREATER_THAN:
                return actual is not None and actual > self.value
            case ComparisonOperator.GREATER_THAN_OR_EQUAL:
                return actual is not None and actual >= self.value
            case ComparisonOperator.LESS_THAN:
                return actual is not None and actual < self.value
            case ComparisonOperator.LESS_THAN_OR_EQUAL:
                return actual is not None and actual <= self.value
            case ComparisonOperator.IN:
                return actual in self.value
            case ComparisonOperator.NOT_IN:
                return actual not in self.value
            case ComparisonOperator.LIKE:
                return self._like(actual, flags=0)
            case ComparisonOperator.ILIKE:
                return self._like(actual, flags=re.IGNORECASE)
            case ComparisonOperator.IS_NULL:
                return actual is None
            case ComparisonOperator.IS_NOT_NULL:
                return actual is not None
            case ComparisonOperator.BETWEEN:
                start, end = self.value
                return actual is not None and start <= actual <= end

        msg = f"Unsupported operator: {self.operator}"
        raise ValueError(msg)

    def _like(self, actual: Any, flags: int) -> bool:
        if actual is None:
            return False
        pattern = "".join(
            ".*" if char == "%" else "." if char == "_" else re.escape(char)
            for char in str(self.value)
        )
        return re.fullmatch(pattern, str(actual), flags=flags | re.DOTALL) is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "type": "field",
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
        }

    def fields(self) -> list[str]:
        return [self.field]


class AndSpecification(Specification):
    """Specification for AND operations."""

    def __init__(self, specifications: list[Specification]) -> None:
        self.specifications = specifications

    def matches(self, row: Mapping[str, Any]) -> bool:
        return all(spec.matches(row) for spec in self.specifications)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "type": "and",
            "specifications": [spec.to_dict() for spec in self.specifications],
        }

    def fields(self) -> list[str]:
        return [field for spec in self.specifications for field in spec.fields()]


class OrSpecification(Specification):
    """Specification for OR operations."""

    def __init__(self, specifications: list[Specification]) -> None:
        self.specifications = specifications

    def matches(self, row: Mapping[str, Any]) -> bool:
        return any(spec.matches(row) for spec in self.specifications)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "type": "or",
            "specifications": [spec.to_dict() for spec in self.specifications],
        }

    def fields(self) -> list[str]:
        return [field for spec in self.specifications for field in spec.fields()]


class NotSpecification(Specification):
    """Specification for NOT operations."""

    def __init__(self, specification: Specification) -> None:
        self.specification = specification

    def matches(self, row: Mapping[str, Any]) -> bool:
        return not self.specification.matches(row)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {"type": "not", "specification": self.specification.to_dict()}

    def fields(self) -> list[str]:
        return self.specification.fields()


def strip_alias(field: str, alias: str | None) -> str:
    """Remove a leading ``"<alias>."`` qualifier from a field name."""
    if alias and field.startswith(f"{alias}."):
        return field[len(alias) + 1 :]
    return field


def _parse_key(key: str, value: Any, alias: str | None) -> FieldSpecification:
    field, _, suffix = key.strip().partition(" ")
    field = strip_alias(field, alias)
    suffix = suffix.strip().upper()

    if suffix:
        if suffix not in _KEY_OPERATORS:
            msg = f'Unsupported operator "{suffix}" in condition "{key}"'
            raise ValueError(msg)
        operator = _KEY_OPERATORS[suffix]
        if operator is ComparisonOperator.EQUALS and value is None:
            operator = ComparisonOperator.IS_NULL
        elif operator is ComparisonOperator.NOT_EQUALS and value is None:
            operator = ComparisonOperator.IS_NOT_NULL
    elif value is None:
        operator = ComparisonOperator.IS_NULL
    elif isinstance(value, list | tuple | set | frozenset):
        operator = ComparisonOperator.IN
        value = list(value)
    else:
        operator = ComparisonOperator.EQUALS

    if operator is ComparisonOperator.BETWEEN and (
        not isinstance(value, list | tuple) or len(value) != 2
    ):
        msg = "BETWEEN operator requires a list/tuple of 2 values"
        raise ValueError(msg)

    return FieldSpecification(field, operator, value)


def _parse_group(conditions: t.Any, alias: str | None) -> list[Specification]:
    if conditions is None:
        return []
    if isinstance(conditions, Specification):
        return [conditions]
    if isinstance(conditions, Mapping):
        specs: list[Specification] = []
        for key, value in conditions.items():
            conjunction = key.upper() if isinstance(key, str) else key
            if conjunction == "AND":
                specs.extend(_parse_group(value, alias))
            elif conjunction == "OR":
                children = _parse_group(value, alias)
                if children:
                    specs.append(
                        children[0] if len(children) == 1 else OrSpecification(children)
                    )
            elif conjunction == "NOT":
                negated = parse_conditions(value, alias)
                if negated is not None:
                    specs.append(NotSpecification(negated))
            else:
                specs.append(_parse_key(key, value, alias))
        return specs
    if isinstance(conditions, list | tuple):
        return [spec for item in conditions for spec in _parse_group(item, alias)]

    msg = f"Unsupported condition type: {type(conditions).__name__}"
    raise TypeError(msg)


def parse_conditions(
    conditions: t.Any,
    alias: str | None = None,
) -> Specification | None:
    """Normalize a condition map, list or specification into a tree.

    Top level entries are combined with AND. ``"OR"``, ``"AND"`` and
    ``"NOT"`` keys open nested groups. Keys may carry an operator suffix
    (``"age >="``) and an ``"<alias>."`` prefix which is dropped.

    Returns:
        The condition tree, or None when there are no conditions
    """
    specs = _parse_group(conditions, alias)
    if not specs:
        return None
    if len(specs) == 1:
        return specs[0]
    return AndSpecification(specs)


# Convenience functions for creating specifications
def equals(field: str, value: Any) -> FieldSpecification:
    """Create equals specification."""
    return FieldSpecification(field, ComparisonOperator.EQUALS, value)


def in_values(field: str, values: list[Any]) -> FieldSpecification:
    """Create IN specification."""
    return FieldSpecification(field, ComparisonOperator.IN, values)


def like(field: str, pattern: str) -> FieldSpecification:
    """Create LIKE specification."""
    return FieldSpecification(field, ComparisonOperator.LIKE, pattern)


def and_specs(*specifications: Specification) -> AndSpecification:
    """Create AND specification from multiple specifications."""
    return AndSpecification(list(specifications))


def or_specs(*specifications: Specification) -> OrSpecification:
    """Create OR specification from multiple specifications."""
    return OrSpecification(list(specifications))


def not_spec(specification: Specification) -> NotSpecification:
    """Create NOT specification."""
    return NotSpecification(specification)

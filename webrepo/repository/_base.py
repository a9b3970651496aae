"""Repository Base Types.

Provides the shared vocabulary of the repository layer:
- Error taxonomy for repository operations
- Operation kinds understood by transport adapters
- Sort and pagination value objects
"""

from enum import Enum

import typing as t
from dataclasses import dataclass
from typing import Any

if t.TYPE_CHECKING:
    from .record import Record


class RepositoryError(Exception):
    """Base exception for repository operations."""

    def __init__(
        self,
        message: str,
        entity_type: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.operation = operation
        super().__init__(message)


class InvalidPrimaryKey(RepositoryError):
    """Raised when a primary key value does not match the key arity."""

    def __init__(self, entity_type: str, values: list[Any]) -> None:
        rendered = ", ".join(repr(value) for value in values or [None])
        super().__init__(
            f'Record not found in endpoint "{entity_type}" with primary key [{rendered}]',
            entity_type=entity_type,
            operation="get",
        )
        self.values = values


class RecordNotFound(RepositoryError):
    """Raised when a terminal lookup yields no rows."""

    def __init__(self, entity_type: str | None = None) -> None:
        target = f' in endpoint "{entity_type}"' if entity_type else ""
        super().__init__(
            f"Record not found{target}",
            entity_type=entity_type,
            operation="find",
        )


class UnknownFinder(RepositoryError):
    """Raised when a finder name is not registered."""

    def __init__(self, finder: str, entity_type: str | None = None) -> None:
        super().__init__(
            f'Unknown finder method "{finder}"',
            entity_type=entity_type,
            operation="find",
        )
        self.finder = finder


class PersistenceFailed(RepositoryError):
    """Raised when a record could not be saved."""

    def __init__(self, record: "Record", operations: list[str]) -> None:
        message = f"Entity {', '.join(operations)} failure."
        errors = record.get_errors()
        if errors:
            message += f" Found the following errors: {errors}"
        super().__init__(message, entity_type=record.source, operation="save")
        self.record = record
        self.operations = operations


class MagicFinderError(RepositoryError):
    """Raised for dynamic finder names that cannot be resolved."""

    def __init__(self, message: str) -> None:
        super().__init__(message, operation="dynamic_finder")


class MagicFinderArgumentMismatch(MagicFinderError):
    """Raised when a dynamic finder receives fewer arguments than fields."""

    def __init__(self, got: int, required: int) -> None:
        super().__init__(
            f"Not enough arguments for magic finder. Got {got} required {required}",
        )
        self.got = got
        self.required = required


class MagicFinderAmbiguous(MagicFinderError):
    """Raised when a dynamic finder mixes "and" and "or" combinators."""

    def __init__(self, method: str) -> None:
        super().__init__(
            f'Cannot mix "and" & "or" in a magic finder ({method}). Use find() instead.',
        )
        self.method = method


class MissingResourceClass(RepositoryError):
    """Raised when no compatible record type can be resolved."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f'Resource class "{name}" could not be found.',
            operation="resource_class",
        )
        self.name = name


class MissingWebservice(RepositoryError):
    """Raised when a connection holds no transport for an endpoint."""

    def __init__(self, name: str, connection: str) -> None:
        super().__init__(
            f'No webservice registered for "{name}" on connection "{connection}"',
            entity_type=name,
            operation="webservice",
        )


class QueryError(RepositoryError):
    """Raised for invalid query state transitions."""


class SchemaError(RepositoryError):
    """Raised for inconsistent or frozen schema mutations."""


class TransportError(RepositoryError):
    """Raised by transport adapters when the remote call fails."""


class Action(Enum):
    """Operation kind carried by a request descriptor."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RuleMode(Enum):
    """Rule set selector for the rule checker."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SortDirection(Enum):
    """Sort direction enumeration."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortCriteria:
    """Sort criteria specification."""

    field: str
    direction: SortDirection = SortDirection.ASC

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "direction": self.direction.value}


@dataclass
class PaginationInfo:
    """Pagination information."""

    page: int = 1
    page_size: int = 50

    @property
    def offset(self) -> int:
        """Calculate offset for backend queries."""
        return (self.page - 1) * self.page_size

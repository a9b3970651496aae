"""Endpoint schema description."""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

import typing as t
from pydantic import BaseModel, ConfigDict, Field

from ._base import SchemaError


class Column(BaseModel):
    """Descriptor of a single endpoint field."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str = Field(default="string", description="Abstract field type")
    nullable: bool = Field(default=True)
    default: t.Any = Field(default=None)
    primary_key: bool = Field(
        default=False,
        description="Marks the field as part of the primary key",
    )


class Schema:
    """Columns and primary key of a remote collection.

    A schema can be built up with ``add_column`` until it is frozen. The
    endpoint freezes the schema once its override hook has run, after which
    it is read-only.
    """

    def __init__(
        self,
        name: str,
        columns: Mapping[str, Column | Mapping[str, t.Any] | str] | None = None,
        primary_key: Iterable[str] | str | None = None,
    ) -> None:
        self.name = name
        self._columns: dict[str, Column] = {}
        self._primary_key: list[str] | None = None
        self._frozen = False

        for column_name, attrs in (columns or {}).items():
            self.add_column(column_name, attrs)
        if primary_key is not None:
            self.set_primary_key(primary_key)

    @classmethod
    def from_mapping(cls, name: str, definition: Mapping[str, t.Any]) -> "Schema":
        """Build a schema from a column mapping with an optional ``_primary_key``."""
        columns = {k: v for k, v in definition.items() if k != "_primary_key"}
        return cls(name, columns, definition.get("_primary_key"))

    def _ensure_mutable(self) -> None:
        if self._frozen:
            msg = f'Schema "{self.name}" is frozen'
            raise SchemaError(msg, entity_type=self.name, operation="schema")

    def add_column(
        self,
        name: str,
        attrs: Column | Mapping[str, t.Any] | str | None = None,
    ) -> "Schema":
        self._ensure_mutable()
        if isinstance(attrs, Column):
            column = attrs
        elif isinstance(attrs, str):
            column = Column(type=attrs)
        else:
            column = Column(**dict(attrs or {}))
        self._columns[name] = column
        return self

    def remove_column(self, name: str) -> "Schema":
        self._ensure_mutable()
        self._columns.pop(name, None)
        if self._primary_key and name in self._primary_key:
            self._primary_key = [key for key in self._primary_key if key != name]
        return self

    def set_primary_key(self, fields: Iterable[str] | str) -> "Schema":
        self._ensure_mutable()
        key = [fields] if isinstance(fields, str) else list(fields)
        missing = [field for field in key if field not in self._columns]
        if missing:
            msg = (
                f'Primary key field(s) {missing} are not columns of schema "{self.name}"'
            )
            raise SchemaError(msg, entity_type=self.name, operation="schema")
        self._primary_key = key
        return self

    def freeze(self) -> "Schema":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def column(self, name: str) -> Column | None:
        return self._columns.get(name)

    def has_column(self, name: str) -> bool:
        return name in self._columns

    def column_type(self, name: str) -> str | None:
        column = self._columns.get(name)
        return column.type if column else None

    def columns(self) -> list[str]:
        return list(self._columns)

    def describe(self) -> Mapping[str, Column]:
        return MappingProxyType(self._columns)

    def primary_key(self) -> list[str]:
        """Ordered primary key field names.

        Falls back to the columns flagged with ``primary_key`` when no
        explicit key was set.
        """
        if self._primary_key is not None:
            return list(self._primary_key)
        return [name for name, column in self._columns.items() if column.primary_key]

    def default_values(self) -> dict[str, t.Any]:
        return {
            name: column.default
            for name, column in self._columns.items()
            if column.default is not None
        }

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return (
            f"Schema(name={self.name!r}, columns={self.columns()!r}, "
            f"primary_key={self.primary_key()!r})"
        )

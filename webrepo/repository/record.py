"""Dirty-tracked record entity."""

from collections.abc import Iterable, Iterator, Mapping

import typing as t
from typing import Any

_MISSING = object()


class Record:
    """A mutable bag of field values representing one remote row.

    Tracks which fields changed since the record was last marked clean,
    whether it has been persisted, and validation errors per field. Field
    accessibility (``_accessible``) guards mass assignment: ``"*"`` sets the
    default, individual field names override it.
    """

    _accessible: t.ClassVar[dict[str, bool]] = {"*": True}

    def __init__(
        self,
        properties: Mapping[str, Any] | None = None,
        *,
        new: bool = True,
        clean: bool = False,
        guard: bool = False,
        source: str | None = None,
    ) -> None:
        self._fields: dict[str, Any] = {}
        self._dirty: set[str] = set()
        self._errors: dict[str, list[str]] = {}
        self._access: dict[str, bool] = dict(self._accessible)
        self._new = new
        self._source = source

        if properties:
            self.set(properties, guard=guard)
        if clean:
            self.clean()

    # Field access

    def get(self, field: str, default: Any = None) -> Any:
        return self._fields.get(field, default)

    def set(
        self,
        field: str | Mapping[str, Any],
        value: Any = _MISSING,
        *,
        guard: bool = False,
    ) -> "Record":
        """Set one field, or many when given a mapping.

        With ``guard=True`` fields that are not accessible are skipped.
        A field is only marked dirty when its value actually changes.
        """
        if isinstance(field, Mapping):
            values = dict(field)
        else:
            if value is _MISSING:
                msg = "Record.set() requires a value when a field name is given"
                raise TypeError(msg)
            values = {field: value}

        for name, new_value in values.items():
            if guard and not self.is_accessible(name):
                continue
            current = self._fields.get(name, _MISSING)
            self._fields[name] = new_value
            if current is _MISSING or current != new_value:
                self._dirty.add(name)
        return self

    def unset(self, *fields: str) -> "Record":
        for name in fields:
            self._fields.pop(name, None)
            self._dirty.discard(name)
        return self

    def has(self, fields: str | Iterable[str]) -> bool:
        """True when every given field is present and not None."""
        names = [fields] if isinstance(fields, str) else list(fields)
        return all(self._fields.get(name) is not None for name in names)

    def extract(self, fields: Iterable[str], only_dirty: bool = False) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name in fields:
            if only_dirty and name not in self._dirty:
                continue
            result[name] = self._fields.get(name)
        return result

    def to_dict(self) -> dict[str, Any]:
        return dict(self._fields)

    def visible_fields(self) -> list[str]:
        return list(self._fields)

    def __getitem__(self, field: str) -> Any:
        return self._fields[field]

    def __setitem__(self, field: str, value: Any) -> None:
        self.set(field, value)

    def __delitem__(self, field: str) -> None:
        if field not in self._fields:
            raise KeyError(field)
        self.unset(field)

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def keys(self) -> t.KeysView[str]:
        return self._fields.keys()

    def items(self) -> t.ItemsView[str, Any]:
        return self._fields.items()

    # Dirty tracking

    def is_dirty(self, field: str | None = None) -> bool:
        if field is None:
            return bool(self._dirty)
        return field in self._dirty

    def set_dirty(self, field: str, dirty: bool = True) -> "Record":
        if dirty:
            self._dirty.add(field)
        else:
            self._dirty.discard(field)
        return self

    @property
    def dirty_fields(self) -> list[str]:
        return [name for name in self._fields if name in self._dirty]

    def clean(self) -> "Record":
        self._dirty.clear()
        self._errors.clear()
        return self

    # Persistence state

    def is_new(self) -> bool:
        return self._new

    def set_new(self, new: bool) -> "Record":
        if new:
            self._dirty.update(self._fields)
        self._new = new
        return self

    @property
    def source(self) -> str | None:
        return self._source

    def set_source(self, alias: str) -> "Record":
        self._source = alias
        return self

    # Accessibility

    def set_access(self, field: str | Iterable[str], accessible: bool) -> "Record":
        names = [field] if isinstance(field, str) else list(field)
        for name in names:
            if name == "*":
                self._access = {"*": accessible}
            else:
                self._access[name] = accessible
        return self

    def is_accessible(self, field: str) -> bool:
        if field in self._access:
            return self._access[field]
        return self._access.get("*", False)

    # Errors

    def get_errors(self) -> dict[str, list[str]]:
        return {name: list(messages) for name, messages in self._errors.items()}

    def get_error(self, field: str) -> list[str]:
        return list(self._errors.get(field, []))

    def set_error(self, field: str, message: str | list[str]) -> "Record":
        messages = [message] if isinstance(message, str) else list(message)
        self._errors.setdefault(field, []).extend(messages)
        return self

    def set_errors(self, errors: Mapping[str, str | list[str]]) -> "Record":
        for field, message in errors.items():
            self.set_error(field, message)
        return self

    def has_errors(self) -> bool:
        return any(self._errors.values())

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self._fields!r}, new={self._new}, "
            f"dirty={self.dirty_fields!r}, source={self._source!r})"
        )

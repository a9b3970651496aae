"""Read results."""

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence

import typing as t
from typing import Any

from .record import Record

FieldMatcher = str | Callable[[Any], Any]


def _value(row: Any, matcher: FieldMatcher) -> Any:
    if callable(matcher):
        return matcher(row)
    if isinstance(row, Mapping | Record):
        return row.get(matcher)
    return getattr(row, matcher, None)


class ResultSet(Sequence[Any]):
    """Row sequence returned by a read.

    Rows are pulled from the transport iterable and hydrated on first access,
    then kept. ``total`` is the backend-reported number of matching rows,
    which may exceed ``len()`` when the read was paginated.
    """

    def __init__(
        self,
        rows: Iterable[Any] = (),
        total: int | None = None,
        hydrate: Callable[[Any], Any] | None = None,
    ) -> None:
        self._source: Iterable[Any] | None = rows
        self._hydrate = hydrate
        self._items: list[Any] = []
        self.total = total

    def _materialize(self) -> list[Any]:
        if self._source is not None:
            hydrate = self._hydrate
            self._items = [hydrate(row) if hydrate else row for row in self._source]
            self._source = None
            self._hydrate = None
        return self._items

    def materialize(self) -> "ResultSet":
        self._materialize()
        return self

    def __getstate__(self) -> dict[str, Any]:
        self._materialize()
        return self.__dict__.copy()

    @t.overload
    def __getitem__(self, index: int) -> Any: ...

    @t.overload
    def __getitem__(self, index: slice) -> list[Any]: ...

    def __getitem__(self, index: int | slice) -> Any:
        return self._materialize()[index]

    def __len__(self) -> int:
        return len(self._materialize())

    def __iter__(self) -> Iterator[Any]:
        return iter(self._materialize())

    def first(self) -> Any | None:
        items = self._materialize()
        return items[0] if items else None

    def count(self, value: Any = None) -> int:  # type: ignore[override]
        """Number of matching rows, preferring the backend total."""
        if value is not None:
            return self._materialize().count(value)
        if self.total is not None:
            return self.total
        return len(self._materialize())

    def to_list(self) -> list[Any]:
        return list(self._materialize())

    def extract(self, field: FieldMatcher) -> list[Any]:
        return [_value(row, field) for row in self._materialize()]

    def combine(
        self,
        key: FieldMatcher,
        value: FieldMatcher,
        group: FieldMatcher | None = None,
    ) -> dict[Any, Any]:
        """Reduce the rows into a ``key -> value`` mapping.

        When ``group`` is given the mapping is nested one level:
        ``group -> {key -> value}``.
        """
        combined: dict[Any, Any] = {}
        for row in self._materialize():
            row_key = _value(row, key)
            row_value = _value(row, value)
            if group is None:
                combined[row_key] = row_value
                continue
            combined.setdefault(_value(row, group), {})[row_key] = row_value
        return combined

    def __repr__(self) -> str:
        return f"ResultSet(rows={len(self)}, total={self.total})"

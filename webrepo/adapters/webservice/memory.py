"""In-memory webservice for webrepo endpoints.

This module provides a simple in-process implementation of the transport
adapter contract for testing and development purposes. Data is held in
Python dictionaries and lost when the process exits.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import typing as t

from webrepo.repository._base import SortDirection, TransportError
from webrepo.repository.descriptor import ReadResult, RequestDescriptor
from webrepo.repository.record import Record
from webrepo.repository.schema import Column, Schema

from ._base import WebserviceBase


class MemoryWebservice(WebserviceBase):
    """In-memory transport adapter.

    Every executed request is appended to ``requests`` so callers can
    inspect exactly what reached the transport.
    """

    def __init__(
        self,
        definitions: Mapping[str, Mapping[str, t.Any]] | None = None,
        *,
        echo_records: bool = False,
    ) -> None:
        """Initialize with optional collection definitions.

        Args:
            definitions: Collection name to column mapping, optionally with a
                ``_primary_key`` entry
            echo_records: Return hydrated records from create instead of True
        """
        self._definitions: dict[str, dict[str, t.Any]] = {}
        self._stores: dict[str, list[dict[str, t.Any]]] = {}
        self.echo_records = echo_records
        self.requests: list[RequestDescriptor] = []
        self.describe_calls: list[str] = []

        for name, definition in (definitions or {}).items():
            self.define(name, definition)

    def define(
        self,
        name: str,
        definition: Mapping[str, t.Any],
        rows: Iterable[Mapping[str, t.Any]] = (),
    ) -> MemoryWebservice:
        """Declare a collection and optionally seed it with rows."""
        # Validates the definition eagerly
        Schema.from_mapping(name, definition)
        self._definitions[name] = dict(definition)
        self._stores.setdefault(name, [])
        self.insert(name, rows)
        return self

    def insert(
        self,
        name: str,
        rows: Iterable[Mapping[str, t.Any]],
    ) -> MemoryWebservice:
        store = self._get_store(name)
        store.extend(dict(row) for row in rows)
        return self

    def rows(self, name: str) -> list[dict[str, t.Any]]:
        return [dict(row) for row in self._get_store(name)]

    def _get_store(self, name: str) -> list[dict[str, t.Any]]:
        if name not in self._stores:
            msg = f'Unknown endpoint "{name}"'
            raise TransportError(msg, entity_type=name, operation="execute")
        return self._stores[name]

    async def describe(self, endpoint: str) -> Schema:
        self.describe_calls.append(endpoint)
        if endpoint not in self._definitions:
            msg = f'Unknown endpoint "{endpoint}"'
            raise TransportError(msg, entity_type=endpoint, operation="describe")
        return Schema.from_mapping(endpoint, self._definitions[endpoint])

    async def execute(self, request: RequestDescriptor) -> t.Any:
        self.requests.append(request)
        return await super().execute(request)

    def _matching(self, request: RequestDescriptor) -> list[dict[str, t.Any]]:
        store = self._get_store(request.endpoint)
        if request.conditions is None:
            return list(store)
        return [row for row in store if request.conditions.matches(row)]

    async def _execute_read(self, request: RequestDescriptor) -> ReadResult:
        rows = self._matching(request)

        for criteria in reversed(request.order):
            rows.sort(
                key=lambda row, f=criteria.field: (row.get(f) is None, row.get(f)),
                reverse=criteria.direction == SortDirection.DESC,
            )

        total = len(rows)
        start = request.offset or 0
        end = start + request.limit if request.limit is not None else None
        rows = rows[start:end]

        if request.select:
            rows = [{field: row.get(field) for field in request.select} for row in rows]
        else:
            rows = [dict(row) for row in rows]

        return ReadResult(rows=rows, total=total)

    def _next_key(self, name: str) -> dict[str, t.Any]:
        schema = Schema.from_mapping(name, self._definitions[name])
        key = schema.primary_key()
        if len(key) != 1:
            return {}
        column = schema.column(key[0]) or Column()
        if column.type not in ("integer", "int"):
            return {}
        existing = [row.get(key[0]) or 0 for row in self._get_store(name)]
        return {key[0]: max(existing, default=0) + 1}

    async def _execute_create(self, request: RequestDescriptor) -> Record | bool:
        store = self._get_store(request.endpoint)
        row = dict(request.fields)
        for field, value in self._next_key(request.endpoint).items():
            if row.get(field) is None:
                row[field] = value
        store.append(row)

        if self.echo_records:
            return Record(row, new=False, clean=True, source=request.endpoint)
        return True

    async def _execute_update(self, request: RequestDescriptor) -> int:
        matched = self._matching(request)
        for row in matched:
            row.update(request.fields)
        return len(matched)

    async def _execute_delete(self, request: RequestDescriptor) -> int:
        store = self._get_store(request.endpoint)
        matched = self._matching(request)
        ids = {id(row) for row in matched}
        store[:] = [row for row in store if id(row) not in ids]
        return len(matched)

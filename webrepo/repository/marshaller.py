"""Conversion of raw data into records."""

from collections.abc import Iterable, Mapping

import typing as t
from typing import Any

from .record import Record

if t.TYPE_CHECKING:
    from .endpoint import Endpoint


class Marshaller:
    """Builds records from raw mappings and merges updates into them.

    Only fields declared by the endpoint schema are recognized; other keys
    are dropped. Mass assignment honours the record's accessible fields
    unless ``guard=False`` is passed.

    Options:
        guard: Respect field accessibility (default True)
        fields: Whitelist of fields that may be assigned
        accessible_fields: Per-call accessibility overrides
    """

    def __init__(self, endpoint: "Endpoint") -> None:
        self._endpoint = endpoint

    async def _prepare(
        self,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        prepared_data = dict(data)
        prepared_options = {"guard": True} | dict(options or {})
        await self._endpoint.dispatch_event(
            "Model.beforeMarshal",
            {"data": prepared_data, "options": prepared_options},
        )
        return prepared_data, prepared_options

    async def _recognized(
        self,
        data: Mapping[str, Any],
        options: Mapping[str, Any],
    ) -> dict[str, Any]:
        schema = await self._endpoint.get_schema()
        allowed = options.get("fields")
        return {
            field: value
            for field, value in data.items()
            if schema.has_column(field) and (allowed is None or field in allowed)
        }

    @staticmethod
    def _apply_access(record: Record, options: Mapping[str, Any]) -> None:
        for field, accessible in (options.get("accessible_fields") or {}).items():
            record.set_access(field, accessible)

    def hydrate(self, row: Mapping[str, Any] | Record) -> Record:
        """Wrap a transport row as a persisted, clean record."""
        if isinstance(row, Record):
            return row
        resource_class = self._endpoint.get_resource_class()
        return resource_class(
            row,
            new=False,
            clean=True,
            source=self._endpoint.get_registry_alias(),
        )

    async def one(
        self,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Record:
        """Build a new, unpersisted record from ``data``."""
        data, prepared = await self._prepare(data, options)
        record = self._endpoint.new_empty_entity()
        self._apply_access(record, prepared)
        record.set(await self._recognized(data, prepared), guard=prepared["guard"])
        return record

    async def many(
        self,
        data: Iterable[Mapping[str, Any]],
        options: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        return [await self.one(item, options) for item in data]

    async def merge(
        self,
        record: Record,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Record:
        """Apply recognized fields of ``data`` onto ``record``.

        Changed fields become dirty; unchanged values leave the record clean.
        """
        data, prepared = await self._prepare(data, options)
        self._apply_access(record, prepared)
        record.set(await self._recognized(data, prepared), guard=prepared["guard"])
        return record

    async def merge_many(
        self,
        records: Iterable[Record],
        data: Iterable[Mapping[str, Any]],
        options: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        """Merge data items into the records sharing their primary key.

        Records without a matching item are returned unchanged and items
        without a matching record are ignored. Input order does not matter;
        records keep their original order.
        """
        key = await self._endpoint.primary_key_fields()
        records = list(records)
        if not key:
            return records

        indexed: dict[tuple[Any, ...], Mapping[str, Any]] = {}
        for item in data:
            values = tuple(item.get(field) for field in key)
            if all(value is not None for value in values):
                indexed[values] = item

        for record in records:
            values = tuple(record.get(field) for field in key)
            item = indexed.get(values)
            if item is not None:
                await self.merge(record, item, options)

        return records

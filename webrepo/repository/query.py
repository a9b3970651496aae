"""Query Implementation.

Provides the lazy, fluent query used by endpoints:
- Operation kind, conditions, write fields, ordering and pagination
- Options bags normalized onto builder state
- A result-transform pipeline applied to read results
- Optional pass-through caching of read results

Building a query performs no I/O. The request is only sent by a terminal
call (``execute``, ``all``, ``first``, ``count`` or ``async for``) and the
outcome is kept, so repeated terminal calls reuse it until the query is
modified again.
"""

import asyncio
import hashlib
import json
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping

import typing as t
from typing import Any

from ._base import (
    Action,
    PaginationInfo,
    QueryError,
    RecordNotFound,
    SortCriteria,
    SortDirection,
)
from .cache import CacheDirective
from .descriptor import ReadResult, RequestDescriptor
from .record import Record
from .result import ResultSet
from .specifications import (
    AndSpecification,
    OrSpecification,
    Specification,
    parse_conditions,
    strip_alias,
)

if t.TYPE_CHECKING:
    from webrepo.adapters.webservice import WebserviceProtocol

    from .endpoint import Endpoint

logger = logging.getLogger(__name__)

Formatter = Callable[[Any], Any]


def affected_rows(result: Any) -> int:
    """Interpret a write result as a number of affected rows."""
    if result is None:
        return 0
    if isinstance(result, Record):
        return 1
    if isinstance(result, ResultSet):
        return result.count()
    if isinstance(result, bool | int):
        return int(result)
    return 1 if result else 0


def _first(result: Any) -> Any:
    if result is None:
        return None
    if isinstance(result, ResultSet):
        return result.first()
    if isinstance(result, Mapping):
        return next(iter(result.values()), None)
    return next(iter(result), None)


class Query:
    """Fluent, lazily executed query bound to an endpoint and its transport."""

    def __init__(self, webservice: "WebserviceProtocol", repository: "Endpoint") -> None:
        self._webservice = webservice
        self._repository = repository
        self._action: Action | None = None
        self._specifications: list[Specification] = []
        self._write_fields: dict[str, Any] = {}
        self._selected_fields: list[str] = []
        self._sort_criteria: dict[str, SortCriteria] = {}
        self._limit: int | None = None
        self._offset: int | None = None
        self._page: int | None = None
        self._formatters: list[Formatter] = []
        self._cache: CacheDirective | None = None
        self._options: dict[str, Any] = {}
        self._preset: Any = None
        self._listener_preset: Any = None
        self._before_find_fired = False
        self._executed = False
        self._result: Any = None
        self._result_set: ResultSet | None = None

    @property
    def repository(self) -> "Endpoint":
        return self._repository

    @property
    def webservice(self) -> "WebserviceProtocol":
        return self._webservice

    @property
    def is_executed(self) -> bool:
        return self._executed

    def _dirty(self) -> None:
        # beforeFind fires once per query; its rows only cover the shape it saw
        self._listener_preset = None
        self._executed = False
        self._result = None
        self._result_set = None

    # Operation kind

    @property
    def action(self) -> Action | None:
        return self._action

    def _set_action(self, action: Action) -> "Query":
        if self._action is not None and self._action is not action:
            msg = (
                f"Query is already a {self._action.value} query "
                f"and cannot become a {action.value} query"
            )
            raise QueryError(msg, entity_type=self._repository.get_name(), operation="query")
        self._action = action
        self._dirty()
        return self

    def read(self) -> "Query":
        return self._set_action(Action.READ)

    def create(self) -> "Query":
        return self._set_action(Action.CREATE)

    def update(self) -> "Query":
        return self._set_action(Action.UPDATE)

    def delete(self) -> "Query":
        return self._set_action(Action.DELETE)

    # Builder state

    def where(self, conditions: Any = None, overwrite: bool = False) -> "Query":
        """Add conditions, combined with AND with the existing ones.

        Adding a condition already present is a no-op, which keeps repeated
        ``apply_options`` calls idempotent.
        """
        if overwrite:
            self._specifications = []
        spec = parse_conditions(conditions, self._repository.get_alias())
        if spec is not None and spec not in self._specifications:
            self._specifications.append(spec)
        self._dirty()
        return self

    def and_where(self, conditions: Any) -> "Query":
        return self.where(conditions)

    def or_where(self, conditions: Any) -> "Query":
        spec = parse_conditions(conditions, self._repository.get_alias())
        if spec is None:
            return self
        current = self.conditions
        self._specifications = [spec if current is None else OrSpecification([current, spec])]
        self._dirty()
        return self

    @property
    def conditions(self) -> Specification | None:
        if not self._specifications:
            return None
        if len(self._specifications) == 1:
            return self._specifications[0]
        return AndSpecification(list(self._specifications))

    def select(self, fields: str | Iterable[str], overwrite: bool = False) -> "Query":
        if overwrite:
            self._selected_fields = []
        names = [fields] if isinstance(fields, str) else list(fields)
        alias = self._repository.get_alias()
        for name in names:
            name = strip_alias(name, alias)
            if name not in self._selected_fields:
                self._selected_fields.append(name)
        self._dirty()
        return self

    def set(self, fields: Mapping[str, Any]) -> "Query":
        """Set the fields written by a create or update query."""
        self._write_fields.update(fields)
        self._dirty()
        return self

    def order(self, order: Any, overwrite: bool = False) -> "Query":
        """Add ordering.

        Accepts ``"field"``, ``"field DESC"``, comma separated strings,
        ``{"field": "desc"}`` mappings, ``SortCriteria`` and lists of those.
        Ordering by a field again replaces its direction.
        """
        if overwrite:
            self._sort_criteria = {}
        for criteria in self._normalize_order(order):
            self._sort_criteria.pop(criteria.field, None)
            self._sort_criteria[criteria.field] = criteria
        self._dirty()
        return self

    def _normalize_order(self, order: Any) -> list[SortCriteria]:
        alias = self._repository.get_alias()
        if order is None:
            return []
        if isinstance(order, SortCriteria):
            return [SortCriteria(strip_alias(order.field, alias), order.direction)]
        if isinstance(order, str):
            criteria = []
            for part in filter(None, (piece.strip() for piece in order.split(","))):
                field, _, direction = part.partition(" ")
                criteria.append(
                    SortCriteria(
                        strip_alias(field, alias),
                        SortDirection(direction.strip().lower() or "asc"),
                    )
                )
            return criteria
        if isinstance(order, Mapping):
            return [
                SortCriteria(
                    strip_alias(field, alias),
                    direction
                    if isinstance(direction, SortDirection)
                    else SortDirection(str(direction).lower()),
                )
                for field, direction in order.items()
            ]
        if isinstance(order, Iterable):
            return [criteria for item in order for criteria in self._normalize_order(item)]

        msg = f"Unsupported order clause: {order!r}"
        raise TypeError(msg)

    def limit(self, limit: int | None) -> "Query":
        self._limit = limit
        self._dirty()
        return self

    def offset(self, offset: int | None) -> "Query":
        self._offset = offset
        self._dirty()
        return self

    def page(self, page: int, limit: int | None = None) -> "Query":
        """Select a 1-based page; the page size is the query limit."""
        if page < 1:
            msg = "Pages start at 1."
            raise QueryError(msg, entity_type=self._repository.get_name(), operation="query")
        if limit is not None:
            self._limit = limit
        self._page = page
        self._dirty()
        return self

    def cache(
        self,
        key: str | None,
        config: Any = True,
        ttl: int | None = None,
    ) -> "Query":
        """Route read results through a cache.

        Args:
            key: Cache key; derived from the request when None
            config: ``True``, a named cache, or a cache object; ``False``
                disables caching
            ttl: Optional TTL in seconds
        """
        if config is False:
            self._cache = None
            return self
        settings = self._repository.settings
        self._cache = CacheDirective(
            key=key or "",
            config=config,
            ttl=ttl if ttl is not None else settings.cache_ttl,
            namespace=settings.cache_namespace,
        )
        return self

    def format_results(
        self, formatter: Formatter | None = None, overwrite: bool = False
    ) -> "Query":
        """Append a transform to the read result pipeline."""
        if overwrite:
            self._formatters = []
        if formatter is not None:
            self._formatters.append(formatter)
        self._dirty()
        return self

    def set_result(self, result: Any) -> "Query":
        """Use ``result`` as the read result instead of calling the transport."""
        self._preset = result
        self._dirty()
        return self

    # Options

    def apply_options(self, options: Mapping[str, Any] | None) -> "Query":
        """Normalize an options bag onto the builder state.

        ``conditions``, ``fields``, ``order``, ``limit``, ``offset``, ``page``
        and ``cache`` (``{"key": ..., "config": ...}``) configure the query;
        other keys are kept for finders and returned by ``get_options()``.
        """
        if not options:
            return self
        options = dict(options)

        if "conditions" in options:
            self.where(options.pop("conditions"))
        if "fields" in options:
            self.select(options.pop("fields"))
        if "order" in options:
            self.order(options.pop("order"))
        if "limit" in options:
            self.limit(options.pop("limit"))
        if "offset" in options:
            self.offset(options.pop("offset"))
        if "page" in options:
            self.page(options.pop("page"))
        if "cache" in options:
            cache = options.pop("cache")
            if isinstance(cache, Mapping):
                self.cache(cache.get("key"), cache.get("config", True), cache.get("ttl"))
            else:
                self.cache(None, cache)

        self._options.update(options)
        return self

    def get_options(self) -> dict[str, Any]:
        return dict(self._options)

    def clause(self, name: str) -> Any:
        """Read back one part of the builder state."""
        clauses: dict[str, Any] = {
            "action": self._action,
            "conditions": self.conditions,
            "fields": list(self._selected_fields),
            "set": dict(self._write_fields),
            "order": list(self._sort_criteria.values()),
            "limit": self._limit,
            "offset": self._offset,
            "page": self._page,
            "formatters": list(self._formatters),
            "cache": self._cache,
        }
        if name not in clauses:
            msg = f'Unknown query clause "{name}"'
            raise QueryError(msg, entity_type=self._repository.get_name(), operation="query")
        return clauses[name]

    def to_descriptor(self) -> RequestDescriptor:
        """Freeze the builder state into a request descriptor."""
        if self._action is None:
            msg = "Query has no operation kind; call read(), create(), update() or delete()"
            raise QueryError(msg, entity_type=self._repository.get_name(), operation="query")

        offset = self._offset
        if self._page is not None and self._limit is not None:
            offset = PaginationInfo(page=self._page, page_size=self._limit).offset

        return RequestDescriptor(
            action=self._action,
            endpoint=self._repository.get_name(),
            conditions=self.conditions,
            fields=dict(self._write_fields),
            select=tuple(self._selected_fields),
            order=tuple(self._sort_criteria.values()),
            limit=self._limit,
            offset=offset,
            page=self._page,
            options=dict(self._options),
        )

    def _default_cache_key(self, request: RequestDescriptor) -> str:
        encoded = json.dumps(request.to_dict(), sort_keys=True, default=str)
        digest = hashlib.sha256(encoded.encode()).hexdigest()
        return f"query:{request.endpoint}:{digest}"

    # Execution

    async def execute(self) -> Any:
        """Send the request once and return its (formatted) result.

        Read results are hydrated into a ``ResultSet`` and passed through the
        formatter pipeline in registration order. Create/update return the
        transport's record or affected-row indicator, delete its count.
        """
        if self._executed:
            return self._result

        if self._action is Action.READ:
            result = await self._execute_read()
        else:
            request = self.to_descriptor()
            logger.debug(f"Executing {request.action.value} on {request.endpoint}")
            result = await self._webservice.execute(request)

        self._result = result
        self._executed = True
        return result

    async def _execute_read(self) -> Any:
        if not self._before_find_fired:
            event = await self._repository.dispatch_event(
                "Model.beforeFind",
                {"query": self, "options": self.get_options(), "primary": True},
            )
            self._before_find_fired = True
            if event.result is not None and self._preset is None:
                self._listener_preset = event.result

        request = self.to_descriptor()
        result_set: ResultSet | None = None

        preset = self._preset if self._preset is not None else self._listener_preset
        if preset is not None:
            result_set = self._to_result_set(preset)
        elif self._cache is not None:
            if not self._cache.key:
                self._cache.key = self._default_cache_key(request)
            cached = await self._cache.fetch()
            if cached is not None:
                result_set = self._to_result_set(cached)

        if result_set is None:
            logger.debug(f"Executing {request.action.value} on {request.endpoint}")
            raw = await self._webservice.execute(request)
            result_set = self._to_result_set(raw)
            if self._cache is not None:
                await self._cache.store(result_set.materialize())

        self._result_set = result_set
        result: Any = result_set
        for formatter in self._formatters:
            result = formatter(result)
            if asyncio.iscoroutine(result):
                result = await result
        return result

    def _to_result_set(self, raw: Any) -> ResultSet:
        hydrate = self._repository.marshaller().hydrate
        if isinstance(raw, ResultSet):
            return raw
        if isinstance(raw, ReadResult):
            return ResultSet(raw.rows, raw.total, hydrate)
        if raw is None or raw is False:
            return ResultSet([], 0)
        return ResultSet(raw, None, hydrate)

    async def all(self) -> Any:
        """Execute a read and return the formatted result."""
        if self._action is not Action.READ:
            msg = "all() is only available on read queries"
            raise QueryError(msg, entity_type=self._repository.get_name(), operation="query")
        return await self.execute()

    async def to_list(self) -> list[Any]:
        result = await self.all()
        if isinstance(result, Mapping):
            return list(result.values())
        return list(result)

    async def first(self) -> Any:
        """First row of a read; limits the request to one row if unexecuted."""
        if not self._executed and self._limit is None:
            self.limit(1)
        return _first(await self.all())

    async def first_or_fail(self) -> Any:
        row = await self.first()
        if row is None:
            raise RecordNotFound(self._repository.get_name())
        return row

    async def count(self) -> int:
        """Matching rows of a read, or affected rows of a write."""
        result = await self.execute()
        if self._action is Action.READ and self._result_set is not None:
            return self._result_set.count()
        return affected_rows(result)

    async def __aiter__(self) -> AsyncIterator[Any]:
        for row in await self.all():
            yield row

    def __repr__(self) -> str:
        action = self._action.value if self._action else None
        return (
            f"Query(action={action!r}, endpoint={self._repository.get_name()!r}, "
            f"executed={self._executed})"
        )

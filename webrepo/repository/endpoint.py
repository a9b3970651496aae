"""Endpoint Implementation.

Provides the repository facade bound to one remote collection:
- Finder dispatch (``all``, ``list`` and registered strategies)
- Primary key lookups, find-or-create, bulk update and delete
- The save and delete lifecycle with rule checks and events
- Lazily resolved metadata (schema, primary key, display field)
- Dynamic finders such as ``find_all_by_name_and_status``
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from concurrent.futures import Future

import inflection
import typing as t
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any

from webrepo.config import INFLECTION_METHODS, RepositorySettings
from webrepo.depends import depends
from webrepo.events import Event, EventManager, Listener

from ._base import (
    InvalidPrimaryKey,
    MissingResourceClass,
    PersistenceFailed,
    RepositoryError,
    RuleMode,
    TransportError,
)
from .cache import primary_key_cache_key
from .connection import Connection
from .finders import Finder, FinderRegistry, parse_dynamic_finder
from .marshaller import Marshaller
from .query import Query, affected_rows
from .record import Record
from .rules import RulesChecker
from .schema import Schema

if t.TYPE_CHECKING:
    from webrepo.adapters.webservice import WebserviceProtocol

logger = logging.getLogger(__name__)

EVENT_MAP = {
    "Model.beforeMarshal": "before_marshal",
    "Model.beforeFind": "before_find",
    "Model.beforeSave": "before_save",
    "Model.afterSave": "after_save",
    "Model.afterSaveCommit": "after_save_commit",
    "Model.beforeDelete": "before_delete",
    "Model.afterDelete": "after_delete",
    "Model.afterDeleteCommit": "after_delete_commit",
    "Model.beforeRules": "before_rules",
    "Model.afterRules": "after_rules",
}


def inflect(value: str, method: str) -> str:
    """Apply one of the supported inflection methods to ``value``."""
    if method not in INFLECTION_METHODS:
        msg = f"Unknown inflection method: {method}"
        raise ValueError(msg)
    if method == "variable":
        return inflection.camelize(inflection.underscore(value), False)
    return getattr(inflection, method)(value)


class EndpointConfig(BaseModel):
    """Construction options of an endpoint.

    Keys are accepted in snake_case or camelCase (``primaryKey``).
    """

    model_config = ConfigDict(
        extra="forbid",
        arbitrary_types_allowed=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    alias: str | None = None
    connection: Connection | None = None
    name: str | None = None
    endpoint: str | None = None
    primary_key: str | list[str] | None = None
    display_field: str | list[str] | None = None
    inflect: str | None = None
    endpoint_schema: Schema | dict[str, Any] | None = Field(default=None, alias="schema")
    registry_alias: str | None = None
    resource_class: type[Record] | str | None = None
    event_manager: EventManager | None = None
    resource_classes: dict[str, type[Record]] = Field(default_factory=dict)
    finders: dict[str, t.Callable[..., Any]] = Field(default_factory=dict)
    rules: RulesChecker | None = None


class Endpoint:
    """Repository facade for one remote collection.

    Subclasses named ``<Name>Endpoint`` derive their name from the class
    name; otherwise pass ``name`` (or ``alias``). Lifecycle hooks are picked
    up by convention: define ``before_save(event)``, ``after_delete(event)``
    and so on to take part in the matching ``Model.*`` events.

    Example:
        ```python
        articles = ArticlesEndpoint(connection=Connection("api", webservice))
        article = await articles.get(1)
        titles = await (await articles.find("list")).all()
        ```
    """

    default_connection: t.ClassVar[str | None] = None

    def __init__(
        self,
        config: EndpointConfig | Mapping[str, Any] | None = None,
        *,
        settings: RepositorySettings | None = None,
        **options: Any,
    ) -> None:
        if isinstance(config, EndpointConfig):
            config = config.model_copy(update=options) if options else config
        else:
            config = EndpointConfig.model_validate({**(config or {}), **options})

        self.settings: RepositorySettings = settings or depends.get_sync(
            RepositorySettings
        )
        self._lock = threading.RLock()
        self._resolving: dict[str, Future[Any]] = {}

        self._inflection_method = config.inflect or self.settings.inflection_method
        self._name: str | None = None
        self._alias = config.alias
        self._registry_alias = config.registry_alias
        self._connection = config.connection
        self._webservice: WebserviceProtocol | None = None
        self._schema: Schema | None = None
        self._primary_key: str | list[str] | None = config.primary_key
        self._display_field: str | list[str] | None = config.display_field
        self._resource_classes = dict(config.resource_classes)
        self._resource_class: type[Record] | None = None
        self._event_manager = config.event_manager or EventManager()
        self._rules_checker: RulesChecker | None = config.rules
        self._rules_built = False
        self._finders = FinderRegistry({"all": self.find_all, "list": self.find_list})

        if config.name or config.endpoint:
            self.set_name(config.name or config.endpoint or "")
        if config.endpoint_schema is not None:
            self.set_schema(config.endpoint_schema)
        if config.resource_class is not None:
            self.set_resource_class(config.resource_class)
        for name, finder in config.finders.items():
            self.register_finder(name, finder)

        self.initialize(config)
        self._event_manager.register(self)

    def initialize(self, config: EndpointConfig) -> None:
        """Hook for subclasses, called at the end of the constructor."""

    @classmethod
    def default_connection_name(cls) -> str:
        """Connection used when the endpoint is created without one."""
        if cls.default_connection:
            return cls.default_connection
        return depends.get_sync(RepositorySettings).default_connection

    async def _resolve_once(self, name: str, resolve: Callable[[], Awaitable[Any]]) -> Any:
        """Run ``resolve`` once across threads and event loops.

        The first caller resolves; everyone else awaits its future from their
        own loop. A failed resolution is forgotten so a later call retries.
        """
        with self._lock:
            future = self._resolving.get(name)
            owner = future is None
            if owner:
                future = self._resolving[name] = Future()
        if not owner:
            return await asyncio.shield(asyncio.wrap_future(future))

        try:
            value = await resolve()
        except BaseException as exc:
            with self._lock:
                self._resolving.pop(name, None)
            future.set_exception(exc)
            raise
        future.set_result(value)
        return value

    # Identity

    def get_inflection_method(self) -> str:
        return self._inflection_method

    def set_inflection_method(self, method: str) -> "Endpoint":
        if method not in INFLECTION_METHODS:
            msg = f"Unknown inflection method: {method}"
            raise ValueError(msg)
        self._inflection_method = method
        return self

    def set_name(self, name: str) -> "Endpoint":
        with self._lock:
            self._name = inflect(name, self._inflection_method)
        return self

    def get_name(self) -> str:
        """Remote collection name, derived from the class name by default."""
        with self._lock:
            if self._name is None:
                derived = type(self).__name__.removesuffix("Endpoint")
                derived = derived or self._alias or self._registry_alias or ""
                if not derived:
                    msg = "Endpoint name cannot be derived; pass name= or alias="
                    raise RepositoryError(msg, operation="name")
                self._name = inflect(derived, self._inflection_method)
            return self._name

    def set_alias(self, alias: str) -> "Endpoint":
        with self._lock:
            self._alias = alias
        return self

    def get_alias(self) -> str:
        with self._lock:
            if self._alias is None:
                self._alias = self.get_name()
            return self._alias

    def alias_field(self, field: str) -> str:
        if "." in field:
            return field
        return f"{self.get_alias()}.{field}"

    def set_registry_alias(self, registry_alias: str) -> "Endpoint":
        with self._lock:
            self._registry_alias = registry_alias
        return self

    def get_registry_alias(self) -> str:
        with self._lock:
            if self._registry_alias is None:
                self._registry_alias = self.get_alias()
            return self._registry_alias

    # Connection and transport

    def set_connection(self, connection: Connection) -> "Endpoint":
        with self._lock:
            self._connection = connection
            self._webservice = None
        return self

    def get_connection(self) -> Connection:
        with self._lock:
            if self._connection is None:
                self._connection = Connection(self.default_connection_name())
            return self._connection

    def set_webservice(self, alias: str, webservice: "WebserviceProtocol") -> "Endpoint":
        with self._lock:
            connection = self.get_connection()
            connection.set_webservice(alias, webservice)
            self._webservice = connection.get_webservice(alias)
        return self

    def get_webservice(self) -> "WebserviceProtocol":
        with self._lock:
            if self._webservice is None:
                self._webservice = self.get_connection().get_webservice(self.get_name())
            return self._webservice

    # Schema and keys

    def set_schema(self, schema: Schema | Mapping[str, Any]) -> "Endpoint":
        if isinstance(schema, Mapping):
            schema = Schema.from_mapping(self.get_name(), schema)
        with self._lock:
            self._schema = schema.freeze()
        return self

    async def get_schema(self) -> Schema:
        """Describe the collection once, then serve the cached schema."""
        if self._schema is not None:
            return self._schema

        async def describe() -> Schema:
            if self._schema is None:
                schema = await self.get_webservice().describe(self.get_name())
                schema = self.initialize_schema(schema)
                logger.debug(f"Resolved schema for {self.get_name()}: {schema.columns()}")
                self._schema = schema.freeze()
            return self._schema

        return await self._resolve_once("schema", describe)

    def initialize_schema(self, schema: Schema) -> Schema:
        """Override to alter the described schema before it is cached.

        Runs once, right after the schema is fetched from the webservice.
        """
        return schema

    async def has_field(self, field: str) -> bool:
        return (await self.get_schema()).has_column(field)

    def set_primary_key(self, key: str | list[str]) -> "Endpoint":
        self._primary_key = key
        return self

    async def get_primary_key(self) -> str | list[str]:
        """Primary key field, or the list of fields for composite keys."""
        if self._primary_key is not None:
            return self._primary_key

        async def resolve() -> str | list[str]:
            if self._primary_key is None:
                key = (await self.get_schema()).primary_key()
                self._primary_key = key[0] if len(key) == 1 else key
            return self._primary_key

        return await self._resolve_once("primary_key", resolve)

    async def primary_key_fields(self) -> list[str]:
        key = await self.get_primary_key()
        return [key] if isinstance(key, str) else list(key)

    def set_display_field(self, field: str | list[str]) -> "Endpoint":
        self._display_field = field
        return self

    async def get_display_field(self) -> str | list[str]:
        """Field shown for a record in lists.

        Defaults to ``title``, then ``name``, then the first primary key field.
        """
        if self._display_field is not None:
            return self._display_field

        async def resolve() -> str | list[str]:
            if self._display_field is None:
                schema = await self.get_schema()
                if schema.has_column("title"):
                    self._display_field = "title"
                elif schema.has_column("name"):
                    self._display_field = "name"
                else:
                    primary = await self.primary_key_fields()
                    self._display_field = primary[0] if primary else None
            return self._display_field

        return await self._resolve_once("display_field", resolve)

    # Records

    def set_resource_class(self, resource_class: type[Record] | str) -> "Endpoint":
        if isinstance(resource_class, str):
            name = resource_class
            resource_class = self._resource_classes.get(name)
            if resource_class is None:
                raise MissingResourceClass(name)
        if not (isinstance(resource_class, type) and issubclass(resource_class, Record)):
            raise MissingResourceClass(getattr(resource_class, "__name__", str(resource_class)))
        with self._lock:
            self._resource_class = resource_class
        return self

    def get_resource_class(self) -> type[Record]:
        """Record type used to hydrate rows.

        An explicitly configured class wins, then an entry of
        ``resource_classes`` named after the singular registry alias, then
        ``Record``.
        """
        with self._lock:
            if self._resource_class is None:
                singular = inflection.singularize(self.get_registry_alias())
                candidate = self._resource_classes.get(singular) or self._resource_classes.get(
                    inflection.camelize(singular)
                )
                if isinstance(candidate, type) and issubclass(candidate, Record):
                    self._resource_class = candidate
                else:
                    self._resource_class = Record
            return self._resource_class

    def marshaller(self) -> Marshaller:
        return Marshaller(self)

    def new_empty_entity(self) -> Record:
        return self.get_resource_class()(source=self.get_registry_alias())

    async def new_entity(
        self,
        data: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Record:
        if data is None:
            return self.new_empty_entity()
        return await self.marshaller().one(data, options)

    async def new_entities(
        self,
        data: Iterable[Mapping[str, Any]],
        options: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        return await self.marshaller().many(data, options)

    async def patch_entity(
        self,
        record: Record,
        data: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> Record:
        return await self.marshaller().merge(record, data, options)

    async def patch_entities(
        self,
        records: Iterable[Record],
        data: Iterable[Mapping[str, Any]],
        options: Mapping[str, Any] | None = None,
    ) -> list[Record]:
        return await self.marshaller().merge_many(records, data, options)

    # Events

    @property
    def event_manager(self) -> EventManager:
        return self._event_manager

    def implemented_events(self) -> dict[str, Listener]:
        """Lifecycle handlers this endpoint defines, keyed by event name."""
        events: dict[str, Listener] = {}
        for event_name, method in EVENT_MAP.items():
            handler = getattr(self, method, None)
            if callable(handler):
                events[event_name] = handler
        return events

    async def dispatch_event(self, name: str, data: dict[str, Any] | None = None) -> Event:
        return await self._event_manager.dispatch(name, subject=self, data=data)

    # Rules

    def build_rules(self, rules: RulesChecker) -> RulesChecker:
        """Hook for subclasses to add rules to the endpoint's checker."""
        return rules

    def rules_checker(self) -> RulesChecker:
        with self._lock:
            if not self._rules_built:
                self._rules_checker = self.build_rules(self._rules_checker or RulesChecker())
                self._rules_built = True
            return t.cast(RulesChecker, self._rules_checker)

    async def check_rules(
        self,
        record: Record,
        mode: RuleMode | str = RuleMode.CREATE,
        options: Mapping[str, Any] | None = None,
    ) -> bool:
        """Run the rules for ``mode``; ``before_rules``/``after_rules`` may override."""
        mode = RuleMode(mode)
        options = dict(options or {})

        event = await self.dispatch_event(
            "Model.beforeRules", {"record": record, "options": options, "mode": mode}
        )
        if event.is_stopped():
            return bool(event.result)

        result = await self.rules_checker().check(record, mode, options)

        event = await self.dispatch_event(
            "Model.afterRules",
            {"record": record, "options": options, "result": result, "mode": mode},
        )
        if event.is_stopped():
            return bool(event.result)
        return result

    # Finders

    def query(self) -> Query:
        return Query(self.get_webservice(), self)

    def register_finder(self, name: str, finder: Finder) -> "Endpoint":
        self._finders.register(name, finder)
        return self

    def has_finder(self, finder_type: str) -> bool:
        return self._finders.has(finder_type)

    async def call_finder(
        self,
        finder_type: str,
        query: Query,
        options: Mapping[str, Any] | None = None,
    ) -> Query:
        """Apply ``options`` to ``query`` and run the named finder on it.

        Raises:
            UnknownFinder: No finder is registered under ``finder_type``
        """
        finder = self._finders.get(finder_type, self.get_name())
        query.apply_options(options)
        result = finder(query, query.get_options())
        if asyncio.iscoroutine(result):
            result = await result
        return t.cast(Query, result)

    async def find(
        self,
        finder_type: str = "all",
        options: Mapping[str, Any] | None = None,
    ) -> Query:
        """Build an unexecuted read query shaped by a finder.

        Args:
            finder_type: Registered finder name
            options: ``conditions``, ``fields``, ``order``, ``limit``,
                ``offset``, ``page``, ``cache`` plus finder specific keys

        Returns:
            The query; nothing is sent until a terminal call
        """
        return await self.call_finder(finder_type, self.query().read(), options)

    def find_all(self, query: Query, options: dict[str, Any]) -> Query:
        return query

    async def find_list(self, query: Query, options: dict[str, Any]) -> Query:
        """Format the results as a ``key -> value`` mapping.

        Options ``key_field`` (default: primary key), ``value_field``
        (default: display field) and ``group_field`` select the fields; a
        list of fields is joined with ``;`` per row.
        """
        options = {inflection.underscore(key): value for key, value in options.items()}
        if options.get("key_field") is None:
            options["key_field"] = await self.get_primary_key()
        if options.get("value_field") is None:
            options["value_field"] = await self.get_display_field()
        options.setdefault("group_field", None)

        matchers = self._set_field_matchers(options, ["key_field", "value_field", "group_field"])

        return query.format_results(
            lambda results: results.combine(
                matchers["key_field"],
                matchers["value_field"],
                matchers["group_field"],
            )
        )

    @staticmethod
    def _set_field_matchers(options: dict[str, Any], keys: list[str]) -> dict[str, Any]:
        """Turn multi-field entries into matchers joining the values with ``;``.

        Values containing ``;`` are not escaped, so distinct composites can
        collide.
        """
        options = dict(options)
        for key in keys:
            fields = options.get(key)
            if not isinstance(fields, list | tuple):
                continue
            if len(fields) == 1:
                options[key] = fields[0]
                continue

            def matcher(row: Any, fields: tuple[str, ...] = tuple(fields)) -> str:
                values = (row.get(field) for field in fields)
                return ";".join("" if value is None else str(value) for value in values)

            options[key] = matcher
        return options

    async def dynamic_finder(self, method: str, *args: Any) -> Query:
        """Run a finder named like ``find_by_name`` or ``findListByNameOrEmail``.

        Raises:
            MagicFinderAmbiguous: The name mixes ``_and_`` and ``_or_``
            MagicFinderArgumentMismatch: Fewer arguments than fields
        """
        finder = parse_dynamic_finder(method)
        conditions = finder.build_conditions(args, self.alias_field)
        return await self.find(finder.finder_type, {"conditions": conditions})

    # Lookups

    async def get(self, primary_key: Any, options: Mapping[str, Any] | None = None) -> Record:
        """Fetch a single record by primary key.

        Options:
            finder: Finder to run (default ``RepositorySettings.default_finder``)
            cache: Cache config (``True``, a cache name or a cache object)
            key: Cache key; derived from connection, endpoint and key values

        Raises:
            InvalidPrimaryKey: Value count does not match the key fields
            RecordNotFound: No row matches
        """
        key = await self.primary_key_fields()
        if primary_key is None:
            values: list[Any] = []
        elif isinstance(primary_key, list | tuple):
            values = list(primary_key)
        else:
            values = [primary_key]

        if len(key) != len(values):
            raise InvalidPrimaryKey(self.get_name(), values)

        options = dict(options or {})
        cache_config = options.pop("cache", False)
        cache_key = options.pop("key", None)
        finder = options.pop("finder", self.settings.default_finder)

        query = (await self.find(finder, options)).where(dict(zip(key, values, strict=True)))

        if cache_config:
            if not cache_key:
                cache_key = primary_key_cache_key(
                    self.get_connection().config_name(),
                    self.get_name(),
                    values,
                )
            query.cache(cache_key, cache_config)

        return await query.first_or_fail()

    async def find_or_create(
        self,
        search: Mapping[str, Any],
        initializer: t.Callable[[Record], Any] | None = None,
    ) -> Record:
        """Return the first record matching ``search`` or create one.

        A new record gets the ``search`` fields without access guards, then
        ``initializer(record)`` runs before it is saved.

        Raises:
            PersistenceFailed: The new record could not be saved
        """
        row = await (await self.find()).where(search).first()
        if row is not None:
            return row

        record = self.new_empty_entity()
        record.set(search, guard=False)
        if initializer is not None:
            result = initializer(record)
            if asyncio.iscoroutine(result):
                await result

        saved = await self.save(record)
        if saved is False:
            raise PersistenceFailed(record, ["find_or_create"])
        return saved

    async def exists(self, conditions: Any) -> bool:
        query = (await self.find()).where(conditions)
        return await query.count() > 0

    async def update_all(self, fields: Mapping[str, Any], conditions: Any) -> int:
        """Update every matching row; no events or rules are involved."""
        return await self.query().update().where(conditions).set(fields).count()

    async def delete_all(self, conditions: Any) -> int:
        """Delete every matching row; no events are involved."""
        return await self.query().delete().where(conditions).count()

    # Persistence

    async def save(
        self,
        record: Record,
        options: Mapping[str, Any] | None = None,
    ) -> Any:
        """Persist a record.

        Options:
            check_rules: Run the rule checker first (default True)
            check_existing: For new records carrying a full primary key,
                probe whether they already exist and update instead

        Returns:
            The saved record, a ``before_save`` listener's result, or False
        """
        options = {"check_rules": True, "check_existing": False} | {
            inflection.underscore(key): value for key, value in (options or {}).items()
        }

        if record.has_errors():
            logger.info(f"Not saving {self.get_name()} record with errors: {record.get_errors()}")
            return False

        if not record.is_new() and not record.is_dirty():
            return record

        primary = await self.primary_key_fields()

        if options["check_existing"] and primary and record.is_new() and record.has(primary):
            conditions = {
                self.alias_field(field): value
                for field, value in record.extract(primary).items()
            }
            record.set_new(not await self.exists(conditions))

        mode = RuleMode.CREATE if record.is_new() else RuleMode.UPDATE
        if options["check_rules"] and not await self.check_rules(record, mode, options):
            logger.info(f"Rules rejected {self.get_name()} record")
            return False

        event = await self.dispatch_event(
            "Model.beforeSave", {"record": record, "options": options}
        )
        if event.is_stopped():
            return event.result

        schema = await self.get_schema()
        data = record.extract(column for column in schema.columns() if column in record)

        if record.is_new():
            query = self.query().create()
        else:
            query = self.query().update().where(record.extract(primary))
        query.set(data)

        try:
            result = await query.execute()
        except TransportError as error:
            logger.warning(f"Saving {self.get_name()} record failed: {error}")
            return False

        if not isinstance(result, Record) and not result:
            return False

        if isinstance(result, Record):
            saved = result
        else:
            saved = type(record)(
                record.to_dict(),
                new=False,
                clean=True,
                source=record.source or self.get_registry_alias(),
            )

        await self.dispatch_event("Model.afterSave", {"record": saved, "options": options})
        await self.dispatch_event("Model.afterSaveCommit", {"record": saved, "options": options})
        return saved

    async def delete(self, record: Record, options: Mapping[str, Any] | None = None) -> bool:
        """Delete the row matching the record's primary key values."""
        options = dict(options or {})

        event = await self.dispatch_event(
            "Model.beforeDelete", {"record": record, "options": options}
        )
        if event.is_stopped():
            return bool(event.result)

        primary = await self.primary_key_fields()
        result = await self.query().delete().where(record.extract(primary)).execute()
        success = affected_rows(result) > 0

        if success:
            await self.dispatch_event("Model.afterDelete", {"record": record, "options": options})
            await self.dispatch_event(
                "Model.afterDeleteCommit", {"record": record, "options": options}
            )
        return success

    def __repr__(self) -> str:
        resource_class = self.get_resource_class()
        return (
            f"{type(self).__name__}("
            f"registry_alias={self.get_registry_alias()!r}, "
            f"alias={self.get_alias()!r}, "
            f"endpoint={self.get_name()!r}, "
            f"resource_class={resource_class.__name__}, "
            f"default_connection={self.default_connection_name()!r}, "
            f"connection={self.get_connection().config_name()!r}, "
            f"inflector={self._inflection_method!r})"
        )


__all__ = ["EVENT_MAP", "Endpoint", "EndpointConfig", "inflect"]

"""Configuration for pytest testing framework."""

from collections import Counter

import pytest
import typing as t

from webrepo.adapters.webservice import MemoryWebservice
from webrepo.config import RepositorySettings
from webrepo.events import Event
from webrepo.repository import Connection, Endpoint, Record
from webrepo.repository.endpoint import EVENT_MAP

ARTICLES = {
    "id": {"type": "integer", "primary_key": True},
    "title": "string",
    "status": "string",
    "author_id": "integer",
}

USERS = {
    "id": {"type": "integer", "primary_key": True},
    "name": "string",
    "email": "string",
}

TAGS = {
    "article_id": "integer",
    "tag": "string",
    "weight": "integer",
    "_primary_key": ["article_id", "tag"],
}

ARTICLE_ROWS = [
    {"id": 1, "title": "First", "status": "active", "author_id": 1},
    {"id": 2, "title": "Second", "status": "draft", "author_id": 1},
    {"id": 3, "title": "Third", "status": "active", "author_id": 2},
]


class Article(Record):
    """Record type used to hydrate articles."""


class ArticlesEndpoint(Endpoint):
    """Endpoint over the articles collection."""


class UsersEndpoint(Endpoint):
    """Endpoint over the users collection."""


class TagsEndpoint(Endpoint):
    """Endpoint over the tags collection with a composite key."""


class CountingListener:
    """Counts every lifecycle event it sees."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()
        self.events: list[Event] = []

    def _record(self, event: Event) -> None:
        self.counts[event.name] += 1
        self.events.append(event)

    def implemented_events(self) -> dict[str, t.Callable[[Event], t.Any]]:
        return {name: self._record for name in EVENT_MAP}

    def total(self, *names: str) -> int:
        return sum(self.counts[name] for name in names)


@pytest.fixture
def settings() -> RepositorySettings:
    return RepositorySettings()


@pytest.fixture
def webservice() -> MemoryWebservice:
    """In-memory webservice seeded with articles, users and tags."""
    service = MemoryWebservice()
    service.define("articles", ARTICLES, ARTICLE_ROWS)
    service.define(
        "users",
        USERS,
        [
            {"id": 1, "name": "alice", "email": "alice@example.com"},
            {"id": 2, "name": "bob", "email": "bob@example.com"},
        ],
    )
    service.define(
        "tags",
        TAGS,
        [
            {"article_id": 1, "tag": "python", "weight": 3},
            {"article_id": 1, "tag": "async", "weight": 1},
            {"article_id": 2, "tag": "python", "weight": 2},
        ],
    )
    return service


@pytest.fixture
def connection(webservice: MemoryWebservice) -> Connection:
    return Connection("test", webservice)


@pytest.fixture
def articles(connection: Connection, settings: RepositorySettings) -> ArticlesEndpoint:
    return ArticlesEndpoint(
        connection=connection,
        resource_classes={"Article": Article},
        settings=settings,
    )


@pytest.fixture
def users(connection: Connection, settings: RepositorySettings) -> UsersEndpoint:
    return UsersEndpoint(connection=connection, settings=settings)


@pytest.fixture
def tags(connection: Connection, settings: RepositorySettings) -> TagsEndpoint:
    return TagsEndpoint(connection=connection, settings=settings)


@pytest.fixture
def listener(articles: ArticlesEndpoint) -> CountingListener:
    counting = CountingListener()
    articles.event_manager.register(counting)
    return counting

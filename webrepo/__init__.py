"""webrepo: repository facade over pluggable webservices."""

from .config import RepositorySettings
from .depends import depends
from .events import Event, EventManager
from .repository import (
    Connection,
    Endpoint,
    EndpointRegistry,
    Query,
    Record,
    RecordNotFound,
    RepositoryError,
    Schema,
)
from .adapters.webservice import MemoryWebservice, WebserviceBase

__all__ = [
    "Connection",
    "Endpoint",
    "EndpointRegistry",
    "Event",
    "EventManager",
    "MemoryWebservice",
    "Query",
    "Record",
    "RecordNotFound",
    "RepositoryError",
    "RepositorySettings",
    "Schema",
    "WebserviceBase",
    "depends",
]

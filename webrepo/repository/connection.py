"""Named container of transport adapters."""

import threading

import typing as t

from ._base import MissingWebservice

if t.TYPE_CHECKING:
    from webrepo.adapters.webservice import WebserviceProtocol


class Connection:
    """A named set of webservices, one per endpoint name.

    A ``default`` webservice, when given, serves every endpoint without a
    dedicated one.
    """

    def __init__(
        self,
        name: str = "default",
        webservice: "WebserviceProtocol | None" = None,
        webservices: t.Mapping[str, "WebserviceProtocol"] | None = None,
    ) -> None:
        self._name = name
        self._default = webservice
        self._webservices: dict[str, WebserviceProtocol] = dict(webservices or {})
        self._lock = threading.RLock()

    def config_name(self) -> str:
        return self._name

    def set_webservice(self, name: str, webservice: "WebserviceProtocol") -> "Connection":
        with self._lock:
            self._webservices[name] = webservice
        return self

    def get_webservice(self, name: str) -> "WebserviceProtocol":
        with self._lock:
            webservice = self._webservices.get(name, self._default)
        if webservice is None:
            raise MissingWebservice(name, self._name)
        return webservice

    def __repr__(self) -> str:
        return f"Connection(name={self._name!r}, webservices={sorted(self._webservices)!r})"

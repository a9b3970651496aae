"""Transport adapter contract for webrepo endpoints.

A webservice receives a normalized request descriptor and performs the
actual remote call, so endpoints and queries stay independent of any wire
protocol. Adapters implement ``describe`` plus one handler per operation
kind; the base class routes ``execute`` to the right handler.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import typing as t

from webrepo.repository._base import Action

if t.TYPE_CHECKING:
    from webrepo.repository.descriptor import ReadResult, RequestDescriptor
    from webrepo.repository.record import Record
    from webrepo.repository.schema import Schema


@t.runtime_checkable
class WebserviceProtocol(t.Protocol):
    """Protocol defining the transport adapter interface."""

    async def describe(self, endpoint: str) -> Schema:
        """Describe the fields and primary key of a collection."""
        ...

    async def execute(self, request: RequestDescriptor) -> t.Any:
        """Execute a request descriptor against the backend."""
        ...


class WebserviceBase(ABC):
    """Abstract base class for transport adapters.

    Raw results per operation kind:

    - read: a ``ReadResult`` (or any iterable of rows)
    - create/update: a hydrated ``Record``, or a truthy/falsy indicator
      (``True``, affected row count)
    - delete: the affected row count
    """

    @abstractmethod
    async def describe(self, endpoint: str) -> Schema:
        """Describe the fields and primary key of a collection.

        Args:
            endpoint: Name of the remote collection

        Returns:
            Schema of the collection
        """
        ...

    async def execute(self, request: RequestDescriptor) -> t.Any:
        """Route a request descriptor to the handler for its operation kind.

        Args:
            request: The frozen request

        Returns:
            The raw backend result
        """
        match request.action:
            case Action.READ:
                return await self._execute_read(request)
            case Action.CREATE:
                return await self._execute_create(request)
            case Action.UPDATE:
                return await self._execute_update(request)
            case Action.DELETE:
                return await self._execute_delete(request)

        msg = f"Unsupported action: {request.action}"
        raise ValueError(msg)

    async def _execute_read(self, request: RequestDescriptor) -> ReadResult:
        msg = f"{self.__class__.__name__} does not implement read"
        raise NotImplementedError(msg)

    async def _execute_create(self, request: RequestDescriptor) -> Record | bool:
        msg = f"{self.__class__.__name__} does not implement create"
        raise NotImplementedError(msg)

    async def _execute_update(self, request: RequestDescriptor) -> Record | int:
        msg = f"{self.__class__.__name__} does not implement update"
        raise NotImplementedError(msg)

    async def _execute_delete(self, request: RequestDescriptor) -> int:
        msg = f"{self.__class__.__name__} does not implement delete"
        raise NotImplementedError(msg)

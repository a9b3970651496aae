"""Request descriptors exchanged with transport adapters."""

from collections.abc import Iterable

import typing as t
from dataclasses import dataclass, field

from ._base import Action, SortCriteria
from .specifications import Specification


@dataclass(frozen=True)
class RequestDescriptor:
    """Normalized, backend-agnostic description of one operation."""

    action: Action
    endpoint: str
    conditions: Specification | None = None
    fields: dict[str, t.Any] = field(default_factory=dict)
    select: tuple[str, ...] = ()
    order: tuple[SortCriteria, ...] = ()
    limit: int | None = None
    offset: int | None = None
    page: int | None = None
    options: dict[str, t.Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, t.Any]:
        return {
            "action": self.action.value,
            "endpoint": self.endpoint,
            "conditions": self.conditions.to_dict() if self.conditions else None,
            "fields": dict(self.fields),
            "select": list(self.select),
            "order": [criteria.to_dict() for criteria in self.order],
            "limit": self.limit,
            "offset": self.offset,
            "page": self.page,
            "options": dict(self.options),
        }


@dataclass
class ReadResult:
    """Raw rows of a read plus the backend's total match count."""

    rows: Iterable[t.Any]
    total: int | None = None

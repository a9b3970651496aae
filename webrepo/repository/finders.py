"""Finder registration and the dynamic finder grammar.

A finder is a named strategy ``finder(query, options) -> Query`` that shapes
a read query. Endpoints keep them in a ``FinderRegistry``.

Dynamic finder names follow ``find[<type>]_by_<fields>``, camelCase or
snake_case::

    find_by_name                  -> find("all", {"conditions": {"name": ...}})
    findAllByNameAndStatus        -> find("all", {"conditions": {...}})
    find_list_by_name_or_email    -> find("list", {"conditions": {"OR": {...}}})
"""

import re
from enum import Enum

import typing as t
from dataclasses import dataclass
from inflection import underscore

from ._base import (
    MagicFinderAmbiguous,
    MagicFinderArgumentMismatch,
    MagicFinderError,
    UnknownFinder,
)

if t.TYPE_CHECKING:
    from .query import Query

Finder = t.Callable[["Query", dict[str, t.Any]], "Query | t.Awaitable[Query]"]

_TYPED_FINDER = re.compile(r"^find_(\w+?)_by_(.+)$")
_PLAIN_FINDER = re.compile(r"^find_by_(.+)$")


class Combinator(Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class DynamicFinder:
    """Parsed form of a dynamic finder name."""

    finder_type: str
    fields: tuple[str, ...]
    combinator: Combinator = Combinator.AND

    def build_conditions(
        self,
        args: t.Sequence[t.Any],
        alias_field: t.Callable[[str], str] | None = None,
    ) -> dict[str, t.Any]:
        """Zip positional arguments onto the fields, left to right.

        Extra arguments are ignored.

        Raises:
            MagicFinderArgumentMismatch: Fewer arguments than fields
        """
        if len(args) < len(self.fields):
            raise MagicFinderArgumentMismatch(len(args), len(self.fields))

        conditions = {
            (alias_field(field) if alias_field else field): value
            for field, value in zip(self.fields, args, strict=False)
        }
        if self.combinator is Combinator.OR and len(self.fields) > 1:
            return {"OR": conditions}
        return conditions


def is_dynamic_finder(method: str) -> bool:
    method = underscore(method)
    return bool(_PLAIN_FINDER.match(method) or _TYPED_FINDER.match(method))


def parse_dynamic_finder(method: str) -> DynamicFinder:
    """Parse a dynamic finder name.

    Raises:
        MagicFinderError: The name does not follow the grammar
        MagicFinderAmbiguous: The name mixes ``_and_`` and ``_or_``
    """
    normalized = underscore(method)

    if match := _PLAIN_FINDER.match(normalized):
        finder_type, expression = "all", match.group(1)
    elif match := _TYPED_FINDER.match(normalized):
        finder_type, expression = match.group(1), match.group(2)
    else:
        msg = f'"{method}" is not a dynamic finder'
        raise MagicFinderError(msg)

    has_and = "_and_" in expression
    has_or = "_or_" in expression
    if has_and and has_or:
        raise MagicFinderAmbiguous(method)

    if has_or:
        return DynamicFinder(finder_type, tuple(expression.split("_or_")), Combinator.OR)
    return DynamicFinder(finder_type, tuple(expression.split("_and_")))


class FinderRegistry:
    """Finder strategies keyed by their underscored name."""

    def __init__(self, finders: t.Mapping[str, Finder] | None = None) -> None:
        self._finders: dict[str, Finder] = {}
        for name, finder in (finders or {}).items():
            self.register(name, finder)

    @staticmethod
    def normalize(name: str) -> str:
        return underscore(name)

    def register(self, name: str, finder: Finder) -> "FinderRegistry":
        self._finders[self.normalize(name)] = finder
        return self

    def has(self, name: str) -> bool:
        return self.normalize(name) in self._finders

    def get(self, name: str, entity_type: str | None = None) -> Finder:
        try:
            return self._finders[self.normalize(name)]
        except KeyError:
            raise UnknownFinder(name, entity_type) from None

    def names(self) -> list[str]:
        return list(self._finders)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __len__(self) -> int:
        return len(self._finders)

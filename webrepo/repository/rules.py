"""Rule checking for records about to be persisted."""

import asyncio

import typing as t
from dataclasses import dataclass

from ._base import RuleMode
from .record import Record

Rule = t.Callable[[Record, dict[str, t.Any]], bool | t.Awaitable[bool]]


@dataclass
class RuleSpec:
    rule: Rule
    name: str | None = None
    error_field: str | None = None
    message: str = "This value is invalid"


class RulesChecker:
    """Runs rule sets against records.

    ``add`` registers a rule for every mode; ``add_create``, ``add_update``
    and ``add_delete`` register it for one mode only. A failing rule with an
    ``error_field`` records its message on the record.
    """

    def __init__(self) -> None:
        self._rules: list[RuleSpec] = []
        self._by_mode: dict[RuleMode, list[RuleSpec]] = {mode: [] for mode in RuleMode}

    def add(self, rule: Rule, name: str | None = None, **options: t.Any) -> "RulesChecker":
        self._rules.append(RuleSpec(rule, name, **options))
        return self

    def add_create(
        self, rule: Rule, name: str | None = None, **options: t.Any
    ) -> "RulesChecker":
        self._by_mode[RuleMode.CREATE].append(RuleSpec(rule, name, **options))
        return self

    def add_update(
        self, rule: Rule, name: str | None = None, **options: t.Any
    ) -> "RulesChecker":
        self._by_mode[RuleMode.UPDATE].append(RuleSpec(rule, name, **options))
        return self

    def add_delete(
        self, rule: Rule, name: str | None = None, **options: t.Any
    ) -> "RulesChecker":
        self._by_mode[RuleMode.DELETE].append(RuleSpec(rule, name, **options))
        return self

    async def check(
        self,
        record: Record,
        mode: RuleMode,
        options: dict[str, t.Any] | None = None,
    ) -> bool:
        """Run the generic rules plus the rules of ``mode``; all must pass."""
        options = options or {}
        success = True
        for spec in [*self._rules, *self._by_mode[mode]]:
            result = spec.rule(record, options)
            if asyncio.iscoroutine(result):
                result = await result
            if result:
                continue
            success = False
            if spec.error_field:
                record.set_error(spec.error_field, spec.message)
        return success

    def __len__(self) -> int:
        return len(self._rules) + sum(len(rules) for rules in self._by_mode.values())

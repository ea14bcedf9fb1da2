from __future__ import annotations
from typing import Any, Callable, Iterable, NamedTuple, Optional


class Rule(NamedTuple):
    """A named predicate paired with the feedback it produces."""

    name: str
    predicate: Callable[[Any], bool]
    build: Callable[[Any], dict]


def first_match(rules: Iterable[Rule], ctx: Any) -> Optional[dict]:
    """Return the result of the first rule whose predicate holds."""
    for rule in rules:
        if rule.predicate(ctx):
            return rule.build(ctx)
    return None


def all_matches(rules: Iterable[Rule], ctx: Any) -> list[dict]:
    return [rule.build(ctx) for rule in rules if rule.predicate(ctx)]

"""Check descriptor."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from labctl.core.context import RunContext
    from labctl.core.result import CheckResult

CheckFunc = Callable[["RunContext"], Awaitable["CheckResult"]]


@dataclass(frozen=True)
class Check:
    """A named, tagged verification step.

    run() must translate expected failures into fail/warn results;
    anything it raises is turned into a failure by the chain engine.
    """

    id: str
    title: str
    run: CheckFunc = field(repr=False, compare=False)
    tags: frozenset[str] = frozenset()

    def matches(self, tags: Iterable[str]) -> bool:
        """True if this check carries any of the given tags."""
        return not self.tags.isdisjoint(tags)


def check(id: str, title: str, tags: Iterable[str] = ()):
    """Decorator turning ``async def f(ctx) -> CheckResult`` into a Check."""

    def decorator(func: CheckFunc) -> Check:
        return Check(id=id, title=title, run=func, tags=frozenset(tags))

    return decorator

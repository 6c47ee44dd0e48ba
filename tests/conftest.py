"""Shared fixtures and helpers for rules-engine tests."""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

import pytest

from dungeon_rules.content.registry import RulesRegistry

T = TypeVar("T")


class ScriptedRNG:
    """Deterministic stand-in for :class:`GameRNG`.

    ``random_float`` returns the scripted values in order, then *default*
    once they run out.  ``random_choice`` returns ``seq[i]`` for the next
    scripted index (0 when exhausted).  ``fork`` returns ``self`` so an
    engine built on it shares one script.
    """

    def __init__(
        self,
        floats: Iterable[float] = (),
        *,
        default: float = 0.99,
        choices: Iterable[int] = (),
    ) -> None:
        self._floats = list(floats)
        self._choices = list(choices)
        self.default = default
        self.float_calls = 0

    def random_float(self) -> float:
        self.float_calls += 1
        if self._floats:
            return self._floats.pop(0)
        return self.default

    def random_choice(self, seq: Sequence[T]) -> T:
        index = self._choices.pop(0) if self._choices else 0
        return seq[index]

    def random_int(self, low: int, high: int) -> int:
        return low

    def fork(self, name: str) -> ScriptedRNG:
        return self


@pytest.fixture(scope="session")
def registry() -> RulesRegistry:
    """Session-scoped registry with the shipped content tables."""
    return RulesRegistry.load_default()


@pytest.fixture
def never() -> ScriptedRNG:
    """An RNG whose every roll fails (no crits, no procs)."""
    return ScriptedRNG(default=0.99)


@pytest.fixture
def always() -> ScriptedRNG:
    """An RNG whose every roll succeeds."""
    return ScriptedRNG(default=0.0)

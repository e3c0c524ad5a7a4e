"""
Stagehand Task Guards

A guard decides whether a task's module is invoked on a host. Guards are a
small closed set of expression variants; ``parse_guard`` turns the textual
``when:`` form into one of them, and the executor only ever evaluates the
variant, so the surface grammar can change without touching execution.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Union


@dataclass(frozen=True)
class Literal:
    """A constant guard."""

    value: bool

    def evaluate(self, variables: Mapping[str, str]) -> bool:
        return self.value

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Eq:
    """True when ``var`` is defined and equal to ``value``."""

    var: str
    value: str

    def evaluate(self, variables: Mapping[str, str]) -> bool:
        if self.var not in variables:
            return False
        return str(variables[self.var]) == self.value

    def __str__(self) -> str:
        return f"{self.var} == {self.value}"


@dataclass(frozen=True)
class Ne:
    """True when ``var`` is undefined or differs from ``value``."""

    var: str
    value: str

    def evaluate(self, variables: Mapping[str, str]) -> bool:
        if self.var not in variables:
            return True
        return str(variables[self.var]) != self.value

    def __str__(self) -> str:
        return f"{self.var} != {self.value}"


Guard = Union[Literal, Eq, Ne]

_COMPARISON = re.compile(r'^\s*([A-Za-z_][\w.]*)\s*(==|!=)\s*(.*?)\s*$')


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_guard(text: str) -> Guard:
    """
    Parse a textual condition.

    Accepted forms are ``true``, ``false``, ``<var> == <value>`` and
    ``<var> != <value>`` (the value may be quoted). Anything else parses to
    ``Literal(False)`` so that an unreadable condition skips its task.
    """
    stripped = text.strip()
    lowered = stripped.lower()
    if lowered == "true":
        return Literal(True)
    if lowered == "false":
        return Literal(False)

    match = _COMPARISON.match(stripped)
    if not match:
        return Literal(False)

    var, operator, value = match.groups()
    if not value:
        return Literal(False)
    unquoted = _unquote(value)
    if unquoted == value and len(value.split()) > 1:
        # Compound expressions are not part of the grammar
        return Literal(False)
    value = unquoted
    if operator == "==":
        return Eq(var, value)
    return Ne(var, value)


def as_guard(condition: Optional[Union[str, bool, Guard]]) -> Optional[Guard]:
    """Normalize whatever a Task carries into a guard variant (or None)."""
    if condition is None:
        return None
    if isinstance(condition, bool):
        return Literal(condition)
    if isinstance(condition, str):
        return parse_guard(condition)
    return condition


def evaluate_guard(guard: Optional[Guard], variables: Mapping[str, str]) -> bool:
    """Evaluate a guard; a missing guard always passes."""
    if guard is None:
        return True
    return guard.evaluate(variables)

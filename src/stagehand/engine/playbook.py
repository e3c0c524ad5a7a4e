"""
Stagehand Playbook Model

Immutable Task, Handler, Play and Playbook values. Filtering a playbook
produces a new Playbook rather than changing the one it was called on.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple, Union

from stagehand.engine.conditions import Guard, as_guard


@dataclass(frozen=True)
class Task:
    """A single module invocation with its guard, registration and notify list."""

    name: str
    module: str
    args: Mapping[str, str] = field(default_factory=dict)
    when: Optional[Union[str, Guard]] = None
    register: Optional[str] = None
    notify: Tuple[str, ...] = ()
    loop: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'args', MappingProxyType(dict(self.args)))
        object.__setattr__(self, 'notify', tuple(self.notify))
        if self.loop is not None:
            object.__setattr__(self, 'loop', tuple(self.loop))

    @property
    def guard(self) -> Optional[Guard]:
        return as_guard(self.when)

    def __repr__(self) -> str:
        return f"Task(name={self.name!r}, module={self.module!r})"


@dataclass(frozen=True)
class Handler:
    """
    A task that runs at the end of a play, at most once per host, and only
    on hosts where a CHANGED task named it in its notify list.

    The per-host triggered flag is execution state and lives with the
    orchestrator, not on this value.
    """

    name: str
    task: Task

    @classmethod
    def from_task(cls, task: Task) -> 'Handler':
        return cls(task.name, task)


@dataclass(frozen=True)
class Play:
    """A host pattern bound to ordered tasks and handlers."""

    name: str
    hosts: str
    tasks: Tuple[Task, ...] = ()
    handlers: Tuple[Handler, ...] = ()
    vars: Mapping[str, str] = field(default_factory=dict)
    tags: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, 'tasks', tuple(self.tasks))
        object.__setattr__(self, 'handlers', tuple(self.handlers))
        object.__setattr__(self, 'vars', MappingProxyType(dict(self.vars)))
        object.__setattr__(self, 'tags', frozenset(self.tags))

    def handler_named(self, name: str) -> Optional[Handler]:
        for handler in self.handlers:
            if handler.name == name:
                return handler
        return None

    def __repr__(self) -> str:
        return f"Play(name={self.name!r}, hosts={self.hosts!r}, tasks={len(self.tasks)})"


@dataclass(frozen=True)
class Playbook:
    """Ordered plays, optionally remembering the file they came from."""

    plays: Tuple[Play, ...] = ()
    path: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'plays', tuple(self.plays))

    def filter_tags(
        self,
        tags: Iterable[str],
        skip_tags: Iterable[str] = (),
    ) -> 'Playbook':
        """
        Keep plays whose tags intersect ``tags`` and do not intersect
        ``skip_tags``. A play that does not match is dropped entirely.
        """
        wanted = set(tags)
        skipped = set(skip_tags)
        kept = [
            play for play in self.plays
            if play.tags & wanted and not play.tags & skipped
        ]
        return Playbook(tuple(kept), self.path)

    def skip_tags(self, skip_tags: Iterable[str]) -> 'Playbook':
        """Drop plays whose tags intersect ``skip_tags``."""
        skipped = set(skip_tags)
        return Playbook(tuple(p for p in self.plays if not p.tags & skipped), self.path)

    def __iter__(self) -> Iterator[Play]:
        return iter(self.plays)

    def __len__(self) -> int:
        return len(self.plays)

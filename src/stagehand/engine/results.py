"""
Stagehand Result Classes

Data structures for task, play, and playbook execution results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum
import json

from stagehand.engine.errors import PlayError


class TaskStatus(Enum):
    """Outcome of a task on one host."""
    UNCHANGED = "ok"
    CHANGED = "changed"
    FAILED = "failed"


@dataclass
class TaskResult:
    """
    Result of executing a single task on a single host.

    Modules return these; the executor produces them for skipped tasks and
    for failures it recovers from. ``skipped`` is only ever set together
    with ``TaskStatus.UNCHANGED``.
    """

    status: TaskStatus
    output: str = ""
    facts: Dict[str, str] = field(default_factory=dict)
    skipped: bool = False

    @classmethod
    def unchanged(cls, output: str = "", facts: Optional[Dict[str, str]] = None) -> 'TaskResult':
        return cls(TaskStatus.UNCHANGED, output, dict(facts or {}))

    @classmethod
    def changed_result(cls, output: str = "", facts: Optional[Dict[str, str]] = None) -> 'TaskResult':
        return cls(TaskStatus.CHANGED, output, dict(facts or {}))

    @classmethod
    def failure(cls, output: str) -> 'TaskResult':
        return cls(TaskStatus.FAILED, output)

    @classmethod
    def skip(cls) -> 'TaskResult':
        return cls(TaskStatus.UNCHANGED, "skipped", {}, skipped=True)

    @property
    def failed(self) -> bool:
        return self.status == TaskStatus.FAILED

    @property
    def changed(self) -> bool:
        return self.status == TaskStatus.CHANGED

    @property
    def ok(self) -> bool:
        """Check if the task succeeded (unchanged or changed)."""
        return self.status != TaskStatus.FAILED

    @property
    def label(self) -> str:
        """Upper-case status word used in per-task status lines."""
        if self.skipped:
            return "SKIPPED"
        if self.status == TaskStatus.UNCHANGED:
            return "OK"
        return self.status.value.upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        result: Dict[str, Any] = {
            "status": "skipped" if self.skipped else self.status.value,
            "changed": self.changed,
        }
        if self.output:
            result["output"] = self.output
        if self.facts:
            result["facts"] = dict(self.facts)
        return result


@dataclass
class HostStats:
    """Outcome counters, per host or aggregated over a play."""

    host: str = ""
    ok: int = 0
    changed: int = 0
    failed: int = 0
    skipped: int = 0
    # Reserved for transport-level errors; the engine itself never sets it.
    unreachable: int = 0

    def record(self, result: TaskResult) -> None:
        """Count a result into exactly one bucket."""
        if result.skipped:
            self.skipped += 1
        elif result.status == TaskStatus.FAILED:
            self.failed += 1
        elif result.status == TaskStatus.CHANGED:
            self.changed += 1
        else:
            self.ok += 1

    def merge(self, other: 'HostStats') -> None:
        """Merge another HostStats into this one."""
        self.ok += other.ok
        self.changed += other.changed
        self.failed += other.failed
        self.skipped += other.skipped
        self.unreachable += other.unreachable

    def to_dict(self) -> Dict[str, int]:
        return {
            "ok": self.ok,
            "changed": self.changed,
            "failed": self.failed,
            "skipped": self.skipped,
            "unreachable": self.unreachable,
        }

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.unreachable > 0


TaskEntry = Tuple[str, TaskResult]


@dataclass
class PlayResult:
    """Result of executing a single play."""

    play_name: str
    hosts: List[str] = field(default_factory=list)
    task_results: Dict[str, List[TaskEntry]] = field(default_factory=dict)
    handler_results: Dict[str, List[TaskEntry]] = field(default_factory=dict)
    host_stats: Dict[str, HostStats] = field(default_factory=dict)
    error: Optional[PlayError] = None
    cancelled: bool = False

    def _stats_for(self, host: str) -> HostStats:
        if host not in self.host_stats:
            self.host_stats[host] = HostStats(host)
        return self.host_stats[host]

    def add_task_result(self, host: str, task_name: str, result: TaskResult) -> None:
        self.task_results.setdefault(host, []).append((task_name, result))
        self._stats_for(host).record(result)

    def add_handler_result(self, host: str, handler_name: str, result: TaskResult) -> None:
        # Handler runs are counted like tasks, as in an Ansible recap.
        self.handler_results.setdefault(host, []).append((handler_name, result))
        self._stats_for(host).record(result)

    def results_for(self, host: str) -> List[TaskEntry]:
        return list(self.task_results.get(host, []))

    @property
    def stats(self) -> HostStats:
        """Aggregate counts over every host of the play."""
        total = HostStats()
        for host_stats in self.host_stats.values():
            total.merge(host_stats)
        return total

    @property
    def has_failures(self) -> bool:
        return self.stats.has_failures

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        data: Dict[str, Any] = {
            "play": self.play_name,
            "hosts": self.hosts,
            "tasks": {
                host: [{"task": name, **res.to_dict()} for name, res in entries]
                for host, entries in self.task_results.items()
            },
            "handlers": {
                host: [{"handler": name, **res.to_dict()} for name, res in entries]
                for host, entries in self.handler_results.items()
            },
            "stats": {h: s.to_dict() for h, s in self.host_stats.items()},
            "totals": self.stats.to_dict(),
        }
        if self.error is not None:
            data["error"] = str(self.error)
        if self.cancelled:
            data["cancelled"] = True
        return data


@dataclass
class PlaybookResult:
    """Result of executing an entire playbook."""

    playbook_path: str
    play_results: List[PlayResult] = field(default_factory=list)

    def add_play_result(self, result: PlayResult) -> None:
        self.play_results.append(result)

    def get_final_stats(self) -> Dict[str, HostStats]:
        """Get aggregated stats for all hosts across all plays."""
        final_stats: Dict[str, HostStats] = {}

        for play_result in self.play_results:
            for host, stats in play_result.host_stats.items():
                if host not in final_stats:
                    final_stats[host] = HostStats(host)
                final_stats[host].merge(stats)

        return final_stats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playbook": self.playbook_path,
            "plays": [p.to_dict() for p in self.play_results],
            "stats": {h: s.to_dict() for h, s in self.get_final_stats().items()},
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @property
    def success(self) -> bool:
        """True when no play contains a failed task."""
        return not any(p.has_failures for p in self.play_results)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 2

"""
Shared fixtures for engine unit tests.
"""

import threading
from typing import Dict, List, Mapping

import pytest

from stagehand.engine.inventory import Inventory
from stagehand.engine.registry import ModuleRegistry
from stagehand.engine.results import TaskResult


class RecordingModule:
    """Module handler that records its calls and returns a fixed result."""

    def __init__(self, result: TaskResult):
        self.result = result
        self.calls: List[Dict[str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, args: Mapping[str, str]) -> TaskResult:
        with self._lock:
            self.calls.append(dict(args))
        return TaskResult(self.result.status, self.result.output, dict(self.result.facts))

    @property
    def count(self) -> int:
        return len(self.calls)


@pytest.fixture
def registry() -> ModuleRegistry:
    """Registry with 'ok', 'change' and 'boom' modules."""
    reg = ModuleRegistry()
    reg.register("ok", RecordingModule(TaskResult.unchanged("fine")))
    reg.register("change", RecordingModule(TaskResult.changed_result("changed it")))
    reg.register("boom", RecordingModule(TaskResult.failure("it broke")))
    return reg


@pytest.fixture
def inventory() -> Inventory:
    """
    web: w1, w2 (env=prod)
    db: d1 (env=prod, role=db)
    w1 overrides env=staging
    """
    inv = Inventory()
    inv.add_group("web", {"env": "prod"})
    inv.add_group("db", {"env": "prod", "role": "db"})
    inv.add_host("w1", {"env": "staging"})
    inv.add_host("w2")
    inv.add_host("d1")
    inv.add_host_to_group("w1", "web")
    inv.add_host_to_group("w2", "web")
    inv.add_host_to_group("d1", "db")
    return inv


@pytest.fixture
def recording():
    """Factory for call-counting module handlers."""
    return RecordingModule

"""
Stagehand Task Executor

Runs one task against one host: resolves the host's variables, evaluates
the guard, renders arguments, dispatches to the module registry and turns
whatever happens into a TaskResult. Module lookup failures and exceptions
raised by module bodies never leave this module; inventory lookup errors do.
"""

import asyncio
import inspect
import logging
import threading
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from stagehand.engine.conditions import evaluate_guard
from stagehand.engine.errors import ModuleNotFound, TemplateError
from stagehand.engine.inventory import Inventory
from stagehand.engine.playbook import Task
from stagehand.engine.registry import ModuleHandler, ModuleRegistry
from stagehand.engine.results import TaskResult, TaskStatus
from stagehand.engine.templating import TemplateEngine

logger = logging.getLogger(__name__)


class RegisteredVars:
    """
    Facts captured through ``register:``.

    Keyed by register name with last-write-wins semantics. A per-host copy
    is kept as well so a host sees its own registration ahead of one made
    by another host under the same name. Safe for concurrent writers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_name: Dict[str, Dict[str, str]] = {}
        self._by_host: Dict[str, Dict[str, Dict[str, str]]] = {}

    def record(self, host: str, name: str, facts: Mapping[str, str]) -> None:
        with self._lock:
            self._by_name[name] = dict(facts)
            self._by_host.setdefault(host, {})[name] = dict(facts)

    def get(self, name: str, default: Optional[Dict[str, str]] = None) -> Optional[Dict[str, str]]:
        with self._lock:
            facts = self._by_name.get(name)
            return dict(facts) if facts is not None else default

    def for_host(self, host: str) -> Dict[str, Dict[str, str]]:
        """Every registered name as seen from ``host``."""
        with self._lock:
            view = {name: dict(facts) for name, facts in self._by_name.items()}
            for name, facts in self._by_host.get(host, {}).items():
                view[name] = dict(facts)
            return view

    def flattened(self, host: str) -> Dict[str, str]:
        """``name.fact`` keys, usable from guards."""
        return {
            f"{name}.{key}": value
            for name, facts in self.for_host(host).items()
            for key, value in facts.items()
        }

    def clear(self) -> None:
        with self._lock:
            self._by_name.clear()
            self._by_host.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._by_name


class TaskExecutor:
    """
    Executes tasks against hosts through a module registry.

    Synchronous module handlers run in a worker thread so a slow module
    only holds up its own host; coroutine handlers are awaited in place.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        registered: Optional[RegisteredVars] = None,
        templates: Optional[TemplateEngine] = None,
    ):
        self.registry = registry
        self.registered = registered if registered is not None else RegisteredVars()
        self.templates = templates or TemplateEngine()

    async def execute(
        self,
        task: Task,
        host: str,
        inventory: Inventory,
        play_vars: Optional[Mapping[str, str]] = None,
    ) -> TaskResult:
        """
        Execute a single task on a single host.

        Raises:
            HostNotFound: If ``host`` is not in ``inventory``
        """
        effective = inventory.get_effective_vars(host, play_vars)
        registered = self.registered.for_host(host)
        context: Dict[str, Any] = {**registered, 'inventory_hostname': host}
        resolved = self.templates.resolve_vars(effective, context)

        guard_scope = self.registered.flattened(host)
        guard_scope.update(effective)
        guard_scope.update({k: v for k, v in resolved.items() if isinstance(v, str)})
        if not evaluate_guard(task.guard, guard_scope):
            logger.debug("task %r skipped on %s (guard %s)", task.name, host, task.guard)
            return TaskResult.skip()

        render_scope: Dict[str, Any] = dict(registered)
        render_scope.update(resolved)
        render_scope['inventory_hostname'] = host

        if task.loop is not None:
            result = await self._execute_loop(task, host, render_scope)
        else:
            result = await self._dispatch(task, host, task.args, render_scope)

        if task.register and not result.failed:
            self.registered.record(host, task.register, result.facts)

        return result

    async def execute_on_hosts(
        self,
        task: Task,
        hosts: Sequence[str],
        inventory: Inventory,
        play_vars: Optional[Mapping[str, str]] = None,
        forks: Optional[int] = None,
    ) -> List[Tuple[str, TaskResult]]:
        """
        Execute a task on every host independently.

        Results come back in the order of ``hosts``. Unknown hosts are
        reported before anything runs.
        """
        for host in hosts:
            inventory.get_host(host)

        semaphore = asyncio.Semaphore(max(1, forks or len(hosts) or 1))

        async def run_on_host(host: str) -> TaskResult:
            async with semaphore:
                return await self.execute(task, host, inventory, play_vars)

        results = await asyncio.gather(*[run_on_host(h) for h in hosts])
        return list(zip(hosts, results))

    async def _execute_loop(
        self,
        task: Task,
        host: str,
        scope: Mapping[str, Any],
    ) -> TaskResult:
        """Run the module once per loop item and fold the results."""
        outputs: List[str] = []
        facts: Dict[str, str] = {}
        changed = False

        for item in task.loop or ():
            item_scope = {**scope, 'item': item}
            result = await self._dispatch(task, host, task.args, item_scope)
            if result.output:
                outputs.append(result.output)
            facts.update(result.facts)
            if result.failed:
                return TaskResult(TaskStatus.FAILED, "\n".join(outputs), facts)
            changed = changed or result.changed

        status = TaskStatus.CHANGED if changed else TaskStatus.UNCHANGED
        return TaskResult(status, "\n".join(outputs), facts)

    async def _dispatch(
        self,
        task: Task,
        host: str,
        args: Mapping[str, str],
        scope: Mapping[str, Any],
    ) -> TaskResult:
        try:
            handler = self.registry.get(task.module)
        except ModuleNotFound as e:
            logger.error("task %r on %s: %s", task.name, host, e)
            return TaskResult.failure(str(e))

        try:
            rendered = self.templates.render_args(args, scope)
        except TemplateError as e:
            return TaskResult.failure(str(e))

        logger.debug("dispatch %s on %s args=%r", task.module, host, rendered)
        try:
            result = await self._invoke(handler, rendered)
        except Exception as e:
            logger.error("module %s failed on %s: %s", task.module, host, e)
            return TaskResult.failure(str(e) or type(e).__name__)

        if not isinstance(result, TaskResult):
            return TaskResult.failure(
                f"Module '{task.module}' returned {type(result).__name__}, not a TaskResult"
            )
        if result.skipped:
            # Only a guard can skip a task.
            result = replace(result, skipped=False)
        return result

    @staticmethod
    async def _invoke(handler: ModuleHandler, args: Dict[str, str]) -> Any:
        if inspect.iscoroutinefunction(handler):
            return await handler(args)
        result = await asyncio.to_thread(handler, args)
        if inspect.isawaitable(result):
            result = await result
        return result

"""
Stagehand Orchestrator

Play and playbook execution. Each play's target hosts are processed
concurrently (bounded by ``forks``), one flow per host; inside a flow the
play's tasks run strictly in order, a FAILED task stops that host, CHANGED
tasks trigger the handlers they notify, and triggered handlers run once
at the end. Results are aggregated after every host flow has finished.
"""

import asyncio
import logging
import threading
from typing import Iterable, List, Optional, Set, Tuple

from stagehand.engine.errors import PlayError
from stagehand.engine.executor import RegisteredVars, TaskExecutor
from stagehand.engine.inventory import Inventory
from stagehand.engine.playbook import Play, Playbook
from stagehand.engine.registry import ModuleRegistry
from stagehand.engine.results import PlayResult, TaskEntry, TaskResult
from stagehand.engine.templating import TemplateEngine

logger = logging.getLogger(__name__)


def expand(pattern: str, inventory: Inventory) -> Set[str]:
    """
    Resolve a host pattern to host names.

    - ``all``: every host
    - a group name: that group's members
    - ``prefix*``: every host whose name starts with ``prefix``
    - anything else: that host, if it exists

    Matching is case-sensitive. The returned set is unordered.
    """
    if pattern == "all":
        return set(inventory.host_names)
    if inventory.has_group(pattern):
        return set(inventory.get_group(pattern).hosts)
    if pattern.endswith("*"):
        prefix = pattern[:-1]
        return {name for name in inventory.host_names if name.startswith(prefix)}
    if inventory.has_host(pattern):
        return {pattern}
    return set()


class ResultCallback:
    """Hooks for live progress reporting. All methods are no-ops here."""

    def on_play_start(self, play: Play, hosts: List[str]) -> None:
        pass

    def on_task_result(self, play: Play, host: str, name: str, result: TaskResult) -> None:
        pass

    def on_handler_result(self, play: Play, host: str, name: str, result: TaskResult) -> None:
        pass

    def on_play_error(self, play: Play, error: PlayError) -> None:
        pass

    def on_play_end(self, result: PlayResult) -> None:
        pass


class Orchestrator:
    """
    Runs plays and playbooks against an inventory.

    Args:
        registry: Modules available to tasks
        forks: Maximum number of host flows running at once
        stop_on_failure: Stop a host's remaining tasks (and its handlers)
            after its first FAILED result. On by default.
        registered: Store for ``register:`` facts; shared across plays
        callback: Receives progress events while plays run
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        forks: int = 5,
        stop_on_failure: bool = True,
        registered: Optional[RegisteredVars] = None,
        templates: Optional[TemplateEngine] = None,
        callback: Optional[ResultCallback] = None,
    ):
        self.forks = max(1, forks)
        self.stop_on_failure = stop_on_failure
        self.executor = TaskExecutor(registry, registered, templates)
        self.callback = callback or ResultCallback()
        self._cancel = threading.Event()

    @property
    def registered(self) -> RegisteredVars:
        return self.executor.registered

    # Cancellation

    def cancel(self) -> None:
        """
        Ask running plays to stop.

        Host flows finish the task they are on and run nothing further;
        plays not yet started are not run. Sticky until :meth:`reset`.
        """
        self._cancel.set()

    def reset(self) -> None:
        self._cancel.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # Plays

    async def execute_play(self, play: Play, inventory: Inventory) -> PlayResult:
        """
        Execute one play.

        Raises:
            PlayError: If the play's host pattern matches no hosts
        """
        hosts = sorted(expand(play.hosts, inventory))
        if not hosts:
            raise PlayError(play.name, f"host pattern {play.hosts!r} matched no hosts")

        logger.debug("play %r on %d host(s)", play.name, len(hosts))
        self.callback.on_play_start(play, hosts)

        semaphore = asyncio.Semaphore(self.forks)

        async def host_flow(host: str) -> Tuple[List[TaskEntry], List[TaskEntry]]:
            async with semaphore:
                return await self._run_host(play, host, inventory)

        outcomes = await asyncio.gather(*[host_flow(h) for h in hosts])

        result = PlayResult(play_name=play.name, hosts=hosts)
        for host, (task_entries, handler_entries) in zip(hosts, outcomes):
            for name, task_result in task_entries:
                result.add_task_result(host, name, task_result)
            for name, handler_result in handler_entries:
                result.add_handler_result(host, name, handler_result)
        result.cancelled = self.cancelled

        self.callback.on_play_end(result)
        return result

    async def _run_host(
        self,
        play: Play,
        host: str,
        inventory: Inventory,
    ) -> Tuple[List[TaskEntry], List[TaskEntry]]:
        task_entries: List[TaskEntry] = []
        handler_entries: List[TaskEntry] = []
        triggered: Set[str] = set()
        host_failed = False

        for task in play.tasks:
            if self.cancelled:
                logger.debug("cancelled before task %r on %s", task.name, host)
                break

            result = await self.executor.execute(task, host, inventory, play.vars)
            task_entries.append((task.name, result))
            self.callback.on_task_result(play, host, task.name, result)

            if result.changed:
                for name in task.notify:
                    if play.handler_named(name) is None:
                        logger.warning(
                            "task %r notifies unknown handler %r", task.name, name
                        )
                    else:
                        triggered.add(name)

            if result.failed and self.stop_on_failure:
                host_failed = True
                break

        if host_failed or not triggered:
            return task_entries, handler_entries

        fired: Set[str] = set()
        for handler in play.handlers:
            if handler.name not in triggered or handler.name in fired:
                continue
            if self.cancelled:
                break
            fired.add(handler.name)

            result = await self.executor.execute(handler.task, host, inventory, play.vars)
            handler_entries.append((handler.name, result))
            self.callback.on_handler_result(play, host, handler.name, result)

            if result.failed and self.stop_on_failure:
                break

        return task_entries, handler_entries

    # Playbooks

    async def execute(self, playbook: Playbook, inventory: Inventory) -> List[PlayResult]:
        """
        Execute every play in order.

        A PlayError aborts only the play it belongs to; it is logged and
        kept on that play's PlayResult.
        """
        results: List[PlayResult] = []
        for play in playbook:
            if self.cancelled:
                logger.warning("run cancelled; not starting play %r", play.name)
                break
            try:
                results.append(await self.execute_play(play, inventory))
            except PlayError as e:
                logger.warning("%s", e)
                self.callback.on_play_error(play, e)
                results.append(PlayResult(play_name=play.name, error=e))
        return results

    async def execute_with_tags(
        self,
        playbook: Playbook,
        inventory: Inventory,
        tags: Iterable[str],
        skip_tags: Iterable[str] = (),
    ) -> List[PlayResult]:
        """Execute only the plays whose tags intersect ``tags``."""
        return await self.execute(playbook.filter_tags(tags, skip_tags), inventory)

    async def execute_with_hosts(
        self,
        playbook: Playbook,
        inventory: Inventory,
        host_list: Iterable[str],
    ) -> List[PlayResult]:
        """Execute against a view of ``inventory`` holding only ``host_list``."""
        return await self.execute(playbook, inventory.restrict(host_list))

    def run(
        self,
        playbook: Playbook,
        inventory: Inventory,
        tags: Optional[Iterable[str]] = None,
        skip_tags: Optional[Iterable[str]] = None,
        hosts: Optional[Iterable[str]] = None,
    ) -> List[PlayResult]:
        """Synchronous entry point combining the optional filters."""
        if hosts is not None:
            inventory = inventory.restrict(hosts)
        if tags is not None:
            playbook = playbook.filter_tags(tags, skip_tags or ())
        elif skip_tags:
            playbook = playbook.skip_tags(skip_tags)
        return asyncio.run(self.execute(playbook, inventory))

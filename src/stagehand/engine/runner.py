"""
Stagehand Playbook Runner

High-level runner that coordinates configuration, inventory and playbook
loading, the orchestrator, and console output.
"""

import asyncio
import json
import signal
import sys
from typing import Any, Callable, Dict, List, Optional, Sequence

from stagehand.engine.config import EngineConfig
from stagehand.engine.errors import ExitCode, ParseError, PlayError, StagehandError
from stagehand.engine.inventory import Inventory
from stagehand.engine.loader import load_inventory, load_playbook
from stagehand.engine.orchestrator import Orchestrator, ResultCallback, expand
from stagehand.engine.playbook import Play, Playbook
from stagehand.engine.registry import ModuleRegistry
from stagehand.engine.results import HostStats, PlaybookResult, TaskResult
from stagehand.modules import default_registry

COLORS = {
    'OK': '\033[32m',       # Green
    'CHANGED': '\033[33m',  # Yellow
    'FAILED': '\033[31m',   # Red
    'SKIPPED': '\033[36m',  # Cyan
}
RESET = '\033[0m'


def status_line(host: str, name: str, result: TaskResult, color: bool = True) -> str:
    """``[host] <task name> ... STATUS``, with the module output on failure."""
    label = result.label
    if color:
        label = f"{COLORS.get(label, '')}{label}{RESET}"
    line = f"[{host}] {name} ... {label}"
    if result.failed and result.output:
        line += f" => {result.output}"
    return line


class ConsoleCallback(ResultCallback):
    """Prints progress as results arrive."""

    def __init__(self, verbosity: int = 0, stream: Any = None):
        self.verbosity = verbosity
        self.stream = stream or sys.stdout

    def _print(self, text: str) -> None:
        print(text, file=self.stream)

    def on_play_start(self, play: Play, hosts: List[str]) -> None:
        self._print(f"\nPLAY [{play.name}] " + "*" * 50)

    def on_task_result(self, play: Play, host: str, name: str, result: TaskResult) -> None:
        self._print(status_line(host, name, result))
        if self.verbosity > 0 and result.output and not result.failed:
            self._print(f"    {result.output}")

    def on_handler_result(self, play: Play, host: str, name: str, result: TaskResult) -> None:
        self._print(status_line(host, f"HANDLER {name}", result))

    def on_play_error(self, play: Play, error: PlayError) -> None:
        print(f"\033[33m[WARNING]: {error}\033[0m", file=sys.stderr)


class PlaybookRunner:
    """
    High-level playbook runner.

    Coordinates:
    - Inventory loading and --limit restriction
    - Playbook loading and tag filtering
    - Check mode (a substituted module registry)
    - Output formatting and exit codes
    """

    def __init__(
        self,
        inventory_source: str,
        playbook_paths: Sequence[str],
        config: Optional[EngineConfig] = None,
        limit: Optional[str] = None,
        tags: Optional[List[str]] = None,
        skip_tags: Optional[List[str]] = None,
        registry: Optional[ModuleRegistry] = None,
    ):
        self.inventory_source = inventory_source
        self.playbook_paths = list(playbook_paths)
        self.config = config or EngineConfig()
        self.limit = limit
        self.tags = tags
        self.skip_tags = skip_tags
        self.registry = registry or default_registry()

        if self.config.check_mode:
            self.registry = self.registry.check_mode()

        callback = None if self.config.json_output else ConsoleCallback(self.config.verbosity)
        self.orchestrator = Orchestrator(
            self.registry,
            forks=self.config.forks,
            stop_on_failure=self.config.stop_on_failure,
            callback=callback,
        )

    def run(self) -> int:
        """
        Run playbooks synchronously.

        Returns:
            Exit code (0=success, 2=task failures, 3=parse error, 130=interrupted)
        """
        previous = self._install_interrupt_handler()
        try:
            result = asyncio.run(self.run_async())

            if self.config.json_output:
                print(result.to_json())
            else:
                self._print_recap(result.get_final_stats())

            if self.orchestrator.cancelled:
                return ExitCode.KEYBOARD_INTERRUPT
            return result.exit_code
        except ParseError as e:
            return self._fail("parse_error", f"Parse error: {e}", ExitCode.PARSE_ERROR)
        except StagehandError as e:
            return self._fail("error", f"Error: {e}", ExitCode.GENERIC_ERROR)
        except KeyboardInterrupt:
            return self._fail("interrupted", "Interrupted", ExitCode.KEYBOARD_INTERRUPT)
        finally:
            if previous is not None:
                signal.signal(signal.SIGINT, previous)

    async def run_async(self) -> PlaybookResult:
        """Load everything and run each playbook in turn."""
        inventory = load_inventory(self.inventory_source)
        inventory.refresh()
        if self.limit:
            inventory = inventory.restrict(self.resolve_limit(inventory, self.limit))

        result = PlaybookResult(playbook_path=self.playbook_paths[0] if self.playbook_paths else "")
        for path in self.playbook_paths:
            playbook = self._filter(load_playbook(path))
            if not self.config.json_output:
                print(f"\nPLAYBOOK: {path}")
            for play_result in await self.orchestrator.execute(playbook, inventory):
                result.add_play_result(play_result)
            if self.orchestrator.cancelled:
                break
        return result

    @staticmethod
    def resolve_limit(inventory: Inventory, limit: str) -> List[str]:
        """Expand a comma-separated ``--limit`` into host names."""
        names: Dict[str, None] = {}
        for pattern in limit.split(','):
            pattern = pattern.strip()
            if pattern:
                for host in sorted(expand(pattern, inventory)) or [pattern]:
                    names[host] = None
        return list(names)

    def _filter(self, playbook: Playbook) -> Playbook:
        if self.tags:
            return playbook.filter_tags(self.tags, self.skip_tags or ())
        if self.skip_tags:
            return playbook.skip_tags(self.skip_tags)
        return playbook

    def _install_interrupt_handler(self) -> Optional[Callable[..., Any]]:
        """First Ctrl-C lets hosts finish their current task; a second aborts."""
        orchestrator = self.orchestrator

        def handler(signum: int, frame: Any) -> None:
            if orchestrator.cancelled:
                raise KeyboardInterrupt
            self._print_warning("Interrupted: letting running tasks finish")
            orchestrator.cancel()

        try:
            return signal.signal(signal.SIGINT, handler)
        except ValueError:
            # Not the main thread
            return None

    def _fail(self, error_type: str, message: str, exit_code: int) -> int:
        if self.config.json_output:
            print(json.dumps({
                "error": True,
                "error_type": error_type,
                "message": message,
                "exit_code": int(exit_code),
            }, indent=2))
        else:
            print(f"\033[31m{message}\033[0m", file=sys.stderr)
        return exit_code

    def _print_warning(self, msg: str) -> None:
        if not self.config.json_output:
            print(f"\033[33m[WARNING]: {msg}\033[0m", file=sys.stderr)

    def _print_recap(self, host_stats: Dict[str, HostStats]) -> None:
        print("\nPLAY RECAP " + "*" * 60)

        for host, stats in sorted(host_stats.items()):
            status_parts = [
                f"\033[32mok={stats.ok}\033[0m",
                f"\033[33mchanged={stats.changed}\033[0m",
                f"\033[31mfailed={stats.failed}\033[0m",
                f"\033[36mskipped={stats.skipped}\033[0m",
                f"unreachable={stats.unreachable}",
            ]
            print(f"{host:40} : " + "  ".join(status_parts))

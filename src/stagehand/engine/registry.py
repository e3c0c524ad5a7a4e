"""
Stagehand Module Registry

Maps module names to handlers. A handler takes the task's rendered argument
mapping and returns a TaskResult; it may be a plain function or a coroutine
function. Registries are ordinary objects handed to the executor, so two
runs in one process never share module state.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from stagehand.engine.errors import ModuleNotFound
from stagehand.engine.results import TaskResult

logger = logging.getLogger(__name__)

ModuleHandler = Callable[[Mapping[str, str]], Union[TaskResult, Awaitable[TaskResult]]]


class ModuleRegistry:
    """
    Name -> handler table.

    Each module may also register a ``check`` handler: the side-effect-free
    variant used when the registry is switched into check mode. Register
    everything before a run starts; the table is read concurrently during
    execution and is not meant to change under it.
    """

    def __init__(self) -> None:
        self._modules: Dict[str, ModuleHandler] = {}
        self._checks: Dict[str, ModuleHandler] = {}

    def register(
        self,
        name: str,
        handler: ModuleHandler,
        check: Optional[ModuleHandler] = None,
    ) -> None:
        """Register (or replace) a module handler."""
        if name in self._modules:
            logger.debug("replacing module %s", name)
        self._modules[name] = handler
        if check is not None:
            self._checks[name] = check
        else:
            self._checks.pop(name, None)

    register_module = register

    def module(
        self,
        name: str,
        check: Optional[ModuleHandler] = None,
    ) -> Callable[[ModuleHandler], ModuleHandler]:
        """Decorator form of :meth:`register`."""
        def decorator(handler: ModuleHandler) -> ModuleHandler:
            self.register(name, handler, check=check)
            return handler
        return decorator

    def get(self, name: str) -> ModuleHandler:
        """Look a handler up by exact name."""
        try:
            return self._modules[name]
        except KeyError:
            raise ModuleNotFound(name) from None

    def names(self) -> List[str]:
        return sorted(self._modules)

    def check_mode(self) -> 'ModuleRegistry':
        """
        Return a registry for dry runs.

        Modules with a registered check handler use it; all others report
        the change they would make without running.
        """
        dry = ModuleRegistry()
        for name in self._modules:
            check = self._checks.get(name) or _would_run(name)
            dry.register(name, check, check=check)
        return dry

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def __repr__(self) -> str:
        return f"ModuleRegistry({self.names()!r})"


def _would_run(name: str) -> ModuleHandler:
    def report(args: Mapping[str, Any]) -> TaskResult:
        return TaskResult.changed_result(f"would run {name}")
    return report

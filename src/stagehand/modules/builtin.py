"""
Stagehand built-in modules

Modules that only touch engine state: they never reach outside the control
node, so each one is its own check-mode variant.
"""

from typing import Mapping

from stagehand.engine.registry import ModuleRegistry
from stagehand.engine.results import TaskResult

# Argument keys set_fact does not treat as facts
SET_FACT_RESERVED = {'cacheable'}


def ping(args: Mapping[str, str]) -> TaskResult:
    """Return 'pong' (or custom data). Useful to check a host is targetable."""
    data = args.get("data", "pong")
    return TaskResult.unchanged(data, {"ping": data})


def debug(args: Mapping[str, str]) -> TaskResult:
    """Print a message."""
    msg = args.get("msg", "Hello world!")
    return TaskResult.unchanged(msg, {"msg": msg})


def set_fact(args: Mapping[str, str]) -> TaskResult:
    """
    Emit every non-reserved argument as a fact.

    Combine with ``register:`` to make the values visible to later tasks.
    """
    facts = {k: v for k, v in args.items() if k not in SET_FACT_RESERVED}
    return TaskResult.unchanged(f"Set {len(facts)} fact(s)", facts)


def fail(args: Mapping[str, str]) -> TaskResult:
    """Fail the task with a message."""
    return TaskResult.failure(args.get("msg", "Failed as requested from task"))


BUILTIN_MODULES = {
    "ping": ping,
    "debug": debug,
    "set_fact": set_fact,
    "fail": fail,
}


def register_builtins(registry: ModuleRegistry) -> ModuleRegistry:
    for name, handler in BUILTIN_MODULES.items():
        registry.register(name, handler, check=handler)
    return registry


def default_registry() -> ModuleRegistry:
    """A fresh registry holding the built-in modules."""
    return register_builtins(ModuleRegistry())

"""
Stagehand Engine Module

Inventory, task execution and play orchestration.
"""

from stagehand.engine.conditions import Eq, Guard, Literal, Ne, parse_guard
from stagehand.engine.config import EngineConfig, load_config
from stagehand.engine.executor import RegisteredVars, TaskExecutor
from stagehand.engine.inventory import Group, Host, Inventory
from stagehand.engine.orchestrator import Orchestrator, ResultCallback, expand
from stagehand.engine.playbook import Handler, Play, Playbook, Task
from stagehand.engine.registry import ModuleRegistry
from stagehand.engine.results import HostStats, PlaybookResult, PlayResult, TaskResult, TaskStatus
from stagehand.engine.errors import (
    StagehandError,
    NotFound,
    HostNotFound,
    GroupNotFound,
    ModuleNotFound,
    PlayError,
    ParseError,
)

__all__ = [
    'Eq',
    'Guard',
    'Literal',
    'Ne',
    'parse_guard',
    'EngineConfig',
    'load_config',
    'RegisteredVars',
    'TaskExecutor',
    'Group',
    'Host',
    'Inventory',
    'Orchestrator',
    'ResultCallback',
    'expand',
    'Handler',
    'Play',
    'Playbook',
    'Task',
    'ModuleRegistry',
    'HostStats',
    'PlaybookResult',
    'PlayResult',
    'TaskResult',
    'TaskStatus',
    'StagehandError',
    'NotFound',
    'HostNotFound',
    'GroupNotFound',
    'ModuleNotFound',
    'PlayError',
    'ParseError',
]

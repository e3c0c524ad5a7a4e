"""
Stagehand Modules

Built-in modules and the registry factory used by the command-line tools.
"""

from stagehand.modules.builtin import BUILTIN_MODULES, default_registry, register_builtins

__all__ = [
    'BUILTIN_MODULES',
    'default_registry',
    'register_builtins',
]

# Copyright (c) 2024 Stagehand Contributors
# MIT License

"""
Stagehand Error Classes.

All custom exceptions for clear error handling and exit codes.
Inventory lookups and structural play problems are raised to the caller;
module-level failures never are, the executor folds them into results.
"""

from __future__ import annotations

import enum


class ExitCode(enum.IntEnum):
    """Process exit codes for the command-line front ends."""

    SUCCESS = 0
    GENERIC_ERROR = 1
    HOST_FAILED = 2
    PARSE_ERROR = 3
    KEYBOARD_INTERRUPT = 130


class StagehandError(Exception):
    """Base exception for all Stagehand errors."""

    exit_code: int = ExitCode.GENERIC_ERROR

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message


class NotFound(StagehandError):
    """A named inventory entity does not exist."""

    kind = "Entity"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{self.kind} not found: {name}")


class HostNotFound(NotFound):
    """Lookup of an unknown host."""

    kind = "Host"


class GroupNotFound(NotFound):
    """Lookup of an unknown group."""

    kind = "Group"


class ModuleNotFound(StagehandError):
    """No module is registered under the requested name."""

    def __init__(self, module: str) -> None:
        self.module = module
        super().__init__(f"Module not found: {module}")


class PlayError(StagehandError):
    """A structural problem with a play, e.g. a pattern matching no hosts."""

    def __init__(self, play: str, message: str) -> None:
        self.play = play
        super().__init__(f"Play '{play}': {message}")


class ParseError(StagehandError):
    """Error loading a playbook, inventory or config document."""

    exit_code: int = ExitCode.PARSE_ERROR

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: str | None = None,
    ) -> None:
        self.file_path = file_path
        location = f" in {file_path}" if file_path else ""
        super().__init__(f"Parse error{location}: {message}", details)


class ConfigError(ParseError):
    """Invalid engine configuration file."""


class TemplateError(StagehandError):
    """Error rendering a Jinja2 template in task arguments."""

    def __init__(
        self,
        message: str,
        template: str | None = None,
    ) -> None:
        self.template = template

        details = None
        if template:
            truncated = template[:100] + "..." if len(template) > 100 else template
            details = f"Template: {truncated}"

        super().__init__(f"Template error: {message}", details)

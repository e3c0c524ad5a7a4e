# Copyright (c) 2024 Stagehand Contributors
# MIT License

"""
Stagehand: a small configuration-management control node.

Plays bind host patterns to ordered, idempotent tasks; the engine resolves
each play's hosts from an inventory, runs the tasks on every host through a
registry of modules, and fires notified handlers once per host.

Features:
    - Deterministic group/play/host variable precedence
    - Explicit module registries (no process-wide state)
    - Concurrent per-host execution with per-host failure isolation
    - Tag and host filtering, check mode via a substituted registry

This package exposes release metadata; the engine lives in
``stagehand.engine``.
"""

from __future__ import annotations

from stagehand.release import __version__, __author__, __codename__

__all__ = [
    "__version__",
    "__author__",
    "__codename__",
]

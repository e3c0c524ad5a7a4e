"""
Stagehand Configuration

Engine settings, loadable from a YAML file and overridable from the CLI.
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from stagehand.engine.errors import ConfigError


@dataclass
class EngineConfig:
    """
    Settings for a run.

    Attributes:
        forks: Maximum number of hosts processed concurrently
        stop_on_failure: Stop a host's remaining tasks after a FAILED one
        check_mode: Dry run; modules report changes without making them
        json_output: Print a JSON document instead of progress lines
        verbosity: 0 quiet, 1 info logging, 2+ debug logging
    """

    forks: int = 5
    stop_on_failure: bool = True
    check_mode: bool = False
    json_output: bool = False
    verbosity: int = 0

    def merged(self, **overrides: Any) -> 'EngineConfig':
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


_FIELD_TYPES = {f.name: f.type for f in fields(EngineConfig)}


def _coerce(key: str, value: Any, path: str) -> Any:
    expected = _FIELD_TYPES[key]
    if expected in (bool, 'bool'):
        if not isinstance(value, bool):
            raise ConfigError(f"'{key}' must be a boolean, got {value!r}", file_path=path)
        return value
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}", file_path=path)
    if key == 'forks' and value < 1:
        raise ConfigError("'forks' must be at least 1", file_path=path)
    return value


def load_config(path: Optional[Union[str, Path]]) -> EngineConfig:
    """
    Load an EngineConfig from a YAML mapping.

    A missing path (or None) yields the defaults. Unknown keys and values of
    the wrong type raise ConfigError.
    """
    if path is None:
        return EngineConfig()
    config_path = Path(path)
    if not config_path.exists():
        return EngineConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML syntax error: {e}", file_path=str(config_path)) from e

    if data is None:
        return EngineConfig()
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping", file_path=str(config_path))

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in _FIELD_TYPES:
            raise ConfigError(f"unknown setting '{key}'", file_path=str(config_path))
        values[key] = _coerce(key, value, str(config_path))
    return EngineConfig(**values)

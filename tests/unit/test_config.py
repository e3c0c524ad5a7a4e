"""
Tests for engine configuration loading.
"""

import pytest

from stagehand.engine.config import EngineConfig, load_config
from stagehand.engine.errors import ConfigError, ParseError


def test_defaults():
    config = EngineConfig()
    assert config.forks == 5
    assert config.stop_on_failure is True
    assert config.check_mode is False


def test_none_and_missing_give_defaults(tmp_path):
    assert load_config(None) == EngineConfig()
    assert load_config(tmp_path / "absent.yml") == EngineConfig()


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "stagehand.yml"
    path.write_text("")
    assert load_config(path) == EngineConfig()


def test_load_values(tmp_path):
    path = tmp_path / "stagehand.yml"
    path.write_text("forks: 10\nstop_on_failure: false\n")
    config = load_config(path)
    assert config.forks == 10
    assert config.stop_on_failure is False


@pytest.mark.parametrize("content", [
    "unknown: 1\n",
    "forks: many\n",
    "forks: 0\n",
    "forks: true\n",
    "check_mode: 1\n",
    "- just\n- a list\n",
    "forks: [\n",
])
def test_invalid_config(tmp_path, content):
    path = tmp_path / "stagehand.yml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


def test_config_error_is_parse_error():
    assert issubclass(ConfigError, ParseError)


def test_merged_ignores_none():
    config = EngineConfig(forks=3).merged(forks=None, check_mode=True)
    assert config.forks == 3
    assert config.check_mode is True

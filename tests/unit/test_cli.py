"""Unit tests for CLI modules."""

import json
import stat
import sys
import textwrap

import pytest

from stagehand import __version__
from stagehand.cli import inventory, main, playbook
from stagehand.engine.errors import ExitCode


@pytest.fixture
def inventory_file(tmp_path):
    path = tmp_path / "hosts.yml"
    path.write_text(textwrap.dedent("""
        web:
          vars:
            env: prod
          hosts:
            w1:
              env: staging
            w2:
        db:
          hosts: [d1]
    """))
    return str(path)


@pytest.fixture
def playbook_file(tmp_path):
    path = tmp_path / "site.yml"
    path.write_text(textwrap.dedent("""
        - name: Web
          hosts: web
          tags: [web]
          tasks:
            - name: greet
              debug: msg="hi {{ inventory_hostname }}"
            - name: prod only
              set_fact: deployed=yes
              when: env == prod
        - name: Db
          hosts: db
          tags: [db]
          tasks:
            - name: explode
              fail: msg=broken
    """))
    return str(path)


class TestMainCLI:
    """Tests for the ad-hoc CLI."""

    def test_create_parser(self):
        parser = main.create_parser()
        assert parser.prog == "stagehand"

    def test_version_string(self):
        assert __version__ in main.get_version_string()

    def test_main_no_args_shows_help(self, capsys):
        assert main.main([]) == 0

    def test_requires_inventory(self, capsys):
        assert main.main(["all"]) == ExitCode.PARSE_ERROR

    def test_ping_all(self, capsys, inventory_file):
        assert main.main(["all", "-i", inventory_file]) == 0
        out = capsys.readouterr().out
        for host in ("d1", "w1", "w2"):
            assert f"[{host}] ping ... " in out

    def test_module_args(self, capsys, inventory_file):
        assert main.main(["web", "-i", inventory_file, "-m", "debug", "-a", 'msg="{{ env }}"']) == 0
        out = capsys.readouterr().out
        assert "staging" in out
        assert "prod" in out

    def test_failure_exit_code(self, capsys, inventory_file):
        assert main.main(["d1", "-i", inventory_file, "-m", "fail"]) == ExitCode.HOST_FAILED

    def test_unknown_inventory(self, capsys, tmp_path):
        assert main.main(["all", "-i", str(tmp_path / "none.yml")]) == ExitCode.PARSE_ERROR


class TestPlaybookCLI:
    """Tests for the playbook CLI."""

    def test_create_parser(self):
        parser = playbook.create_parser()
        assert parser.prog == "stagehand-playbook"

    def test_version_string(self):
        assert __version__ in playbook.get_version_string()

    def test_no_playbook_shows_help(self, capsys):
        assert playbook.main([]) == 0

    def test_failed_task_exit_code(self, capsys, inventory_file, playbook_file):
        assert playbook.main(["-i", inventory_file, playbook_file]) == ExitCode.HOST_FAILED
        out = capsys.readouterr().out
        assert "PLAY RECAP" in out

    def test_tags_select_plays(self, capsys, inventory_file, playbook_file):
        assert playbook.main(["-i", inventory_file, playbook_file, "-t", "web"]) == 0

    def test_json_output(self, capsys, inventory_file, playbook_file):
        code = playbook.main(["-i", inventory_file, playbook_file, "--json", "-t", "web"])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        tasks = data["plays"][0]["tasks"]
        assert [t["status"] for t in tasks["w1"]] == ["ok", "skipped"]
        assert [t["status"] for t in tasks["w2"]] == ["ok", "ok"]

    def test_limit(self, capsys, inventory_file, playbook_file):
        code = playbook.main(["-i", inventory_file, playbook_file, "--json", "-l", "w2"])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["plays"][0]["hosts"] == ["w2"]
        assert "error" in data["plays"][1]

    def test_bad_playbook(self, capsys, inventory_file, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("- tasks: []\n")
        assert playbook.main(["-i", inventory_file, str(path)]) == ExitCode.PARSE_ERROR

    def test_bad_config(self, capsys, inventory_file, playbook_file, tmp_path):
        config = tmp_path / "stagehand.yml"
        config.write_text("forks: 0\n")
        code = playbook.main(["-i", inventory_file, playbook_file, "--config", str(config)])
        assert code == ExitCode.PARSE_ERROR


class TestInventoryCLI:
    """Tests for the inventory CLI."""

    def test_create_parser(self):
        parser = inventory.create_parser()
        assert parser.prog == "stagehand-inventory"

    def test_list_returns_json(self, capsys, inventory_file):
        assert inventory.main(["-i", inventory_file, "--list"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["web"]["hosts"] == ["w1", "w2"]
        assert "_meta" in data

    def test_host_effective_vars(self, capsys, inventory_file):
        assert inventory.main(["-i", inventory_file, "--host", "w2"]) == 0
        assert json.loads(capsys.readouterr().out) == {"env": "prod"}

    def test_unknown_host(self, capsys, inventory_file):
        assert inventory.main(["-i", inventory_file, "--host", "ghost"]) == ExitCode.GENERIC_ERROR

    def test_graph(self, capsys, inventory_file):
        assert inventory.main(["-i", inventory_file, "--graph"]) == 0
        out = capsys.readouterr().out
        assert "|--@web:" in out
        assert "|  |--w1" in out


@pytest.fixture
def inventory_script(tmp_path):
    payload = {
        "web": {"hosts": ["w1", "w2"], "vars": {"env": "prod"}},
        "db": ["d1"],
        "_meta": {"hostvars": {"w1": {"env": "staging"}}},
    }
    path = tmp_path / "inventory.sh"
    path.write_text("#!/bin/sh\ncat <<'EOF'\n" + json.dumps(payload) + "\nEOF\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


@pytest.mark.skipif(sys.platform == "win32", reason="executable scripts need a POSIX shell")
class TestInventoryScriptCLI:
    """Executable inventory scripts passed with -i."""

    def test_list(self, capsys, inventory_script):
        assert inventory.main(["-i", inventory_script, "--list"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["web"] == {"hosts": ["w1", "w2"], "vars": {"env": "prod"}}
        assert data["db"]["hosts"] == ["d1"]
        assert data["_meta"]["hostvars"]["w1"] == {"env": "staging"}

    def test_host_gets_group_vars(self, capsys, inventory_script):
        assert inventory.main(["-i", inventory_script, "--host", "w2"]) == 0
        assert json.loads(capsys.readouterr().out) == {"env": "prod"}

    def test_ad_hoc_targets_script_group(self, capsys, inventory_script):
        assert main.main(["web", "-i", inventory_script, "-m", "debug", "-a", 'msg="{{ env }}"']) == 0
        out = capsys.readouterr().out
        assert "[w1] debug ... " in out
        assert "[w2] debug ... " in out
        assert "[d1]" not in out
        assert "staging" in out

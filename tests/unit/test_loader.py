"""
Tests for YAML playbook/inventory loading and script inventory sources.
"""

import json
import os
import stat
import sys
import textwrap

import pytest

from stagehand.engine.conditions import Eq, Literal
from stagehand.engine.errors import ParseError
from stagehand.engine.loader import (
    load_inventory,
    load_playbook,
    parse_inventory,
    parse_module_args,
    parse_playbook,
    script_source,
    to_str,
)


def write(tmp_path, name, content):
    path = tmp_path / name
    path.write_text(textwrap.dedent(content))
    return path


class TestPlaybook:
    """Playbook documents."""

    def test_load_full_play(self, tmp_path):
        path = write(tmp_path, "site.yml", """
            - name: Deploy
              hosts: web
              tags: [deploy]
              vars:
                port: 8080
                debug: true
              tasks:
                - name: Copy config
                  template: src=app.j2 dest=/etc/app.conf
                  notify: restart app
                  register: cfg
                  when: env == prod
                - name: Say hi
                  debug:
                    msg: hello
              handlers:
                - name: restart app
                  service:
                    name: app
                    state: restarted
        """)
        playbook = load_playbook(path)

        assert playbook.path == str(path)
        play = playbook.plays[0]
        assert play.name == "Deploy"
        assert play.hosts == "web"
        assert play.tags == frozenset({"deploy"})
        assert play.vars == {"port": "8080", "debug": "true"}

        copy, hello = play.tasks
        assert copy.module == "template"
        assert copy.args == {"src": "app.j2", "dest": "/etc/app.conf"}
        assert copy.notify == ("restart app",)
        assert copy.register == "cfg"
        assert copy.guard == Eq("env", "prod")
        assert hello.args == {"msg": "hello"}
        assert hello.guard is None

        handler = play.handler_named("restart app")
        assert handler.task.module == "service"
        assert handler.task.args == {"name": "app", "state": "restarted"}

    def test_play_vars_and_task_args_are_read_only(self):
        args = {"msg": "hello"}
        playbook = parse_playbook([{"hosts": "all", "vars": {"port": 80}, "tasks": [{"debug": args}]}])
        play = playbook.plays[0]
        task = play.tasks[0]
        with pytest.raises(TypeError):
            play.vars["port"] = "81"
        with pytest.raises(TypeError):
            task.args["msg"] = "changed"
        args["msg"] = "changed"
        assert task.args == {"msg": "hello"}

    def test_single_play_mapping(self):
        playbook = parse_playbook({"hosts": "all", "tasks": [{"ping": None}]})
        assert len(playbook) == 1
        assert playbook.plays[0].tasks[0].name == "ping task"

    def test_empty_document(self):
        assert len(parse_playbook(None)) == 0

    def test_boolean_when(self):
        playbook = parse_playbook([{"hosts": "all", "tasks": [{"ping": None, "when": False}]}])
        assert playbook.plays[0].tasks[0].guard == Literal(False)

    def test_single_item_when_list(self):
        playbook = parse_playbook([{"hosts": "all", "tasks": [{"ping": None, "when": ["a == b"]}]}])
        assert playbook.plays[0].tasks[0].guard == Eq("a", "b")

    def test_loop_list_and_reference(self):
        playbook = parse_playbook([{
            "hosts": "all",
            "vars": {"pkgs": ["git", "curl"]},
            "tasks": [
                {"debug": {"msg": "{{ item }}"}, "loop": [1, 2]},
                {"debug": {"msg": "{{ item }}"}, "with_items": "{{ pkgs }}"},
            ],
        }])
        first, second = playbook.plays[0].tasks
        assert first.loop == ("1", "2")
        assert second.loop == ("git", "curl")

    @pytest.mark.parametrize("play", [
        {"tasks": []},
        {"hosts": "all", "tasks": [{"name": "nothing"}]},
        {"hosts": "all", "tasks": [{"ping": None, "debug": None}]},
        {"hosts": "all", "tasks": [{"ping": None, "when": ["a == b", "c == d"]}]},
        {"hosts": "all", "tasks": [{"ping": None, "loop": "{{ nope }}"}]},
        {"hosts": "all", "vars": ["not", "a", "dict"]},
        {"hosts": ["a", "b"]},
    ])
    def test_invalid_plays(self, play):
        with pytest.raises(ParseError):
            parse_playbook([play])

    def test_missing_file(self, tmp_path):
        with pytest.raises(ParseError):
            load_playbook(tmp_path / "absent.yml")

    def test_yaml_syntax_error(self, tmp_path):
        path = write(tmp_path, "bad.yml", "- hosts: [\n")
        with pytest.raises(ParseError):
            load_playbook(path)


class TestModuleArgs:
    """Free-form argument strings."""

    def test_key_value_pairs(self):
        assert parse_module_args('msg="hello world" level=2') == {"msg": "hello world", "level": "2"}

    def test_raw_params(self):
        assert parse_module_args("uptime") == {"_raw_params": "uptime"}

    def test_to_str(self):
        assert to_str(True) == "true"
        assert to_str(None) == ""
        assert to_str([1, "a"]) == "1,a"
        assert to_str(3) == "3"


class TestInventory:
    """Inventory documents."""

    def test_groups_hosts_vars(self, tmp_path):
        path = write(tmp_path, "hosts.yml", """
            all:
              vars:
                ntp: pool.example
            web:
              vars:
                env: prod
              hosts:
                w1:
                  env: staging
                w2:
            db:
              hosts: [d1]
        """)
        inventory = load_inventory(path)

        assert inventory.host_names == ["d1", "w1", "w2"]
        assert inventory.get_group("all").hosts == ["d1", "w1", "w2"]
        assert inventory.get_effective_vars("w1") == {"ntp": "pool.example", "env": "staging"}
        assert inventory.get_effective_vars("w2") == {"ntp": "pool.example", "env": "prod"}
        assert inventory.groups_of("d1") == ["all", "db"]

    def test_children_join_ancestors(self):
        inventory = parse_inventory({
            "prod": {
                "vars": {"tier": "prod"},
                "children": {
                    "web": {"hosts": {"w1": None}},
                },
            },
        })
        assert inventory.groups_of("w1") == ["prod", "web"]
        assert inventory.get_effective_vars("w1") == {"tier": "prod"}

    def test_group_listed_twice_merges_vars(self):
        inventory = parse_inventory({
            "a": {"vars": {"x": "1"}, "children": {"b": {"vars": {"y": "2"}}}},
            "b": {"vars": {"z": "3"}, "hosts": ["h"]},
        })
        assert inventory.get_group("b").vars == {"y": "2", "z": "3"}

    def test_invalid_inventory(self):
        with pytest.raises(ParseError):
            parse_inventory(["not", "a", "mapping"])
        with pytest.raises(ParseError):
            parse_inventory({"web": {"hosts": "w1"}})


@pytest.mark.skipif(sys.platform == "win32", reason="executable scripts need a POSIX shell")
class TestScriptSource:
    """Executable inventory scripts as dynamic sources."""

    def make_script(self, tmp_path, payload):
        path = tmp_path / "inventory.sh"
        path.write_text("#!/bin/sh\ncat <<'EOF'\n" + json.dumps(payload) + "\nEOF\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return path

    def test_refresh_from_script(self, tmp_path, inventory):
        script = self.make_script(tmp_path, {
            "web": {"hosts": ["w1", "w3"]},
            "db": ["d2"],
            "_meta": {"hostvars": {"w1": {"env": "dyn", "port": 22}}},
        })
        inventory.add_dynamic_source(script_source(script))

        assert inventory.refresh() == 3
        assert inventory.get_host("w1").vars == {"env": "dyn", "port": "22"}
        assert inventory.get_host("w3").vars == {}
        assert inventory.has_host("d2")

    def test_failing_script(self, tmp_path):
        path = tmp_path / "fail.sh"
        path.write_text("#!/bin/sh\nexit 1\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        source = script_source(path)
        with pytest.raises(ParseError):
            list(source())

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "junk.sh"
        path.write_text("#!/bin/sh\necho not-json\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        with pytest.raises(ParseError):
            list(script_source(path)())

    def test_missing_script(self, tmp_path):
        with pytest.raises(ParseError):
            list(script_source(os.path.join(str(tmp_path), "absent"))())

    def test_load_inventory_detects_script(self, tmp_path):
        script = self.make_script(tmp_path, {
            "web": {"hosts": ["w1"], "vars": {"env": "prod"}},
            "db": ["d1"],
        })
        inventory = load_inventory(script)
        assert len(inventory) == 0

        assert inventory.refresh() == 2
        assert inventory.group_names == ["db", "web"]
        assert inventory.get_group("web").hosts == ["w1"]
        assert inventory.get_effective_vars("w1") == {"env": "prod"}

    def test_non_executable_file_is_parsed_as_yaml(self, tmp_path):
        path = tmp_path / "hosts"
        path.write_text("web:\n  hosts: [w1]\n")
        assert load_inventory(path).host_names == ["w1"]

"""
Stagehand Loader

Builds Playbook and Inventory values from YAML documents laid out the way
Ansible lays them out. The engine itself only ever sees the built values.
"""

import json
import os
import re
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from stagehand.engine.errors import ParseError
from stagehand.engine.inventory import DynamicSource, Inventory
from stagehand.engine.playbook import Handler, Play, Playbook, Task

# Task keys that are NOT module names
TASK_KEYWORDS = {
    'name', 'when', 'register', 'notify', 'loop', 'with_items', 'tags',
}

# key=value pairs in free-form module arguments
ARG_PATTERN = re.compile(r'(\w+)=(?:"([^"]*)"|\'([^\']*)\'|(\S+))')

INVENTORY_SUFFIXES = {'.yml', '.yaml', '.json'}

LOOP_REFERENCE = re.compile(r'^\s*\{\{\s*(\w+)\s*\}\}\s*$')


def to_str(value: Any) -> str:
    """Coerce a YAML scalar to the string form variables are stored in."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(to_str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _str_map(data: Any, what: str, source: Optional[str]) -> Dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(
            f"'{what}' must be a dictionary, got {type(data).__name__}",
            file_path=source,
        )
    return {str(k): to_str(v) for k, v in data.items()}


def _ensure_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _read_yaml(path: Union[str, Path]) -> Any:
    file_path = Path(path)
    if not file_path.exists():
        raise ParseError(f"File not found: {file_path}", file_path=str(file_path))
    try:
        return yaml.safe_load(file_path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ParseError(f"YAML syntax error: {e}", file_path=str(file_path)) from e


# Playbooks

def load_playbook(path: Union[str, Path]) -> Playbook:
    """Load a playbook file."""
    return parse_playbook(_read_yaml(path), source=str(path))


def parse_playbook(data: Any, source: Optional[str] = None) -> Playbook:
    """Build a Playbook from an already-decoded YAML document."""
    if data is None:
        return Playbook((), source)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ParseError("playbook must be a list of plays", file_path=source)

    plays = []
    for index, play_data in enumerate(data):
        if not isinstance(play_data, dict):
            raise ParseError(f"play #{index + 1} is not a mapping", file_path=source)
        plays.append(_parse_play(play_data, source))
    return Playbook(tuple(plays), source)


def _parse_play(data: Dict[str, Any], source: Optional[str]) -> Play:
    if 'hosts' not in data:
        raise ParseError("Play missing required 'hosts' field", file_path=source)

    hosts = data['hosts']
    if isinstance(hosts, list):
        if len(hosts) != 1:
            raise ParseError("a play targets exactly one host pattern", file_path=source)
        hosts = hosts[0]

    raw_vars = data.get('vars') or {}
    play_vars = _str_map(raw_vars, 'vars', source)

    tasks = tuple(
        _parse_task(t, raw_vars, source) for t in _ensure_list(data.get('tasks'))
    )
    handlers = tuple(
        Handler.from_task(_parse_task(h, raw_vars, source))
        for h in _ensure_list(data.get('handlers'))
    )

    return Play(
        name=str(data.get('name', 'Unnamed play')),
        hosts=str(hosts),
        tasks=tasks,
        handlers=handlers,
        vars=play_vars,
        tags=frozenset(to_str(t) for t in _ensure_list(data.get('tags'))),
    )


def _parse_task(data: Any, play_vars: Mapping[str, Any], source: Optional[str]) -> Task:
    if not isinstance(data, dict):
        raise ParseError(f"task must be a mapping, got {type(data).__name__}", file_path=source)

    module_keys = [k for k in data if k not in TASK_KEYWORDS]
    if not module_keys:
        raise ParseError(f"Task has no module: {list(data.keys())}", file_path=source)
    if len(module_keys) > 1:
        raise ParseError(f"Task names more than one module: {module_keys}", file_path=source)
    module = str(module_keys[0])

    when = data.get('when')
    if isinstance(when, list):
        if len(when) != 1:
            raise ParseError("compound 'when' conditions are not supported", file_path=source)
        when = when[0]
    if when is not None and not isinstance(when, bool):
        when = str(when)

    notify = [to_str(n) for n in _ensure_list(data.get('notify'))]

    loop = data.get('loop', data.get('with_items'))
    items: Optional[Tuple[str, ...]] = None
    if loop is not None:
        items = _resolve_loop(loop, play_vars, source)

    return Task(
        name=str(data.get('name', f'{module} task')),
        module=module,
        args=_normalize_args(data[module], source),
        when=when,
        register=data.get('register'),
        notify=tuple(notify),
        loop=items,
    )


def _resolve_loop(loop: Any, play_vars: Mapping[str, Any], source: Optional[str]) -> Tuple[str, ...]:
    if isinstance(loop, list):
        return tuple(to_str(item) for item in loop)
    if isinstance(loop, str):
        match = LOOP_REFERENCE.match(loop)
        if match and isinstance(play_vars.get(match.group(1)), list):
            return tuple(to_str(item) for item in play_vars[match.group(1)])
    raise ParseError(f"loop must be a list or reference a list play var: {loop!r}", file_path=source)


def _normalize_args(args: Any, source: Optional[str]) -> Dict[str, str]:
    """Normalize module arguments to a string dictionary."""
    if args is None:
        return {}
    if isinstance(args, dict):
        return _str_map(args, 'args', source)
    if isinstance(args, str):
        parsed = {}
        for match in ARG_PATTERN.finditer(args):
            value = match.group(2) or match.group(3) or match.group(4) or ""
            parsed[match.group(1)] = value
        if not parsed:
            parsed['_raw_params'] = args
        return parsed
    return {'_raw_params': to_str(args)}


def parse_module_args(text: str) -> Dict[str, str]:
    """Parse ``k=v k2="v 2"`` strings as given to ``-a`` on the command line."""
    return _normalize_args(text, None)


# Inventories

def load_inventory(path: Union[str, Path]) -> Inventory:
    """
    Load an inventory file (YAML or JSON), or an executable inventory script.

    A script is attached as a dynamic source; its hosts and groups appear
    once the returned Inventory is refreshed.
    """
    if is_inventory_script(path):
        inventory = Inventory()
        inventory.add_dynamic_source(script_source(path, inventory))
        return inventory
    return parse_inventory(_read_yaml(path), source=str(path))


def parse_inventory(data: Any, source: Optional[str] = None) -> Inventory:
    """
    Build an Inventory from ``group: {hosts, vars, children}`` data.

    Hosts of a child group are also members of every ancestor group. When
    an ``all`` group is declared, every host joins it.
    """
    inventory = Inventory()
    if data is None:
        return inventory
    if not isinstance(data, dict):
        raise ParseError("inventory must be a mapping of groups", file_path=source)

    for name, group_data in data.items():
        _parse_group(inventory, str(name), group_data, [], source)

    if inventory.has_group('all'):
        for host in inventory.host_names:
            inventory.add_host_to_group(host, 'all')
    return inventory


def _parse_group(
    inventory: Inventory,
    name: str,
    data: Any,
    ancestors: List[str],
    source: Optional[str],
) -> None:
    if name in ancestors:
        raise ParseError(f"group '{name}' is its own ancestor", file_path=source)
    data = data or {}
    if not isinstance(data, dict):
        raise ParseError(f"group '{name}' must be a mapping", file_path=source)

    group_vars = _str_map(data.get('vars'), f'{name}.vars', source)
    if inventory.has_group(name):
        for key, value in group_vars.items():
            inventory.set_group_var(name, key, value)
    else:
        inventory.add_group(name, group_vars)

    hosts = data.get('hosts') or {}
    if isinstance(hosts, list):
        hosts = {h: None for h in hosts}
    if not isinstance(hosts, dict):
        raise ParseError(f"'{name}.hosts' must be a mapping or list", file_path=source)

    for host_name, host_vars in hosts.items():
        host_name = str(host_name)
        if host_vars:
            if inventory.has_host(host_name):
                for key, value in _str_map(host_vars, host_name, source).items():
                    inventory.set_host_var(host_name, key, value)
            else:
                inventory.add_host(host_name, _str_map(host_vars, host_name, source))
        for group_name in [name, *ancestors]:
            inventory.add_host_to_group(host_name, group_name)

    children = data.get('children') or {}
    if isinstance(children, list):
        children = {c: None for c in children}
    for child_name, child_data in children.items():
        _parse_group(inventory, str(child_name), child_data, [name, *ancestors], source)


def is_inventory_script(path: Union[str, Path]) -> bool:
    """An executable file that is not a YAML/JSON document."""
    file_path = Path(path)
    return (
        file_path.is_file()
        and file_path.suffix not in INVENTORY_SUFFIXES
        and os.access(file_path, os.X_OK)
    )


def script_source(
    path: Union[str, Path],
    inventory: Optional[Inventory] = None,
) -> DynamicSource:
    """
    Dynamic source backed by an executable inventory script.

    The script is run with ``--list`` on every refresh and must print the
    usual JSON document: group entries (a host list, or a mapping with
    ``hosts`` and ``vars``) and ``_meta.hostvars``. When ``inventory`` is
    given, the groups the script reports are registered on it as well, with
    their vars and membership.
    """
    script = str(path)

    def source() -> Iterator[Tuple[str, Dict[str, str]]]:
        try:
            completed = subprocess.run(
                [script, '--list'],
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise ParseError(f"inventory script failed: {e}", file_path=script) from e

        try:
            data = json.loads(completed.stdout or '{}')
        except json.JSONDecodeError as e:
            raise ParseError(f"inventory script printed invalid JSON: {e}", file_path=script) from e
        if not isinstance(data, dict):
            raise ParseError("inventory script must print a JSON object", file_path=script)

        hostvars = (data.get('_meta') or {}).get('hostvars') or {}
        names: Dict[str, None] = {}
        for group, entry in data.items():
            if group == '_meta':
                continue
            members = entry.get('hosts', []) if isinstance(entry, dict) else entry
            if inventory is not None:
                group_vars = entry.get('vars') if isinstance(entry, dict) else None
                _merge_group(inventory, str(group), _str_map(group_vars, f'{group}.vars', script))
            for host in members or []:
                names[str(host)] = None
                if inventory is not None:
                    inventory.add_host_to_group(str(host), str(group))
        for host in hostvars:
            names[str(host)] = None

        for host in names:
            yield host, _str_map(hostvars.get(host), host, script)

    source.__name__ = f"script_source({script})"
    return source


def _merge_group(inventory: Inventory, name: str, variables: Dict[str, str]) -> None:
    if not inventory.has_group(name):
        inventory.add_group(name, variables)
        return
    for key, value in variables.items():
        inventory.set_group_var(name, key, value)

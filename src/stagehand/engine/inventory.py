"""
Stagehand Inventory

Hosts, groups, membership and per-scope variables, plus the
effective-variable resolution every task evaluation goes through.

Precedence, lowest first: group vars (groups in ascending name order),
play vars, host vars.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from stagehand.engine.errors import GroupNotFound, HostNotFound

logger = logging.getLogger(__name__)

DynamicSource = Callable[[], Iterable[Tuple[str, Mapping[str, str]]]]


class Host:
    """Represents a single host in the inventory."""

    def __init__(self, name: str, variables: Optional[Mapping[str, str]] = None):
        self.name = name
        self.vars: Dict[str, str] = dict(variables) if variables else {}

    def copy(self) -> 'Host':
        return Host(self.name, self.vars)

    def __repr__(self) -> str:
        return f"Host({self.name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Host):
            return NotImplemented
        return self.name == other.name and self.vars == other.vars

    def __hash__(self) -> int:
        return hash(self.name)


class Group:
    """Represents a group of hosts. Groups reference hosts by name only."""

    def __init__(self, name: str, variables: Optional[Mapping[str, str]] = None):
        self.name = name
        self.vars: Dict[str, str] = dict(variables) if variables else {}
        self._hosts: Set[str] = set()

    @property
    def hosts(self) -> List[str]:
        """Member host names, sorted."""
        return sorted(self._hosts)

    def has_host(self, host_name: str) -> bool:
        return host_name in self._hosts

    def copy(self) -> 'Group':
        clone = Group(self.name, self.vars)
        clone._hosts = set(self._hosts)
        return clone

    def __repr__(self) -> str:
        return f"Group({self.name!r}, hosts={len(self._hosts)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Group):
            return NotImplemented
        return (
            self.name == other.name
            and self.vars == other.vars
            and self._hosts == other._hosts
        )

    def __hash__(self) -> int:
        return hash(self.name)


class Inventory:
    """
    Owns every Host and Group plus any dynamic sources.

    All reads and writes go through a single re-entrant lock, and accessors
    hand out copies, so play execution on many hosts at once can share one
    Inventory safely.
    """

    def __init__(self) -> None:
        self._hosts: Dict[str, Host] = {}
        self._groups: Dict[str, Group] = {}
        self._sources: List[DynamicSource] = []
        self._lock = threading.RLock()

    # Hosts

    def add_host(self, name: str, variables: Optional[Mapping[str, str]] = None) -> Host:
        """Register a host, replacing the vars of an existing one."""
        with self._lock:
            host = self._hosts.get(name)
            if host is None:
                host = Host(name, variables)
                self._hosts[name] = host
            else:
                host.vars = dict(variables) if variables else {}
            return host.copy()

    def remove_host(self, name: str) -> None:
        """Remove a host and every group membership it had."""
        with self._lock:
            if name not in self._hosts:
                raise HostNotFound(name)
            del self._hosts[name]
            for group in self._groups.values():
                group._hosts.discard(name)

    def get_host(self, name: str) -> Host:
        with self._lock:
            host = self._hosts.get(name)
            if host is None:
                raise HostNotFound(name)
            return host.copy()

    def has_host(self, name: str) -> bool:
        with self._lock:
            return name in self._hosts

    @property
    def host_names(self) -> List[str]:
        with self._lock:
            return sorted(self._hosts)

    def set_host_var(self, host: str, key: str, value: str) -> None:
        with self._lock:
            if host not in self._hosts:
                raise HostNotFound(host)
            self._hosts[host].vars[key] = value

    # Groups

    def add_group(self, name: str, variables: Optional[Mapping[str, str]] = None) -> Group:
        """Register a group, replacing the vars of an existing one."""
        with self._lock:
            group = self._groups.get(name)
            if group is None:
                group = Group(name, variables)
                self._groups[name] = group
            else:
                group.vars = dict(variables) if variables else {}
            return group.copy()

    def remove_group(self, name: str) -> None:
        """Remove a group; its member hosts stay registered."""
        with self._lock:
            if name not in self._groups:
                raise GroupNotFound(name)
            del self._groups[name]

    def get_group(self, name: str) -> Group:
        with self._lock:
            group = self._groups.get(name)
            if group is None:
                raise GroupNotFound(name)
            return group.copy()

    def has_group(self, name: str) -> bool:
        with self._lock:
            return name in self._groups

    @property
    def group_names(self) -> List[str]:
        with self._lock:
            return sorted(self._groups)

    def set_group_var(self, group: str, key: str, value: str) -> None:
        with self._lock:
            if group not in self._groups:
                raise GroupNotFound(group)
            self._groups[group].vars[key] = value

    def add_host_to_group(self, host: str, group: str) -> None:
        """
        Add a host to a group.

        The group must exist. An unknown host is created with empty vars,
        the way an inventory file declares a host by listing it in a group.
        """
        with self._lock:
            target = self._groups.get(group)
            if target is None:
                raise GroupNotFound(group)
            if host not in self._hosts:
                self._hosts[host] = Host(host)
            target._hosts.add(host)

    def groups_of(self, host: str) -> List[str]:
        """Names of the groups containing ``host``, ascending."""
        with self._lock:
            if host not in self._hosts:
                raise HostNotFound(host)
            return sorted(
                name for name, group in self._groups.items() if group.has_host(host)
            )

    # Variables

    def get_effective_vars(
        self,
        host: str,
        play_vars: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        """
        Get the merged variable view for a host.

        Group vars are applied in ascending group-name order, so the result
        never depends on the order groups were registered in. ``play_vars``
        sit above every group and below the host's own vars.
        """
        with self._lock:
            if host not in self._hosts:
                raise HostNotFound(host)

            merged: Dict[str, str] = {}
            for name in sorted(self._groups):
                group = self._groups[name]
                if group.has_host(host):
                    merged.update(group.vars)
            if play_vars:
                merged.update(play_vars)
            merged.update(self._hosts[host].vars)
            return merged

    # Dynamic sources

    def add_dynamic_source(self, source: DynamicSource) -> None:
        with self._lock:
            self._sources.append(source)

    def refresh(self) -> int:
        """
        Pull from every dynamic source in registration order.

        Returned vars replace whatever a host held before; unknown hosts are
        created. Returns the number of host records applied.
        """
        with self._lock:
            sources = list(self._sources)

        applied = 0
        for source in sources:
            entries = list(source() or [])
            logger.debug("dynamic source %r returned %d host(s)", source, len(entries))
            with self._lock:
                for name, variables in entries:
                    host = self._hosts.get(name)
                    if host is None:
                        self._hosts[name] = Host(name, variables)
                    else:
                        host.vars = dict(variables)
                    applied += 1
        return applied

    # Views

    def restrict(self, host_names: Iterable[str]) -> 'Inventory':
        """
        Build a new Inventory holding only ``host_names``.

        The groups those hosts belong to come along with their vars intact
        and their membership trimmed to the kept hosts, so variable
        precedence for a kept host is the same as in the full inventory.
        Unknown names are ignored with a warning.
        """
        view = Inventory()
        with self._lock:
            wanted: Set[str] = set()
            for name in host_names:
                if name in self._hosts:
                    wanted.add(name)
                else:
                    logger.warning("limit host %s is not in the inventory", name)

            for name in wanted:
                view._hosts[name] = self._hosts[name].copy()
            for name, group in self._groups.items():
                members = group._hosts & wanted
                if members:
                    clone = Group(name, group.vars)
                    clone._hosts = set(members)
                    view._groups[name] = clone
        return view

    def to_dict(self) -> Dict[str, object]:
        """Ansible-style ``--list`` structure."""
        with self._lock:
            data: Dict[str, object] = {
                name: {"hosts": group.hosts, "vars": dict(group.vars)}
                for name, group in sorted(self._groups.items())
            }
            data["_meta"] = {
                "hostvars": {name: dict(h.vars) for name, h in sorted(self._hosts.items())}
            }
            return data

    def __len__(self) -> int:
        with self._lock:
            return len(self._hosts)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._hosts

    def __repr__(self) -> str:
        return f"Inventory(hosts={len(self)}, groups={len(self.group_names)})"

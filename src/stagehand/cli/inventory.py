"""
Inventory CLI entrypoint for stagehand-inventory.

Usage:
    stagehand-inventory --version
    stagehand-inventory --help
    stagehand-inventory -i inventory.yml --list
    stagehand-inventory -i inventory.yml --host <hostname>
"""

import argparse
import json
import platform
import sys

import yaml

from stagehand import __version__
from stagehand.engine.errors import ExitCode, StagehandError
from stagehand.engine.loader import load_inventory


def get_version_string() -> str:
    """Generate a detailed version string."""
    python_version = platform.python_version()
    os_info = f"{platform.system()} {platform.release()}"
    return (
        f"stagehand-inventory {__version__}\n"
        f"  python: {python_version}\n"
        f"  platform: {os_info}"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for stagehand-inventory."""
    parser = argparse.ArgumentParser(
        prog="stagehand-inventory",
        description="Show inventory information",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stagehand-inventory -i inventory.yml --list
  stagehand-inventory -i inventory.yml --host web1
  stagehand-inventory -i inventory.yml --graph
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=get_version_string(),
    )

    parser.add_argument(
        "-i", "--inventory",
        dest="inventory",
        default=None,
        help="Inventory file (YAML or JSON)",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        dest="list_hosts",
        help="Output all hosts info (JSON)",
    )

    parser.add_argument(
        "--host",
        dest="host",
        default=None,
        help="Output a host's effective variables (JSON)",
    )

    parser.add_argument(
        "--graph",
        action="store_true",
        help="Output inventory graph",
    )

    parser.add_argument(
        "-y", "--yaml",
        action="store_true",
        help="Output in YAML format",
    )

    return parser


def _dump(data: object, as_yaml: bool) -> None:
    if as_yaml:
        print(yaml.safe_dump(data, default_flow_style=False, sort_keys=True), end="")
    else:
        print(json.dumps(data, indent=2, sort_keys=True))


def main(args: list[str] | None = None) -> int:
    """Main entrypoint for stagehand-inventory CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    # If no action specified, show help
    if not parsed.list_hosts and not parsed.host and not parsed.graph:
        parser.print_help()
        return 0

    if not parsed.inventory:
        print("ERROR: Inventory (-i/--inventory) is required", file=sys.stderr)
        return ExitCode.PARSE_ERROR

    try:
        inventory = load_inventory(parsed.inventory)
        inventory.refresh()

        if parsed.list_hosts:
            _dump(inventory.to_dict(), parsed.yaml)
        elif parsed.host:
            _dump(inventory.get_effective_vars(parsed.host), parsed.yaml)
        else:
            print("@all:")
            grouped = set()
            for name in inventory.group_names:
                print(f"  |--@{name}:")
                for host in inventory.get_group(name).hosts:
                    grouped.add(host)
                    print(f"  |  |--{host}")
            ungrouped = [h for h in inventory.host_names if h not in grouped]
            if ungrouped:
                print("  |--@ungrouped:")
                for host in ungrouped:
                    print(f"  |  |--{host}")
    except StagehandError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return e.exit_code

    return 0


if __name__ == "__main__":
    sys.exit(main())

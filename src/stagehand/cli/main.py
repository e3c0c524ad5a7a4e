"""
Main CLI entrypoint for stagehand.

Usage:
    stagehand --version
    stagehand --help
    stagehand <host-pattern> -i <inventory> -m <module> [-a <args>]
"""

import argparse
import asyncio
import platform
import sys

from stagehand import __version__
from stagehand.engine.errors import ExitCode, ParseError, StagehandError
from stagehand.engine.executor import TaskExecutor
from stagehand.engine.loader import load_inventory, parse_module_args
from stagehand.engine.orchestrator import expand
from stagehand.engine.playbook import Task
from stagehand.engine.runner import status_line
from stagehand.modules import default_registry


def get_version_string() -> str:
    """Generate a detailed version string."""
    python_version = platform.python_version()
    os_info = f"{platform.system()} {platform.release()}"
    return (
        f"stagehand {__version__}\n"
        f"  python: {python_version}\n"
        f"  platform: {os_info}"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for stagehand."""
    parser = argparse.ArgumentParser(
        prog="stagehand",
        description="Run a single module against matching hosts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stagehand all -i hosts.yml -m ping
  stagehand webservers -i hosts.yml -m debug -a "msg=hello"
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=get_version_string(),
    )

    parser.add_argument(
        "pattern",
        nargs="?",
        default=None,
        help="Host pattern to target",
    )

    parser.add_argument(
        "-i", "--inventory",
        dest="inventory",
        default=None,
        help="Inventory file (YAML or JSON)",
    )

    parser.add_argument(
        "-m", "--module-name",
        dest="module",
        default="ping",
        help="Module to execute (default: ping)",
    )

    parser.add_argument(
        "-a", "--args",
        dest="module_args",
        default="",
        help="Module arguments as key=value pairs",
    )

    parser.add_argument(
        "-f", "--forks",
        dest="forks",
        type=int,
        default=5,
        help="Number of hosts processed in parallel (default: 5)",
    )

    parser.add_argument(
        "-C", "--check",
        action="store_true",
        help="Run in check mode (dry run)",
    )

    return parser


def main(args: list[str] | None = None) -> int:
    """Main entrypoint for stagehand CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    # If no pattern provided, just show help
    if parsed.pattern is None:
        parser.print_help()
        return 0

    if not parsed.inventory:
        print("ERROR: Inventory (-i/--inventory) is required", file=sys.stderr)
        return ExitCode.PARSE_ERROR

    registry = default_registry()
    if parsed.check:
        registry = registry.check_mode()

    try:
        inventory = load_inventory(parsed.inventory)
        inventory.refresh()
        hosts = sorted(expand(parsed.pattern, inventory))
        if not hosts:
            print(f"[WARNING]: No hosts matched pattern: {parsed.pattern}", file=sys.stderr)
            return 0

        task = Task(
            name=parsed.module,
            module=parsed.module,
            args=parse_module_args(parsed.module_args),
        )
        executor = TaskExecutor(registry)
        results = asyncio.run(
            executor.execute_on_hosts(task, hosts, inventory, forks=parsed.forks)
        )
    except ParseError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.PARSE_ERROR
    except StagehandError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.GENERIC_ERROR

    for host, result in results:
        print(status_line(host, task.name, result))
        if result.output and not result.failed:
            print(f"    {result.output}")

    if any(result.failed for _, result in results):
        return ExitCode.HOST_FAILED
    return 0


if __name__ == "__main__":
    sys.exit(main())

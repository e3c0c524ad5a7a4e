"""
Playbook CLI entrypoint for stagehand-playbook.

Usage:
    stagehand-playbook --version
    stagehand-playbook --help
    stagehand-playbook -i inventory.yml playbook.yml
"""

import argparse
import logging
import platform
import sys

from stagehand import __version__
from stagehand.engine.config import load_config
from stagehand.engine.errors import ConfigError, ExitCode


def get_version_string() -> str:
    """Generate a detailed version string."""
    python_version = platform.python_version()
    os_info = f"{platform.system()} {platform.release()}"
    return (
        f"stagehand-playbook {__version__}\n"
        f"  python: {python_version}\n"
        f"  platform: {os_info}"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for stagehand-playbook."""
    parser = argparse.ArgumentParser(
        prog="stagehand-playbook",
        description="Run playbooks against an inventory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stagehand-playbook -i inventory.yml site.yml
  stagehand-playbook -i hosts.yml playbook.yml --check
  stagehand-playbook -i hosts.yml deploy.yml -l web1,web2 -t deploy
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=get_version_string(),
    )

    parser.add_argument(
        "playbook",
        nargs="*",
        help="Playbook file(s) to run",
    )

    parser.add_argument(
        "-i", "--inventory",
        dest="inventory",
        default=None,
        help="Inventory file (YAML or JSON)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (-v, -vv)",
    )

    parser.add_argument(
        "-C", "--check",
        action="store_true",
        default=None,
        help="Run in check mode (dry run)",
    )

    parser.add_argument(
        "-l", "--limit",
        dest="limit",
        default=None,
        help="Limit to specific hosts/groups (comma-separated)",
    )

    parser.add_argument(
        "-t", "--tags",
        dest="tags",
        default=None,
        help="Only run plays tagged with these values (comma-separated)",
    )

    parser.add_argument(
        "--skip-tags",
        dest="skip_tags",
        default=None,
        help="Skip plays tagged with these values (comma-separated)",
    )

    parser.add_argument(
        "-f", "--forks",
        dest="forks",
        type=int,
        default=None,
        help="Number of hosts processed in parallel (default: 5)",
    )

    parser.add_argument(
        "--keep-going",
        dest="keep_going",
        action="store_true",
        default=False,
        help="Keep running a host's remaining tasks after one fails",
    )

    parser.add_argument(
        "--config",
        dest="config",
        default=None,
        help="Engine config file (YAML)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        default=None,
        help="Output results in JSON format",
    )

    return parser


def _split(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(args: list[str] | None = None) -> int:
    """Main entrypoint for stagehand-playbook CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    # If no playbook provided, show help
    if not parsed.playbook:
        parser.print_help()
        return 0

    if not parsed.inventory:
        print("ERROR: Inventory (-i/--inventory) is required", file=sys.stderr)
        return ExitCode.PARSE_ERROR

    try:
        config = load_config(parsed.config).merged(
            forks=parsed.forks,
            check_mode=parsed.check,
            json_output=parsed.json,
            verbosity=parsed.verbose,
            stop_on_failure=False if parsed.keep_going else None,
        )
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.PARSE_ERROR

    configure_logging(config.verbosity)

    from stagehand.engine.runner import PlaybookRunner

    runner = PlaybookRunner(
        inventory_source=parsed.inventory,
        playbook_paths=parsed.playbook,
        config=config,
        limit=parsed.limit,
        tags=_split(parsed.tags),
        skip_tags=_split(parsed.skip_tags),
    )

    return runner.run()


if __name__ == "__main__":
    sys.exit(main())

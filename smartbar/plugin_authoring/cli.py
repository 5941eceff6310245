"""Command-line interface for Smartbar plugin package authoring.

This module provides the ``smartbar-plugin`` command for building,
listing, publishing and unpublishing plugin packages.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Callable, List, Optional, Sequence

from smartbar.core.config_manager import ConfigManager
from smartbar.core.logging_manager import LoggingManager
from smartbar.plugin_authoring import commands
from smartbar.plugin_authoring.package import PackageRecord
from smartbar.plugin_authoring.results import OperationResult

LogFunction = Callable[[str, str], None]


def _print_results(results: Sequence[OperationResult], as_json: bool) -> None:
    if as_json:
        print(json.dumps([result.to_dict() for result in results], indent=2))
        return

    for result in results:
        payload = result.payload
        name = getattr(payload, "display_name", str(payload))
        if result.successful:
            line = f"OK      {name}"
            if result.output is not None:
                line += f" -> {result.output}"
        else:
            line = f"FAILED  {name}: {result.exception}"
        print(line)


def _print_packages(packages: Sequence[PackageRecord], as_json: bool) -> None:
    if as_json:
        print(json.dumps([package.to_dict() for package in packages], indent=2))
        return

    for package in packages:
        print(f"{package.display_name}  {package.title or ''}".rstrip())


def build_command(args: argparse.Namespace, config: ConfigManager, log: LogFunction) -> int:
    """Handle the build command.

    Args:
        args: Command-line arguments
        config: Initialized configuration manager
        log: Logger function for progress messages

    Returns:
        Exit code (0 when the batch ran to completion)
    """
    results = commands.build(
        args.source,
        base_dependency_directory=args.base_dependency_directory,
        output_directory=args.local_repository,
        config=config,
        logger=log,
    )
    _print_results(results, args.json)
    return 0


def list_command(args: argparse.Namespace, config: ConfigManager, log: LogFunction) -> int:
    """Handle the list command."""
    packages = commands.list_packages(
        force_local=args.force_local,
        package_id=args.id,
        package_version=args.version,
        local_repository_directory=args.local_repository,
        config=config,
        logger=log,
    )
    _print_packages(packages, args.json)
    return 0


def publish_command(args: argparse.Namespace, config: ConfigManager, log: LogFunction) -> int:
    """Handle the publish command."""
    if args.package_file:
        source: commands.PublishSource = commands.PublishPackageFile(args.package_file)
    else:
        source = commands.PublishFromRepository(
            directory=args.local_repository,
            package_id=args.id,
            package_version=args.version,
        )
    results = commands.publish(source, config=config, logger=log)
    _print_results(results, args.json)
    return 0


def unpublish_command(args: argparse.Namespace, config: ConfigManager, log: LogFunction) -> int:
    """Handle the unpublish command."""
    results = commands.unpublish(
        package_id=args.id,
        package_version=args.version,
        config=config,
        logger=log,
    )
    _print_results(results, args.json)
    return 0


COMMANDS = {
    "build": build_command,
    "list": list_command,
    "publish": publish_command,
    "unpublish": unpublish_command,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the command-line interface."""
    parser = argparse.ArgumentParser(
        prog="smartbar-plugin",
        description="Smartbar plugin package authoring",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("--config", help="Configuration file (default: smartbar.yaml)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug messages")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show errors")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format")

    # Options shared by every command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--json", action="store_true", help="Print results as JSON")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Build command
    build_parser = subparsers.add_parser("build", parents=[common], help="Build packages from manifests")
    build_parser.add_argument("--source", default=".", help="Manifest file or directory of manifests")
    build_parser.add_argument("--base-dependency-directory",
                              help="Directory the manifest file entries are relative to")
    build_parser.add_argument("--local-repository", help="Directory the packages are written to")

    # List command
    list_parser = subparsers.add_parser("list", parents=[common], help="List packages")
    list_parser.add_argument("--force-local", action="store_true",
                             help="List the local repository instead of the remote feed")
    list_parser.add_argument("--id", help="Package id")
    list_parser.add_argument("--version", help="Package version")
    list_parser.add_argument("--local-repository", help="Local repository directory")

    # Publish command
    publish_parser = subparsers.add_parser("publish", parents=[common], help="Publish packages to the feed")
    publish_parser.add_argument("--package-file", help="Single package file to publish")
    publish_parser.add_argument("--id", help="Package id")
    publish_parser.add_argument("--version", help="Package version")
    publish_parser.add_argument("--local-repository", help="Local repository directory")

    # Unpublish command
    unpublish_parser = subparsers.add_parser("unpublish", parents=[common],
                                             help="Delete packages from the feed")
    unpublish_parser.add_argument("--id", help="Package id")
    unpublish_parser.add_argument("--version", help="Package version")

    return parser


def _apply_log_format(args: argparse.Namespace, config: ConfigManager) -> None:
    if args.log_format:
        config.set("logging.format", args.log_format)


def _apply_verbosity(args: argparse.Namespace, config: ConfigManager) -> None:
    # Applied once logging runs; the logging manager follows these keys
    if args.verbose:
        config.set("logging.level", "DEBUG")
        config.set("logging.console.level", "DEBUG")
    elif args.quiet:
        config.set("logging.console.level", "ERROR")


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line interface.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 when the command ran to completion, 1 on error,
        2 on usage errors)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 2

    if parsed.command == "publish" and parsed.package_file and (
            parsed.id or parsed.version or parsed.local_repository):
        parser.error("--package-file cannot be combined with --id, --version or --local-repository")

    config = ConfigManager(parsed.config)
    logging_manager: Optional[LoggingManager] = None
    try:
        config.initialize()
        _apply_log_format(parsed, config)

        logging_manager = LoggingManager(config)
        logging_manager.initialize()
        _apply_verbosity(parsed, config)
        log = logging_manager.get_log_function("smartbar.plugin_authoring")

        return COMMANDS[parsed.command](parsed, config, log)

    except Exception as e:
        print(f"Error running {parsed.command} command: {e}", file=sys.stderr)
        return 1

    finally:
        if logging_manager is not None:
            logging_manager.shutdown()
        config.shutdown()


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .commands.factory import ACTIONS, CommandFactory, RunOptions
from .core.config_loader import ConfigOverrides
from .core.errors import BackupToolError

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(message)s",
        stream=sys.stderr,
    )


def _absolute(value: str | None) -> str | None:
    if not value:
        return value
    return os.path.abspath(os.path.expanduser(value))


class CliApplication:
    def __init__(self, config_home: Path) -> None:
        self._factory = CommandFactory(config_home)

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="window-backup",
            description="Time-windowed borg backups with tiered retention",
        )
        parser.add_argument(
            "action",
            nargs="?",
            default="backup",
            choices=ACTIONS,
            help="backup (default) creates an archive then prunes; prune only prunes",
        )
        parser.add_argument(
            "-c",
            "--config",
            default=None,
            help="Config file (default: ~/backup.toml)",
        )
        parser.add_argument("-s", "--source", help="Source directory (overrides config)")
        parser.add_argument("-d", "--dest", help="Repository directory (overrides config)")
        parser.add_argument(
            "-m",
            "--mode",
            help="incremental, full or borg-auto (overrides config)",
        )
        parser.add_argument(
            "-t",
            "--time",
            dest="time_window",
            help="Time window in minutes for incremental mode (overrides config)",
        )
        parser.add_argument(
            "-n",
            "--dry-run",
            action="store_true",
            help="Show what would be done without touching the repository",
        )
        parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
        parser.add_argument(
            "-f",
            "--force-init",
            action="store_true",
            help="Run repository initialization even if the repository exists",
        )
        return parser

    def run(self, argv: list[str] | None = None) -> int:
        args = self.build_parser().parse_args(argv)
        configure_logging(args.verbose)

        options = RunOptions(
            config_path=args.config,
            overrides=ConfigOverrides(
                source=_absolute(args.source),
                destination=_absolute(args.dest),
                mode=args.mode,
                time_window=args.time_window,
            ),
            dry_run=args.dry_run,
            verbose=args.verbose,
            force_init=args.force_init,
        )
        try:
            command = self._factory.create(args.action, options)
            return command.run()
        except BackupToolError as exc:
            logger.error("%s", exc)
            return exc.exit_code


def main() -> int:
    app = CliApplication(Path.home())
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())

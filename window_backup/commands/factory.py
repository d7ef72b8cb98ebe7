from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..core.backup_config import BackupConfig
from ..core.borg_client import BorgClient
from ..core.change_selector import ChangeSetSelector
from ..core.clock import Clock
from ..core.config_loader import ConfigLoader, ConfigOverrides
from ..core.protocols import BorgClientProtocol, ChangeSetSelectorProtocol, ClockProtocol
from .backup_command import BackupCommand
from .base import Command
from .prune_command import PruneCommand

ACTIONS = ("backup", "prune")


@dataclass(frozen=True)
class RunOptions:
    config_path: str | None = None
    overrides: ConfigOverrides = field(default_factory=ConfigOverrides)
    dry_run: bool = False
    verbose: bool = False
    force_init: bool = False


class CommandFactory:
    def __init__(
        self,
        config_home: Path,
        *,
        config_loader: ConfigLoader | None = None,
        clock: ClockProtocol | None = None,
        selector: ChangeSetSelectorProtocol | None = None,
        borg_client_factory: Callable[[BackupConfig, bool], BorgClientProtocol] | None = None,
    ) -> None:
        self._config_loader = config_loader or ConfigLoader(config_home)
        self._clock = clock or Clock()
        self._selector = selector or ChangeSetSelector()
        self._borg_client_factory = borg_client_factory or BorgClient

    def create(self, action: str, options: RunOptions) -> Command:
        if action not in ACTIONS:
            raise SystemExit(f"Unsupported action: {action}")

        config = self._config_loader.load(options.config_path, options.overrides)
        borg = self._borg_client_factory(config, options.verbose)

        if action == "prune":
            return PruneCommand(config, borg, self._clock, dry_run=options.dry_run)
        return BackupCommand(
            config,
            borg,
            self._clock,
            self._selector,
            dry_run=options.dry_run,
            force_init=options.force_init,
        )

from __future__ import annotations

import logging

from ..core.backup_config import BackupConfig
from ..core.errors import PruneFailed
from ..core.protocols import BorgClientProtocol, ClockProtocol
from ..core.retention import RetentionPruner
from .base import Command

logger = logging.getLogger(__name__)


class PruneCommand(Command):
    """Prune on its own cadence, independent of whether a backup ran."""

    def __init__(
        self,
        config: BackupConfig,
        borg: BorgClientProtocol,
        clock: ClockProtocol,
        *,
        dry_run: bool = False,
    ) -> None:
        self._config = config
        self._borg = borg
        self._clock = clock
        self._dry_run = dry_run

    def run(self) -> int:
        destination = self._config.destination
        logger.info("Running prune at %s", self._clock.now_iso())

        self._borg.ensure_available()
        if not self._borg.is_initialized(destination):
            raise PruneFailed(destination, "repository is not initialized")

        RetentionPruner(self._borg, dry_run=self._dry_run).prune(
            self._config.retention,
            destination,
        )
        logger.info("Prune completed at %s", self._clock.now_iso())
        return 0

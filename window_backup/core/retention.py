from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .backup_config import RetentionPolicy
from .borg_client import WARNING_RETURNCODE, error_detail, is_error
from .errors import PruneFailed
from .protocols import BorgClientProtocol
from .requests import PruneRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruneResult:
    repository: Path
    retention: RetentionPolicy
    returncode: int = 0
    dry_run: bool = False

    @property
    def had_warnings(self) -> bool:
        return self.returncode == WARNING_RETURNCODE


class RetentionPruner:
    """Forwards the five keep-counts to ``borg prune``.

    The cascade between tiers is borg's; no arithmetic happens here.
    """

    def __init__(self, borg: BorgClientProtocol, *, dry_run: bool = False) -> None:
        self._borg = borg
        self._dry_run = dry_run

    def prune(self, retention: RetentionPolicy, destination: Path) -> PruneResult:
        request = PruneRequest(repository=destination, retention=retention)
        logger.info("Pruning (keep: %s)", retention.summary())

        if self._dry_run:
            logger.info(
                "[DRY RUN] Would prune with: %s",
                self._borg.describe(self._borg.prune_args(request)),
            )
            return PruneResult(destination, retention, dry_run=True)

        process = self._borg.prune(request)
        if is_error(process):
            raise PruneFailed(destination, error_detail(process), process.returncode)

        result = PruneResult(destination, retention, process.returncode)
        if result.had_warnings:
            logger.warning("Pruning completed with warnings")
        else:
            logger.info("Pruning completed")
        return result

from __future__ import annotations

import logging

from ..core.backup_config import BackupConfig
from ..core.borg_client import WARNING_RETURNCODE, error_detail, is_error
from ..core.errors import BackupFailed, PruneFailed, RepositoryInitFailed, StoreError
from ..core.exclude_rules import build_exclude_rules
from ..core.planner import ArchiveOrchestrator, CreateFromFileList, CreateFromTree, Skip
from ..core.protocols import BorgClientProtocol, ChangeSetSelectorProtocol, ClockProtocol
from ..core.requests import InitRequest
from ..core.retention import RetentionPruner
from .base import Command

logger = logging.getLogger(__name__)

PREVIEW_FILES = 5


class BackupCommand(Command):
    def __init__(
        self,
        config: BackupConfig,
        borg: BorgClientProtocol,
        clock: ClockProtocol,
        selector: ChangeSetSelectorProtocol,
        *,
        dry_run: bool = False,
        force_init: bool = False,
    ) -> None:
        self._config = config
        self._borg = borg
        self._clock = clock
        self._selector = selector
        self._dry_run = dry_run
        self._force_init = force_init

    def run(self) -> int:
        excludes = build_exclude_rules(self._config)
        logger.info(
            "Config: %s -> %s (%s, %smin, %d excludes)",
            self._config.source,
            self._config.destination,
            self._config.mode.value,
            self._config.time_window_minutes,
            len(excludes),
        )
        logger.info("Starting backup at %s", self._clock.now_iso())

        self._borg.ensure_available()
        initialized = self._ensure_repository()
        taken_labels = self._existing_labels() if initialized else frozenset()

        orchestrator = ArchiveOrchestrator(self._selector)
        operation = orchestrator.plan(
            self._config,
            excludes,
            self._clock.now(),
            taken_labels,
        )
        if isinstance(operation, Skip):
            logger.info("No changes, skipping backup: %s", operation.reason)
            return 0

        self._create(operation)

        pruner = RetentionPruner(self._borg, dry_run=self._dry_run)
        try:
            pruner.prune(self._config.retention, self._config.destination)
        except PruneFailed as exc:
            logger.warning("%s (non-critical, the new archive is kept)", exc)

        logger.info("Backup completed successfully at %s", self._clock.now_iso())
        return 0

    def _ensure_repository(self) -> bool:
        destination = self._config.destination
        exists = self._borg.is_initialized(destination)
        if exists and not self._force_init:
            logger.debug("Repo exists: %s", destination)
            return True

        request = InitRequest(
            repository=destination,
            compression=self._config.compression,
            force=self._force_init,
        )
        logger.info(
            "Initializing borg repository: %s (compression %s)",
            destination,
            request.compression,
        )
        if self._dry_run:
            logger.info(
                "[DRY RUN] Would run: %s",
                self._borg.describe(self._borg.init_args(request)),
            )
            return exists

        process = self._borg.initialize(request)
        if is_error(process):
            raise RepositoryInitFailed(destination, error_detail(process), process.returncode)
        logger.info("Repository initialized")
        return True

    def _existing_labels(self) -> frozenset[str]:
        try:
            return frozenset(self._borg.list_archives(self._config.destination))
        except StoreError as exc:
            logger.warning("Could not list archives, label collisions unchecked: %s", exc)
            return frozenset()

    def _create(self, operation: CreateFromFileList | CreateFromTree) -> None:
        request = operation.request
        if isinstance(operation, CreateFromFileList):
            files = request.file_list or ()
            logger.info("Creating incremental backup (%d files)", len(files))
            for path in files:
                logger.debug("  %s", path)
            if self._dry_run:
                logger.info("[DRY RUN] Would backup:")
                for path in files[:PREVIEW_FILES]:
                    logger.info("  %s", path)
                if len(files) > PREVIEW_FILES:
                    logger.info("... and %d more", len(files) - PREVIEW_FILES)
        else:
            logger.info("Creating %s backup", self._config.mode.value)

        if self._dry_run:
            logger.info(
                "[DRY RUN] Would run: %s",
                self._borg.describe(self._borg.create_args(request)),
            )
            return

        process = self._borg.create(request)
        if is_error(process):
            raise BackupFailed(self._config.destination, error_detail(process), process.returncode)
        if process.returncode == WARNING_RETURNCODE:
            logger.warning("Archive %s created with warnings", request.label)
        else:
            logger.info("Archive %s created", request.label)

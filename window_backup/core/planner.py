from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Union

from .backup_config import BackupConfig, BackupMode
from .exclude_rules import ExcludeRuleSet
from .protocols import ChangeSetSelectorProtocol
from .requests import ArchiveRequest

LABEL_PREFIX = "backup_"
LABEL_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"


def archive_label(now: datetime, taken_labels: Collection[str] = ()) -> str:
    """``backup_YYYY-MM-DD_HH-MM-SS``, suffixed ``.2``, ``.3``... on collision."""
    base = f"{LABEL_PREFIX}{now.strftime(LABEL_TIME_FORMAT)}"
    label = base
    suffix = 1
    while label in taken_labels:
        suffix += 1
        label = f"{base}.{suffix}"
    return label


@dataclass(frozen=True)
class Skip:
    reason: str


@dataclass(frozen=True)
class CreateFromFileList:
    request: ArchiveRequest


@dataclass(frozen=True)
class CreateFromTree:
    request: ArchiveRequest


PlannedOperation = Union[Skip, CreateFromFileList, CreateFromTree]


class ArchiveOrchestrator:
    def __init__(self, selector: ChangeSetSelectorProtocol) -> None:
        self._selector = selector

    def plan(
        self,
        config: BackupConfig,
        excludes: ExcludeRuleSet,
        now: datetime,
        taken_labels: Collection[str] = (),
    ) -> PlannedOperation:
        """Decide what the next archive should contain.

        Incremental mode reads the source tree to build the change set and
        skips when it is empty. Full and borg-auto modes submit the whole
        tree; borg-auto leaves chunking to borg's defaults.
        """
        if config.mode is BackupMode.INCREMENTAL:
            changes = self._selector.select(
                config.source,
                config.time_window_minutes,
                now,
                excludes,
            )
            if not changes:
                return Skip(
                    f"no files changed in the last {config.time_window_minutes} minutes"
                )
            return CreateFromFileList(
                self._request(config, excludes, now, taken_labels, changes, config.use_dedup)
            )

        dedup_hint = config.use_dedup and config.mode is BackupMode.FULL
        return CreateFromTree(
            self._request(config, excludes, now, taken_labels, None, dedup_hint)
        )

    def _request(
        self,
        config: BackupConfig,
        excludes: ExcludeRuleSet,
        now: datetime,
        taken_labels: Collection[str],
        file_list: tuple[Path, ...] | None,
        dedup_hint: bool,
    ) -> ArchiveRequest:
        return ArchiveRequest(
            repository=config.destination,
            label=archive_label(now, taken_labels),
            source_root=config.source,
            file_list=file_list,
            excludes=excludes,
            compression=config.compression,
            dedup_hint=dedup_hint,
        )

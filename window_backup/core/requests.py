from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .backup_config import RetentionPolicy
from .exclude_rules import ExcludeRuleSet


@dataclass(frozen=True)
class InitRequest:
    repository: Path
    compression: str
    force: bool = False
    encryption: str = "repokey"


@dataclass(frozen=True)
class ArchiveRequest:
    repository: Path
    label: str
    source_root: Path
    file_list: tuple[Path, ...] | None
    excludes: ExcludeRuleSet
    compression: str
    dedup_hint: bool

    @property
    def archive(self) -> str:
        return f"{self.repository}::{self.label}"


@dataclass(frozen=True)
class PruneRequest:
    repository: Path
    retention: RetentionPolicy

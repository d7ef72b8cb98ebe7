from __future__ import annotations

import subprocess
from datetime import datetime
from pathlib import Path
from typing import Iterable, Protocol

from .exclude_rules import ExcludeRuleSet
from .requests import ArchiveRequest, InitRequest, PruneRequest


class BorgClientProtocol(Protocol):
    def run(
        self,
        args: Iterable[str],
        *,
        capture_output: bool = True,
        check: bool = False,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        ...

    def ensure_available(self) -> None:
        ...

    def is_initialized(self, repository: Path) -> bool:
        ...

    def list_archives(self, repository: Path) -> list[str]:
        ...

    def init_args(self, request: InitRequest) -> list[str]:
        ...

    def initialize(self, request: InitRequest) -> subprocess.CompletedProcess[str]:
        ...

    def create_args(self, request: ArchiveRequest) -> list[str]:
        ...

    def create(self, request: ArchiveRequest) -> subprocess.CompletedProcess[str]:
        ...

    def prune_args(self, request: PruneRequest) -> list[str]:
        ...

    def prune(self, request: PruneRequest) -> subprocess.CompletedProcess[str]:
        ...

    def describe(self, args: Iterable[str]) -> str:
        ...


class ChangeSetSelectorProtocol(Protocol):
    def select(
        self,
        source_root: Path,
        window_minutes: int,
        now: datetime,
        excludes: ExcludeRuleSet | None = None,
    ) -> tuple[Path, ...]:
        ...


class ClockProtocol(Protocol):
    def now(self) -> datetime:
        ...

    def now_iso(self) -> str:
        ...

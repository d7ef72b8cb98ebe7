from __future__ import annotations

import os
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pytest

from window_backup.core.backup_config import BackupConfig
from window_backup.core.errors import StoreError
from window_backup.core.requests import ArchiveRequest, InitRequest, PruneRequest


class FixedClock:
    def __init__(self, now: datetime | None = None) -> None:
        self._now = now or datetime(2026, 2, 16, 1, 2, 3)

    def now(self) -> datetime:
        return self._now

    def now_iso(self) -> str:
        return "2026-02-16T01:02:03Z"


class BorgStub:
    def __init__(
        self,
        *,
        initialized: bool = True,
        init_returncode: int = 0,
        create_returncode: int = 0,
        prune_returncode: int = 0,
        archives: Iterable[str] = (),
        list_error: bool = False,
    ) -> None:
        self.initialized = initialized
        self.init_returncode = init_returncode
        self.create_returncode = create_returncode
        self.prune_returncode = prune_returncode
        self.archives = list(archives)
        self.list_error = list_error
        self.calls: list[tuple[str, object]] = []

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def requests(self, name: str) -> list[object]:
        return [request for call, request in self.calls if call == name]

    def run(self, args, *, capture_output=True, check=False, input=None):
        raise NotImplementedError

    def ensure_available(self) -> None:
        self.calls.append(("ensure_available", None))

    def is_initialized(self, repository: Path) -> bool:
        return self.initialized

    def list_archives(self, repository: Path) -> list[str]:
        self.calls.append(("list", repository))
        if self.list_error:
            raise StoreError(repository, "Failed to create/acquire the lock", 2)
        return list(self.archives)

    def init_args(self, request: InitRequest) -> list[str]:
        return ["init", "--encryption=repokey", str(request.repository)]

    def initialize(self, request: InitRequest) -> subprocess.CompletedProcess[str]:
        self.calls.append(("init", request))
        if self.init_returncode == 0:
            self.initialized = True
        return self._completed("init", self.init_returncode)

    def create_args(self, request: ArchiveRequest) -> list[str]:
        return ["create", request.archive]

    def create(self, request: ArchiveRequest) -> subprocess.CompletedProcess[str]:
        self.calls.append(("create", request))
        return self._completed("create", self.create_returncode)

    def prune_args(self, request: PruneRequest) -> list[str]:
        return ["prune", str(request.repository)]

    def prune(self, request: PruneRequest) -> subprocess.CompletedProcess[str]:
        self.calls.append(("prune", request))
        return self._completed("prune", self.prune_returncode)

    def describe(self, args: Iterable[str]) -> str:
        return " ".join(["borg", *args])

    def _completed(self, action: str, returncode: int) -> subprocess.CompletedProcess[str]:
        stderr = f"{action} failed: simulated store error\n" if returncode >= 2 else ""
        return subprocess.CompletedProcess(["borg", action], returncode, stdout="", stderr=stderr)


def touch(path: Path, now: datetime, minutes_ago: float) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(path.name, encoding="utf-8")
    stamp = now.timestamp() - minutes_ago * 60
    os.utime(path, (stamp, stamp))
    return path


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def borg_stub() -> BorgStub:
    return BorgStub()


@pytest.fixture
def make_borg() -> type[BorgStub]:
    return BorgStub


@pytest.fixture
def touch_file():
    return touch


@pytest.fixture
def sample_config(tmp_path: Path) -> BackupConfig:
    source = tmp_path / "source"
    source.mkdir()
    return BackupConfig(
        config_file=tmp_path / "backup.toml",
        source=source,
        destination=tmp_path / "repo",
        exclude_patterns=("**/node_modules/", "**/*.log"),
        media_patterns=("*.mp4",),
    )

from __future__ import annotations

from pathlib import Path


class BackupToolError(Exception):
    exit_code = 1


class ConfigNotFound(BackupToolError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Config not found: {path}")
        self.path = path


class ConfigMalformed(BackupToolError):
    def __init__(self, path: Path, errors: list[str]) -> None:
        details = "\n".join(f"  - {error}" for error in errors)
        super().__init__(f"Invalid config {path}:\n{details}")
        self.path = path
        self.errors = errors


class SourceUnreadable(BackupToolError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot read source {path}: {reason}")
        self.path = path


class StoreError(BackupToolError):
    """A borg invocation failed; ``returncode`` becomes the process exit code."""

    stage = "store"

    def __init__(self, repository: Path, detail: str, returncode: int = 2) -> None:
        super().__init__(f"{self.stage} failed for {repository}: {detail}")
        self.repository = repository
        self.returncode = returncode
        self.exit_code = returncode if returncode > 0 else 1


class StoreUnavailable(StoreError):
    stage = "borg lookup"


class RepositoryInitFailed(StoreError):
    stage = "Repository initialization"


class BackupFailed(StoreError):
    stage = "Backup"


class PruneFailed(StoreError):
    stage = "Prune"

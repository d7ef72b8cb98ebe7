from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class BackupMode(str, Enum):
    INCREMENTAL = "incremental"
    FULL = "full"
    BORG_AUTO = "borg-auto"

    @classmethod
    def parse(cls, value: str) -> BackupMode:
        if value == "storeauto":
            return cls.BORG_AUTO
        return cls(value)


@dataclass(frozen=True)
class RetentionPolicy:
    hourly: int = 12
    daily: int = 14
    weekly: int = 4
    monthly: int = 12
    yearly: int = 5

    def summary(self) -> str:
        return (
            f"{self.hourly}h {self.daily}d {self.weekly}w "
            f"{self.monthly}m {self.yearly}y"
        )


@dataclass(frozen=True)
class BackupConfig:
    config_file: Path
    source: Path
    destination: Path
    mode: BackupMode = BackupMode.INCREMENTAL
    time_window_minutes: int = 5
    compression: str = "zstd,9"
    use_dedup: bool = True
    passphrase: str | None = None
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    exclude_patterns: tuple[str, ...] = ()
    media_patterns: tuple[str, ...] = ()

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Iterable

from .backup_config import BackupConfig
from .errors import StoreError, StoreUnavailable
from .requests import ArchiveRequest, InitRequest, PruneRequest

logger = logging.getLogger(__name__)

CHUNKER_PARAMS = "19,23,21,4095"

# borg: 0 success, 1 finished with warnings, 2 and up error
WARNING_RETURNCODE = 1


def is_error(process: subprocess.CompletedProcess[str]) -> bool:
    return process.returncode not in (0, WARNING_RETURNCODE)


def error_detail(process: subprocess.CompletedProcess[str]) -> str:
    lines = [line for line in (process.stderr or "").splitlines() if line.strip()]
    if lines:
        return f"{lines[-1].strip()} (borg exit {process.returncode})"
    return f"borg exited with {process.returncode}"


class BorgClient:
    def __init__(
        self,
        config: BackupConfig,
        verbose: bool = False,
        executable: str = "borg",
    ) -> None:
        self._config = config
        self._verbose = verbose
        self._executable = executable

    def run(
        self,
        args: Iterable[str],
        *,
        capture_output: bool = True,
        check: bool = False,
        input: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self._executable, *args]
        logger.debug("Running: %s", shlex.join(cmd))
        try:
            return subprocess.run(
                cmd,
                env=self._build_env(),
                text=True,
                errors="surrogateescape",
                capture_output=capture_output,
                check=check,
                input=input,
            )
        except FileNotFoundError as exc:
            raise StoreUnavailable(
                self._config.destination,
                f"'{self._executable}' executable not found",
            ) from exc

    def ensure_available(self) -> None:
        if shutil.which(self._executable) is None:
            raise StoreUnavailable(
                self._config.destination,
                f"'{self._executable}' executable not found on PATH",
            )

    def is_initialized(self, repository: Path) -> bool:
        return (repository / "config").is_file()

    def list_archives(self, repository: Path) -> list[str]:
        result = self.run(["list", "--short", str(repository)])
        if is_error(result):
            raise StoreError(repository, error_detail(result), result.returncode)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def init_args(self, request: InitRequest) -> list[str]:
        # borg sets compression per archive, so request.compression is applied
        # by every create rather than here.
        return ["init", f"--encryption={request.encryption}", str(request.repository)]

    def initialize(self, request: InitRequest) -> subprocess.CompletedProcess[str]:
        return self._relay(self.run(self.init_args(request)))

    def create_args(self, request: ArchiveRequest) -> list[str]:
        args = ["create"]
        if self._verbose:
            args.extend(["--verbose", "--list"])
        args.extend(["--compression", request.compression])
        if request.dedup_hint:
            args.append(f"--chunker-params={CHUNKER_PARAMS}")
        args.extend(request.excludes.as_args())
        if request.file_list is not None:
            args.append("--paths-from-stdin")
        args.append(request.archive)
        if request.file_list is None:
            args.append(str(request.source_root))
        return args

    def create(self, request: ArchiveRequest) -> subprocess.CompletedProcess[str]:
        paths = None
        if request.file_list is not None:
            paths = "".join(f"{path}\n" for path in request.file_list)
        return self._relay(self.run(self.create_args(request), input=paths))

    def prune_args(self, request: PruneRequest) -> list[str]:
        retention = request.retention
        args = ["prune"]
        if self._verbose:
            args.extend(["--verbose", "--list"])
        args.extend(
            [
                "--keep-hourly",
                str(retention.hourly),
                "--keep-daily",
                str(retention.daily),
                "--keep-weekly",
                str(retention.weekly),
                "--keep-monthly",
                str(retention.monthly),
                "--keep-yearly",
                str(retention.yearly),
                str(request.repository),
            ]
        )
        return args

    def prune(self, request: PruneRequest) -> subprocess.CompletedProcess[str]:
        return self._relay(self.run(self.prune_args(request)))

    def describe(self, args: Iterable[str]) -> str:
        return shlex.join([self._executable, *args])

    def _relay(
        self,
        process: subprocess.CompletedProcess[str],
    ) -> subprocess.CompletedProcess[str]:
        for line in (process.stdout or "").splitlines():
            logger.info("borg: %s", line)
        stderr_level = logging.ERROR if is_error(process) else logging.INFO
        for line in (process.stderr or "").splitlines():
            logger.log(stderr_level, "borg: %s", line)
        return process

    def _build_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["BORG_REPO"] = str(self._config.destination)
        if self._config.passphrase:
            env["BORG_PASSPHRASE"] = self._config.passphrase
        return env

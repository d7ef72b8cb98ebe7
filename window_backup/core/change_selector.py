from __future__ import annotations

import logging
import os
import stat
from datetime import datetime
from pathlib import Path

from .errors import SourceUnreadable
from .exclude_rules import ExcludeRuleSet

logger = logging.getLogger(__name__)


class ChangeSetSelector:
    def select(
        self,
        source_root: Path,
        window_minutes: int,
        now: datetime,
        excludes: ExcludeRuleSet | None = None,
    ) -> tuple[Path, ...]:
        """Regular files under ``source_root`` modified within the window.

        The boundary is inclusive. Files are returned in walk order, with
        names sorted inside each directory.
        """
        root = Path(source_root).absolute()
        try:
            with os.scandir(root):
                pass
        except OSError as exc:
            raise SourceUnreadable(root, exc.strerror or str(exc)) from exc

        cutoff = now.timestamp() - window_minutes * 60
        changed: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=self._skip_unreadable):
            directory = Path(dirpath)
            if excludes:
                dirnames[:] = [
                    name for name in dirnames if not excludes.matches(directory / name)
                ]
            dirnames.sort()
            for name in sorted(filenames):
                candidate = directory / name
                try:
                    info = candidate.lstat()
                except OSError:
                    continue
                if not stat.S_ISREG(info.st_mode) or info.st_mtime < cutoff:
                    continue
                if excludes and excludes.matches(candidate):
                    continue
                changed.append(candidate)

        logger.info(
            "Found %d changed files in last %d minutes", len(changed), window_minutes
        )
        return tuple(changed)

    def _skip_unreadable(self, error: OSError) -> None:
        logger.warning("Skipping unreadable directory %s: %s", error.filename, error.strerror)

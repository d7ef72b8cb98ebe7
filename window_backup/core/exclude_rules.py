from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .backup_config import BackupConfig

_STYLE_PREFIX = re.compile(r"^(fm|sh|re|pp|pf):(.*)$", re.DOTALL)


def _archive_path(path: Path | str) -> str:
    """Path as borg stores it: POSIX separators, no leading slash."""
    return str(PurePosixPath(str(path))).lstrip("/")


def _compile(pattern: str) -> tuple[str, re.Pattern[str]]:
    style, body = "fm", pattern
    prefixed = _STYLE_PREFIX.match(pattern)
    if prefixed:
        style, body = prefixed.groups()

    if style == "re":
        return style, re.compile(body)
    if style == "pp":
        prefix = _archive_path(body).rstrip("/")
        return style, re.compile(re.escape(prefix) + r"(?:/.*)?\Z", re.DOTALL)
    if style == "pf":
        return style, re.compile(re.escape(_archive_path(body)) + r"\Z", re.DOTALL)

    # fm (and sh, approximated): "dir/" excludes the contents of dir,
    # anything else excludes the entry and everything below it.
    body = body.lstrip("/")
    if body.endswith("/"):
        body = body.rstrip("/") + "/*/"
    else:
        body = body + "/*"
    return "fm", re.compile(fnmatch.translate(body))


@dataclass(frozen=True)
class ExcludeRuleSet:
    """Ordered exclude patterns, forwarded verbatim to ``borg create``.

    ``matches`` mirrors borg's own pattern styles closely enough to filter an
    explicit path list, which borg does not run through its exclude rules.
    """

    patterns: tuple[str, ...] = ()
    _compiled: tuple[tuple[str, re.Pattern[str]], ...] = field(
        default=(), init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_compiled", tuple(_compile(pattern) for pattern in self.patterns)
        )

    def __len__(self) -> int:
        return len(self.patterns)

    def as_args(self) -> list[str]:
        args: list[str] = []
        for pattern in self.patterns:
            args.extend(["--exclude", pattern])
        return args

    def matches(self, path: Path | str) -> bool:
        candidate = _archive_path(path)
        for style, compiled in self._compiled:
            if style == "re":
                hit = compiled.search(candidate)
            elif style == "fm":
                hit = compiled.match(candidate + "/")
            else:
                hit = compiled.match(candidate)
            if hit:
                return True
        return False


def build_exclude_rules(config: BackupConfig) -> ExcludeRuleSet:
    return ExcludeRuleSet(config.exclude_patterns + config.media_patterns)

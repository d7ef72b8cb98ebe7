from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, fields
from pathlib import Path

from .backup_config import BackupConfig, BackupMode, RetentionPolicy
from .errors import ConfigMalformed, ConfigNotFound

logger = logging.getLogger(__name__)

_SECTION = re.compile(r"^\[\s*([^\[\]\s]+)\s*\]$")
_ASSIGNMENT = re.compile(r"^([A-Za-z0-9_.-]+)\s*=\s*(.*)$")
_COUNT = re.compile(r"^\d+$")
_QUOTES = "\"'"

RETENTION_TIERS = tuple(tier.name for tier in fields(RetentionPolicy))


class DocumentError(ValueError):
    def __init__(self, line: int, message: str) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


@dataclass(frozen=True)
class Token:
    section: str
    key: str
    value: str | tuple[str, ...]
    line: int


@dataclass(frozen=True)
class ConfigOverrides:
    source: str | None = None
    destination: str | None = None
    mode: str | None = None
    time_window: str | None = None


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def _strip_comment(text: str) -> str:
    quote = ""
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = ""
        elif char in _QUOTES:
            quote = char
        elif char == "#":
            return text[:index]
    return text


def _scan_elements(fragment: str) -> tuple[list[str], bool]:
    """Split one line of a list body on commas outside quotes.

    Returns the cleaned elements and whether the closing bracket was reached.
    A ``]`` only closes the list when nothing but a comment follows it, so
    bracket globs such as ``*.[ch]`` survive unquoted.
    """
    raw: list[str] = []
    current: list[str] = []
    quote = ""
    closed = False
    for index, char in enumerate(fragment):
        if quote:
            current.append(char)
            if char == quote:
                quote = ""
        elif char in _QUOTES:
            quote = char
            current.append(char)
        elif char == "#":
            break
        elif char == ",":
            raw.append("".join(current))
            current = []
        elif char == "]" and not _strip_comment(fragment[index + 1:]).strip():
            closed = True
            break
        else:
            current.append(char)
    raw.append("".join(current))
    elements = [_unquote(item.strip()) for item in raw]
    return [element for element in elements if element], closed


def tokenize(text: str) -> Iterator[Token]:
    """Turn a config document into a flat stream of scoped assignments.

    Inline lists (``key = [a, b]``) and block lists (one or more elements per
    line until the closing bracket) both produce a single tuple-valued token.
    """
    section = ""
    lines = enumerate(text.splitlines(), start=1)
    for number, raw_line in lines:
        line = _strip_comment(raw_line).strip()
        if not line:
            continue
        header = _SECTION.match(line)
        if header:
            section = header.group(1)
            continue
        assignment = _ASSIGNMENT.match(line)
        if assignment is None:
            continue

        key, value = assignment.group(1), assignment.group(2).strip()
        if not value.startswith("["):
            yield Token(section, key, _unquote(value), number)
            continue

        elements, closed = _scan_elements(value[1:])
        while not closed:
            try:
                _, continuation = next(lines)
            except StopIteration:
                raise DocumentError(number, f"list '{key}' is never closed") from None
            if _SECTION.match(_strip_comment(continuation).strip()):
                raise DocumentError(number, f"list '{key}' is never closed")
            more, closed = _scan_elements(continuation)
            elements.extend(more)
        yield Token(section, key, tuple(elements), number)


class ConfigDocument:
    def __init__(self, tokens: Iterable[Token]) -> None:
        self._values: dict[tuple[str, str], str | tuple[str, ...]] = {}
        for token in tokens:
            self._values.setdefault((token.section, token.key), token.value)

    @classmethod
    def parse(cls, text: str) -> ConfigDocument:
        return cls(tokenize(text))

    def get(self, section: str, key: str) -> str | tuple[str, ...] | None:
        return self._values.get((section, key))

    def scalar(
        self,
        section: str,
        key: str,
        default: str = "",
    ) -> str | tuple[str, ...]:
        value = self.get(section, key)
        if value is None or value == "":
            return default
        return value

    def items(self, section: str, key: str) -> tuple[str, ...]:
        value = self.get(section, key)
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,) if value else ()
        return value


class ConfigLoader:
    def __init__(self, config_home: Path) -> None:
        self._config_home = config_home

    @property
    def default_config_file(self) -> Path:
        return self._config_home / "backup.toml"

    def load(
        self,
        config_path: str | None = None,
        overrides: ConfigOverrides | None = None,
    ) -> BackupConfig:
        config_file = (
            Path(config_path).expanduser() if config_path else self.default_config_file
        )
        if not config_file.is_file():
            raise ConfigNotFound(config_file)

        logger.debug("Loading config: %s", config_file)
        try:
            text = config_file.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as exc:
            raise ConfigMalformed(config_file, [str(exc)]) from exc
        try:
            document = ConfigDocument.parse(text)
        except DocumentError as exc:
            raise ConfigMalformed(config_file, [str(exc)]) from exc

        values = self.resolve(document, config_file.parent, overrides)
        errors = self.validate(values)
        if errors:
            raise ConfigMalformed(config_file, errors)
        return self._build(config_file, values)

    def resolve(
        self,
        document: ConfigDocument,
        base_dir: Path,
        overrides: ConfigOverrides | None = None,
    ) -> dict[str, str | tuple[str, ...]]:
        defaults = BackupConfig(Path(), Path(), Path())
        values: dict[str, str | tuple[str, ...]] = {
            "source": document.scalar("backup", "source"),
            "destination": document.scalar(
                "backup", "dest", document.scalar("backup", "destination")
            ),
            "mode": document.scalar("backup", "mode", defaults.mode.value),
            "time_window": document.scalar(
                "backup", "time_window", str(defaults.time_window_minutes)
            ),
            "compression": document.scalar("backup", "compression", defaults.compression),
            "use_dedup": document.scalar("backup", "use_dedup", "true"),
            "passphrase": document.scalar("backup", "passphrase"),
            "exclude_patterns": document.items("exclude", "patterns"),
            "media_patterns": document.items("exclude", "media_patterns"),
        }
        for tier in RETENTION_TIERS:
            values[tier] = document.scalar(
                "retention", tier, str(getattr(defaults.retention, tier))
            )

        if overrides is not None:
            for name in ("source", "destination", "mode", "time_window"):
                override = getattr(overrides, name)
                if override is not None:
                    values[name] = override

        for name in ("source", "destination"):
            value = values[name]
            if isinstance(value, str) and value:
                values[name] = str(self._resolve_path(value, base_dir))
        return values

    def validate(self, values: Mapping[str, str | tuple[str, ...]]) -> list[str]:
        errors: list[str] = []
        scalars: dict[str, str] = {}
        for name, value in values.items():
            if name in ("exclude_patterns", "media_patterns"):
                continue
            if isinstance(value, tuple):
                errors.append(f"'{name}' must be a single value, not a list")
            else:
                scalars[name] = value

        source = scalars.get("source")
        if source == "":
            errors.append("Source not specified")
        elif source is not None and not Path(source).is_dir():
            errors.append(f"Source not found: {source}")
        if scalars.get("destination") == "":
            errors.append("Destination not specified")

        mode = scalars.get("mode")
        if mode is not None:
            try:
                BackupMode.parse(mode)
            except ValueError:
                choices = ", ".join(item.value for item in BackupMode)
                errors.append(f"Invalid mode: {mode} (expected one of {choices})")

        window = scalars.get("time_window")
        if window is not None and (not _COUNT.match(window) or int(window) == 0):
            errors.append(
                f"Invalid time window: {window} (expected a positive number of minutes)"
            )

        use_dedup = scalars.get("use_dedup")
        if use_dedup is not None and use_dedup.lower() not in ("true", "false"):
            errors.append(f"Invalid use_dedup: {use_dedup} (expected true or false)")

        for tier in RETENTION_TIERS:
            count = scalars.get(tier)
            if count is not None and not _COUNT.match(count):
                errors.append(f"Invalid retention count for {tier}: {count}")
        return errors

    def _build(
        self,
        config_file: Path,
        values: Mapping[str, str | tuple[str, ...]],
    ) -> BackupConfig:
        scalar = {
            name: value for name, value in values.items() if isinstance(value, str)
        }
        retention = RetentionPolicy(
            **{tier: int(scalar[tier]) for tier in RETENTION_TIERS}
        )
        return BackupConfig(
            config_file=config_file,
            source=Path(scalar["source"]),
            destination=Path(scalar["destination"]),
            mode=BackupMode.parse(scalar["mode"]),
            time_window_minutes=int(scalar["time_window"]),
            compression=scalar["compression"],
            use_dedup=scalar["use_dedup"].lower() == "true",
            passphrase=scalar["passphrase"] or None,
            retention=retention,
            exclude_patterns=tuple(values["exclude_patterns"]),
            media_patterns=tuple(values["media_patterns"]),
        )

    def _resolve_path(self, value: str, base_dir: Path) -> Path:
        resolved = Path(os.path.expandvars(value)).expanduser()
        if not resolved.is_absolute():
            resolved = base_dir / resolved
        return resolved

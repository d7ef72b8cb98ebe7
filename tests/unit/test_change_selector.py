from __future__ import annotations

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest

from window_backup.core.change_selector import ChangeSetSelector
from window_backup.core.errors import SourceUnreadable
from window_backup.core.exclude_rules import ExcludeRuleSet

NOW = datetime(2026, 2, 16, 1, 2, 3)


def test_select_returns_only_files_inside_window(tmp_path: Path, touch_file) -> None:
    recent_a = touch_file(tmp_path / "a.txt", NOW, 1)
    recent_b = touch_file(tmp_path / "docs" / "b.txt", NOW, 1)
    for index in range(3):
        touch_file(tmp_path / f"old-{index}.txt", NOW, 10)

    changed = ChangeSetSelector().select(tmp_path, 5, NOW)

    assert changed == (recent_a, recent_b)


def test_select_returns_empty_when_nothing_changed(tmp_path: Path, touch_file) -> None:
    for index in range(5):
        touch_file(tmp_path / f"old-{index}.txt", NOW, 10)

    assert ChangeSetSelector().select(tmp_path, 5, NOW) == ()


def test_window_boundary_is_inclusive(tmp_path: Path) -> None:
    now = datetime.fromtimestamp(1_700_000_000)
    on_boundary = tmp_path / "boundary.txt"
    just_outside = tmp_path / "outside.txt"
    on_boundary.write_text("b", encoding="utf-8")
    just_outside.write_text("o", encoding="utf-8")
    os.utime(on_boundary, (1_700_000_000 - 300, 1_700_000_000 - 300))
    os.utime(just_outside, (1_700_000_000 - 301, 1_700_000_000 - 301))

    assert ChangeSetSelector().select(tmp_path, 5, now) == (on_boundary,)


def test_select_skips_directories_and_symlinks(tmp_path: Path, touch_file) -> None:
    real = touch_file(tmp_path / "real.txt", NOW, 0)
    (tmp_path / "fresh-dir").mkdir()
    (tmp_path / "link.txt").symlink_to(real)
    (tmp_path / "dangling").symlink_to(tmp_path / "nowhere")

    assert ChangeSetSelector().select(tmp_path, 5, NOW) == (real,)


def test_select_walks_in_sorted_order(tmp_path: Path, touch_file) -> None:
    paths = [
        touch_file(tmp_path / "b.txt", NOW, 0),
        touch_file(tmp_path / "a" / "z.txt", NOW, 0),
        touch_file(tmp_path / "a.txt", NOW, 0),
        touch_file(tmp_path / "c" / "d" / "e.txt", NOW, 0),
    ]

    changed = ChangeSetSelector().select(tmp_path, 5, NOW)

    assert changed == (
        tmp_path / "a.txt",
        tmp_path / "b.txt",
        tmp_path / "a" / "z.txt",
        tmp_path / "c" / "d" / "e.txt",
    )
    assert set(changed) == set(paths)


def test_select_drops_excluded_files_and_directories(tmp_path: Path, touch_file) -> None:
    kept = touch_file(tmp_path / "src" / "main.py", NOW, 0)
    touch_file(tmp_path / "src" / "node_modules" / "lib.js", NOW, 0)
    touch_file(tmp_path / "src" / "debug.log", NOW, 0)
    touch_file(tmp_path / ".git" / "HEAD", NOW, 0)
    excludes = ExcludeRuleSet(("**/node_modules/", "**/*.log", "**/.git"))

    assert ChangeSetSelector().select(tmp_path, 5, NOW, excludes) == (kept,)


def test_select_returns_absolute_paths(
    tmp_path: Path,
    touch_file,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    touch_file(tmp_path / "src" / "a.txt", NOW, 0)
    monkeypatch.chdir(tmp_path)

    changed = ChangeSetSelector().select(Path("src"), 5, NOW)

    assert changed == (tmp_path.resolve() / "src" / "a.txt",)
    assert all(path.is_absolute() for path in changed)


def test_select_raises_for_missing_root(tmp_path: Path) -> None:
    with pytest.raises(SourceUnreadable, match="Cannot read source"):
        ChangeSetSelector().select(tmp_path / "missing", 5, NOW)


def test_select_raises_when_root_is_a_file(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(SourceUnreadable):
        ChangeSetSelector().select(target, 5, NOW)


@pytest.mark.skipif(
    sys.platform != "linux",
    reason="needs a filesystem that stores arbitrary filename bytes",
)
def test_select_keeps_non_utf8_filenames(tmp_path: Path) -> None:
    raw = os.path.join(os.fsencode(tmp_path), b"bad-\xff.txt")
    with open(raw, "wb") as handle:
        handle.write(b"content")
    os.utime(raw, (NOW.timestamp(), NOW.timestamp()))

    changed = ChangeSetSelector().select(tmp_path, 5, NOW)

    assert [os.fsencode(path) for path in changed] == [
        os.path.join(os.fsencode(tmp_path.absolute()), b"bad-\xff.txt")
    ]

"""Unit tests for path resolution."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from smartbar.plugin_authoring.paths import has_wildcard, to_full_path
from smartbar.utils.exceptions import PathResolutionError


@pytest.mark.parametrize("value", [None, "", "   "])
def test_blank_path_resolves_to_none(value) -> None:
    """Test that blank input yields no path."""
    assert to_full_path(value) is None


def test_relative_path_uses_working_directory(tmp_path: Path) -> None:
    """Test that relative paths are resolved against the working directory."""
    assert to_full_path("plugins/Sample.nuspec") == tmp_path / "plugins" / "Sample.nuspec"


def test_relative_path_uses_base_directory(tmp_path: Path) -> None:
    """Test resolution against an explicit base directory."""
    base = tmp_path / "base"
    assert to_full_path("../other/./file.txt", base_dir=base) == tmp_path / "other" / "file.txt"


def test_absolute_path_is_kept(tmp_path: Path) -> None:
    """Test that absolute paths are only normalized."""
    assert to_full_path(str(tmp_path / "a" / ".." / "b")) == tmp_path / "b"


def test_missing_literal_path_is_not_an_error(tmp_path: Path) -> None:
    """Test that a literal path does not need to exist."""
    assert to_full_path("does-not-exist") == tmp_path / "does-not-exist"


def test_home_and_environment_expansion(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test expansion of ``~`` and environment variables."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("PLUGIN_DIR", "plugins")

    assert to_full_path("~/packages") == tmp_path / "packages"
    assert to_full_path(f"${{PLUGIN_DIR}}{os.sep}Sample.nuspec") == tmp_path / "plugins" / "Sample.nuspec"


def test_wildcard_resolves_to_first_match(tmp_path: Path) -> None:
    """Test that a wildcard pattern resolves to its first sorted match."""
    (tmp_path / "b.nuspec").touch()
    (tmp_path / "a.nuspec").touch()

    assert to_full_path("*.nuspec") == tmp_path / "a.nuspec"


def test_wildcard_without_match_raises(tmp_path: Path) -> None:
    """Test that an unmatched wildcard pattern is an error."""
    with pytest.raises(PathResolutionError) as exc_info:
        to_full_path("missing/*.nuspec")

    assert "does not exist" in str(exc_info.value)
    assert exc_info.value.details["path"] == "missing/*.nuspec"


@pytest.mark.parametrize(
    "value, expected",
    [("*.nuspec", True), ("file?.txt", True), ("[ab].txt", True), ("plain/path.txt", False)],
)
def test_has_wildcard(value: str, expected: bool) -> None:
    """Test detection of glob wildcard characters."""
    assert has_wildcard(value) is expected

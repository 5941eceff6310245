"""Unit tests for operation results."""

from __future__ import annotations

from pathlib import Path

import pytest

from smartbar.plugin_authoring.package import PackageRecord
from smartbar.plugin_authoring.results import OperationResult
from smartbar.plugin_authoring.versions import parse_version


@pytest.fixture
def record() -> PackageRecord:
    return PackageRecord(id="Sample", version=parse_version("1.2.3"), tags=frozenset({"smartbar"}))


def test_success(record) -> None:
    """Test a successful result."""
    result = OperationResult.success(record, output=Path("out/Sample (1.2.3).nupkg"))

    assert result.successful
    assert result.exception is None
    assert result.payload is record
    assert result.output == Path("out/Sample (1.2.3).nupkg")


def test_faulted(record) -> None:
    """Test a faulted result."""
    error = RuntimeError("push failed")
    result = OperationResult.faulted(record, error)

    assert not result.successful
    assert result.exception is error
    assert result.output is None


def test_missing_values_are_rejected(record) -> None:
    """Test that results require a payload and, when faulted, an exception."""
    with pytest.raises(ValueError):
        OperationResult.success(None)

    with pytest.raises(ValueError):
        OperationResult.faulted(None, RuntimeError("boom"))

    with pytest.raises(ValueError):
        OperationResult.faulted(record, None)


def test_to_dict(record) -> None:
    """Test the JSON representation of results."""
    assert OperationResult.success(record).to_dict() == {
        "successful": True,
        "payload": record.to_dict(),
        "error": None,
        "output": None,
    }

    faulted = OperationResult.faulted(Path("broken.nuspec"), ValueError("bad manifest")).to_dict()
    assert faulted["successful"] is False
    assert faulted["payload"] == "broken.nuspec"
    assert faulted["error"] == "bad manifest"

"""Pytest configuration and fixtures for Smartbar authoring tests."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Generator, Iterable, List, Optional, Sequence, Tuple

import pytest
import yaml

from smartbar.core.config_manager import ConfigManager
from smartbar.plugin_authoring.manifest import ManifestFile, ManifestMetadata
from smartbar.plugin_authoring.package import PackageBuilder

ATOM_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<feed xml:base="{base}" xmlns="http://www.w3.org/2005/Atom"
      xmlns:d="http://schemas.microsoft.com/ado/2007/08/dataservices"
      xmlns:m="http://schemas.microsoft.com/ado/2007/08/dataservices/metadata">
  <title type="text">Packages</title>
  {entries}
  {next_link}
</feed>
"""

ENTRY_TEMPLATE = """<entry>
    <id>{base}/Packages(Id='{id}',Version='{version}')</id>
    <title type="text">{id}</title>
    <author><name>Jane Doe</name></author>
    <content type="application/zip" src="{base}/api/v2/package/{id}/{version}" />
    <m:properties>
      <d:Version>{version}</d:Version>
      <d:Title>{id} plugin</d:Title>
      <d:Description>The {id} plugin</d:Description>
      <d:Tags>{tags}</d:Tags>
      <d:PackageSize m:type="Edm.Int64">1024</d:PackageSize>
    </m:properties>
  </entry>"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Isolate tests from the caller's environment and working directory."""
    for name in list(os.environ):
        if name.startswith("SMARTBAR_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary configuration file for testing."""
    test_config = {
        "feed": {
            "server_url": "http://feed.test",
            "feed_suffix": "nuget",
            "api_key": "secret-key",
        },
        "logging": {
            "level": "DEBUG",
            "file": {"enabled": False},
            "console": {"enabled": True, "level": "DEBUG"},
        },
    }
    config_path = tmp_path / "smartbar-test.yaml"
    config_path.write_text(yaml.dump(test_config), encoding="utf-8")
    return config_path


@pytest.fixture
def config_manager(temp_config_file: Path) -> Generator[ConfigManager, None, None]:
    """Create a ConfigManager instance for testing."""
    manager = ConfigManager(config_path=temp_config_file)
    manager.initialize()
    yield manager
    manager.shutdown()


@pytest.fixture
def log_messages() -> Tuple[List[Tuple[str, str]], Callable[[str, str], None]]:
    """Collect ``(level, message)`` pairs sent to a logger function."""
    messages: List[Tuple[str, str]] = []

    def log(message: str, level: str = "info") -> None:
        messages.append((level, message))

    return messages, log


def nuspec_xml(
        package_id: str = "Sample",
        version: str = "1.2.3",
        tags: str = "smartbar",
        files: Sequence[Tuple[str, Optional[str]]] = (("content.txt", None),),
        extra_metadata: str = ""
) -> str:
    """Render a minimal ``.nuspec`` document."""
    file_elements = "\n".join(
        f'    <file src="{src}"' + (f' target="{target}"' if target else "") + " />"
        for src, target in files
    )
    return f"""<?xml version="1.0"?>
        <package xmlns="http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd">
          <metadata>
            <id>{package_id}</id>
            <version>{version}</version>
            <authors>Jane Doe</authors>
            <description>The {package_id} plugin</description>
            <tags>{tags}</tags>
            {extra_metadata}
          </metadata>
          <files>
        {file_elements}
          </files>
        </package>
"""


@pytest.fixture
def write_manifest() -> Callable[..., Path]:
    """Write a manifest and a ``content.txt`` beside it."""

    def _write(directory: Path, package_id: str = "Sample", version: str = "1.2.3", **kwargs) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "content.txt").write_text("hello", encoding="utf-8")
        manifest_path = directory / f"{package_id}.nuspec"
        manifest_path.write_text(nuspec_xml(package_id, version, **kwargs), encoding="utf-8")
        return manifest_path

    return _write


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., Path]:
    """Build a package archive into a directory."""
    payload = tmp_path / "payload.txt"
    payload.write_text("payload", encoding="utf-8")

    def _make(
            directory: Path,
            package_id: str,
            version: str = "1.0.0",
            tags: Iterable[str] = ("smartbar",)
    ) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        builder = PackageBuilder()
        builder.populate(ManifestMetadata(
            id=package_id,
            version=version,
            authors=("Jane Doe",),
            description=f"The {package_id} plugin",
            tags=tuple(tags),
        ))
        builder.populate_files(tmp_path, [ManifestFile(source="payload.txt", target="content")])
        path = directory / f"{package_id} ({version}).nupkg"
        with open(path, "wb") as f:
            builder.save(f)
        return path

    return _make


def atom_feed(
        packages: Iterable[Tuple[str, str, str]],
        base: str = "http://feed.test/nuget",
        next_url: Optional[str] = None
) -> str:
    """Render a NuGet v2 Atom feed page from ``(id, version, tags)`` tuples."""
    entries = "\n  ".join(
        ENTRY_TEMPLATE.format(base=base, id=package_id, version=version, tags=tags)
        for package_id, version, tags in packages
    )
    next_link = f'<link rel="next" href="{next_url}" />' if next_url else ""
    return ATOM_TEMPLATE.format(base=base, entries=entries, next_link=next_link)


@pytest.fixture
def feed_xml() -> Callable[..., str]:
    """Render NuGet v2 Atom feed pages."""
    return atom_feed


@pytest.fixture
def manifest_xml() -> Callable[..., str]:
    """Render ``.nuspec`` documents."""
    return nuspec_xml

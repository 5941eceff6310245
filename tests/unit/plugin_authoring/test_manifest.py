"""Unit tests for manifest parsing."""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest
from pydantic import ValidationError

from smartbar.plugin_authoring.manifest import (
    NUSPEC_NAMESPACE,
    ManifestFile,
    ManifestMetadata,
    PluginManifest,
)
from smartbar.plugin_authoring.versions import parse_version
from smartbar.utils.exceptions import ManifestError

FULL_MANIFEST = b"""<?xml version="1.0" encoding="utf-8"?>
<package xmlns="http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd">
  <metadata>
    <id>Smartbar.Calculator</id>
    <version>2.1</version>
    <title>Calculator</title>
    <authors>Jane Doe, John Roe</authors>
    <owners>Smartbar</owners>
    <requireLicenseAcceptance>true</requireLicenseAcceptance>
    <description>Evaluates expressions typed into the bar</description>
    <releaseNotes>First release</releaseNotes>
    <tags>smartbar math</tags>
    <dependencies>
      <group targetFramework="net45">
        <dependency id="Smartbar.Core" version="1.0.0" />
      </group>
      <dependency id="Newtonsoft.Json" version="[6.0,)" />
    </dependencies>
  </metadata>
  <files>
    <file src="bin\\Release\\*.dll" target="lib\\net45" />
    <file src="readme.txt" exclude="*.bak" />
  </files>
</package>
"""


def test_read_full_manifest() -> None:
    """Test parsing every supported metadata element."""
    manifest = PluginManifest.read_from(io.BytesIO(FULL_MANIFEST))
    metadata = manifest.metadata

    assert metadata.id == "Smartbar.Calculator"
    assert metadata.version == "2.1"
    assert metadata.title == "Calculator"
    assert metadata.authors == ("Jane Doe", "John Roe")
    assert metadata.owners == ("Smartbar",)
    assert metadata.require_license_acceptance is True
    assert metadata.release_notes == "First release"
    assert metadata.tags == ("smartbar", "math")
    assert metadata.semantic_version == parse_version("2.1.0")
    assert metadata.semantic_version.normalized == "2.1.0"
    assert manifest.display_name == "Smartbar.Calculator (2.1)"

    dependency_ids = [(d.id, d.target_framework) for d in metadata.dependencies]
    assert dependency_ids == [("Smartbar.Core", "net45"), ("Newtonsoft.Json", None)]

    assert manifest.files == (
        ManifestFile(source="bin\\Release\\*.dll", target="lib\\net45"),
        ManifestFile(source="readme.txt", exclude="*.bak"),
    )


def test_read_manifest_from_path(tmp_path: Path, manifest_xml) -> None:
    """Test parsing a manifest file from disk."""
    path = tmp_path / "Sample.nuspec"
    path.write_text(manifest_xml("Sample", "1.2.3"), encoding="utf-8")

    manifest = PluginManifest.read_from(path)

    assert manifest.metadata.id == "Sample"
    assert manifest.files == (ManifestFile(source="content.txt"),)


def test_manifest_without_namespace() -> None:
    """Test that manifests without the nuspec namespace are accepted."""
    document = (
        b"<package><metadata><id>Plain</id><version>1.0.0</version>"
        b"<authors>Jane</authors><description>Plain</description></metadata></package>"
    )
    manifest = PluginManifest.read_from(io.BytesIO(document))
    assert manifest.metadata.id == "Plain"
    assert manifest.files == ()


@pytest.mark.parametrize(
    "document",
    [
        b"<package><metadata><id>Broken</id>",
        b"<project><metadata /></project>",
        b"<package><files /></package>",
    ],
)
def test_malformed_manifest_raises(document: bytes) -> None:
    """Test that structurally invalid documents are rejected."""
    with pytest.raises(ManifestError):
        PluginManifest.read_from(io.BytesIO(document))


def test_missing_required_metadata() -> None:
    """Test that validation reports every missing required field."""
    document = b"<package><metadata><id>Sample</id><version>1.0.0</version></metadata></package>"

    with pytest.raises(ManifestError) as exc_info:
        PluginManifest.read_from(io.BytesIO(document))
    assert "authors, description" in str(exc_info.value)

    # Without validation only identity is needed
    manifest = PluginManifest.read_from(io.BytesIO(document), validate=False)
    assert manifest.metadata.authors == ()


@pytest.mark.parametrize("version", ["not-a-version", "1.2.3.4.5"])
def test_invalid_version_raises(version: str) -> None:
    """Test that unparsable versions are rejected."""
    document = (
        f"<package><metadata><id>Sample</id><version>{version}</version>"
        f"<authors>Jane</authors><description>d</description></metadata></package>"
    ).encode()

    with pytest.raises(ManifestError):
        PluginManifest.read_from(io.BytesIO(document))


def test_missing_file_raises_with_path(tmp_path: Path) -> None:
    """Test that an unreadable file reports its path."""
    path = tmp_path / "missing.nuspec"

    with pytest.raises(ManifestError) as exc_info:
        PluginManifest.read_from(path)
    assert exc_info.value.details["manifest_path"] == str(path)


@pytest.mark.parametrize("package_id", ["has space", "-leading", "bad/char", ""])
def test_invalid_package_id(package_id: str) -> None:
    """Test package identifier validation."""
    with pytest.raises(ValidationError):
        ManifestMetadata(id=package_id, version="1.0.0")


def test_metadata_is_frozen() -> None:
    """Test that parsed metadata cannot be modified."""
    metadata = ManifestMetadata(id="Sample", version="1.0.0")

    with pytest.raises(ValidationError):
        metadata.id = "Other"


def test_to_xml_writes_metadata() -> None:
    """Test serialization of the metadata stored inside archives."""
    manifest = PluginManifest.read_from(io.BytesIO(FULL_MANIFEST))

    root = ET.fromstring(manifest.to_xml())
    ns = {"n": NUSPEC_NAMESPACE}

    assert root.tag == f"{{{NUSPEC_NAMESPACE}}}package"
    assert root.findtext("n:metadata/n:id", namespaces=ns) == "Smartbar.Calculator"
    assert root.findtext("n:metadata/n:version", namespaces=ns) == "2.1"
    assert root.findtext("n:metadata/n:tags", namespaces=ns) == "smartbar math"
    assert root.findtext("n:metadata/n:authors", namespaces=ns) == "Jane Doe,John Roe"
    assert len(root.findall("n:metadata/n:dependencies/n:dependency", ns)) == 2
    assert root.find("n:files", ns) is None

    reparsed = PluginManifest.read_from(io.BytesIO(manifest.to_xml()))
    assert reparsed.metadata.tags == manifest.metadata.tags


def test_four_part_version_is_kept_as_written() -> None:
    """Test that a version with a revision part is accepted unchanged."""
    document = (
        b"<package><metadata><id>Sample</id><version>1.0.0.0</version>"
        b"<authors>Jane</authors><description>d</description></metadata></package>"
    )

    metadata = PluginManifest.read_from(io.BytesIO(document)).metadata

    assert metadata.version == "1.0.0.0"
    assert metadata.semantic_version == parse_version("1.0.0")

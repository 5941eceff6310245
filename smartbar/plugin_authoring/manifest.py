"""Plugin manifest definition and parsing.

A manifest is a ``.nuspec`` document describing a package's identity
(``id`` and ``version``), its descriptive metadata and the files that go
into the package archive::

    <package xmlns="http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd">
      <metadata>
        <id>Sample</id>
        <version>1.2.3</version>
        <authors>Jane</authors>
        <description>A Smartbar plugin</description>
        <tags>smartbar launcher</tags>
      </metadata>
      <files>
        <file src="bin\\Release\\*.dll" target="lib" />
      </files>
    </package>
"""

from __future__ import annotations

import io
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

import pydantic
from pydantic import ConfigDict, Field, field_validator

from smartbar.plugin_authoring.versions import PackageVersion, parse_version
from smartbar.utils.exceptions import ManifestError

NUSPEC_NAMESPACE = "http://schemas.microsoft.com/packaging/2010/07/nuspec.xsd"

_ID_REGEX = re.compile(r"^\w+([_.-]\w+)*$")

# Metadata elements in the order they are written, mapped to model fields
_METADATA_ELEMENTS: Tuple[Tuple[str, str], ...] = (
    ("id", "id"),
    ("version", "version"),
    ("title", "title"),
    ("authors", "authors"),
    ("owners", "owners"),
    ("licenseUrl", "license_url"),
    ("projectUrl", "project_url"),
    ("iconUrl", "icon_url"),
    ("requireLicenseAcceptance", "require_license_acceptance"),
    ("description", "description"),
    ("summary", "summary"),
    ("releaseNotes", "release_notes"),
    ("copyright", "copyright"),
    ("language", "language"),
    ("tags", "tags"),
)


class ManifestDependency(pydantic.BaseModel):
    """A package dependency declared in the manifest."""

    model_config = ConfigDict(frozen=True)

    id: str
    version: Optional[str] = None
    target_framework: Optional[str] = None


class ManifestFile(pydantic.BaseModel):
    """A file inclusion entry of the manifest.

    Attributes:
        source: Source path or wildcard pattern relative to the base directory
        target: Path inside the archive
        exclude: Semicolon-separated patterns removed from the matches
    """

    model_config = ConfigDict(frozen=True)

    source: str
    target: Optional[str] = None
    exclude: Optional[str] = None

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("File source must not be empty")
        return v.strip()


class ManifestMetadata(pydantic.BaseModel):
    """Identity and descriptive metadata of a package."""

    model_config = ConfigDict(frozen=True)

    id: str
    version: str
    title: Optional[str] = None
    authors: Tuple[str, ...] = ()
    owners: Tuple[str, ...] = ()
    description: Optional[str] = None
    summary: Optional[str] = None
    release_notes: Optional[str] = None
    copyright: Optional[str] = None
    language: Optional[str] = None
    project_url: Optional[str] = None
    icon_url: Optional[str] = None
    license_url: Optional[str] = None
    require_license_acceptance: bool = False
    tags: Tuple[str, ...] = ()
    dependencies: Tuple[ManifestDependency, ...] = ()

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        v = v.strip()
        if not _ID_REGEX.match(v) or len(v) > 100:
            raise ValueError(f"'{v}' is not a valid package id")
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        return str(parse_version(v))

    @field_validator("authors", "owners", mode="before")
    @classmethod
    def split_people(cls, v: Any) -> Any:
        if isinstance(v, str):
            return tuple(part.strip() for part in v.split(",") if part.strip())
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        if isinstance(v, str):
            return tuple(v.split())
        return v

    @property
    def semantic_version(self) -> PackageVersion:
        """The parsed package version."""
        return parse_version(self.version)


class PluginManifest(pydantic.BaseModel):
    """A parsed package manifest: metadata plus file inclusion entries."""

    model_config = ConfigDict(frozen=True)

    metadata: ManifestMetadata
    files: Tuple[ManifestFile, ...] = Field(default_factory=tuple)

    @property
    def display_name(self) -> str:
        """``id (version)`` as used in progress messages."""
        return f"{self.metadata.id} ({self.metadata.version})"

    @classmethod
    def read_from(
            cls,
            source: Union[str, Path, BinaryIO],
            validate: bool = True
    ) -> PluginManifest:
        """Parse a manifest from a ``.nuspec`` file or stream.

        Args:
            source: Path to the manifest file, or a binary stream
            validate: Whether to enforce the fields every package requires

        Returns:
            The parsed manifest

        Raises:
            ManifestError: If the document cannot be parsed or is invalid
        """
        manifest_path = str(source) if isinstance(source, (str, Path)) else None
        try:
            if isinstance(source, (str, Path)):
                with open(source, "rb") as f:
                    root = ET.parse(f).getroot()
            else:
                root = ET.parse(source).getroot()
        except (OSError, ET.ParseError) as e:
            raise ManifestError(f"Failed to read manifest: {e}", manifest_path=manifest_path) from e

        if _local_name(root.tag) != "package":
            raise ManifestError(
                f"Invalid manifest root element '{_local_name(root.tag)}'", manifest_path=manifest_path
            )

        metadata_element = _child(root, "metadata")
        if metadata_element is None:
            raise ManifestError("Manifest has no metadata element", manifest_path=manifest_path)

        data: Dict[str, Any] = {}
        for element_name, field_name in _METADATA_ELEMENTS:
            element = _child(metadata_element, element_name)
            if element is not None and element.text and element.text.strip():
                data[field_name] = element.text.strip()
        if "require_license_acceptance" in data:
            data["require_license_acceptance"] = data["require_license_acceptance"].lower() == "true"
        data["dependencies"] = _read_dependencies(metadata_element)

        files: List[Dict[str, Any]] = []
        files_element = _child(root, "files")
        if files_element is not None:
            for file_element in files_element:
                if _local_name(file_element.tag) != "file":
                    continue
                files.append({
                    "source": file_element.get("src", ""),
                    "target": file_element.get("target"),
                    "exclude": file_element.get("exclude"),
                })

        if validate:
            missing = [name for name in ("id", "version", "authors", "description") if name not in data]
            if missing:
                raise ManifestError(
                    f"Manifest is missing required metadata: {', '.join(missing)}",
                    manifest_path=manifest_path
                )

        try:
            return cls(metadata=ManifestMetadata(**data), files=tuple(ManifestFile(**f) for f in files))
        except pydantic.ValidationError as e:
            raise ManifestError(f"Invalid manifest data: {e}", manifest_path=manifest_path) from e

    def to_xml(self) -> bytes:
        """Serialize the metadata as the ``.nuspec`` stored inside an archive.

        File entries are not written; the archive itself carries the files.
        """
        ET.register_namespace("", NUSPEC_NAMESPACE)
        root = ET.Element(f"{{{NUSPEC_NAMESPACE}}}package")
        metadata_element = ET.SubElement(root, f"{{{NUSPEC_NAMESPACE}}}metadata")

        for element_name, field_name in _METADATA_ELEMENTS:
            value = getattr(self.metadata, field_name)
            if field_name == "require_license_acceptance":
                text = "true" if value else "false"
            elif field_name in ("authors", "owners"):
                text = ",".join(value)
            elif field_name == "tags":
                text = " ".join(value)
            else:
                text = value
            if text:
                ET.SubElement(metadata_element, f"{{{NUSPEC_NAMESPACE}}}{element_name}").text = text

        if self.metadata.dependencies:
            dependencies_element = ET.SubElement(metadata_element, f"{{{NUSPEC_NAMESPACE}}}dependencies")
            for dependency in self.metadata.dependencies:
                attributes = {"id": dependency.id}
                if dependency.version:
                    attributes["version"] = dependency.version
                ET.SubElement(dependencies_element, f"{{{NUSPEC_NAMESPACE}}}dependency", attributes)

        buffer = io.BytesIO()
        ET.ElementTree(root).write(buffer, encoding="utf-8", xml_declaration=True)
        return buffer.getvalue()


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _read_dependencies(metadata_element: ET.Element) -> List[ManifestDependency]:
    dependencies: List[ManifestDependency] = []
    dependencies_element = _child(metadata_element, "dependencies")
    if dependencies_element is None:
        return dependencies

    for item in dependencies_element:
        name = _local_name(item.tag)
        if name == "dependency":
            dependencies.append(ManifestDependency(id=item.get("id", ""), version=item.get("version")))
        elif name == "group":
            framework = item.get("targetFramework")
            for dependency in item:
                if _local_name(dependency.tag) == "dependency":
                    dependencies.append(ManifestDependency(
                        id=dependency.get("id", ""),
                        version=dependency.get("version"),
                        target_framework=framework,
                    ))
    return dependencies

"""Package archives for Smartbar plugins.

This module provides the package record shared by every repository, the
reader for ``.nupkg`` archives and the builder that turns a manifest plus
its referenced files into an archive.
"""

from __future__ import annotations

import datetime
import fnmatch
import glob
import io
import os
import uuid
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union
from xml.sax.saxutils import escape

from smartbar.plugin_authoring.manifest import ManifestFile, ManifestMetadata, PluginManifest
from smartbar.plugin_authoring.paths import has_wildcard
from smartbar.plugin_authoring.versions import PackageVersion, parse_version
from smartbar.utils.exceptions import ManifestError, PackageError

MANIFEST_RELATIONSHIP_TYPE = "http://schemas.microsoft.com/packaging/2010/07/manifest"
CORE_PROPERTIES_RELATIONSHIP_TYPE = (
    "http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties"
)
CONTENT_TYPES_PATH = "[Content_Types].xml"
RELATIONSHIPS_PATH = "_rels/.rels"
CORE_PROPERTIES_DIR = "package/services/metadata/core-properties"

# Archive parts that belong to the packaging format rather than the payload
_PACKAGING_PREFIXES = ("_rels/", "package/", CONTENT_TYPES_PATH)


@dataclass(frozen=True)
class PackageRecord:
    """A package as known to a repository.

    Attributes:
        id: Package identifier
        version: Package version
        tags: Tags declared by the package
        title: Human-readable title
        description: Package description
        authors: Package authors
        location: File path or download URL of the archive
        size: Archive size in bytes, if known
    """

    id: str
    version: PackageVersion
    tags: FrozenSet[str] = frozenset()
    title: Optional[str] = None
    description: Optional[str] = None
    authors: Tuple[str, ...] = ()
    location: Optional[str] = None
    size: Optional[int] = None
    opener: Optional[Callable[[], BinaryIO]] = field(default=None, repr=False, compare=False)

    @property
    def display_name(self) -> str:
        """``id (version)`` as used in progress messages."""
        return f"{self.id} ({self.version})"

    def get_stream(self) -> BinaryIO:
        """Open a fresh binary stream over the archive content.

        Raises:
            PackageError: If the record has no content attached
        """
        if self.opener is None:
            raise PackageError(f"Package {self.display_name} has no content", package_path=self.location)
        return self.opener()

    def get_size(self) -> int:
        """Get the archive size in bytes."""
        if self.size is not None:
            return self.size
        with self.get_stream() as stream:
            return len(stream.read())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": str(self.version),
            "tags": sorted(self.tags),
            "title": self.title,
            "description": self.description,
            "authors": list(self.authors),
            "location": self.location,
        }


class ZipPackage:
    """Reader for ``.nupkg`` archives on disk."""

    @classmethod
    def open(cls, path: Union[str, Path]) -> PackageRecord:
        """Read the package record of an archive.

        Args:
            path: Path to the archive

        Returns:
            The package record, whose content is the archive file

        Raises:
            PackageError: If the archive or its manifest cannot be read
        """
        path = Path(path)
        try:
            with zipfile.ZipFile(path, "r") as zipf:
                manifest_entry = cls._find_manifest_entry(zipf)
                if manifest_entry is None:
                    raise PackageError("Package contains no manifest", package_path=str(path))
                with zipf.open(manifest_entry) as f:
                    manifest = PluginManifest.read_from(io.BytesIO(f.read()), validate=False)
            size = path.stat().st_size
        except (OSError, zipfile.BadZipFile, ManifestError) as e:
            raise PackageError(f"Failed to read package {path}: {e}", package_path=str(path)) from e

        metadata = manifest.metadata
        return PackageRecord(
            id=metadata.id,
            version=parse_version(metadata.version),
            tags=frozenset(metadata.tags),
            title=metadata.title,
            description=metadata.description,
            authors=metadata.authors,
            location=str(path),
            size=size,
            opener=lambda: open(path, "rb"),
        )

    @classmethod
    def list_files(cls, path: Union[str, Path]) -> List[str]:
        """List the payload files of an archive, excluding packaging parts."""
        with zipfile.ZipFile(path, "r") as zipf:
            manifest_entry = cls._find_manifest_entry(zipf)
            return [
                name for name in zipf.namelist()
                if name != manifest_entry and not name.startswith(_PACKAGING_PREFIXES)
            ]

    @staticmethod
    def _find_manifest_entry(zipf: zipfile.ZipFile) -> Optional[str]:
        for name in zipf.namelist():
            if "/" not in name and name.lower().endswith(".nuspec"):
                return name
        return None


class PackageBuilder:
    """Builds a package archive from manifest metadata and files.

    Attributes:
        metadata: Metadata written to the archive manifest
        files: Archive path to source file mapping
    """

    def __init__(self) -> None:
        self.metadata: Optional[ManifestMetadata] = None
        self.files: Dict[str, Path] = {}

    def populate(self, metadata: ManifestMetadata) -> None:
        """Set the package metadata."""
        self.metadata = metadata

    def populate_files(self, base_dir: Union[str, Path], files: Iterable[ManifestFile]) -> None:
        """Add the files referenced by manifest file entries.

        Wildcard sources keep each match's path relative to the directory
        preceding the first wildcard segment, placed under ``target``. A
        literal source is placed under ``target`` unless the target carries
        the same extension as the source, in which case it names the file.

        Args:
            base_dir: Directory the sources are relative to
            files: Manifest file entries

        Raises:
            PackageError: If a literal source does not exist
        """
        base_dir = Path(base_dir)
        for entry in files:
            source = entry.source.replace("\\", "/")
            target = (entry.target or "").replace("\\", "/").strip("/")
            excluded = self._excluded_files(base_dir, entry.exclude)

            if has_wildcard(source):
                search_dir = self._search_directory(base_dir, source)
                matches = [
                    Path(m) for m in sorted(glob.glob(str(base_dir / source), recursive=True))
                    if os.path.isfile(m)
                ]
                for match in matches:
                    if match.resolve() in excluded:
                        continue
                    relative = match.relative_to(search_dir).as_posix()
                    self._add_file(self._join(target, relative), match)
                continue

            source_path = base_dir / source
            if source_path.is_dir():
                for match in sorted(p for p in source_path.rglob("*") if p.is_file()):
                    if match.resolve() in excluded:
                        continue
                    self._add_file(self._join(target, match.relative_to(source_path).as_posix()), match)
            elif source_path.is_file():
                if source_path.resolve() in excluded:
                    continue
                if target and PurePosixPath(target).suffix.lower() == source_path.suffix.lower():
                    self._add_file(target, source_path)
                else:
                    self._add_file(self._join(target, source_path.name), source_path)
            else:
                raise PackageError(
                    f"File '{source_path}' referenced by the manifest does not exist",
                    package_path=str(source_path)
                )

    def save(self, stream: BinaryIO) -> None:
        """Write the archive to a binary stream.

        Raises:
            PackageError: If no metadata was populated, or the package has
                neither files nor dependencies
        """
        if self.metadata is None:
            raise PackageError("Package metadata has not been populated")
        if not self.files and not self.metadata.dependencies:
            raise PackageError("Cannot create a package that has no dependencies nor content")

        manifest_name = f"{self.metadata.id}.nuspec"
        properties_name = f"{CORE_PROPERTIES_DIR}/{uuid.uuid4().hex}.psmdcp"

        with zipfile.ZipFile(stream, "w", compression=zipfile.ZIP_DEFLATED) as zipf:
            zipf.writestr(manifest_name, PluginManifest(metadata=self.metadata).to_xml())
            for archive_path, source_path in sorted(self.files.items()):
                zipf.write(source_path, archive_path)
            zipf.writestr(RELATIONSHIPS_PATH, self._relationships_xml(manifest_name, properties_name))
            zipf.writestr(properties_name, self._core_properties_xml())
            zipf.writestr(CONTENT_TYPES_PATH, self._content_types_xml())

    def _add_file(self, archive_path: str, source_path: Path) -> None:
        self.files[archive_path] = source_path

    @staticmethod
    def _join(target: str, relative: str) -> str:
        return f"{target}/{relative}" if target else relative

    @staticmethod
    def _search_directory(base_dir: Path, source: str) -> Path:
        parts: List[str] = []
        for part in source.split("/"):
            if has_wildcard(part):
                break
            parts.append(part)
        return base_dir.joinpath(*parts) if parts else base_dir

    @staticmethod
    def _excluded_files(base_dir: Path, exclude: Optional[str]) -> set:
        if not exclude:
            return set()
        excluded = set()
        for pattern in exclude.replace("\\", "/").split(";"):
            pattern = pattern.strip()
            if not pattern:
                continue
            for match in glob.glob(str(base_dir / pattern), recursive=True):
                excluded.add(Path(match).resolve())
            if "/" not in pattern:
                # Bare file name patterns apply at any depth
                for candidate in base_dir.rglob("*"):
                    if candidate.is_file() and fnmatch.fnmatch(candidate.name, pattern):
                        excluded.add(candidate.resolve())
        return excluded

    @staticmethod
    def _relationships_xml(manifest_name: str, properties_name: str) -> str:
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
            f'<Relationship Type="{MANIFEST_RELATIONSHIP_TYPE}" Target="/{escape(manifest_name)}" '
            f'Id="R{uuid.uuid4().hex[:16]}" />'
            f'<Relationship Type="{CORE_PROPERTIES_RELATIONSHIP_TYPE}" Target="/{properties_name}" '
            f'Id="R{uuid.uuid4().hex[:16]}" />'
            '</Relationships>'
        )

    def _core_properties_xml(self) -> str:
        metadata = self.metadata
        if metadata is None:
            raise PackageError("Package metadata has not been populated")
        created = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            '<coreProperties xmlns:dc="http://purl.org/dc/elements/1.1/" '
            'xmlns:dcterms="http://purl.org/dc/terms/" '
            'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
            'xmlns="http://schemas.openxmlformats.org/package/2006/metadata/core-properties">'
            f'<dc:creator>{escape(", ".join(metadata.authors))}</dc:creator>'
            f'<dc:description>{escape(metadata.description or "")}</dc:description>'
            f'<dc:identifier>{escape(metadata.id)}</dc:identifier>'
            f'<version>{escape(metadata.version)}</version>'
            f'<keywords>{escape(" ".join(metadata.tags))}</keywords>'
            f'<dc:title>{escape(metadata.title or "")}</dc:title>'
            f'<dcterms:created xsi:type="dcterms:W3CDTF">{created}</dcterms:created>'
            '<lastModifiedBy>smartbar-plugin-authoring</lastModifiedBy>'
            '</coreProperties>'
        )

    def _content_types_xml(self) -> str:
        extensions = sorted({
            PurePosixPath(path).suffix.lstrip(".").lower()
            for path in self.files
            if PurePosixPath(path).suffix
        } - {"rels", "psmdcp", "nuspec"})
        defaults = [
            '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml" />',
            '<Default Extension="nuspec" ContentType="application/octet" />',
            '<Default Extension="psmdcp" '
            'ContentType="application/vnd.openxmlformats-package.core-properties+xml" />',
        ]
        defaults.extend(
            f'<Default Extension="{escape(ext)}" ContentType="application/octet" />' for ext in extensions
        )
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            + "".join(defaults)
            + '</Types>'
        )

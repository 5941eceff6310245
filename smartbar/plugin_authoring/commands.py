"""Authoring commands: build, list, publish and unpublish plugin packages.

Each batch command processes its items one at a time and returns one
:class:`OperationResult` per item. A failing item is reported as faulted
and never stops the rest of the batch.
"""

from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

import httpx

from smartbar.core.config_manager import ConfigManager, FeedSettings, PackagingSettings
from smartbar.plugin_authoring.filtering import filter_by_package_id_and_version
from smartbar.plugin_authoring.manifest import PluginManifest
from smartbar.plugin_authoring.package import PackageBuilder, PackageRecord, ZipPackage
from smartbar.plugin_authoring.paths import to_full_path
from smartbar.plugin_authoring.repository import (
    LocalPackageRepository,
    PackageServer,
    RemotePackageRepository,
    create_repository,
)
from smartbar.plugin_authoring.results import OperationResult
from smartbar.utils.exceptions import ManifestError, PathResolutionError

LogFunction = Callable[[str, str], None]

INVALID_SOURCE_WARNING = (
    "Non existing or invalid directory path or nuspec file path supplied via -SourceNuspecPath"
)

_module_logger = logging.getLogger(__name__)


def _default_logger(message: str, level: str = "info") -> None:
    getattr(_module_logger, level, _module_logger.info)(message)


def _is_blank(value: Union[str, Path, None]) -> bool:
    return value is None or not str(value).strip()


@dataclass(frozen=True)
class BuildRequest:
    """One manifest to build, with its file base and output directories."""

    source_manifest_file: Path
    base_dependency_directory: Path
    target_package_directory: Path

    def __post_init__(self) -> None:
        for name in ("source_manifest_file", "base_dependency_directory", "target_package_directory"):
            if _is_blank(getattr(self, name)):
                raise ValueError(f"{name} must not be empty")


@dataclass(frozen=True)
class PublishPackageFile:
    """Publish a single archive file."""

    path: Union[str, Path]

    def __post_init__(self) -> None:
        if _is_blank(self.path):
            raise ValueError("path must not be empty")


@dataclass(frozen=True)
class PublishFromRepository:
    """Publish the matching packages of a local repository directory."""

    directory: Optional[Union[str, Path]] = None
    package_id: Optional[str] = None
    package_version: Optional[str] = None


PublishSource = Union[PublishPackageFile, PublishFromRepository]


def _feed_settings(config: Optional[ConfigManager]) -> FeedSettings:
    return config.feed_settings() if config is not None else FeedSettings()


def _packaging_settings(config: Optional[ConfigManager]) -> PackagingSettings:
    return config.packaging_settings() if config is not None else PackagingSettings()


def _default_local_directory(config: Optional[ConfigManager]) -> Path:
    configured = config.get("repository.local_directory", "") if config is not None else ""
    return to_full_path(configured) or Path(os.getcwd())


@contextlib.contextmanager
def _feed_client(client: Optional[httpx.Client], feed: FeedSettings) -> Iterator[httpx.Client]:
    if client is not None:
        yield client
        return
    with httpx.Client(
            timeout=feed.timeout,
            follow_redirects=True,
            headers={"User-Agent": feed.user_agent}
    ) as owned:
        yield owned


def build(
        source_manifest_path: Union[str, Path],
        base_dependency_directory: Optional[Union[str, Path]] = None,
        output_directory: Optional[Union[str, Path]] = None,
        *,
        config: Optional[ConfigManager] = None,
        logger: Optional[LogFunction] = None
) -> List[OperationResult]:
    """Build package archives from manifests.

    ``source_manifest_path`` is either a manifest file or a directory whose
    top-level manifests are all built. Manifests found in a directory take
    their own directory as the base for referenced files; a single manifest
    uses ``base_dependency_directory`` when it is an existing directory.

    Args:
        source_manifest_path: Manifest file or directory of manifests
        base_dependency_directory: Directory manifest file sources are relative to
        output_directory: Directory the archives are written to
        config: Configuration manager; defaults apply when omitted
        logger: Logger function for progress messages

    Returns:
        One result per manifest, or an empty list if the source is invalid
    """
    log = logger or _default_logger
    packaging = _packaging_settings(config)

    try:
        source = to_full_path(source_manifest_path)
    except PathResolutionError:
        source = None
    try:
        base_dir = to_full_path(base_dependency_directory)
    except PathResolutionError:
        base_dir = None
    output_dir = to_full_path(output_directory) or _default_local_directory(config)

    requests: List[BuildRequest] = []
    if source is not None and source.is_dir():
        for manifest_path in sorted(source.glob(f"*.{packaging.manifest_extension}")):
            if manifest_path.is_file():
                requests.append(BuildRequest(manifest_path, manifest_path.parent, output_dir))
    elif source is not None and source.is_file():
        if base_dir is None or not base_dir.is_dir():
            base_dir = source.parent
        requests.append(BuildRequest(source, base_dir, output_dir))
    else:
        log(INVALID_SOURCE_WARNING, "warning")
        return []

    return [_build_one(request, packaging, log) for request in requests]


def _build_one(request: BuildRequest, packaging: PackagingSettings, log: LogFunction) -> OperationResult:
    try:
        manifest = PluginManifest.read_from(request.source_manifest_file)
    except ManifestError as e:
        log(f'Could not build "{request.source_manifest_file}" because {e}', "warning")
        return OperationResult.faulted(request.source_manifest_file, e)

    output_path = request.target_package_directory / packaging.package_file_name(
        manifest.metadata.id, manifest.metadata.version
    )
    created = False
    try:
        builder = PackageBuilder()
        builder.populate(manifest.metadata)
        builder.populate_files(request.base_dependency_directory, manifest.files)

        request.target_package_directory.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as stream:
            created = True
            builder.save(stream)
    except Exception as e:
        if created and output_path.exists():
            output_path.unlink()
        log(f'Could not build "{manifest.display_name}" because {e}', "warning")
        return OperationResult.faulted(manifest, e)

    log(f'Successfully built "{manifest.display_name}"', "info")
    return OperationResult.success(manifest, output=output_path)


def list_packages(
        force_local: bool = False,
        package_id: Optional[str] = None,
        package_version: Optional[str] = None,
        local_repository_directory: Optional[Union[str, Path]] = None,
        *,
        config: Optional[ConfigManager] = None,
        logger: Optional[LogFunction] = None,
        client: Optional[httpx.Client] = None
) -> List[PackageRecord]:
    """List the tagged packages of the remote feed or a local directory.

    Args:
        force_local: Read ``local_repository_directory`` instead of the feed
        package_id: Exact package identifier to match
        package_version: Exact version to match
        local_repository_directory: Directory of archives used with ``force_local``
        config: Configuration manager; defaults apply when omitted
        logger: Logger function for progress messages
        client: HTTP client for the remote feed

    Returns:
        The matching package records

    Raises:
        ValueError: If ``package_version`` is not a valid version
        RepositoryError: If the repository cannot be read
    """
    log = logger or _default_logger
    feed = _feed_settings(config)
    packaging = _packaging_settings(config)

    if force_local:
        location: str = str(to_full_path(local_repository_directory) or _default_local_directory(config))
    else:
        location = feed.feed_url
    log(f'Using "{location}" as repository', "info")

    with _feed_client(client, feed) as http_client:
        with create_repository(
                location,
                client=http_client,
                package_extension=packaging.package_extension,
                logger=log
        ) as repository:
            return filter_by_package_id_and_version(
                repository.get_packages(),
                package_id,
                package_version,
                packaging.required_tag,
            )


def publish(
        source: PublishSource,
        *,
        config: Optional[ConfigManager] = None,
        logger: Optional[LogFunction] = None,
        client: Optional[httpx.Client] = None
) -> List[OperationResult[PackageRecord]]:
    """Push packages to the package server.

    Args:
        source: A single archive file, or a local repository selection
        config: Configuration manager; defaults apply when omitted
        logger: Logger function for progress messages
        client: HTTP client for the package server

    Returns:
        One result per package pushed

    Raises:
        PackageError: If a single archive file cannot be read
        ValueError: If the repository selection has an invalid version
    """
    log = logger or _default_logger
    feed = _feed_settings(config)
    packaging = _packaging_settings(config)

    if isinstance(source, PublishPackageFile):
        packages = [ZipPackage.open(to_full_path(source.path))]
    elif isinstance(source, PublishFromRepository):
        directory = to_full_path(source.directory) or _default_local_directory(config)
        log(f'Using "{directory}" as repository', "info")
        with LocalPackageRepository(directory, packaging.package_extension, logger=log) as repository:
            packages = filter_by_package_id_and_version(
                repository.get_packages(),
                source.package_id,
                source.package_version,
                packaging.required_tag,
            )
    else:
        raise TypeError(f"Unsupported publish source: {source!r}")

    results: List[OperationResult[PackageRecord]] = []
    with _feed_client(client, feed) as http_client:
        with PackageServer(feed.server_url, feed.user_agent, http_client) as server:
            for package in packages:
                try:
                    server.push_package(feed.api_key, package, timeout=None)
                except Exception as e:
                    log(f'Could not publish "{package.display_name}" because {e}', "warning")
                    results.append(OperationResult.faulted(package, e))
                    continue
                log(f'Successfully published "{package.display_name}"', "info")
                results.append(OperationResult.success(package))
    return results


def unpublish(
        package_id: Optional[str] = None,
        package_version: Optional[str] = None,
        *,
        config: Optional[ConfigManager] = None,
        logger: Optional[LogFunction] = None,
        client: Optional[httpx.Client] = None
) -> List[OperationResult[PackageRecord]]:
    """Delete the matching tagged packages from the remote feed.

    Args:
        package_id: Exact package identifier to match
        package_version: Exact version to match
        config: Configuration manager; defaults apply when omitted
        logger: Logger function for progress messages
        client: HTTP client for the feed and the package server

    Returns:
        One result per package deleted

    Raises:
        ValueError: If ``package_version`` is not a valid version
        FeedError: If the feed cannot be queried
    """
    log = logger or _default_logger
    feed = _feed_settings(config)
    packaging = _packaging_settings(config)

    results: List[OperationResult[PackageRecord]] = []
    with _feed_client(client, feed) as http_client:
        with RemotePackageRepository(feed.feed_url, client=http_client, logger=log) as repository:
            packages = filter_by_package_id_and_version(
                repository.get_packages(),
                package_id,
                package_version,
                packaging.required_tag,
            )

        with PackageServer(feed.server_url, feed.user_agent, http_client) as server:
            for package in packages:
                try:
                    server.delete_package(feed.api_key, package.id, str(package.version))
                except Exception as e:
                    log(f'Could not unpublish "{package.display_name}" because {e}', "warning")
                    results.append(OperationResult.faulted(package, e))
                    continue
                log(f'Successfully unpublished "{package.display_name}"', "info")
                results.append(OperationResult.success(package))
    return results

"""Smartbar plugin package authoring.

This package builds plugin packages from manifests, lists the packages of a
local directory or the remote feed, and publishes or unpublishes packages on
the package server.
"""

from smartbar.plugin_authoring.commands import (
    BuildRequest,
    PublishFromRepository,
    PublishPackageFile,
    PublishSource,
    build,
    list_packages,
    publish,
    unpublish,
)
from smartbar.plugin_authoring.filtering import filter_by_package_id_and_version
from smartbar.plugin_authoring.manifest import (
    ManifestDependency,
    ManifestFile,
    ManifestMetadata,
    PluginManifest,
)
from smartbar.plugin_authoring.package import PackageBuilder, PackageRecord, ZipPackage
from smartbar.plugin_authoring.paths import to_full_path
from smartbar.plugin_authoring.repository import (
    LocalPackageRepository,
    PackageServer,
    RemotePackageRepository,
    create_repository,
)
from smartbar.plugin_authoring.results import OperationResult
from smartbar.plugin_authoring.versions import PackageVersion, parse_version

__all__ = [
    "BuildRequest",
    "LocalPackageRepository",
    "ManifestDependency",
    "ManifestFile",
    "ManifestMetadata",
    "OperationResult",
    "PackageBuilder",
    "PackageRecord",
    "PackageServer",
    "PackageVersion",
    "PluginManifest",
    "PublishFromRepository",
    "PublishPackageFile",
    "PublishSource",
    "RemotePackageRepository",
    "ZipPackage",
    "build",
    "create_repository",
    "filter_by_package_id_and_version",
    "list_packages",
    "parse_version",
    "publish",
    "to_full_path",
    "unpublish",
]

"""Selection of in-scope packages by identifier, version and tag."""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from smartbar.plugin_authoring.package import PackageRecord
from smartbar.plugin_authoring.versions import PackageVersion, parse_version

DEFAULT_REQUIRED_TAG = "smartbar"


def filter_by_package_id_and_version(
        packages: Iterable[PackageRecord],
        package_id: Optional[str] = None,
        package_version: Optional[Union[str, PackageVersion]] = None,
        required_tag: str = DEFAULT_REQUIRED_TAG
) -> List[PackageRecord]:
    """Select the packages matching an identifier and version.

    Every selected package carries ``required_tag``. A blank ``package_id``
    selects all tagged packages; a blank ``package_version`` selects every
    version of the identified package. Versions match when they are equal
    including build metadata, so ``1.0`` matches ``1.0.0``.

    Args:
        packages: Packages to filter
        package_id: Exact package identifier to match
        package_version: Exact version to match; ignored without an identifier
        required_tag: Tag every selected package must carry

    Returns:
        The matching packages, in input order

    Raises:
        ValueError: If ``package_version`` is not a valid version
    """
    if package_id is not None and not package_id.strip():
        package_id = None
    version = None
    if package_version is not None and str(package_version).strip():
        version = parse_version(package_version)

    def matches(package: PackageRecord) -> bool:
        if required_tag not in package.tags:
            return False
        if package_id is None:
            return True
        if package.id != package_id:
            return False
        return version is None or package.version == version

    return [package for package in packages if matches(package)]

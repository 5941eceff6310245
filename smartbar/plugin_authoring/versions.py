"""Package version parsing shared by manifests, archives and filters.

Package versions are semantic versions with two optional extensions used by
package feeds: the minor and patch parts may be omitted (``1.0``), and a
fourth numeric revision part may follow the patch (``1.0.0.1``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple, Union

import semver

_VERSION_REGEX = re.compile(
    r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?(?:\.(?P<revision>\d+))?"
    r"(?P<suffix>[-+].*)?$"
)


@dataclass(frozen=True, eq=False)
class PackageVersion:
    """A package version.

    Attributes:
        semantic: The major, minor and patch parts with prerelease and build
        revision: The fourth numeric part, 0 when absent
        text: The version as it was written
    """

    semantic: semver.Version
    revision: int = 0
    text: str = ""

    @property
    def normalized(self) -> str:
        """The version with omitted parts filled in and a zero revision dropped."""
        v = self.semantic
        result = f"{v.major}.{v.minor}.{v.patch}"
        if self.revision:
            result += f".{self.revision}"
        if v.prerelease:
            result += f"-{v.prerelease}"
        if v.build:
            result += f"+{v.build}"
        return result

    def _key(self) -> Tuple:
        v = self.semantic
        return v.major, v.minor, v.patch, self.revision, v.prerelease, v.build

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageVersion):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.text or self.normalized


def parse_version(value: Union[str, PackageVersion, semver.Version]) -> PackageVersion:
    """Parse a package version string.

    ``1.0`` equals ``1.0.0`` and ``1.0.0.0``; the written text is kept
    for display and file names.

    Args:
        value: Version string or an already parsed version

    Returns:
        The parsed package version

    Raises:
        ValueError: If the value is not a valid version
    """
    if isinstance(value, PackageVersion):
        return value
    if isinstance(value, semver.Version):
        return PackageVersion(value, text=str(value))
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{value}' is not a valid version string")

    text = value.strip()
    match = _VERSION_REGEX.match(text)
    if match is None:
        raise ValueError(f"'{text}' is not a valid version string")

    core = ".".join(str(int(match.group(part) or 0)) for part in ("major", "minor", "patch"))
    semantic = semver.Version.parse(core + (match.group("suffix") or ""))
    return PackageVersion(semantic, int(match.group("revision") or 0), text)

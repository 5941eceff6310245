"""Package repositories and the package server client.

Repositories enumerate the packages available at a location: a directory
of archives on disk, or a NuGet v2 OData feed. The package server pushes
archives to, and deletes packages from, the remote feed.
"""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional, Union

import httpx

from smartbar.plugin_authoring.package import PackageRecord, ZipPackage
from smartbar.plugin_authoring.versions import parse_version
from smartbar.utils.exceptions import FeedError, PackageError, RepositoryError

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
DATA_NAMESPACE = "http://schemas.microsoft.com/ado/2007/08/dataservices"
METADATA_NAMESPACE = "http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"

_NS = {"atom": ATOM_NAMESPACE, "d": DATA_NAMESPACE, "m": METADATA_NAMESPACE}

PACKAGE_API_PATH = "api/v2/package"
API_KEY_HEADER = "X-NuGet-ApiKey"

_module_logger = logging.getLogger(__name__)


def _default_logger(message: str, level: str = "info") -> None:
    getattr(_module_logger, level, _module_logger.info)(message)


class PackageRepository:
    """Base class for package sources.

    Attributes:
        source: Directory path or feed URL the repository reads from
    """

    def __init__(self, source: str, logger: Optional[Callable[[str, str], None]] = None) -> None:
        self.source = source
        self.logger = logger or _default_logger

    def log(self, message: str, level: str = "info") -> None:
        """Log a message.

        Args:
            message: Message to log
            level: Log level (info, warning, error, debug)
        """
        self.logger(message, level)

    def get_packages(self) -> Iterator[PackageRecord]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> PackageRepository:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source!r})"


class LocalPackageRepository(PackageRepository):
    """Repository backed by a directory of package archives."""

    def __init__(
            self,
            directory: Union[str, Path],
            package_extension: str = "nupkg",
            logger: Optional[Callable[[str, str], None]] = None
    ) -> None:
        super().__init__(str(directory), logger)
        self.directory = Path(directory)
        self.package_extension = package_extension.lstrip(".")

    def get_packages(self) -> Iterator[PackageRecord]:
        """Read every archive under the directory.

        Archives that cannot be read are skipped with a warning.

        Raises:
            RepositoryError: If the directory does not exist
        """
        if not self.directory.is_dir():
            raise RepositoryError(
                f"Package directory '{self.directory}' does not exist", source=str(self.directory)
            )

        for path in sorted(self.directory.rglob(f"*.{self.package_extension}")):
            if not path.is_file():
                continue
            try:
                package = ZipPackage.open(path)
            except PackageError as e:
                self.log(f"Skipping unreadable package '{path}': {e}", "warning")
                continue
            yield package


class RemotePackageRepository(PackageRepository):
    """Repository backed by a NuGet v2 OData feed."""

    def __init__(
            self,
            feed_url: str,
            client: Optional[httpx.Client] = None,
            logger: Optional[Callable[[str, str], None]] = None
    ) -> None:
        super().__init__(feed_url.rstrip("/"), logger)
        self.feed_url = feed_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def get_packages(self) -> Iterator[PackageRecord]:
        """Enumerate the feed, following its paging links.

        Raises:
            FeedError: If the feed cannot be queried or parsed
        """
        url: Optional[str] = f"{self.feed_url}/Packages()"
        while url:
            root = self._fetch(url)
            for entry in root.findall("atom:entry", _NS):
                package = self._parse_entry(entry)
                if package is not None:
                    yield package

            url = None
            for link in root.findall("atom:link", _NS):
                if link.get("rel") == "next" and link.get("href"):
                    url = link.get("href")
                    break

    def _fetch(self, url: str) -> ET.Element:
        try:
            response = self._client.get(url, headers={"Accept": "application/atom+xml"})
            response.raise_for_status()
            return ET.fromstring(response.content)
        except httpx.HTTPStatusError as e:
            raise FeedError(
                f"Feed returned error: {e.response.status_code} - {e.response.reason_phrase}",
                status_code=e.response.status_code,
                url=url,
            ) from e
        except httpx.RequestError as e:
            raise FeedError(f"Failed to connect to feed: {e}", url=url) from e
        except ET.ParseError as e:
            raise FeedError(f"Feed returned an invalid document: {e}", url=url) from e

    def _parse_entry(self, entry: ET.Element) -> Optional[PackageRecord]:
        properties = entry.find("m:properties", _NS)

        def prop(name: str) -> Optional[str]:
            if properties is None:
                return None
            element = properties.find(f"d:{name}", _NS)
            if element is None or element.text is None or not element.text.strip():
                return None
            return element.text.strip()

        package_id = prop("Id") or entry.findtext("atom:title", default="", namespaces=_NS).strip()
        version_text = prop("Version")
        if not package_id or not version_text:
            self.log("Skipping feed entry without id or version", "warning")
            return None
        try:
            version = parse_version(version_text)
        except ValueError:
            self.log(f"Skipping '{package_id}' with unsupported version '{version_text}'", "warning")
            return None

        authors = tuple(
            name.text.strip() for name in entry.findall("atom:author/atom:name", _NS)
            if name.text and name.text.strip()
        )
        content = entry.find("atom:content", _NS)
        location = content.get("src") if content is not None else None
        size_text = prop("PackageSize")

        return PackageRecord(
            id=package_id,
            version=version,
            tags=frozenset((prop("Tags") or "").split()),
            title=prop("Title"),
            description=prop("Description"),
            authors=authors,
            location=location,
            size=int(size_text) if size_text and size_text.isdigit() else None,
            opener=(lambda: self._download(location)) if location else None,
        )

    def _download(self, url: str) -> io.BytesIO:
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FeedError(
                f"Failed to download package: {e.response.status_code}",
                status_code=e.response.status_code,
                url=url,
            ) from e
        except httpx.RequestError as e:
            raise FeedError(f"Failed to download package: {e}", url=url) from e
        return io.BytesIO(response.content)


def create_repository(
        source: Union[str, Path],
        client: Optional[httpx.Client] = None,
        package_extension: str = "nupkg",
        logger: Optional[Callable[[str, str], None]] = None
) -> PackageRepository:
    """Create the repository for a source location.

    Args:
        source: Feed URL (``http://`` or ``https://``) or directory path
        client: HTTP client for remote feeds
        package_extension: Archive extension for local directories
        logger: Logger function for repository events

    Returns:
        A remote repository for URLs, otherwise a local one
    """
    text = str(source)
    if text.lower().startswith(("http://", "https://")):
        return RemotePackageRepository(text, client=client, logger=logger)
    return LocalPackageRepository(text, package_extension=package_extension, logger=logger)


class PackageServer:
    """Client for the push and delete endpoints of a package server.

    Attributes:
        server_url: Base URL of the server
        user_agent: User agent sent with every request
    """

    def __init__(
            self,
            server_url: str,
            user_agent: str = "SmartbarPackageAuthoring",
            client: Optional[httpx.Client] = None
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.user_agent = user_agent
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> PackageServer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def push_package(self, api_key: str, package: PackageRecord, timeout: Optional[float] = None) -> None:
        """Upload a package archive.

        The server never replaces an existing package; pushing an existing
        id and version fails.

        Args:
            api_key: Key authorizing the push
            package: Package to upload
            timeout: Request timeout in seconds; None waits indefinitely

        Raises:
            FeedError: If the server rejects the package or cannot be reached
        """
        url = f"{self.server_url}/{PACKAGE_API_PATH}/"
        with package.get_stream() as stream:
            files = {
                "package": (f"{package.id}.{package.version}.nupkg", stream, "application/octet-stream")
            }
            try:
                response = self._client.put(
                    url, files=files, headers=self._get_headers(api_key), timeout=httpx.Timeout(timeout)
                )
            except httpx.RequestError as e:
                raise FeedError(f"Failed to connect to package server: {e}", url=url) from e

        if response.status_code == 409:
            raise FeedError(
                f"Package {package.display_name} already exists on the server",
                status_code=409,
                url=url,
            )
        self._raise_for_status(response, url)

    def delete_package(self, api_key: str, package_id: str, version: str) -> None:
        """Delete a package version from the server.

        Raises:
            FeedError: If the server rejects the request or cannot be reached
        """
        url = f"{self.server_url}/{PACKAGE_API_PATH}/{package_id}/{version}"
        try:
            response = self._client.delete(url, headers=self._get_headers(api_key))
        except httpx.RequestError as e:
            raise FeedError(f"Failed to connect to package server: {e}", url=url) from e
        self._raise_for_status(response, url)

    def _get_headers(self, api_key: str) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if api_key:
            headers[API_KEY_HEADER] = api_key
        return headers

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        if response.is_error:
            raise FeedError(
                f"Package server returned error: {response.status_code} - {response.reason_phrase}",
                status_code=response.status_code,
                url=url,
            )

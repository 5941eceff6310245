from __future__ import annotations

from typing import Any, Dict, Optional


class SmartbarError(Exception):
    """Base exception for all Smartbar authoring errors."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            **kwargs: Additional error information
        """
        self.message = message
        details: Dict[str, Any] = dict(kwargs.pop("details", None) or {})
        details.update({key: value for key, value in kwargs.items() if value is not None})
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.message}"


class ManagerError(SmartbarError):
    """Base exception for manager-related errors."""

    def __init__(self, message: str, manager_name: Optional[str] = None, **kwargs: Any) -> None:
        """
        Initialize manager error.

        Args:
            message: Error message
            manager_name: Name of the affected manager
            **kwargs: Additional error information
        """
        super().__init__(message, manager_name=manager_name, **kwargs)
        self.manager_name = manager_name

    def __str__(self) -> str:
        """String representation."""
        if self.manager_name:
            return f"{self.message} (Manager: {self.manager_name})"
        return super().__str__()


class ManagerInitializationError(ManagerError):
    """Exception raised when a manager fails to initialize."""

    pass


class ManagerShutdownError(ManagerError):
    """Exception raised when a manager fails to shut down cleanly."""

    pass


class ConfigurationError(SmartbarError):
    """Exception raised for configuration-related errors."""

    def __init__(
            self, message: str, *, config_key: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: A descriptive error message.
            config_key: The configuration key that caused the error.
            **kwargs: Additional error information.
        """
        super().__init__(message, config_key=config_key, **kwargs)


class PathResolutionError(SmartbarError):
    """Exception raised when a path pattern resolves to nothing."""

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, path=path, **kwargs)


class ManifestError(SmartbarError):
    """Exception raised for unreadable or invalid package manifests."""

    def __init__(
            self, message: str, *, manifest_path: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a ManifestError.

        Args:
            message: A descriptive error message.
            manifest_path: The manifest file that caused the error.
            **kwargs: Additional error information.
        """
        super().__init__(message, manifest_path=manifest_path, **kwargs)


class PackageError(SmartbarError):
    """Exception raised for errors while reading or building package archives."""

    def __init__(
            self, message: str, *, package_path: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a PackageError.

        Args:
            message: A descriptive error message.
            package_path: The archive that caused the error.
            **kwargs: Additional error information.
        """
        super().__init__(message, package_path=package_path, **kwargs)


class RepositoryError(SmartbarError):
    """Exception raised when a package repository cannot be opened or queried."""

    def __init__(self, message: str, *, source: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, source=source, **kwargs)


class FeedError(RepositoryError):
    """Exception raised for errors returned by a remote package feed."""

    def __init__(
            self,
            message: str,
            *,
            status_code: Optional[int] = None,
            url: Optional[str] = None,
            **kwargs: Any,
    ) -> None:
        """Initialize a FeedError.

        Args:
            message: A descriptive error message.
            status_code: The HTTP status code returned by the feed.
            url: The feed URL that was requested.
            **kwargs: Additional error information.
        """
        super().__init__(message, status_code=status_code, url=url, **kwargs)
        self.status_code = status_code

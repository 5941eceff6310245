"""Utility functions and classes for Smartbar package authoring."""

from smartbar.utils.exceptions import (
    ConfigurationError,
    FeedError,
    ManagerError,
    ManagerInitializationError,
    ManagerShutdownError,
    ManifestError,
    PackageError,
    PathResolutionError,
    RepositoryError,
    SmartbarError,
)

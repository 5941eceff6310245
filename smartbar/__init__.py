"""Smartbar plugin package authoring.

Builds, lists, publishes and unpublishes Smartbar plugin packages against a
local directory repository or a remote NuGet feed.
"""

from smartbar.__version__ import __version__

__all__ = ["__version__"]

"""Setup script for Smartbar plugin package authoring.

This script installs the authoring tools and their dependencies.
"""

from __future__ import annotations

import setuptools

# Read the long description from README.md
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

# Read version from __version__.py
version = {}
with open("smartbar/__version__.py", "r", encoding="utf-8") as f:
    exec(f.read(), version)

# Dependencies
install_requires = [
    "pydantic>=2.4.0",
    "pyyaml>=6.0",
    "structlog>=22.1.0",
    "httpx>=0.24.0",
    "python-json-logger>=2.0.4",
    "semver>=3.0.0",
]

# Development dependencies
dev_requires = [
    "pytest>=7.0.0",
    "pytest-cov>=4.0.0",
    "black>=23.1.0",
    "isort>=5.12.0",
    "mypy>=1.0.0",
    "types-pyyaml",
]

# Build dependencies
build_requires = [
    "wheel>=0.38.0",
    "setuptools>=65.5.0",
]

setuptools.setup(
    name="smartbar-plugin-authoring",
    version=version.get("__version__", "0.1.0"),
    author="Smartbar Team",
    description="Build, list, publish and unpublish Smartbar plugin packages",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["smartbar", "smartbar.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require={
        "dev": dev_requires,
        "test": ["pytest>=7.0.0", "pytest-cov>=4.0.0"],
        "build": build_requires,
        "all": dev_requires + build_requires,
    },
    entry_points={
        "console_scripts": [
            "smartbar-plugin=smartbar.plugin_authoring.cli:main",
        ],
    },
    include_package_data=True,
)

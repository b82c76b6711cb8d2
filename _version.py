"""
Bootguard Version Information

This module provides centralized version management for Bootguard.
Follow Semantic Versioning 2.0.0 (https://semver.org/)

Version format: MAJOR.MINOR.PATCH
- MAJOR: Incompatible changes to the persisted state format or public API
- MINOR: New features in a backwards-compatible manner
- PATCH: Backwards-compatible bug fixes

Version History:
- 1.0.0: Initial release
  - Resource scoring with five loading modes
  - Progressive feature scheduling with deferred continuation
  - Degraded-mode supervisor and fatal trap
  - Operator CLI (bootguard)
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple, Union

__version__ = "1.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Release metadata
__release_date__ = "2026-10-18"
__release_name__ = "Bootguard"

# Git information (can be populated by CI/CD or build scripts)
__git_sha__: Optional[str] = None
__git_branch__: Optional[str] = None


def get_version() -> str:
    """Get the current version string."""
    return __version__


def get_version_info() -> Tuple[int, ...]:
    """Get version as a tuple of integers (major, minor, patch)."""
    return __version_info__


def get_full_version() -> str:
    """Get full version string including git info if available."""
    version = __version__
    if __git_sha__:
        version += f"+{__git_sha__[:7]}"
    return version


def get_version_dict() -> Dict[str, Union[str, Tuple[int, ...], None]]:
    """Get version information as a dictionary."""
    return {
        "version": __version__,
        "version_info": __version_info__,
        "release_date": __release_date__,
        "release_name": __release_name__,
        "git_sha": __git_sha__,
        "git_branch": __git_branch__,
    }

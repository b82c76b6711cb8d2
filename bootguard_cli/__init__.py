"""
Bootguard CLI Package

A Rich-based CLI for the Bootguard bootstrap scheduler: environment probing,
guided setup, bootstrap runs and installation status.
"""

from .main import app
from _version import __version__, get_full_version, get_version_dict

__all__ = ["app", "__version__", "get_full_version", "get_version_dict"]

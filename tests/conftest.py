"""
Pytest Configuration for Bootguard Testing
==========================================

Root conftest.py - delegates to tests/fixtures/ for reusable components.
"""

import gc
import warnings

import pytest

# Import shared fixtures
from tests.fixtures import *  # noqa: F401,F403


def pytest_collection_modifyitems(config, items):
    """Automatically add markers based on test location."""
    for item in items:
        # Add markers based on test file paths
        if "/unit/" in item.nodeid:
            item.add_marker(pytest.mark.unit)
            item.add_marker(pytest.mark.fast)  # Unit tests are fast by default
        elif "/integration/" in item.nodeid:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)

        # Add feature area markers
        if "/cli/" in item.nodeid:
            item.add_marker(pytest.mark.cli)
        if "/scheduling/" in item.nodeid:
            item.add_marker(pytest.mark.scheduling)
        if "/state/" in item.nodeid:
            item.add_marker(pytest.mark.state)
        if "/resources/" in item.nodeid:
            item.add_marker(pytest.mark.resources)
        if "config" in item.nodeid.lower():
            item.add_marker(pytest.mark.config)

        # Add database marker for tests requiring DB
        if "duckdb" in item.nodeid.lower():
            item.add_marker(pytest.mark.database)


def pytest_runtest_setup(item):
    """Setup for each test run."""
    warnings.filterwarnings("ignore", category=DeprecationWarning)
    warnings.filterwarnings("ignore", category=FutureWarning)


def pytest_runtest_teardown(item):
    """Teardown after each test run."""
    gc.collect()

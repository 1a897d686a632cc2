"""
Root conftest.py for livecode playground tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure the project root is in the path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Importing main builds the module-level app; keep its workspaces out of $HOME.
os.environ.setdefault("LIVECODE_WORKSPACE_ROOT", tempfile.mkdtemp(prefix="livecode-tests-"))

from api.app_config import PlaygroundConfig  # noqa: E402


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "websocket: mark test as involving WebSocket communication",
    )
    config.addinivalue_line(
        "markers",
        "subprocess: mark test as spawning compiler subprocesses",
    )


def pytest_collection_modifyitems(config, items):
    """
    Automatically mark tests based on their name.

    - Tests with 'websocket' or 'channel' in name are marked with 'websocket'
    - Tests with 'subprocess' in name are marked with 'subprocess'
    """
    for item in items:
        name = item.name.lower()
        if "websocket" in name or "channel" in name:
            item.add_marker(pytest.mark.websocket)
        if "subprocess" in name:
            item.add_marker(pytest.mark.subprocess)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def playground_config(tmp_path):
    """Configuration rooted in a per-test temporary directory."""
    return PlaygroundConfig(workspace_root=tmp_path / "workspaces", compile_timeout=5.0)


@pytest.fixture
def app(playground_config):
    """A fresh application with its own sessions and pipeline state."""
    from main import create_app

    return create_app(playground_config)


@pytest.fixture
def client(app):
    """HTTP/WebSocket test client for the application."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client

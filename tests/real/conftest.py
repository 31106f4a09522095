"""
Configuration for real/integration tests.

These tests talk to an actual BattlEye-enabled game server. Run them explicitly:
    BERCON_TEST_HOST=... BERCON_TEST_PASSWORD=... pytest tests/real/ -v -s
"""

import pytest

from .devices import TEST_HOST, TEST_PASSWORD, TEST_PORT, rcon_server_configured


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "real: marks tests that require a real RCon server",
    )


def pytest_collection_modifyitems(config, items):
    """Add 'real' marker to all tests in this directory."""
    for item in items:
        if "tests/real" in str(item.fspath) or "tests\\real" in str(item.fspath):
            item.add_marker(pytest.mark.real)


@pytest.fixture
def rcon():
    """Logged-in RconConnection against the configured server."""
    from bercon.rcon import RconConnection

    if not rcon_server_configured():
        pytest.skip("RCon test server not configured")
    conn = RconConnection(TEST_HOST, TEST_PORT, auto_reconnect=False)
    assert conn.connect(TEST_PASSWORD)
    yield conn
    conn.disconnect()

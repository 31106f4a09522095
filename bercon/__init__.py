"""
bercon - Python client for the BattlEye RCon protocol.

Quick start:
    import bercon
    with bercon.connect("127.0.0.1", 2302, password="secret") as conn:
        print(conn.execute("players"))

Settings not passed explicitly come from bercon.configure() or the
BERCON_* environment variables.
"""

import atexit
import logging
import os
import threading
import weakref
from typing import Any, Optional

from bercon.rcon import (
    AlreadyConnectedError,
    BattlEyeCommand,
    ChecksumMismatchError,
    ConnectionHandler,
    ConnectionLostError,
    ConnectionState,
    DisconnectReason,
    LoginFailedError,
    MalformedFrameError,
    NoStoredCredentialsError,
    NotConnectedError,
    QueueFullError,
    RconConnection,
    RconError,
)
from bercon.rcon.constants import (
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_TIMEOUT,
    KEEPALIVE_TIMEOUT_FACTOR,
)

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Environment Variables (read at import)
# ─────────────────────────────────────────────────────────────────────────────


def _get_env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Get environment variable as int."""
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {val!r}")


def _get_env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Get environment variable as float."""
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {val!r}")


def _get_env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Get environment variable as bool (1/0, true/false, yes/no, on/off)."""
    val = os.environ.get(name)
    if val is None:
        return default
    lowered = val.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Environment variable {name} must be a boolean, got {val!r}")


_env_host = os.environ.get("BERCON_HOST")
_env_port = _get_env_int("BERCON_PORT")
_env_password = os.environ.get("BERCON_PASSWORD")
_env_timeout = _get_env_float("BERCON_TIMEOUT")
_env_keepalive = _get_env_float("BERCON_KEEPALIVE")
_env_reconnect_delay = _get_env_float("BERCON_RECONNECT_DELAY")
_env_auto_reconnect = _get_env_bool("BERCON_AUTO_RECONNECT")
_env_queue_size = _get_env_int("BERCON_QUEUE_SIZE")


# ─────────────────────────────────────────────────────────────────────────────
# Global Configuration
# ─────────────────────────────────────────────────────────────────────────────

_global_lock = threading.Lock()

# User-configured settings (set via configure())
_config_host: Optional[str] = None
_config_port: Optional[int] = None
_config_password: Optional[str] = None
_config_timeout: Optional[float] = None
_config_keepalive: Optional[float] = None
_config_reconnect_delay: Optional[float] = None
_config_auto_reconnect: Optional[bool] = None
_config_queue_size: Optional[int] = None

# Connections created by connect(), disconnected at interpreter exit.
_live_connections: weakref.WeakSet = weakref.WeakSet()
_live_connections_lock = threading.Lock()


def _track(conn: RconConnection) -> RconConnection:
    """Register a connection for atexit cleanup and return it."""
    with _live_connections_lock:
        _live_connections.add(conn)
    return conn


def _atexit_disconnect() -> None:
    """Disconnect all tracked connections at interpreter exit."""
    with _live_connections_lock:
        connections = list(_live_connections)
    for conn in connections:
        try:
            conn.disconnect()
        except Exception:
            logger.debug("Error disconnecting during atexit", exc_info=True)


atexit.register(_atexit_disconnect)


def configure(
    host: Optional[str] = None,
    port: Optional[int] = None,
    password: Optional[str] = None,
    timeout: Optional[float] = None,
    keepalive_interval: Optional[float] = None,
    reconnect_delay: Optional[float] = None,
    auto_reconnect: Optional[bool] = None,
    queue_size: Optional[int] = None,
) -> None:
    """Configure defaults for connections created by connect().

    Values set here take priority over BERCON_* environment variables;
    arguments passed to connect() take priority over both. Existing
    connections are not affected.

    Args:
        host: Server host (default: from BERCON_HOST)
        port: RCon port (default: from BERCON_PORT or 2302)
        password: RCon password (default: from BERCON_PASSWORD)
        timeout: Reply timeout in seconds (default: from BERCON_TIMEOUT or 5.0)
        keepalive_interval: Keep-alive interval in seconds (default: from BERCON_KEEPALIVE,
            else the larger of 25.0 and five times the timeout)
        reconnect_delay: Delay before reconnecting in seconds (default: from BERCON_RECONNECT_DELAY or 2.0)
        auto_reconnect: Reconnect after a lost connection (default: from BERCON_AUTO_RECONNECT or True)
        queue_size: Command queue capacity (default: from BERCON_QUEUE_SIZE or 64)
    """
    global _config_host, _config_port, _config_password, _config_timeout
    global _config_keepalive, _config_reconnect_delay, _config_auto_reconnect, _config_queue_size

    with _global_lock:
        if host is not None:
            _config_host = host
        if port is not None:
            _config_port = port
        if password is not None:
            _config_password = password
        if timeout is not None:
            _config_timeout = timeout
        if keepalive_interval is not None:
            _config_keepalive = keepalive_interval
        if reconnect_delay is not None:
            _config_reconnect_delay = reconnect_delay
        if auto_reconnect is not None:
            _config_auto_reconnect = auto_reconnect
        if queue_size is not None:
            _config_queue_size = queue_size


def _first(*values: Any) -> Any:
    """First value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def connection(
    host: Optional[str] = None,
    port: Optional[int] = None,
    password: Optional[str] = None,
    **overrides: Any,
) -> RconConnection:
    """Build an RconConnection from the effective settings without connecting.

    Priority: explicit arguments > configure() > environment > defaults.

    Args:
        host: Server host
        port: RCon port
        password: RCon password
        **overrides: Other RconConnection keyword arguments (timeout,
            keepalive_interval, reconnect_delay, auto_reconnect,
            queue_capacity, login_timeout, monitor_interval)

    Raises:
        ValueError: No host configured anywhere
    """
    overrides = {key: value for key, value in overrides.items() if value is not None}
    with _global_lock:
        host = _first(host, _config_host, _env_host)
        port = _first(port, _config_port, _env_port, DEFAULT_PORT)
        password = _first(password, _config_password, _env_password)
        timeout = _first(overrides.pop("timeout", None), _config_timeout, _env_timeout, DEFAULT_TIMEOUT)
        keepalive = _first(overrides.pop("keepalive_interval", None), _config_keepalive, _env_keepalive)
        settings = {
            "reconnect_delay": _first(_config_reconnect_delay, _env_reconnect_delay, DEFAULT_RECONNECT_DELAY),
            "auto_reconnect": _first(_config_auto_reconnect, _env_auto_reconnect, True),
            "queue_capacity": _first(_config_queue_size, _env_queue_size, DEFAULT_QUEUE_CAPACITY),
        }

    if host is None:
        raise ValueError("No RCon host given; pass host= or set BERCON_HOST")
    if keepalive is None:
        # Keep-alive must stay above the timeout
        keepalive = max(DEFAULT_KEEPALIVE_INTERVAL, timeout * KEEPALIVE_TIMEOUT_FACTOR)
    settings.update(overrides)
    return RconConnection(host, port, password, timeout=timeout, keepalive_interval=keepalive, **settings)


def connect(
    host: Optional[str] = None,
    port: Optional[int] = None,
    password: Optional[str] = None,
    **overrides: Any,
) -> RconConnection:
    """Create an RconConnection from the effective settings and log in.

    The returned connection is disconnected automatically at interpreter
    exit; use it as a context manager to disconnect earlier.

    Args:
        host: Server host
        port: RCon port
        password: RCon password
        **overrides: Other RconConnection keyword arguments

    Returns:
        Connected RconConnection

    Raises:
        ValueError: No host configured anywhere
        NoStoredCredentialsError: No password configured anywhere
        LoginFailedError: The login attempt failed
    """
    conn = connection(host, port, password, **overrides)
    if not conn.connect():
        raise LoginFailedError(f"could not log in to {conn.host}:{conn.port}")
    return _track(conn)


__all__ = [
    # Factories
    "configure",
    "connection",
    "connect",
    # Connection
    "RconConnection",
    "ConnectionState",
    "ConnectionHandler",
    "DisconnectReason",
    "BattlEyeCommand",
    # Errors
    "RconError",
    "MalformedFrameError",
    "ChecksumMismatchError",
    "AlreadyConnectedError",
    "NoStoredCredentialsError",
    "NotConnectedError",
    "QueueFullError",
    "LoginFailedError",
    "ConnectionLostError",
]

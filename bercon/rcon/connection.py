"""
BattlEye RCon UDP connection.

This module provides a thread-based RCon client. A connected session runs
two daemon threads:
- a receive thread that decodes datagrams and dispatches command
  responses (reassembling multi-part ones) and server messages
- a monitor thread that sends keep-alive packets and detects a silent server

Losing the server tears the session down and, with auto-reconnect enabled,
schedules a fresh login with the stored password.
"""

import logging
import socket
import threading
import time
from enum import Enum
from typing import Optional, Union

from .command_queue import CommandQueue, PendingCommand
from .commands import BattlEyeCommand, build_command
from .constants import (
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_LOGIN_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_TIMEOUT,
    LOGIN_FAILURE,
    LOGIN_SUCCESS,
    MONITOR_INTERVAL,
    MULTIPART_MARKER,
    RECEIVE_POLL_INTERVAL,
    RECV_BUFFER_SIZE,
)
from .errors import (
    AlreadyConnectedError,
    ConnectionLostError,
    LoginFailedError,
    MalformedFrameError,
    NoStoredCredentialsError,
    NotConnectedError,
    RconError,
)
from .handlers import (
    CommandResponseHandler,
    ConnectionHandler,
    DisconnectReason,
    HandlerList,
    MessageHandler,
)
from .packet import RconPacket, acknowledge_packet, command_packet, decode, login_packet
from .reassembly import ReassemblyBuffer
from .sequence import SequenceAllocator

logger = logging.getLogger(__name__)

DEFAULT_EXECUTE_TIMEOUT = 10.0


class ConnectionState(Enum):
    """Connection life-cycle state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOST = "lost"  # waiting for an automatic reconnect


class _Session:
    """One logged-in session: its socket, threads and cancellation token."""

    def __init__(self, generation: int, sock: socket.socket):
        self.generation = generation
        self.sock = sock
        self.stop = threading.Event()
        self.threads: list[threading.Thread] = []

    @property
    def cancelled(self) -> bool:
        return self.stop.is_set()


class RconConnection:
    """
    Thread-based BattlEye RCon connection over UDP.

    Example usage:
        conn = RconConnection("127.0.0.1", 2302)
        conn.add_command_response_handler(lambda text, seq: print(seq, text))
        conn.add_message_handler(print)

        if conn.connect("secret"):
            conn.send_command(BattlEyeCommand.PLAYERS)
            print(conn.execute("bans"))

        conn.disconnect()
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: Optional[str] = None,
        *,
        auto_reconnect: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        login_timeout: float = DEFAULT_LOGIN_TIMEOUT,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        monitor_interval: float = MONITOR_INTERVAL,
    ):
        """
        Initialize an RCon connection (does not connect).

        Args:
            host: Server host name or address
            port: Server RCon port
            password: RCon password, used when connect() is called without one
            auto_reconnect: Log in again automatically after a lost connection
            timeout: Seconds without a reply to a polling packet before the
                connection is considered lost
            keepalive_interval: Seconds of outbound silence before an empty
                command is sent; must exceed timeout
            reconnect_delay: Seconds between a loss and the reconnect attempt
            login_timeout: Seconds to wait for the login response
            queue_capacity: Maximum number of pending commands
            monitor_interval: Liveness monitor tick in seconds
        """
        if timeout <= 0 or login_timeout <= 0 or monitor_interval <= 0:
            raise ValueError("timeout, login_timeout and monitor_interval must be positive")
        if keepalive_interval <= timeout:
            raise ValueError(f"keepalive_interval ({keepalive_interval}) must exceed timeout ({timeout})")
        if reconnect_delay < 0:
            raise ValueError(f"reconnect_delay must not be negative, got {reconnect_delay}")

        self._host = host
        self._port = port
        self._password = password
        self._auto_reconnect = auto_reconnect
        self._timeout = timeout
        self._keepalive_interval = keepalive_interval
        self._reconnect_delay = reconnect_delay
        self._login_timeout = login_timeout
        self._monitor_interval = monitor_interval

        # State
        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()
        self._send_lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self._session: Optional[_Session] = None
        self._generation = 0

        # Timestamps (time.monotonic)
        self._last_sent = 0.0
        self._last_received = 0.0
        self._last_polled = 0.0  # last packet that expects a reply
        self._last_reply = 0.0  # last login/command reply

        # Protocol bookkeeping
        self._sequence = SequenceAllocator()
        self._queue = CommandQueue(self._sequence, self._transmit_command, queue_capacity)
        self._reassembly = ReassemblyBuffer()
        self._keepalive_sequences: set[int] = set()
        self._last_message_sequence: Optional[int] = None

        # Reconnect
        self._reconnect_timer: Optional[threading.Timer] = None
        self._reconnect_token = 0

        # Handlers
        self._connection_handlers: HandlerList[ConnectionHandler] = HandlerList("Connection")
        self._response_handlers: HandlerList[CommandResponseHandler] = HandlerList("Command response")
        self._message_handlers: HandlerList[MessageHandler] = HandlerList("Message")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def state(self) -> ConnectionState:
        with self._state_lock:
            return self._state

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def auto_reconnect(self) -> bool:
        return self._auto_reconnect

    @auto_reconnect.setter
    def auto_reconnect(self, value: bool):
        self._auto_reconnect = value

    @property
    def last_sent(self) -> float:
        """time.monotonic() of the last transmitted packet."""
        with self._state_lock:
            return self._last_sent

    @property
    def last_received(self) -> float:
        """time.monotonic() of the last valid received packet."""
        with self._state_lock:
            return self._last_received

    @property
    def pending_commands(self) -> int:
        """Commands waiting for a response, including the one on the wire."""
        return len(self._queue)

    def _set_state(self, state: ConnectionState):
        with self._state_lock:
            old, self._state = self._state, state
        if old is not state:
            logger.debug(f"RCon {self._host}:{self._port} state {old.name} -> {state.name}")

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def add_connection_handler(self, handler: ConnectionHandler):
        self._connection_handlers.add(handler)

    def remove_connection_handler(self, handler: ConnectionHandler) -> bool:
        return self._connection_handlers.remove(handler)

    def add_command_response_handler(self, handler: CommandResponseHandler):
        """Register a callback receiving (response_text, sequence)."""
        self._response_handlers.add(handler)

    def remove_command_response_handler(self, handler: CommandResponseHandler) -> bool:
        return self._response_handlers.remove(handler)

    def add_message_handler(self, handler: MessageHandler):
        """Register a callback receiving server message text."""
        self._message_handlers.add(handler)

    def remove_message_handler(self, handler: MessageHandler) -> bool:
        return self._message_handlers.remove(handler)

    def clear_handlers(self):
        self._connection_handlers.clear()
        self._response_handlers.clear()
        self._message_handlers.clear()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, password: Optional[str] = None) -> bool:
        """
        Log in to the server.

        Args:
            password: RCon password; the stored one is used when omitted

        Returns:
            True if the server accepted the login, False otherwise (the
            failure is also reported through on_connection_failed)

        Raises:
            AlreadyConnectedError: A session is active
            NoStoredCredentialsError: No password given or stored
        """
        with self._lifecycle_lock:
            state = self.state
            if state not in (ConnectionState.DISCONNECTED, ConnectionState.LOST):
                raise AlreadyConnectedError(state.name)
            if password is None:
                password = self._password
            if password is None:
                raise NoStoredCredentialsError()
            self._cancel_reconnect()
            self._password = password

            try:
                self._open_session(password)
            except LoginFailedError as e:
                logger.warning(f"Login to {self._host}:{self._port} failed: {e.message}")
                self._set_state(ConnectionState.DISCONNECTED)
                self._connection_handlers.fire(lambda h: h.on_connection_failed())
                return False

            self._connection_handlers.fire(lambda h: h.on_connected())
            return True

    def reconnect(self) -> bool:
        """
        Log in again with the stored password.

        Raises:
            NoStoredCredentialsError: connect() was never given a password
        """
        if self._password is None:
            raise NoStoredCredentialsError()
        return self.connect(self._password)

    def disconnect(self):
        """Close the session. Does nothing when already disconnected."""
        with self._lifecycle_lock:
            self._cancel_reconnect()
            state = self.state
            if state is ConnectionState.DISCONNECTED:
                return
            if state is ConnectionState.LOST:
                # Loss was already reported; only the pending reconnect goes away
                logger.info(f"Cancelled reconnect to {self._host}:{self._port}")
                self._set_state(ConnectionState.DISCONNECTED)
                return

            session = self._session
            self._teardown(session, NotConnectedError("connection closed"))
            self._set_state(ConnectionState.DISCONNECTED)
            logger.info(f"Disconnected from {self._host}:{self._port}")
            self._connection_handlers.fire(lambda h: h.on_disconnected(DisconnectReason.MANUAL))

        self._join_threads(session)

    def _open_session(self, password: str):
        """
        Open a socket, perform the login handshake and start the session threads.

        Caller holds _lifecycle_lock.

        Raises:
            LoginFailedError: Socket error, timeout, bad response or rejection
        """
        try:
            family, _, _, _, address = socket.getaddrinfo(self._host, self._port, type=socket.SOCK_DGRAM)[0]
            sock = socket.socket(family, socket.SOCK_DGRAM)
        except OSError as e:
            raise LoginFailedError(f"cannot resolve {self._host}:{self._port}: {e}") from e

        try:
            sock.bind(("::", 0) if family == socket.AF_INET6 else ("0.0.0.0", 0))
            sock.connect(address)
            sock.settimeout(self._login_timeout)
        except OSError as e:
            sock.close()
            raise LoginFailedError(f"cannot open socket to {self._host}:{self._port}: {e}") from e

        self._sequence.reset()
        now = time.monotonic()
        with self._state_lock:
            self._sock = sock
            self._last_sent = self._last_received = now
            self._last_polled = self._last_reply = now
        self._set_state(ConnectionState.CONNECTING)
        logger.debug(f"Logging in to {self._host}:{self._port} from port {sock.getsockname()[1]}")

        try:
            self._handshake(sock, password)
        except LoginFailedError:
            with self._state_lock:
                self._sock = None
            self._close_socket(sock)
            raise

        sock.settimeout(RECEIVE_POLL_INTERVAL)
        self._generation += 1
        session = _Session(self._generation, sock)
        self._reassembly.reset()
        # Commands left over from the previous session never reach this one
        dropped = self._queue.clear(NotConnectedError("connection closed"))
        if dropped:
            logger.warning(f"Dropped {dropped} command(s) queued during the previous session")
        with self._state_lock:
            self._keepalive_sequences.clear()
            self._last_message_sequence = None
            self._session = session
        self._set_state(ConnectionState.CONNECTED)

        self._start_threads(session)
        logger.info(f"Connected to {self._host}:{self._port} (session {session.generation})")

    def _handshake(self, sock: socket.socket, password: str):
        """Send the login packet and check the single-byte login response."""
        try:
            self._send(login_packet(password), polling=True)
            data = sock.recv(RECV_BUFFER_SIZE)
        except socket.timeout:
            raise LoginFailedError(f"no login response within {self._login_timeout}s") from None
        except OSError as e:
            raise LoginFailedError(f"socket error during login: {e}") from e

        try:
            packet = decode(data)
        except MalformedFrameError as e:
            raise LoginFailedError(f"invalid login response: {e.message}") from e

        with self._state_lock:
            self._last_received = self._last_reply = time.monotonic()

        if not packet.is_login() or len(packet.payload) != 1:
            raise LoginFailedError(f"unexpected login response: {packet!r}")
        if packet.payload[0] == LOGIN_FAILURE:
            raise LoginFailedError("login rejected by server (wrong password)", rejected=True)
        if packet.payload[0] != LOGIN_SUCCESS:
            raise LoginFailedError(f"unexpected login result {packet.payload[0]:#04x}")

    def _teardown(self, session: Optional[_Session], exc: RconError) -> bool:
        """
        Cancel a session and release its resources.

        Caller holds _lifecycle_lock.

        Returns:
            False if the session was already torn down
        """
        if session is None or session.cancelled:
            return False

        session.stop.set()
        with self._state_lock:
            if self._session is session:
                self._session = None
                self._sock = None
            self._keepalive_sequences.clear()
        self._close_socket(session.sock)
        self._queue.clear(exc)
        self._reassembly.reset()
        return True

    def _connection_lost(self, session: _Session, reason: str):
        """Tear down after a timeout or socket failure; maybe schedule a reconnect."""
        with self._lifecycle_lock:
            if not self._teardown(session, ConnectionLostError(f"connection lost: {reason}")):
                return

            logger.warning(f"Lost connection to {self._host}:{self._port} ({reason})")
            reconnect = self._auto_reconnect and self._password is not None
            self._set_state(ConnectionState.LOST if reconnect else ConnectionState.DISCONNECTED)
            self._connection_handlers.fire(lambda h: h.on_disconnected(DisconnectReason.CONNECTION_LOST))
            if reconnect and self.state is ConnectionState.LOST:
                self._schedule_reconnect()

    @staticmethod
    def _close_socket(sock: socket.socket):
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # not connected / already closed
        sock.close()

    def _join_threads(self, session: Optional[_Session]):
        if session is None:
            return
        current = threading.current_thread()
        for thread in session.threads:
            if thread is not current and thread.is_alive():
                thread.join(timeout=2.0)

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def _schedule_reconnect(self):
        """Start a timer for the next reconnect attempt. Caller holds _lifecycle_lock."""
        self._reconnect_token += 1
        timer = threading.Timer(self._reconnect_delay, self._reconnect_attempt, args=(self._reconnect_token,))
        timer.name = f"RCon-reconnect-{self._host}:{self._port}"
        timer.daemon = True
        self._reconnect_timer = timer
        logger.info(f"Reconnecting to {self._host}:{self._port} in {self._reconnect_delay}s")
        timer.start()

    def _cancel_reconnect(self):
        """Invalidate any scheduled reconnect. Caller holds _lifecycle_lock."""
        self._reconnect_token += 1
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _reconnect_attempt(self, token: int):
        with self._lifecycle_lock:
            if token != self._reconnect_token or self.state is not ConnectionState.LOST:
                return
            self._reconnect_timer = None
            if not self._auto_reconnect or self._password is None:
                self._set_state(ConnectionState.DISCONNECTED)
                return

            logger.info(f"Attempting reconnect to {self._host}:{self._port}")
            try:
                self._open_session(self._password)
            except LoginFailedError as e:
                logger.warning(f"Reconnect to {self._host}:{self._port} failed: {e.message}")
                self._connection_handlers.fire(lambda h: h.on_connection_failed())
                if e.rejected:
                    self._set_state(ConnectionState.DISCONNECTED)
                    self._connection_handlers.fire(
                        lambda h: h.on_disconnected(DisconnectReason.CONNECTION_FAILED)
                    )
                else:
                    self._set_state(ConnectionState.LOST)
                    self._schedule_reconnect()
                return

            self._connection_handlers.fire(lambda h: h.on_connected())

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def send_command(self, command: Union[BattlEyeCommand, str], *params: object) -> int:
        """
        Queue a command for transmission.

        Args:
            command: Command literal or catalog entry
            params: Parameters appended to the command, space separated

        Returns:
            Sequence number the response will be delivered with

        Raises:
            NotConnectedError: No active session
            QueueFullError: Too many commands pending
        """
        return self._submit(command, params).sequence

    def execute(
        self,
        command: Union[BattlEyeCommand, str],
        *params: object,
        timeout: Optional[float] = DEFAULT_EXECUTE_TIMEOUT,
    ) -> str:
        """
        Send a command and block until its (reassembled) response arrives.

        Raises:
            NotConnectedError: No active session, or it closed while waiting
            ConnectionLostError: The session was lost while waiting
            QueueFullError: Too many commands pending
            concurrent.futures.TimeoutError: No response within timeout
        """
        return self._submit(command, params).future.result(timeout=timeout)

    def _submit(self, command: Union[BattlEyeCommand, str], params: tuple) -> PendingCommand:
        text = build_command(command, *params)
        if not self.connected:
            raise NotConnectedError()
        # enqueue() raises NotConnectedError if the session ends after the check above
        pending = self._queue.enqueue(text)
        logger.debug(f"Command seq={pending.sequence}: {text!r}")
        return pending

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _send(self, data: bytes, *, polling: bool):
        """
        Transmit one datagram.

        Args:
            data: Encoded packet
            polling: The packet expects a reply (login, command, keep-alive)

        Raises:
            NotConnectedError: No socket
            OSError: Socket send failed
        """
        with self._send_lock:
            sock = self._sock
            if sock is None:
                raise NotConnectedError()
            now = time.monotonic()
            with self._state_lock:
                self._last_sent = now
                if polling:
                    self._last_polled = now
            sock.send(data)

    def _transmit_command(self, sequence: int, text: str):
        self._send(command_packet(sequence, text), polling=True)

    def _send_keepalive(self):
        """Send an empty command with its own sequence number."""
        sequence = self._sequence.next()
        with self._state_lock:
            self._keepalive_sequences.add(sequence)
        logger.debug(f"Sending keep-alive seq={sequence}")
        try:
            self._send(command_packet(sequence), polling=True)
        except (OSError, NotConnectedError) as e:
            logger.warning(f"Failed to send keep-alive: {e}")

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    def _start_threads(self, session: _Session):
        label = f"{self._host}:{self._port}#{session.generation}"
        session.threads = [
            threading.Thread(target=self._receive_loop, args=(session,), name=f"RCon-recv-{label}", daemon=True),
            threading.Thread(target=self._monitor_loop, args=(session,), name=f"RCon-monitor-{label}", daemon=True),
        ]
        for thread in session.threads:
            thread.start()

    def _receive_loop(self, session: _Session):
        """Receive thread main loop - reads and dispatches datagrams until cancelled."""
        logger.debug(f"Receive thread started (session {session.generation})")

        while not session.cancelled:
            try:
                data = session.sock.recv(RECV_BUFFER_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                if not session.cancelled:
                    logger.error(f"Socket error in receive thread: {e}")
                    self._connection_lost(session, f"socket error: {e}")
                break

            if session.cancelled:
                break
            try:
                self._handle_datagram(data)
            except Exception as e:
                logger.exception(f"Error handling packet: {e}")

        logger.debug(f"Receive thread stopped (session {session.generation})")

    def _monitor_loop(self, session: _Session):
        """Monitor thread main loop - keep-alive and timeout detection."""
        logger.debug(f"Monitor thread started (session {session.generation})")

        while not session.stop.wait(self._monitor_interval):
            now = time.monotonic()
            with self._state_lock:
                last_sent = self._last_sent
                last_polled = self._last_polled
                last_reply = self._last_reply

            if last_polled > last_reply and now - last_polled > self._timeout:
                self._connection_lost(session, f"no reply for {now - last_polled:.1f}s")
                break

            if now - last_sent > self._keepalive_interval:
                self._send_keepalive()

        logger.debug(f"Monitor thread stopped (session {session.generation})")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _handle_datagram(self, data: bytes):
        """Decode one datagram and dispatch it by kind."""
        try:
            packet = decode(data)
        except MalformedFrameError as e:
            logger.warning(f"Dropping packet from {self._host}:{self._port}: {e.message}")
            return

        with self._state_lock:
            self._last_received = time.monotonic()

        if packet.is_command():
            self._handle_command_response(packet)
        elif packet.is_message():
            self._handle_server_message(packet)
        elif packet.is_login():
            logger.warning("Ignoring login response outside of the login handshake")
        else:
            logger.warning(f"Ignoring packet of unknown kind {packet.kind:#04x}")

    def _handle_command_response(self, packet: RconPacket):
        """Handle a command response: empty, single-part or one fragment of a multi-part one."""
        sequence = packet.sequence
        payload = packet.payload
        with self._state_lock:
            self._last_reply = self._last_received

        if not self._queue.is_head(sequence) and self._discard_keepalive(sequence):
            logger.debug(f"Keep-alive reply seq={sequence}")
            return

        if not payload:
            self._deliver_response("", sequence)
            return

        if payload[0] != MULTIPART_MARKER:
            self._deliver_response(packet.text, sequence)
            return

        # 0x00 | total | index | fragment text
        if len(payload) < 3:
            logger.warning(f"Truncated multi-part header for seq={sequence}: {payload!r}")
            return
        total, index = payload[1], payload[2]
        try:
            joined = self._reassembly.add(sequence, total, index, payload[3:])
        except MalformedFrameError as e:
            logger.warning(f"Dropping fragment for seq={sequence}: {e.message}")
            return
        if joined is None:
            logger.debug(f"Fragment {index + 1}/{total} for seq={sequence}")
            return
        self._deliver_response(joined.decode("utf-8", errors="replace"), sequence)

    def _discard_keepalive(self, sequence: int) -> bool:
        with self._state_lock:
            if sequence in self._keepalive_sequences:
                self._keepalive_sequences.discard(sequence)
                return True
            return False

    def _deliver_response(self, text: str, sequence: int):
        self._response_handlers.fire(lambda h: h(text, sequence))
        self._queue.complete_head(sequence, text)

    def _handle_server_message(self, packet: RconPacket):
        """Acknowledge a server message, then deliver it."""
        sequence = packet.sequence
        try:
            self._send(acknowledge_packet(sequence), polling=False)
        except (OSError, NotConnectedError) as e:
            logger.warning(f"Failed to acknowledge message seq={sequence}: {e}")

        with self._state_lock:
            duplicate = sequence == self._last_message_sequence
            self._last_message_sequence = sequence
        if duplicate:
            # Retransmission after a lost acknowledge
            logger.debug(f"Duplicate server message seq={sequence}")
            return

        text = packet.text
        if text:
            self._message_handlers.fire(lambda h: h(text))

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        if not self.connected and not self.connect():
            raise LoginFailedError(f"could not log in to {self._host}:{self._port}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False

    def __repr__(self):
        return f"RconConnection({self._host!r}, {self._port}, state={self.state.name})"

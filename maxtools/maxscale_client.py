# maxwatch/maxtools/maxscale_client.py
import socket
import threading
import logging
from typing import Optional

from maxtools.errors import (
    ConnectionFailedError,
    ReadError,
    WriteError,
    NegotiationError,
    AuthenticationError,
)
from maxtools.server_list import ServerList, parse_server_list

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6603
DEFAULT_USER = "admin"
DEFAULT_PASSWORD = "mariadb"
DEFAULT_TIMEOUT = 10  # seconds, applied to the TCP dial
DEFAULT_READ_TIMEOUT = 10  # seconds, applied to every recv()
DEFAULT_CHUNK_SIZE = 80

# Handshake frames are read with one fixed-size recv, independent of chunk_size
HANDSHAKE_BUFFER_SIZE = 80
GREETING_SIZE = 4
USER_ACK_SIZE = 8
AUTH_FAILED = b"FAILED"

# Marks the end of a command response, only on a short read
RESPONSE_SENTINEL = b"OK"


class MaxScaleClient:
    """TCP client for the MaxScale admin channel"""

    def __init__(
        self,
        connStr: str = f"maxscale://localhost:{DEFAULT_PORT}:{DEFAULT_USER}:{DEFAULT_PASSWORD}",
        timeout: float = DEFAULT_TIMEOUT,
        read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        parts = connStr.split("://")[-1].split(":")
        self.host = parts[0] if len(parts) > 0 and parts[0] else "localhost"
        self.port = int(parts[1]) if len(parts) > 1 else DEFAULT_PORT
        self.user = parts[2] if len(parts) > 2 else DEFAULT_USER
        self.password = parts[3] if len(parts) > 3 else DEFAULT_PASSWORD
        self.timeout = timeout
        self.read_timeout = read_timeout
        self.chunk_size = chunk_size
        self.socket: Optional[socket.socket] = None
        self.connected = False
        # One command in flight per connection
        self._command_lock = threading.Lock()

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def connect(self):
        """
        Dial the admin port and run the three step handshake.

        The server sends a 4 byte greeting, acknowledges the user name with
        8 bytes, then answers the password with a reply that starts with
        FAILED when the credentials are rejected. Frame lengths are the only
        validation the protocol offers, so any other length aborts.

        Raises:
            ConnectionFailedError: the dial failed
            ReadError: a handshake frame could not be read
            WriteError: the user name or password could not be written
            NegotiationError: a handshake frame had the wrong length
            AuthenticationError: the password reply started with FAILED
        """
        if self.connected:
            return

        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            self.socket = None
            logger.error(f"Connection failed to address {self.address}: {e}")
            raise ConnectionFailedError(f"Connection failed to address {self.address}") from e

        try:
            # Per recv read deadline for the rest of the session
            self.socket.settimeout(self.read_timeout)
        except OSError as e:
            logger.error(f"Could not set read timeout on {self.address}: {e}")
            self.disconnect()
            raise ConnectionFailedError(f"Connection setup failed for address {self.address}") from e

        try:
            greeting = self._recv(HANDSHAKE_BUFFER_SIZE)
            if len(greeting) != GREETING_SIZE:
                raise NegotiationError(
                    f"Incorrect maxscale protocol negotiation: greeting was {len(greeting)} bytes"
                )

            self._send(self.user.encode("utf-8"))
            user_ack = self._recv(HANDSHAKE_BUFFER_SIZE)
            if len(user_ack) != USER_ACK_SIZE:
                raise NegotiationError(
                    f"Incorrect maxscale protocol negotiation: user ack was {len(user_ack)} bytes"
                )

            self._send(self.password.encode("utf-8"))
            auth_reply = self._recv(HANDSHAKE_BUFFER_SIZE)
            if auth_reply[:len(AUTH_FAILED)] == AUTH_FAILED:
                raise AuthenticationError(f"Authentication failed for user {self.user!r}")
        except (ReadError, WriteError, NegotiationError, AuthenticationError) as e:
            logger.error(f"Handshake with {self.address} failed: {e}")
            self.disconnect()
            raise

        self.connected = True
        logger.info(f"Connected to MaxScale at {self.address} as {self.user}")

    def _send_command(self, command: str):
        """Write a command verbatim, no terminator is appended"""
        self._send(command.encode("utf-8"))

    def _read_response(self) -> bytes:
        """
        Accumulate a command response until its terminating chunk.

        A chunk ends the response only if it is shorter than chunk_size and
        ends with OK. The OK is stripped from the result. A response whose
        last chunk fills the buffer exactly is never seen as finished; the
        read then fails once the server stops sending and the read deadline
        passes, or the peer closes.

        Raises:
            ReadError: the socket failed, timed out or was closed mid response
        """
        response = bytearray()
        while True:
            chunk = self._recv(self.chunk_size)
            logger.debug(f"Read {len(chunk)} byte chunk from {self.address}")
            if len(chunk) < self.chunk_size and chunk.endswith(RESPONSE_SENTINEL):
                response += chunk[:-len(RESPONSE_SENTINEL)]
                break
            response += chunk
        return bytes(response)

    def execute(self, command: str) -> bytes:
        """
        Send a command and return its unframed response.

        Commands on one client run one at a time. A failed read or write
        leaves an unknown part of the reply in the stream, so the client
        disconnects before raising and later commands fail until reconnected.

        Raises:
            ConnectionFailedError: the client is not connected
            ReadError, WriteError: the exchange failed; the client is now disconnected
        """
        with self._command_lock:
            self._require_connection()
            logger.debug(f"Executing {command!r} on {self.address}")
            try:
                self._send_command(command)
                return self._read_response()
            except (ReadError, WriteError) as e:
                logger.error(f"Command {command!r} on {self.address} failed, disconnecting: {e}")
                self.disconnect()
                raise

    def list_servers(self) -> ServerList:
        """Run `list servers` and parse the table it prints"""
        payload = self.execute("list servers")
        return parse_server_list(payload.decode("utf-8", errors="replace"))

    def show_servers(self) -> bytes:
        """Run `show serversjson` and return the raw payload"""
        return self.execute("show serversjson")

    def disconnect(self):
        """Close connection"""
        if self.socket:
            try:
                self.socket.close()
            except OSError as e:
                logger.debug(f"Error closing socket to {self.address}: {e}")
            self.socket = None
        self.connected = False

    def _require_connection(self):
        if self.socket is None:
            raise ConnectionFailedError(f"Not connected to {self.address}")

    def _recv(self, size: int) -> bytes:
        try:
            chunk = self.socket.recv(size)
        except socket.timeout as e:
            raise ReadError(f"Timed out reading from {self.address}") from e
        except OSError as e:
            raise ReadError(f"Error reading from buffer: {e}") from e
        if not chunk:
            raise ReadError(f"Connection to {self.address} closed by peer")
        return chunk

    def _send(self, data: bytes):
        try:
            self.socket.sendall(data)
        except OSError as e:
            raise WriteError(f"Error writing to {self.address}: {e}") from e

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

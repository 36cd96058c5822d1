"""FTP control connection management for ftpclient.

Provides ConnectionState, TransferMode and DeadlineMode enums, the
SessionConfig dataclass, and the ControlSession class that owns the
control socket, the login state machine and the command/reply
primitive every other operation is built on.
"""

import logging
import socket
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ftpclient.ftp.exceptions import (
    FTPAuthenticationError,
    FTPConnectionError,
    FTPError,
    FTPNotConnectedError,
    FTPPathError,
    FTPProtocolError,
    FTPTimeoutError,
)
from ftpclient.ftp.response import ENCODING, Response, ResponseParser
from ftpclient.utils.logging import get_logger
from ftpclient.utils.validators import validate_host, validate_port, validate_timeout


class ConnectionState(Enum):
    """FTP control connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    READY = "ready"
    ERROR = "error"


class TransferMode(Enum):
    """Representation type sent with TYPE."""
    ASCII = "A"
    BINARY = "I"


class DeadlineMode(Enum):
    """How the configured timeout bounds data-channel receive loops.

    TOTAL: the whole receive loop must finish within ``timeout`` seconds
    of its start; longer transfers are cut off.
    IDLE: no overall ceiling, only each read is bounded by ``timeout``.
    """
    TOTAL = "total"
    IDLE = "idle"


@dataclass(frozen=True)
class SessionConfig:
    """FTP session configuration."""
    host: str
    port: int = 21
    username: str = "anonymous"
    password: str = field(default="", repr=False)
    initial_directory: Optional[str] = None
    timeout: int = 10
    verbose: bool = False
    deadline_mode: DeadlineMode = DeadlineMode.TOTAL

    def __post_init__(self):
        """Validate configuration after initialization."""
        for is_valid, error in (
            validate_host(self.host),
            validate_port(self.port),
            validate_timeout(self.timeout),
        ):
            if not is_valid:
                raise ValueError(error)


class ControlSession:
    """Owns one FTP control connection and its login state."""

    def __init__(self, config: SessionConfig, logger: Optional[logging.Logger] = None):
        """
        Initialize an unauthenticated session.

        Args:
            config: Connection configuration
            logger: Event sink for session messages
        """
        self._config = config
        self._log = logger or get_logger("ftpclient.session")
        self._sock: Optional[socket.socket] = None
        self._parser = ResponseParser()
        self._state = ConnectionState.DISCONNECTED
        self._logged_in = False
        self._transfer_mode = TransferMode.ASCII
        self._current_directory: Optional[str] = None
        self._connected_at: Optional[datetime] = None
        self._last_activity: Optional[datetime] = None

    @property
    def config(self) -> SessionConfig:
        """Session configuration."""
        return self._config

    @property
    def logger(self) -> logging.Logger:
        """Event sink shared with the components built on this session."""
        return self._log

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_logged_in(self) -> bool:
        """True once login() has succeeded and until close()."""
        return self._logged_in

    @property
    def transfer_mode(self) -> TransferMode:
        """Representation type last confirmed by the server."""
        return self._transfer_mode

    @property
    def current_directory(self) -> Optional[str]:
        """Remote working directory as reported by PWD."""
        return self._current_directory

    @property
    def connected_at(self) -> Optional[datetime]:
        """Timestamp when login completed."""
        return self._connected_at

    @property
    def last_activity(self) -> Optional[datetime]:
        """Timestamp of the last reply read from the server."""
        return self._last_activity

    def login(self) -> None:
        """
        Connect to the server and authenticate.

        An existing login is closed first.

        Raises:
            FTPConnectionError: If the server cannot be reached
            FTPTimeoutError: If connecting times out
            FTPProtocolError: If the greeting is not 220
            FTPAuthenticationError: If USER or PASS is rejected
        """
        if self._logged_in:
            self.close()

        config = self._config
        self._state = ConnectionState.CONNECTING
        self._log.info("Opening connection to %s:%s", config.host, config.port)

        try:
            self._sock = socket.create_connection(
                (config.host, config.port),
                timeout=config.timeout
            )
        except socket.timeout:
            self._state = ConnectionState.ERROR
            self._log.error("Timed out connecting to %s:%s", config.host, config.port)
            raise FTPTimeoutError(config.host, config.port, "Connection", config.timeout)
        except OSError as e:
            self._state = ConnectionState.ERROR
            self._log.error("Couldn't connect to remote server %s: %s", config.host, e)
            raise FTPConnectionError(config.host, config.port, e)

        self._parser = ResponseParser()
        self._state = ConnectionState.CONNECTED

        try:
            greeting = self.read_response()
            if greeting.code != 220:
                self._log.error("%s", greeting.message)
                raise FTPProtocolError(greeting.message, greeting.code)

            response = self.execute(f"USER {config.username}")
            if response.code not in (331, 230):
                self._reject_login(response)

            if response.code == 331:
                response = self.execute(f"PASS {config.password}")
                if response.code not in (230, 202):
                    self._reject_login(response)
        except FTPError:
            self.close()
            self._state = ConnectionState.ERROR
            raise

        self._logged_in = True
        self._state = ConnectionState.READY
        self._transfer_mode = TransferMode.ASCII
        self._connected_at = datetime.now()
        self._log.info("Connected to %s", config.host)

        if config.initial_directory:
            self.change_working_directory(config.initial_directory)
        else:
            self._current_directory = self.print_working_directory()

    def _reject_login(self, response: Response) -> None:
        self._log.error("%s", response.message)
        raise FTPAuthenticationError(self._config.username, response.message, response.code)

    def close(self) -> None:
        """Send QUIT if connected, then release the control socket."""
        self._log.info("Closing connection to %s", self._config.host)
        if self._sock is not None:
            try:
                self.execute("QUIT")
            except FTPError as e:
                self._log.debug("QUIT failed: %s", e)
        self._logout()

    def _logout(self) -> None:
        """Release the control socket and reset session state."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None

        self._logged_in = False
        self._state = ConnectionState.DISCONNECTED
        self._transfer_mode = TransferMode.ASCII
        self._current_directory = None
        self._connected_at = None
        self._log.info("User logged out")

    def execute(self, command: str) -> Response:
        """
        Send one command and read its reply.

        Args:
            command: Command line without the trailing CRLF

        Returns:
            The server's Response

        Raises:
            FTPNotConnectedError: If there is no control connection
            FTPConnectionError: On transport failure
        """
        if self._sock is None:
            verb = command.split(" ", 1)[0]
            self._log.error("%s requires an active FTP login", verb)
            raise FTPNotConnectedError(verb)

        if self._config.verbose:
            self._log.info("%s", self._mask(command))

        try:
            self._sock.sendall(f"{command}\r\n".encode(ENCODING))
        except socket.timeout:
            raise self._transport_error("Sending command", None, timed_out=True)
        except OSError as e:
            raise self._transport_error("Sending command", e)

        return self.read_response()

    def read_response(self) -> Response:
        """
        Read one reply without sending anything.

        Used for the completion reply that follows a data transfer.

        Raises:
            FTPNotConnectedError: If there is no control connection
            FTPConnectionError: On transport failure or server disconnect
            FTPProtocolError: If the reply is malformed
        """
        if self._sock is None:
            self._log.error("Reading a reply requires an active FTP login")
            raise FTPNotConnectedError("Reading a reply")

        try:
            response = self._parser.read(self._sock)
        except socket.timeout:
            raise self._transport_error("Reading server response", None, timed_out=True)
        except (OSError, EOFError) as e:
            raise self._transport_error("Reading server response", e)

        if self._config.verbose:
            for line in response.lines:
                self._log.info("%s", line)

        self._last_activity = datetime.now()
        return response

    def _transport_error(
        self,
        operation: str,
        error: Optional[Exception],
        timed_out: bool = False
    ) -> FTPConnectionError:
        config = self._config
        self._log.error("%s failed on %s:%s: %s", operation, config.host, config.port, error or "timeout")
        if timed_out:
            return FTPTimeoutError(config.host, config.port, operation, config.timeout)
        return FTPConnectionError(
            config.host,
            config.port,
            error,
            message=f"Lost connection to {config.host}:{config.port}"
        )

    @staticmethod
    def _mask(command: str) -> str:
        if command.upper().startswith("PASS "):
            return "PASS ********"
        return command

    def expect(self, response: Response, *codes: int) -> Response:
        """
        Check a reply against the accepted status codes.

        Args:
            response: Reply to check
            *codes: Accepted status codes

        Returns:
            The same response, for chaining

        Raises:
            FTPProtocolError: If the code is not accepted
        """
        if response.code not in codes:
            self._log.error("Status Code %d - %s", response.code, response.message)
            raise FTPProtocolError(response.message, response.code)
        return response

    def require_login(self, operation: str = "Operation") -> None:
        """
        Guard for operations that need an authenticated session.

        Raises:
            FTPNotConnectedError: If the session is not logged in
        """
        if not self._logged_in:
            self._log.error("You need to log in before you can perform this operation")
            raise FTPNotConnectedError(operation)

    def set_transfer_mode(self, mode: TransferMode) -> None:
        """
        Switch the representation type, only if it changes.

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If TYPE is not answered with 200
        """
        if mode is self._transfer_mode:
            return
        self.require_login("Set transfer mode")
        self.expect(self.execute(f"TYPE {mode.value}"), 200)
        self._transfer_mode = mode

    def change_working_directory(self, name: str) -> None:
        """
        Change the remote working directory and record the new path.

        Args:
            name: Directory to change into

        Raises:
            FTPPathError: If no directory name is given
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If CWD or PWD fails
        """
        if not name or name == ".":
            self._log.error("A directory name wasn't provided")
            raise FTPPathError(name, "change directory to")
        self.require_login("Change working directory")

        self._log.info("Attempting to change working directory %s", name)
        self.expect(self.execute(f"CWD {name}"), 250)

        self._current_directory = self.print_working_directory()
        self._log.info("Current directory is %s", self._current_directory)

    def print_working_directory(self) -> str:
        """
        Ask the server for the current directory.

        Returns:
            The path quoted in the PWD reply

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If PWD fails or its reply has no quoted path
        """
        self.require_login("Print working directory")
        response = self.expect(self.execute("PWD"), 257)
        return parse_pwd_response(response.text)

    def __enter__(self) -> "ControlSession":
        """Context manager entry: log in."""
        self.login()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit: close the connection."""
        self.close()


def parse_pwd_response(text: str) -> str:
    """
    Extract the path between the first pair of double quotes.

    Raises:
        FTPProtocolError: If the text holds no quoted path
    """
    parts = text.split('"')
    if len(parts) < 3:
        raise FTPProtocolError(f"Malformed PWD result: {text}")
    return parts[1]

"""Passive-mode data channel for ftpclient.

Negotiates data connections with PASV and runs the receive loop shared
by downloads and listings.
"""

import logging
import socket
import time
from typing import Callable, Optional, Tuple

from ftpclient.ftp.exceptions import FTPConnectionError, FTPProtocolError, FTPTimeoutError
from ftpclient.ftp.session import ControlSession, DeadlineMode


# Bytes requested per recv() on a data socket
DATA_CHUNK_SIZE = 8192

_PASV_CHARACTERS = frozenset("0123456789,")


def parse_pasv_response(text: str) -> Tuple[str, int]:
    """
    Decode the ``(a,b,c,d,p1,p2)`` tuple of a 227 reply.

    Args:
        text: PASV reply text

    Returns:
        Tuple of (dotted-quad address, port)

    Raises:
        FTPProtocolError: If the tuple is missing or malformed
    """
    start = text.find("(")
    end = text.find(")")
    if start == -1 or end < start:
        raise FTPProtocolError(f"Malformed PASV result: {text}")

    payload = text[start + 1:end]
    if not payload or not set(payload) <= _PASV_CHARACTERS:
        raise FTPProtocolError(f"Malformed PASV result: {text}")

    segments = payload.split(",")
    if len(segments) != 6 or "" in segments:
        raise FTPProtocolError(f"Malformed PASV result: {text}")

    numbers = [int(segment) for segment in segments]
    if any(number > 255 for number in numbers):
        raise FTPProtocolError(f"Malformed PASV result: {text}")

    host = ".".join(str(number) for number in numbers[:4])
    port = (numbers[4] << 8) + numbers[5]
    return host, port


class PassiveChannelNegotiator:
    """Opens passive-mode data connections for a control session."""

    def __init__(self, session: ControlSession, logger: Optional[logging.Logger] = None):
        """
        Initialize the negotiator.

        Args:
            session: Logged-in control session used to send PASV
            logger: Event sink, defaults to the session's
        """
        self._session = session
        self._log = logger or session.logger

    def open_data_connection(self) -> socket.socket:
        """
        Send PASV and connect to the address the server reports.

        The caller owns the returned socket and must close it.

        Returns:
            Connected data socket

        Raises:
            FTPProtocolError: If PASV fails or its reply is malformed
            FTPConnectionError: If the data connection cannot be opened
            FTPTimeoutError: If connecting times out
        """
        response = self._session.expect(self._session.execute("PASV"), 227)

        try:
            host, port = parse_pasv_response(response.text)
        except FTPProtocolError as e:
            self._log.error("%s", e)
            raise

        timeout = self._session.config.timeout
        try:
            return socket.create_connection((host, port), timeout=timeout)
        except socket.timeout:
            self._log.error("Timed out opening data connection to %s:%s", host, port)
            raise FTPTimeoutError(host, port, "Data connection", timeout)
        except OSError as e:
            self._log.error("Can't connect to remote server %s:%s: %s", host, port, e)
            raise FTPConnectionError(host, port, e)

    def receive(
        self,
        data_sock: socket.socket,
        write: Callable[[bytes], None]
    ) -> Tuple[int, bool]:
        """
        Pass everything read from ``data_sock`` to ``write``.

        Stops when the server closes the data connection. Under
        DeadlineMode.TOTAL it also stops once ``timeout`` seconds have
        passed since the loop started, even if data is still arriving.
        Each read then waits at most until the deadline, so a stalled
        server cannot push the cut-off past it.

        Args:
            data_sock: Connected data socket
            write: Callback for each received chunk

        Returns:
            Tuple of (bytes received, True if cut off by the deadline)

        Raises:
            FTPTimeoutError: If a single read times out
            FTPConnectionError: On socket failure
        """
        config = self._session.config
        deadline = None
        if config.deadline_mode is DeadlineMode.TOTAL:
            deadline = time.monotonic() + config.timeout

        received = 0
        while True:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                data_sock.settimeout(remaining)

            try:
                chunk = data_sock.recv(DATA_CHUNK_SIZE)
            except socket.timeout:
                if deadline is not None and time.monotonic() >= deadline:
                    break
                self._log.error("Data connection idle for %s seconds", config.timeout)
                raise FTPTimeoutError(config.host, config.port, "Data transfer", config.timeout)
            except OSError as e:
                self._log.error("Data connection failed: %s", e)
                raise FTPConnectionError(
                    config.host,
                    config.port,
                    e,
                    message="Data connection failed"
                )

            if not chunk:
                return received, False

            write(chunk)
            received += len(chunk)

        self._log.warning(
            "Transfer deadline of %s seconds reached after %d bytes",
            config.timeout,
            received
        )
        return received, True

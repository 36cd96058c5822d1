"""Control-connection reply parsing.

Provides the Response value returned by every command and the
ResponseParser that assembles replies, single or multi-line, from the
raw bytes read off the control socket.
"""

import re
import socket
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ftpclient.ftp.exceptions import FTPProtocolError


# Bytes requested per recv() on the control socket
REPLY_CHUNK_SIZE = 512

# Encoding for command lines and reply text
ENCODING = "utf-8"

_CODE_PATTERN = re.compile(r"[0-9]{3}")


@dataclass(frozen=True)
class Response:
    """A single logical reply from the server."""
    code: int
    lines: Tuple[str, ...]

    @property
    def text(self) -> str:
        """The terminal line of the reply."""
        return self.lines[-1]

    @property
    def message(self) -> str:
        """Reply text with the status code and separator stripped."""
        return self.text[4:]

    @property
    def is_multiline(self) -> bool:
        """True if the server sent continuation lines."""
        return len(self.lines) > 1

    def __str__(self) -> str:
        return self.text


class ResponseParser:
    """Incrementally assembles replies from control-connection bytes.

    A reply ends at the first line that starts with the same three-digit
    code as the opening line followed by a space (or nothing at all).
    Bytes past that line stay buffered for the next reply.
    """

    def __init__(self, encoding: str = ENCODING):
        self._encoding = encoding
        self._buffer = b""
        self._lines: List[str] = []
        self._code: Optional[str] = None

    @property
    def pending(self) -> bool:
        """True if buffered data belongs to an unfinished reply."""
        return bool(self._buffer) or bool(self._lines)

    def feed(self, data: bytes) -> None:
        """Append raw bytes received from the server."""
        self._buffer += data

    def next_response(self) -> Optional[Response]:
        """
        Return the next complete reply, if one is buffered.

        Returns:
            Response, or None when more data is needed

        Raises:
            FTPProtocolError: If the reply does not start with a status code
        """
        while True:
            line = self._pop_line()
            if line is None:
                return None

            if self._code is None:
                if not _CODE_PATTERN.fullmatch(line[:3]):
                    self._lines = []
                    raise FTPProtocolError(f"Malformed response: {line!r}")
                self._code = line[:3]

            self._lines.append(line)

            if self._is_terminal(line):
                response = Response(code=int(self._code), lines=tuple(self._lines))
                self._lines = []
                self._code = None
                return response

    def read(self, sock: socket.socket) -> Response:
        """
        Read from ``sock`` until one complete reply is available.

        Args:
            sock: Connected control socket

        Returns:
            The parsed Response

        Raises:
            EOFError: If the server closed the connection mid-reply
            OSError: On socket failure (socket.timeout included)
            FTPProtocolError: If the reply is malformed
        """
        while True:
            response = self.next_response()
            if response is not None:
                return response

            chunk = sock.recv(REPLY_CHUNK_SIZE)
            if not chunk:
                raise EOFError("Connection closed by server")
            self.feed(chunk)

    def _pop_line(self) -> Optional[str]:
        """Remove and decode the next complete line from the buffer."""
        line, newline, rest = self._buffer.partition(b"\n")
        if not newline:
            return None
        self._buffer = rest
        return line.rstrip(b"\r").decode(self._encoding, errors="replace")

    def _is_terminal(self, line: str) -> bool:
        if not line.startswith(self._code):
            return False
        return len(line) == 3 or line[3] == " "


def parse_response(raw: Union[str, bytes]) -> Response:
    """
    Parse one complete reply from raw text.

    Args:
        raw: Reply text including line endings

    Returns:
        The parsed Response

    Raises:
        FTPProtocolError: If the text is malformed or has no terminal line
    """
    if isinstance(raw, str):
        raw = raw.encode(ENCODING)

    parser = ResponseParser()
    parser.feed(raw)
    response = parser.next_response()
    if response is None:
        raise FTPProtocolError(f"Incomplete response: {raw!r}")
    return response

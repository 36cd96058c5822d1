"""FTP-specific exceptions for the ftpclient package.

Custom exception hierarchy for FTP operations. Callers can catch
FTPError for everything, or one of the four families:

- FTPConnectionError: transport failures (resolve, connect, send, receive)
- FTPProtocolError: unexpected status codes or malformed replies
- FTPNotConnectedError: operation attempted before login
- FTPLocalIOError: local file open/read/write/seek failures
"""

from typing import Optional


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FTPConnectionError(FTPError):
    """Transport-level failure on the control or data connection."""

    def __init__(
        self,
        host: str,
        port: int,
        original_error: Exception = None,
        message: Optional[str] = None
    ):
        self.host = host
        self.port = port
        if message is None:
            message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class FTPTimeoutError(FTPConnectionError):
    """FTP operation timed out."""

    def __init__(
        self,
        host: str,
        port: int,
        operation: str = "Operation",
        timeout: float = 10
    ):
        self.operation = operation
        self.timeout = timeout
        message = f"{operation} timed out after {timeout} seconds"
        super().__init__(host, port, message=message)


class FTPProtocolError(FTPError):
    """Server replied with an unexpected status or a malformed response.

    ``message`` carries the server's reply text (code stripped) when the
    error comes from a status mismatch.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)


class FTPAuthenticationError(FTPProtocolError):
    """FTP authentication (login) failed."""

    def __init__(self, username: str, message: str, code: Optional[int] = None):
        self.username = username
        super().__init__(message, code)


class FTPNotConnectedError(FTPError):
    """Operation attempted without an authenticated FTP session."""

    def __init__(self, operation: str = "Operation"):
        self.operation = operation
        message = f"{operation} requires an active FTP login"
        super().__init__(message)


class FTPLocalIOError(FTPError):
    """Failed to open, read, write or seek a local file."""

    def __init__(self, path: str, operation: str, original_error: Exception = None):
        self.path = path
        self.operation = operation
        message = f"Failed to {operation} local file '{path}'"
        super().__init__(message, original_error)


class FTPPathError(FTPError):
    """A remote directory name argument was missing or invalid."""

    def __init__(self, path: Optional[str], operation: str):
        self.path = path
        self.operation = operation
        message = f"Cannot {operation} '{path or ''}': a directory name is required"
        super().__init__(message)

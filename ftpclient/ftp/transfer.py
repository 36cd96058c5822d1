"""Resumable file transfers for ftpclient.

Implements upload and download with REST-based resume on top of a
ControlSession and a PassiveChannelNegotiator.
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from ftpclient.ftp.exceptions import (
    FTPConnectionError,
    FTPError,
    FTPLocalIOError,
    FTPProtocolError,
)
from ftpclient.ftp.passive import PassiveChannelNegotiator
from ftpclient.ftp.session import ControlSession, TransferMode


@dataclass
class TransferOperation:
    """A single upload or download request."""
    remote_name: str
    local_path: Path
    resume: bool = False
    offset: int = 0


@dataclass
class TransferResult:
    """Outcome of a completed transfer."""
    remote_name: str
    local_path: Path
    offset: int = 0
    bytes_transferred: int = 0
    skipped: bool = False
    truncated: bool = False
    duration_seconds: float = 0.0


class TransferEngine:
    """Uploads and downloads files over passive data connections."""

    # Block size for data transfers (8KB)
    BLOCK_SIZE = 8192

    def __init__(
        self,
        session: ControlSession,
        negotiator: Optional[PassiveChannelNegotiator] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the engine.

        Args:
            session: Control session to issue commands on
            negotiator: Data channel negotiator, built from the session if omitted
            logger: Event sink, defaults to the session's
        """
        self._session = session
        self._negotiator = negotiator or PassiveChannelNegotiator(session)
        self._log = logger or session.logger

    def size(self, remote_name: str) -> int:
        """
        Query the size of a remote file with SIZE.

        Args:
            remote_name: Remote file name

        Returns:
            Size in bytes

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If the server does not answer 213 with a number
        """
        self._session.require_login("Size")
        response = self._session.expect(self._session.execute(f"SIZE {remote_name}"), 213)
        try:
            return int(response.message.strip())
        except ValueError:
            self._log.error("Malformed SIZE result: %s", response.text)
            raise FTPProtocolError(f"Malformed SIZE result: {response.text}", response.code)

    def upload(self, local_path: Union[str, Path], resume: bool = False) -> TransferResult:
        """
        Upload a local file into the current remote directory.

        With ``resume`` the remote size decides where to continue: an
        equal size means the file is complete and nothing is sent, a
        larger remote size means the local file changed and it is sent
        again from the start.

        Args:
            local_path: File to upload, stored remotely under its base name
            resume: Continue a partial upload

        Returns:
            TransferResult describing what was sent

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If STOR or the completion reply fails
            FTPConnectionError: If the data connection fails
            FTPLocalIOError: If the local file cannot be read
        """
        self._session.require_login("Upload")
        operation = TransferOperation(
            remote_name=Path(local_path).name,
            local_path=Path(local_path),
            resume=resume
        )
        self._session.set_transfer_mode(TransferMode.BINARY)

        if resume:
            try:
                operation.offset = self.size(operation.remote_name)
            except FTPProtocolError:
                # Missing file or SIZE unsupported
                operation.offset = 0

        start_time = time.time()
        local_file = self._open_local(operation.local_path, "rb", "open")

        with local_file:
            local_size = self._local_size(local_file, operation.local_path)

            if resume and local_size < operation.offset:
                self._log.info("Overwriting %s", operation.local_path)
                operation.offset = 0
            elif resume and local_size == operation.offset:
                self._log.info(
                    "Skipping completed %s - turn resume off to not detect.",
                    operation.local_path
                )
                return TransferResult(
                    remote_name=operation.remote_name,
                    local_path=operation.local_path,
                    offset=operation.offset,
                    skipped=True,
                    duration_seconds=time.time() - start_time
                )

            with self._negotiator.open_data_connection() as data_sock:
                if operation.offset > 0:
                    response = self._session.execute(f"REST {operation.offset}")
                    if response.code != 350:
                        self._log.info("Resuming not supported - status code %d", response.code)
                        operation.offset = 0

                self._log.info("Attempting to upload file %s", operation.local_path)
                self._session.expect(
                    self._session.execute(f"STOR {operation.remote_name}"),
                    125,
                    150
                )

                if operation.offset:
                    self._log.info("Resuming at offset %d", operation.offset)
                    self._seek(local_file, operation.local_path, operation.offset)

                self._log.info(
                    "Uploading file %s to %s",
                    operation.local_path,
                    self._session.current_directory
                )
                bytes_sent = self._send_file(local_file, operation.local_path, data_sock)

        self._session.expect(self._session.read_response(), 226, 250)
        self._log.info(
            "Uploaded file %s to %s successfully",
            operation.local_path,
            self._session.current_directory
        )

        return TransferResult(
            remote_name=operation.remote_name,
            local_path=operation.local_path,
            offset=operation.offset,
            bytes_transferred=bytes_sent,
            duration_seconds=time.time() - start_time
        )

    def download(
        self,
        remote_name: str,
        local_path: Optional[Union[str, Path]] = None,
        resume: bool = False
    ) -> TransferResult:
        """
        Download a remote file, optionally continuing a partial copy.

        The local file is created if absent, otherwise opened for update.
        A file created by this call is removed again if the download fails.
        If the server refuses REST the transfer restarts from byte 0.

        Args:
            remote_name: File on the server
            local_path: Destination, defaults to ``remote_name``
            resume: Continue from the current local file length

        Returns:
            TransferResult describing what was received

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If RETR or the completion reply fails
            FTPConnectionError: If the data connection fails
            FTPLocalIOError: If the local file cannot be written
        """
        self._session.require_login("Download")
        self._session.set_transfer_mode(TransferMode.BINARY)

        operation = TransferOperation(
            remote_name=remote_name,
            local_path=Path(local_path) if local_path else Path(remote_name),
            resume=resume
        )
        self._log.info(
            "Downloading file %s from %s/%s",
            remote_name,
            self._session.config.host,
            self._session.current_directory
        )

        start_time = time.time()
        created = not operation.local_path.exists()
        mode = "w+b" if created else "r+b"
        local_file = self._open_local(operation.local_path, mode, "open")

        try:
            with local_file:
                with self._negotiator.open_data_connection() as data_sock:
                    if resume:
                        offset = self._local_size(local_file, operation.local_path)
                        if offset > 0:
                            response = self._session.execute(f"REST {offset}")
                            if response.code != 350:
                                self._log.info("Resuming not supported: %s", response.message)
                            else:
                                self._log.info("Resuming at offset %d", offset)
                                self._seek(local_file, operation.local_path, offset)
                                operation.offset = offset

                    self._log.info("Attempting to retrieve file %s", remote_name)
                    self._session.expect(
                        self._session.execute(f"RETR {remote_name}"),
                        125,
                        150
                    )

                    def write(block: bytes) -> None:
                        try:
                            local_file.write(block)
                        except OSError as e:
                            self._log.error("Failed writing %s: %s", operation.local_path, e)
                            raise FTPLocalIOError(str(operation.local_path), "write", e)

                    bytes_received, truncated = self._negotiator.receive(data_sock, write)

                try:
                    local_file.truncate()
                except OSError as e:
                    self._log.error("Failed to truncate %s: %s", operation.local_path, e)
                    raise FTPLocalIOError(str(operation.local_path), "truncate", e)

            self._session.expect(self._session.read_response(), 226, 250)
        except FTPError:
            if created:
                self._discard(operation.local_path)
            raise

        self._log.info(
            "Downloaded file %s to %s successfully",
            remote_name,
            operation.local_path
        )

        return TransferResult(
            remote_name=remote_name,
            local_path=operation.local_path,
            offset=operation.offset,
            bytes_transferred=bytes_received,
            truncated=truncated,
            duration_seconds=time.time() - start_time
        )

    def _open_local(self, path: Path, mode: str, operation: str) -> BinaryIO:
        try:
            return open(path, mode)
        except OSError as e:
            self._log.error("Failed to %s local file %s: %s", operation, path, e)
            raise FTPLocalIOError(str(path), operation, e)

    def _discard(self, path: Path) -> None:
        """Remove a partially written file created by a failed download."""
        try:
            path.unlink()
        except OSError as e:
            self._log.warning("Could not remove %s: %s", path, e)
        else:
            self._log.info("Removed incomplete file %s", path)

    def _local_size(self, local_file: BinaryIO, path: Path) -> int:
        try:
            return os.fstat(local_file.fileno()).st_size
        except OSError as e:
            self._log.error("Failed to stat %s: %s", path, e)
            raise FTPLocalIOError(str(path), "stat", e)

    def _seek(self, local_file: BinaryIO, path: Path, offset: int) -> None:
        try:
            local_file.seek(offset)
        except OSError as e:
            self._log.error("Failed to seek %s to %d: %s", path, offset, e)
            raise FTPLocalIOError(str(path), "seek", e)

    def _send_file(self, local_file: BinaryIO, path: Path, data_sock) -> int:
        """
        Stream the rest of ``local_file`` over the data connection.

        Returns:
            Number of bytes sent
        """
        bytes_sent = 0
        while True:
            try:
                block = local_file.read(self.BLOCK_SIZE)
            except OSError as e:
                self._log.error("Failed reading %s: %s", path, e)
                raise FTPLocalIOError(str(path), "read", e)
            if not block:
                break

            try:
                data_sock.sendall(block)
            except OSError as e:
                config = self._session.config
                self._log.error("Data connection failed during upload: %s", e)
                raise FTPConnectionError(
                    config.host,
                    config.port,
                    e,
                    message="Data connection failed"
                )
            bytes_sent += len(block)

        return bytes_sent

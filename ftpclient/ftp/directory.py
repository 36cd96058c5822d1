"""Remote directory operations for ftpclient.

Listing, rename, delete, directory creation and recursive directory
upload, built on ControlSession and TransferEngine.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ftpclient.ftp.exceptions import FTPPathError, FTPProtocolError
from ftpclient.ftp.passive import PassiveChannelNegotiator
from ftpclient.ftp.response import ENCODING
from ftpclient.ftp.session import ControlSession
from ftpclient.ftp.transfer import TransferEngine, TransferResult
from ftpclient.local.scanner import LocalDirectorySource, LocalScanner


# Listing output that means the path does not exist
NO_SUCH_FILE = "No such file or directory"

# NLST replies meaning the path does not exist, treated as an empty listing
MISSING_PATH_CODES = (450, 550)


class DirectoryOperations:
    """Manages remote files and directories for a control session."""

    def __init__(
        self,
        session: ControlSession,
        transfer: Optional[TransferEngine] = None,
        negotiator: Optional[PassiveChannelNegotiator] = None,
        local_source: Optional[LocalDirectorySource] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize directory operations.

        Args:
            session: Control session to issue commands on
            transfer: Engine used by upload_directory()
            negotiator: Data channel negotiator for listings
            local_source: Local enumeration for upload_directory()
            logger: Event sink, defaults to the session's
        """
        self._session = session
        self._negotiator = negotiator or PassiveChannelNegotiator(session)
        self._transfer = transfer or TransferEngine(session, self._negotiator)
        self._local = local_source or LocalScanner()
        self._log = logger or session.logger

    def create_directory(self, name: str) -> None:
        """
        Create a remote directory with MKD.

        Raises:
            FTPPathError: If no directory name is given
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If MKD is not answered with 250 or 257
        """
        if not name or name == ".":
            self._log.error("A directory name wasn't provided")
            raise FTPPathError(name, "create directory")
        self._session.require_login("Create directory")

        self._log.info("Attempting to create directory %s", name)
        self._session.expect(self._session.execute(f"MKD {name}"), 250, 257)
        self._log.info("Created directory %s", name)

    def delete(self, name: str) -> None:
        """
        Delete a remote file with DELE.

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If DELE is not answered with 250
        """
        self._session.require_login("Delete")

        self._log.info("Attempting to delete file %s", name)
        self._session.expect(self._session.execute(f"DELE {name}"), 250)
        self._log.info("Deleted file %s", name)

    def rename(self, old_name: str, new_name: str, replace_if_exists: bool = True) -> None:
        """
        Rename a remote file with RNFR/RNTO.

        Args:
            old_name: Current name
            new_name: New name
            replace_if_exists: If False, refuse to overwrite an existing ``new_name``

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If the server rejects the rename, or
                ``new_name`` exists and ``replace_if_exists`` is False
        """
        self._session.require_login("Rename")

        self._log.info("Attempting to rename old file %s to %s", old_name, new_name)
        self._session.expect(self._session.execute(f"RNFR {old_name}"), 350)

        if not replace_if_exists and self.list_simple(new_name):
            self._log.error("File already exists")
            raise FTPProtocolError("File already exists")

        self._session.expect(self._session.execute(f"RNTO {new_name}"), 250)
        self._log.info("Renamed file %s to %s", old_name, new_name)

    def list_simple(self, mask: str = "") -> List[str]:
        """
        List names with NLST.

        A path that does not exist yields an empty list, not an error.

        Args:
            mask: Path or pattern to list, the current directory if empty

        Returns:
            Entry names as sent by the server

        Raises:
            FTPNotConnectedError: If not logged in
            FTPProtocolError: If NLST fails for another reason
            FTPConnectionError: If the data connection fails
        """
        self._session.require_login("List directory")
        return self._name_list(mask) or []

    def _name_list(self, mask: str) -> Optional[List[str]]:
        """Run NLST, returning None when the path does not exist."""
        chunks: List[bytes] = []
        with self._negotiator.open_data_connection() as data_sock:
            command = f"NLST {mask}" if mask else "NLST"
            response = self._session.execute(command)
            if response.code in MISSING_PATH_CODES:
                self._log.info("No entries for %s: %s", mask or ".", response.message)
                return None
            self._session.expect(response, 125, 150)
            self._negotiator.receive(data_sock, chunks.append)

        listing = b"".join(chunks).decode(ENCODING, errors="replace")
        response = self._session.read_response()

        if NO_SUCH_FILE in listing or response.code != 226:
            return None

        return [line for line in listing.replace("\r", "").split("\n") if line]

    def upload_directory(
        self,
        local_dir: Union[str, Path],
        recursive: bool = False,
        file_mask: str = "*"
    ) -> List[TransferResult]:
        """
        Upload a local directory into the current remote directory.

        The remote directory is created when missing. Files are sent with
        resume enabled, so completed files are skipped on a rerun. The
        remote working directory is restored afterwards.

        Args:
            local_dir: Local directory to upload
            recursive: Also upload subdirectories
            file_mask: Only upload files matching this mask (e.g. ``*.jpg``)

        Returns:
            One TransferResult per file

        Raises:
            FTPPathError: If the local path has no final segment
            FTPNotConnectedError: If not logged in
            FTPError: If any remote operation fails
        """
        self._session.require_login("Upload directory")

        local_dir = Path(local_dir)
        root_name = local_dir.name
        if not root_name:
            self._log.error("Can't derive a directory name from %s", local_dir)
            raise FTPPathError(str(local_dir), "upload directory")

        # An existing but empty directory lists as [] yet must not be recreated
        if self._name_list(root_name) is None:
            self.create_directory(root_name)

        self._session.change_working_directory(root_name)

        results = [
            self._transfer.upload(file_path, resume=True)
            for file_path in self._local.list_files(local_dir, file_mask)
        ]

        if recursive:
            for directory in self._local.list_directories(local_dir):
                results.extend(self.upload_directory(directory, recursive, file_mask))

        self._session.change_working_directory("..")
        return results

"""FTP client facade for ftpclient.

Wires a ControlSession, PassiveChannelNegotiator, TransferEngine and
DirectoryOperations together behind one object.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ftpclient.ftp.directory import DirectoryOperations
from ftpclient.ftp.passive import PassiveChannelNegotiator
from ftpclient.ftp.session import ConnectionState, ControlSession, SessionConfig
from ftpclient.ftp.transfer import TransferEngine, TransferResult
from ftpclient.local.scanner import LocalDirectorySource


class FTPClient:
    """One FTP session with transfer and directory operations."""

    def __init__(
        self,
        config: SessionConfig,
        logger: Optional[logging.Logger] = None,
        local_source: Optional[LocalDirectorySource] = None
    ):
        """
        Initialize the client.

        Args:
            config: Connection configuration
            logger: Event sink shared by all components
            local_source: Local enumeration for upload_directory()
        """
        self._session = ControlSession(config, logger)
        self._negotiator = PassiveChannelNegotiator(self._session)
        self._transfer = TransferEngine(self._session, self._negotiator)
        self._directories = DirectoryOperations(
            self._session,
            transfer=self._transfer,
            negotiator=self._negotiator,
            local_source=local_source
        )

    @property
    def session(self) -> ControlSession:
        """Underlying control session."""
        return self._session

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._session.state

    @property
    def is_logged_in(self) -> bool:
        """True if logged in."""
        return self._session.is_logged_in

    @property
    def current_directory(self) -> Optional[str]:
        """Remote working directory."""
        return self._session.current_directory

    def login(self) -> None:
        self._session.login()

    def close(self) -> None:
        self._session.close()

    def change_working_directory(self, name: str) -> None:
        self._session.change_working_directory(name)

    def upload(self, local_path: Union[str, Path], resume: bool = False) -> TransferResult:
        return self._transfer.upload(local_path, resume)

    def download(
        self,
        remote_name: str,
        local_path: Optional[Union[str, Path]] = None,
        resume: bool = False
    ) -> TransferResult:
        return self._transfer.download(remote_name, local_path, resume)

    def size(self, remote_name: str) -> int:
        return self._transfer.size(remote_name)

    def list_simple(self, mask: str = "") -> List[str]:
        return self._directories.list_simple(mask)

    def rename(self, old_name: str, new_name: str, replace_if_exists: bool = True) -> None:
        self._directories.rename(old_name, new_name, replace_if_exists)

    def delete(self, name: str) -> None:
        self._directories.delete(name)

    def create_directory(self, name: str) -> None:
        self._directories.create_directory(name)

    def upload_directory(
        self,
        local_dir: Union[str, Path],
        recursive: bool = False,
        file_mask: str = "*"
    ) -> List[TransferResult]:
        return self._directories.upload_directory(local_dir, recursive, file_mask)

    def __enter__(self) -> "FTPClient":
        """Context manager entry: log in."""
        self.login()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit: close the connection."""
        self.close()

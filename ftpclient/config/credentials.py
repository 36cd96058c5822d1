"""Secure credential storage for ftpclient.

Uses the system keyring (Windows Credential Manager, macOS Keychain,
Linux Secret Service) so FTP passwords never land in the settings file.
"""

from typing import Optional

import keyring
from keyring.errors import KeyringError


# Their password is a courtesy e-mail address, not a secret
ANONYMOUS_USERS = frozenset({"anonymous", "ftp"})


class CredentialManager:
    """Secure credential storage using system keyring."""

    SERVICE_NAME = "ftpclient"

    def _make_key(self, host: str, username: str) -> str:
        """
        Create the keyring entry name for a server account.

        Host names are case-insensitive, so "FTP.Example.com" and
        "ftp.example.com" share one entry.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            Key string of the form "host:username"
        """
        return f"{host.strip().lower()}:{username}"

    def save_password(self, host: str, username: str, password: str) -> bool:
        """
        Save FTP password securely.

        Anonymous accounts are not stored.

        Args:
            host: FTP host
            username: FTP username
            password: Password to save

        Returns:
            True if saved successfully, False otherwise
        """
        if username.lower() in ANONYMOUS_USERS:
            return False

        try:
            keyring.set_password(self.SERVICE_NAME, self._make_key(host, username), password)
            return True
        except KeyringError:
            return False

    def get_password(self, host: str, username: str) -> Optional[str]:
        """
        Retrieve saved password.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            Password string or None if not found
        """
        try:
            return keyring.get_password(self.SERVICE_NAME, self._make_key(host, username))
        except KeyringError:
            return None

    def delete_password(self, host: str, username: str) -> bool:
        """
        Remove saved password.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            True if deleted successfully, False otherwise
        """
        try:
            keyring.delete_password(self.SERVICE_NAME, self._make_key(host, username))
            return True
        except KeyringError:
            return False

    def has_password(self, host: str, username: str) -> bool:
        """
        Check if a password is saved.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            True if a password exists for this host and user
        """
        return self.get_password(host, username) is not None

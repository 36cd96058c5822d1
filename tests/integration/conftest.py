"""Fixtures for integration tests against a local pyftpdlib server."""

import pytest

from ftpclient.ftp.client import FTPClient
from ftpclient.ftp.session import SessionConfig

from mock_ftp_server import MockFTPServer


@pytest.fixture
def ftp_server():
    """Provide a running mock FTP server."""
    server = MockFTPServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_config(ftp_server) -> SessionConfig:
    """Session configuration for the running mock server."""
    return SessionConfig(
        host=ftp_server.host,
        port=ftp_server.port,
        username=ftp_server.username,
        password=ftp_server.password,
        timeout=10
    )


@pytest.fixture
def client(server_config):
    """Provide a logged-in client, closed after the test."""
    ftp = FTPClient(server_config)
    ftp.login()
    yield ftp
    ftp.close()

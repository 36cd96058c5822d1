"""Pytest configuration and shared fixtures for ftpclient tests."""

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Tuple

import pytest

from ftpclient.ftp.session import ConnectionState, ControlSession, SessionConfig

from fakes import FakeSocket


# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_PORT = 2121
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"


@dataclass
class MockFTPConfig:
    """Configuration for mock FTP server in tests."""
    host: str = TEST_FTP_HOST
    port: int = TEST_FTP_PORT
    username: str = TEST_FTP_USER
    password: str = TEST_FTP_PASS


@pytest.fixture
def ftp_config() -> MockFTPConfig:
    """Provide mock FTP configuration for tests."""
    return MockFTPConfig()


@pytest.fixture
def session_config(ftp_config: MockFTPConfig) -> SessionConfig:
    """Session configuration pointing at the mock FTP config."""
    return SessionConfig(
        host=ftp_config.host,
        port=ftp_config.port,
        username=ftp_config.username,
        password=ftp_config.password,
    )


@pytest.fixture
def make_session(
    session_config: SessionConfig
) -> Callable[..., Tuple[ControlSession, FakeSocket]]:
    """
    Build a logged-in ControlSession whose control socket replays ``replies``.

    Keyword arguments override SessionConfig fields.
    """
    def factory(*replies, **overrides) -> Tuple[ControlSession, FakeSocket]:
        config = replace(session_config, **overrides) if overrides else session_config
        control = FakeSocket(replies)
        session = ControlSession(config)
        session._sock = control
        session._logged_in = True
        session._state = ConnectionState.READY
        session._current_directory = "/"
        return session, control

    return factory


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """Create a small local file for transfer tests."""
    path = tmp_path / "sample.bin"
    path.write_bytes(b"0123456789")
    return path

"""Unit tests for ControlSession.

Tests configuration validation, the login state machine, command
execution and working directory handling.
"""

import logging
import socket
from unittest.mock import Mock, patch

import pytest

from ftpclient.ftp.exceptions import (
    FTPAuthenticationError,
    FTPConnectionError,
    FTPNotConnectedError,
    FTPPathError,
    FTPProtocolError,
    FTPTimeoutError,
)
from ftpclient.ftp.session import (
    ConnectionState,
    ControlSession,
    DeadlineMode,
    SessionConfig,
    TransferMode,
    parse_pwd_response,
)

from fakes import FakeSocket


GREETING = "220 Service ready\r\n"
NEED_PASS = "331 Password required\r\n"
LOGGED_IN = "230 Logged in\r\n"
PWD_ROOT = '257 "/" is the current directory\r\n'


class TestSessionConfig:
    """Tests for SessionConfig dataclass."""

    def test_default_values(self):
        """Test default configuration values."""
        config = SessionConfig(host="192.168.1.100")
        assert config.port == 21
        assert config.username == "anonymous"
        assert config.password == ""
        assert config.initial_directory is None
        assert config.timeout == 10
        assert config.verbose is False
        assert config.deadline_mode is DeadlineMode.TOTAL

    def test_password_hidden_from_repr(self):
        """Test that the password never appears in repr()."""
        config = SessionConfig(host="ftp.example.com", password="hunter2")
        assert "hunter2" not in repr(config)

    def test_empty_host_raises_error(self):
        """Test that empty host raises ValueError."""
        with pytest.raises(ValueError, match="Host is required"):
            SessionConfig(host="")

    def test_invalid_port_raises_error(self):
        """Test that invalid port raises ValueError."""
        with pytest.raises(ValueError, match="Port must be between"):
            SessionConfig(host="192.168.1.1", port=0)
        with pytest.raises(ValueError, match="Port must be between"):
            SessionConfig(host="192.168.1.1", port=70000)

    def test_invalid_timeout_raises_error(self):
        """Test that invalid timeout raises ValueError."""
        with pytest.raises(ValueError, match="Timeout must be between"):
            SessionConfig(host="192.168.1.1", timeout=1)
        with pytest.raises(ValueError, match="Timeout must be between"):
            SessionConfig(host="192.168.1.1", timeout=500)


@patch("ftpclient.ftp.session.socket.create_connection")
class TestLogin:
    """Tests for ControlSession.login()."""

    def test_initial_state_is_disconnected(self, mock_create, session_config):
        """Test that a new session is not logged in."""
        session = ControlSession(session_config)
        assert session.state == ConnectionState.DISCONNECTED
        assert session.is_logged_in is False
        assert session.current_directory is None
        mock_create.assert_not_called()

    def test_login_success(self, mock_create, session_config):
        """Test the USER/PASS exchange followed by PWD."""
        control = FakeSocket([GREETING, NEED_PASS, LOGGED_IN, PWD_ROOT])
        mock_create.return_value = control
        session = ControlSession(session_config)

        session.login()

        mock_create.assert_called_once_with(
            (session_config.host, session_config.port),
            timeout=session_config.timeout
        )
        assert control.commands == ["USER testuser", "PASS testpass", "PWD"]
        assert session.state == ConnectionState.READY
        assert session.is_logged_in is True
        assert session.transfer_mode is TransferMode.ASCII
        assert session.current_directory == "/"
        assert session.connected_at is not None
        assert session.last_activity is not None

    def test_login_without_password_step(self, mock_create, session_config):
        """Test a server that accepts USER alone with 230."""
        control = FakeSocket([GREETING, LOGGED_IN, PWD_ROOT])
        mock_create.return_value = control
        session = ControlSession(session_config)

        session.login()

        assert control.commands == ["USER testuser", "PWD"]
        assert session.is_logged_in is True

    def test_login_accepts_202(self, mock_create, session_config):
        """Test that PASS answered with 202 counts as logged in."""
        mock_create.return_value = FakeSocket(
            [GREETING, NEED_PASS, "202 Not needed\r\n", PWD_ROOT]
        )
        session = ControlSession(session_config)

        session.login()

        assert session.is_logged_in is True

    def test_login_changes_to_initial_directory(self, mock_create, session_config):
        """Test that initial_directory is entered with CWD after login."""
        control = FakeSocket([
            GREETING,
            NEED_PASS,
            LOGGED_IN,
            "250 Okay\r\n",
            '257 "/pub" is the current directory\r\n',
        ])
        mock_create.return_value = control
        config = SessionConfig(
            host=session_config.host,
            port=session_config.port,
            username=session_config.username,
            password=session_config.password,
            initial_directory="pub"
        )
        session = ControlSession(config)

        session.login()

        assert control.commands[-2:] == ["CWD pub", "PWD"]
        assert session.current_directory == "/pub"

    def test_multiline_greeting(self, mock_create, session_config):
        """Test that a multi-line 220 banner is consumed whole."""
        control = FakeSocket([
            "220-Welcome\r\n220-to the server\r\n220 Ready\r\n",
            NEED_PASS,
            LOGGED_IN,
            PWD_ROOT,
        ])
        mock_create.return_value = control
        session = ControlSession(session_config)

        session.login()

        assert session.is_logged_in is True
        assert control.commands[0] == "USER testuser"

    def test_bad_greeting(self, mock_create, session_config):
        """Test that a non-220 greeting fails and releases the socket."""
        control = FakeSocket(["421 Too many users\r\n"])
        mock_create.return_value = control
        session = ControlSession(session_config)

        with pytest.raises(FTPProtocolError) as exc_info:
            session.login()

        assert exc_info.value.code == 421
        assert session.state == ConnectionState.ERROR
        assert session.is_logged_in is False
        assert control.closed is True

    def test_user_rejected(self, mock_create, session_config):
        """Test that a rejected USER raises FTPAuthenticationError."""
        mock_create.return_value = FakeSocket([GREETING, "530 Not allowed\r\n"])
        session = ControlSession(session_config)

        with pytest.raises(FTPAuthenticationError) as exc_info:
            session.login()

        assert exc_info.value.code == 530
        assert exc_info.value.username == "testuser"
        assert session.state == ConnectionState.ERROR

    def test_password_rejected(self, mock_create, session_config):
        """Test that a rejected PASS raises FTPAuthenticationError."""
        control = FakeSocket([GREETING, NEED_PASS, "530 Login incorrect\r\n"])
        mock_create.return_value = control
        session = ControlSession(session_config)

        with pytest.raises(FTPAuthenticationError, match="Login incorrect"):
            session.login()

        assert session.is_logged_in is False
        assert control.closed is True

    def test_authentication_error_is_protocol_error(self, mock_create, session_config):
        """Test that login rejections belong to the protocol family."""
        mock_create.return_value = FakeSocket([GREETING, "530 Not allowed\r\n"])

        with pytest.raises(FTPProtocolError):
            ControlSession(session_config).login()

    def test_connection_refused(self, mock_create, session_config):
        """Test that a refused connection raises FTPConnectionError."""
        mock_create.side_effect = ConnectionRefusedError("refused")
        session = ControlSession(session_config)

        with pytest.raises(FTPConnectionError) as exc_info:
            session.login()

        assert exc_info.value.host == session_config.host
        assert session.state == ConnectionState.ERROR

    def test_connection_timeout(self, mock_create, session_config):
        """Test that a connect timeout raises FTPTimeoutError."""
        mock_create.side_effect = socket.timeout("timed out")
        session = ControlSession(session_config)

        with pytest.raises(FTPTimeoutError, match="Connection timed out"):
            session.login()

        assert session.state == ConnectionState.ERROR

    def test_server_disconnects_during_login(self, mock_create, session_config):
        """Test that EOF before the greeting is a connection error."""
        mock_create.return_value = FakeSocket([])
        session = ControlSession(session_config)

        with pytest.raises(FTPConnectionError, match="Lost connection"):
            session.login()

    def test_relogin_closes_previous_connection(self, mock_create, session_config):
        """Test that login() on a logged-in session sends QUIT first."""
        first = FakeSocket([GREETING, NEED_PASS, LOGGED_IN, PWD_ROOT, "221 Bye\r\n"])
        second = FakeSocket([GREETING, NEED_PASS, LOGGED_IN, PWD_ROOT])
        mock_create.side_effect = [first, second]
        session = ControlSession(session_config)

        session.login()
        session.login()

        assert first.commands[-1] == "QUIT"
        assert first.closed is True
        assert session.is_logged_in is True

    def test_context_manager(self, mock_create, session_config):
        """Test that the context manager logs in and closes."""
        control = FakeSocket([GREETING, NEED_PASS, LOGGED_IN, PWD_ROOT, "221 Bye\r\n"])
        mock_create.return_value = control

        with ControlSession(session_config) as session:
            assert session.is_logged_in is True

        assert control.commands[-1] == "QUIT"
        assert session.state == ConnectionState.DISCONNECTED


class TestExecute:
    """Tests for command execution."""

    def test_execute_before_login(self, session_config):
        """Test that commands need a control connection."""
        session = ControlSession(session_config)

        with pytest.raises(FTPNotConnectedError, match="NOOP requires an active FTP login"):
            session.execute("NOOP")

    def test_appends_crlf(self, make_session):
        """Test that commands are terminated with CRLF."""
        session, control = make_session("200 OK\r\n")

        response = session.execute("NOOP")

        assert control.sent == [b"NOOP\r\n"]
        assert response.code == 200

    def test_each_call_gets_its_own_response(self, make_session):
        """Test that replies are returned per call, not shared."""
        session, _ = make_session("200 First\r\n", "200 Second\r\n")

        first = session.execute("NOOP")
        second = session.execute("NOOP")

        assert first.message == "First"
        assert second.message == "Second"

    def test_send_failure(self, make_session):
        """Test that a broken control socket raises FTPConnectionError."""
        session, control = make_session()
        control.sendall = Mock(side_effect=BrokenPipeError("gone"))

        with pytest.raises(FTPConnectionError, match="Lost connection"):
            session.execute("NOOP")

    def test_read_timeout(self, make_session):
        """Test that a stalled reply raises FTPTimeoutError."""
        session, _ = make_session(socket.timeout("timed out"))

        with pytest.raises(FTPTimeoutError, match="Reading server response timed out"):
            session.execute("NOOP")

    def test_verbose_masks_password(self, make_session, caplog):
        """Test that verbose logging never shows the password."""
        session, _ = make_session(NEED_PASS, verbose=True)

        with caplog.at_level(logging.INFO, logger="ftpclient"):
            session.execute("PASS secret")

        assert "PASS ********" in caplog.text
        assert "secret" not in caplog.text
        assert "331 Password required" in caplog.text

    def test_quiet_by_default(self, make_session, caplog):
        """Test that the exchange is not logged without verbose."""
        session, _ = make_session("200 OK\r\n")

        with caplog.at_level(logging.INFO, logger="ftpclient"):
            session.execute("NOOP")

        assert "NOOP" not in caplog.text

    def test_expect_rejects_other_codes(self, make_session):
        """Test that expect() raises with the server's code and message."""
        session, _ = make_session("550 Not found\r\n")

        with pytest.raises(FTPProtocolError) as exc_info:
            session.expect(session.execute("DELE x"), 250)

        assert exc_info.value.code == 550
        assert str(exc_info.value) == "Not found"


class TestWorkingDirectory:
    """Tests for CWD/PWD handling."""

    def test_change_working_directory(self, make_session):
        """Test that CWD is followed by PWD."""
        session, control = make_session("250 Okay\r\n", '257 "/pub/incoming"\r\n')

        session.change_working_directory("incoming")

        assert control.commands == ["CWD incoming", "PWD"]
        assert session.current_directory == "/pub/incoming"

    @pytest.mark.parametrize("name", [None, "", "."])
    def test_missing_name_raises(self, make_session, name):
        """Test that CWD needs a real directory name."""
        session, control = make_session()

        with pytest.raises(FTPPathError):
            session.change_working_directory(name)

        assert control.sent == []

    def test_cwd_refused(self, make_session):
        """Test that a failed CWD leaves the directory unchanged."""
        session, _ = make_session("550 No such directory\r\n")

        with pytest.raises(FTPProtocolError):
            session.change_working_directory("missing")

        assert session.current_directory == "/"

    def test_requires_login(self, session_config):
        """Test that CWD is refused before login."""
        with pytest.raises(FTPNotConnectedError):
            ControlSession(session_config).change_working_directory("pub")

    def test_pwd_reply_without_quotes(self, make_session):
        """Test that an unquoted PWD reply is a protocol error."""
        session, _ = make_session("257 /pub\r\n")

        with pytest.raises(FTPProtocolError, match="Malformed PWD result"):
            session.print_working_directory()


class TestTransferMode:
    """Tests for TYPE switching."""

    def test_switch_to_binary(self, make_session):
        """Test that TYPE I is sent once."""
        session, control = make_session("200 Type set to I\r\n")

        session.set_transfer_mode(TransferMode.BINARY)
        session.set_transfer_mode(TransferMode.BINARY)

        assert control.commands == ["TYPE I"]
        assert session.transfer_mode is TransferMode.BINARY

    def test_unchanged_mode_sends_nothing(self, make_session):
        """Test that the current mode is not re-sent."""
        session, control = make_session()

        session.set_transfer_mode(TransferMode.ASCII)

        assert control.sent == []

    def test_type_refused(self, make_session):
        """Test that a refused TYPE keeps the previous mode."""
        session, _ = make_session("504 Not implemented\r\n")

        with pytest.raises(FTPProtocolError):
            session.set_transfer_mode(TransferMode.BINARY)

        assert session.transfer_mode is TransferMode.ASCII


class TestClose:
    """Tests for ControlSession.close()."""

    def test_close_sends_quit(self, make_session):
        """Test that close() sends QUIT and resets state."""
        session, control = make_session("221 Goodbye\r\n")

        session.close()

        assert control.commands == ["QUIT"]
        assert control.closed is True
        assert session.state == ConnectionState.DISCONNECTED
        assert session.is_logged_in is False
        assert session.current_directory is None

    def test_close_survives_dead_connection(self, make_session):
        """Test that a failed QUIT still releases the socket."""
        session, control = make_session()

        session.close()

        assert control.closed is True
        assert session.state == ConnectionState.DISCONNECTED

    def test_close_when_never_connected(self, session_config):
        """Test that close() without a connection is a no-op."""
        session = ControlSession(session_config)

        session.close()

        assert session.state == ConnectionState.DISCONNECTED


class TestParsePwdResponse:
    """Tests for parse_pwd_response()."""

    def test_extracts_quoted_path(self):
        assert parse_pwd_response('257 "/home/user" is current directory') == "/home/user"

    def test_path_with_spaces(self):
        assert parse_pwd_response('257 "/my files"') == "/my files"

    def test_missing_quotes(self):
        with pytest.raises(FTPProtocolError):
            parse_pwd_response('257 "/unterminated')

"""Tests for remote_tail.services.ssh: connector steps, key loading, sessions."""

import socket
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from remote_tail.credentials import Credentials, Endpoint, KeyAuth, PasswordAuth
from remote_tail.errors import (
    AuthRejected,
    CommandRejected,
    ErrorKind,
    HandshakeFailed,
    Unreachable,
)
from remote_tail.services.ssh import SSHConnector, SSHSession, authenticate, load_private_key


@pytest.fixture(scope="module")
def rsa_key():
    return paramiko.RSAKey.generate(2048)


def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


# ---------------------------------------------------------------------------
# Connecting and handshake
# ---------------------------------------------------------------------------
class TestOpenTransport:
    def test_refused_connection_is_unreachable(self):
        connector = SSHConnector(timeout=2.0)
        with pytest.raises(Unreachable) as excinfo:
            connector.open_transport(Endpoint("127.0.0.1", closed_port()))
        assert excinfo.value.kind is ErrorKind.UNREACHABLE

    def test_timeout_is_unreachable(self):
        with patch("remote_tail.services.ssh.socket.create_connection", side_effect=socket.timeout("timed out")):
            with pytest.raises(Unreachable):
                SSHConnector().open_transport(Endpoint("10.255.255.1"))

    def test_handshake_failure(self):
        sock = MagicMock()
        transport = MagicMock()
        transport.start_client.side_effect = paramiko.SSHException("Error reading SSH protocol banner")
        with patch("remote_tail.services.ssh.socket.create_connection", return_value=sock), patch(
            "remote_tail.services.ssh.paramiko.Transport", return_value=transport
        ):
            with pytest.raises(HandshakeFailed) as excinfo:
                SSHConnector(timeout=3.0).open_transport(Endpoint("web01"))

        assert "banner" in str(excinfo.value)
        transport.close.assert_called_once()
        transport.start_client.assert_called_once_with(timeout=3.0)

    def test_success_returns_transport(self):
        transport = MagicMock()
        with patch("remote_tail.services.ssh.socket.create_connection", return_value=MagicMock()) as create, patch(
            "remote_tail.services.ssh.paramiko.Transport", return_value=transport
        ):
            assert SSHConnector(timeout=4.0).open_transport(Endpoint("web01", 2200)) is transport
        create.assert_called_once_with(("web01", 2200), timeout=4.0)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
class TestAuthenticate:
    def test_password_dispatch(self):
        transport = MagicMock()
        authenticate(PasswordAuth("pw"), transport, "ops")
        transport.auth_password.assert_called_once_with("ops", "pw")

    def test_key_dispatch(self, tmp_path, rsa_key):
        key_file = tmp_path / "id_rsa"
        rsa_key.write_private_key_file(str(key_file))
        transport = MagicMock()

        authenticate(KeyAuth(str(key_file)), transport, "ops")

        username, key = transport.auth_publickey.call_args[0]
        assert username == "ops"
        assert key.get_fingerprint() == rsa_key.get_fingerprint()

    def test_rejected_password_closes_transport(self, credentials):
        transport = MagicMock()
        transport.auth_password.side_effect = paramiko.AuthenticationException("Authentication failed.")

        with pytest.raises(AuthRejected) as excinfo:
            SSHConnector().authenticate(transport, credentials)

        transport.close.assert_called_once()
        assert "hunter2" not in str(excinfo.value)

    def test_not_authenticated_after_attempt(self, credentials):
        transport = MagicMock()
        transport.is_authenticated.return_value = False
        with pytest.raises(AuthRejected):
            SSHConnector().authenticate(transport, credentials)
        transport.close.assert_called_once()

    def test_success_returns_session(self, credentials):
        transport = MagicMock()
        transport.is_authenticated.return_value = True
        session = SSHConnector().authenticate(transport, credentials)
        assert isinstance(session, SSHSession)
        assert session.endpoint == credentials.endpoint

    def test_missing_key_file_rejected(self, endpoint, tmp_path):
        creds = Credentials(endpoint, "ops", KeyAuth(str(tmp_path / "nope")))
        transport = MagicMock()
        with pytest.raises(AuthRejected):
            SSHConnector().authenticate(transport, creds)
        transport.auth_publickey.assert_not_called()
        transport.close.assert_called_once()


class TestLoadPrivateKey:
    def test_unencrypted_rsa(self, tmp_path, rsa_key):
        key_file = tmp_path / "id_rsa"
        rsa_key.write_private_key_file(str(key_file))
        assert isinstance(load_private_key(str(key_file)), paramiko.RSAKey)

    def test_encrypted_with_passphrase(self, tmp_path, rsa_key):
        key_file = tmp_path / "id_rsa"
        rsa_key.write_private_key_file(str(key_file), password="open sesame")
        loaded = load_private_key(str(key_file), "open sesame")
        assert loaded.get_fingerprint() == rsa_key.get_fingerprint()

    def test_encrypted_without_passphrase(self, tmp_path, rsa_key):
        key_file = tmp_path / "id_rsa"
        rsa_key.write_private_key_file(str(key_file), password="open sesame")
        with pytest.raises(AuthRejected, match="passphrase"):
            load_private_key(str(key_file))

    def test_garbage_file(self, tmp_path):
        key_file = tmp_path / "id_bad"
        key_file.write_text("not a key\n")
        with pytest.raises(AuthRejected, match="Unable to load"):
            load_private_key(str(key_file))


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
class StreamChannel:
    """Channel that hands out scripted stdout and stderr chunks."""

    def __init__(self, stdout=(), stderr=(), exit_code=0, exits=True):
        self.stdout = list(stdout)
        self.stderr = list(stderr)
        self.exit_code = exit_code
        self.exits = exits
        self.reads = []
        self.exec_command = MagicMock()
        self.close = MagicMock()

    def recv_ready(self):
        return bool(self.stdout)

    def recv(self, size):
        self.reads.append("out")
        return self.stdout.pop(0)

    def recv_stderr_ready(self):
        return bool(self.stderr)

    def recv_stderr(self, size):
        self.reads.append("err")
        return self.stderr.pop(0)

    def exit_status_ready(self):
        return self.exits and not self.stdout and not self.stderr

    def recv_exit_status(self):
        return self.exit_code


class TestSSHSession:
    def test_execute_collects_output(self, credentials):
        transport = MagicMock()
        transport.open_session.return_value = StreamChannel([b"a\n", b"b\n"], [b"warn"], 0)
        session = SSHSession(credentials, transport)

        result = session.execute("cat /var/log/app.log", timeout=5)

        assert result.ok
        assert result.stdout == b"a\nb\n"
        assert result.stderr == "warn"
        transport.open_session.return_value.exec_command.assert_called_once_with("cat /var/log/app.log")
        transport.open_session.return_value.close.assert_called_once()

    def test_execute_reads_both_streams_together(self, credentials):
        channel = StreamChannel([b"1", b"2", b"3"], [b"e1", b"e2", b"e3"])
        transport = MagicMock()
        transport.open_session.return_value = channel

        result = SSHSession(credentials, transport).execute("find /var/log")

        assert channel.reads[:2] == ["out", "err"]
        assert result.stdout == b"123"
        assert result.stderr == "e1e2e3"

    def test_execute_reports_exit_code(self, credentials):
        transport = MagicMock()
        transport.open_session.return_value = StreamChannel([], [b"No such file"], 1)
        result = SSHSession(credentials, transport).execute("cat /nope")
        assert not result.ok
        assert result.exit_code == 1

    def test_channel_open_failure(self, credentials):
        transport = MagicMock()
        transport.open_session.side_effect = paramiko.ChannelException(1, "Administratively prohibited")
        with pytest.raises(CommandRejected):
            SSHSession(credentials, transport).open_command("tail -F /x")

    def test_exec_failure_closes_channel(self, credentials):
        transport = MagicMock()
        channel = MagicMock()
        channel.exec_command.side_effect = paramiko.SSHException("Channel closed.")
        transport.open_session.return_value = channel
        with pytest.raises(CommandRejected):
            SSHSession(credentials, transport).open_command("tail -F /x")
        channel.close.assert_called_once()

    def test_execute_timeout(self, credentials):
        transport = MagicMock()
        channel = StreamChannel(exits=False)
        transport.open_session.return_value = channel
        with pytest.raises(CommandRejected, match="timed out"):
            SSHSession(credentials, transport).execute("cat /big", timeout=0.05)
        channel.close.assert_called_once()

    def test_closed_session_rejects_commands(self, credentials):
        transport = MagicMock()
        with SSHSession(credentials, transport) as session:
            pass
        transport.close.assert_called_once()
        assert not session.is_active
        with pytest.raises(CommandRejected):
            session.open_command("true")

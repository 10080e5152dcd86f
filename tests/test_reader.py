"""Tests for remote_tail.services.reader: one-shot reads and log discovery."""

import pytest

from remote_tail.errors import CommandRejected, DecodeError, ErrorKind, Unreachable
from remote_tail.services.reader import (
    LogCandidate,
    RemoteLogReader,
    build_discovery_command,
    build_read_command,
    count_lines,
)
from tests.fakes import FakeConnector, FakeSession, bytes_result


def reader_with(results, config):
    def factory(endpoint):
        session = FakeSession(endpoint)
        session.results = results
        return session

    connector = FakeConnector(factory)
    return RemoteLogReader(connector, config), connector


class TestCommands:
    def test_cat_without_follow(self):
        assert build_read_command("/var/log/syslog", follow=False, backlog_lines=1000) == "cat -- /var/log/syslog"

    def test_bounded_tail_with_follow_hint(self):
        command = build_read_command("/var/log/my app.log", follow=True, backlog_lines=1000)
        assert command == "tail -n 1000 -- '/var/log/my app.log'"
        assert "-f" not in command.split()

    def test_discovery_command(self):
        command = build_discovery_command("/var/log", ("*.log", "syslog"))
        assert command.startswith("find /var/log -maxdepth 1 -type f")
        assert "-name '*.log' -o -name syslog" in command


class TestReadAll:
    def test_returns_content_and_line_count(self, credentials, fast_config, tmp_path):
        text = "alpha\nbeta\ngamma ✓\n"
        local = tmp_path / "app.log"
        local.write_text(text, encoding="utf-8")
        reader, connector = reader_with({"cat": bytes_result(text.encode("utf-8"))}, fast_config)

        result = reader.read_all(credentials, "/var/log/app.log")

        assert result.content == text
        assert result.file_name == "app.log"
        assert result.line_count == len(local.read_text(encoding="utf-8").splitlines()) == 3
        assert connector.sessions[0].closed

    def test_follow_hint_uses_tail(self, credentials, fast_config):
        reader, connector = reader_with({"tail -n": bytes_result(b"x\n")}, fast_config)
        reader.read_all(credentials, "/var/log/app.log", follow=True)
        assert connector.sessions[0].commands[0].startswith("tail -n 1000")

    def test_invalid_utf8_is_decode_error(self, credentials, fast_config):
        reader, _ = reader_with({"cat": bytes_result(b"ok\n\xff\xfe\n")}, fast_config)
        with pytest.raises(DecodeError) as excinfo:
            reader.read_all(credentials, "/var/log/app.log")
        assert excinfo.value.kind is ErrorKind.DECODE_ERROR

    def test_nonzero_exit_is_command_rejected(self, credentials, fast_config):
        reader, _ = reader_with(
            {"cat": bytes_result(b"", "cat: /nope: No such file or directory", 1)}, fast_config
        )
        with pytest.raises(CommandRejected, match="No such file"):
            reader.read_all(credentials, "/nope")

    def test_connect_failure_propagates(self, credentials, fast_config):
        reader, connector = reader_with({}, fast_config)
        connector.transport_error = Unreachable("Unable to reach host")
        with pytest.raises(Unreachable):
            reader.read_all(credentials, "/var/log/app.log")

    def test_empty_path(self, credentials, fast_config):
        reader, _ = reader_with({}, fast_config)
        with pytest.raises(ValueError):
            reader.read_all(credentials, "")

    def test_count_lines_without_trailing_newline(self):
        assert count_lines("a\nb") == 2
        assert count_lines("") == 0


class TestDiscoverLogs:
    def test_each_directory_is_best_effort(self, credentials, fast_config):
        results = {
            "find /var/log/nginx": CommandRejected("Remote command timed out"),
            "find /var/log ": bytes_result(b"/var/log/syslog\n/var/log/auth.log\n"),
            "find /opt/logs": bytes_result(b"", "", 1),
        }
        reader, connector = reader_with(results, fast_config)

        candidates = reader.discover_logs(credentials)

        assert candidates == [
            LogCandidate(path="/var/log/auth.log", name="auth.log"),
            LogCandidate(path="/var/log/syslog", name="syslog"),
        ]
        assert all(candidate.is_remote for candidate in candidates)
        assert len(connector.sessions[0].commands) == 3
        assert connector.sessions[0].closed

    def test_partial_output_is_kept(self, credentials, fast_config):
        results = {
            "find /var/log ": bytes_result(b"/var/log/kern.log\n", "Permission denied", 1),
            "find ": bytes_result(b""),
        }
        reader, _ = reader_with(results, fast_config)
        assert [c.path for c in reader.discover_logs(credentials)] == ["/var/log/kern.log"]

    def test_duplicates_are_collapsed(self, credentials, fast_config):
        reader, _ = reader_with({"find ": bytes_result(b"/var/log/a.log\n")}, fast_config)
        assert [c.path for c in reader.discover_logs(credentials)] == ["/var/log/a.log"]

"""
Tests for the command-line interface.
"""

import asyncio
import json
import os
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

from typer.testing import CliRunner

from conftest import FakeProcess, wait_until
from ssh_session.core.exceptions import SSHConnectionError
from ssh_session.infrastructure.clients.ssh import ConnectionConfig, OpenSSHConnection
from ssh_session.main import cli, hold_tunnel, load_application_config, run_command


class TestMainCLI:
    """Test CLI commands."""

    def setup_method(self) -> None:
        self.runner = CliRunner()

    def test_help(self) -> None:
        result = self.runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "SOCKS tunnel" in result.output

    @patch('ssh_session.main.setup_logging')
    @patch('ssh_session.main.run_command', new_callable=AsyncMock)
    def test_exec_prints_output(self, mock_run: AsyncMock, mock_setup_logging: Mock) -> None:
        mock_run.return_value = "hello\n"

        with patch.dict(os.environ, {}, clear=True):
            result = self.runner.invoke(
                cli, ["exec", "echo hello", "--host", "example.com", "--user", "deploy"])

        assert result.exit_code == 0
        assert result.output == "hello\n"
        connection, command, timeout = mock_run.call_args.args
        assert isinstance(connection, OpenSSHConnection)
        assert connection.config.unique_id == "deploy@example.com"
        assert command == "echo hello"
        assert timeout is None
        mock_setup_logging.assert_called_once()

    @patch('ssh_session.main.setup_logging')
    @patch('ssh_session.main.run_command', new_callable=AsyncMock)
    def test_exec_failure_exits_nonzero(self, mock_run: AsyncMock, mock_setup_logging: Mock) -> None:
        mock_run.side_effect = SSHConnectionError.from_exit(255, None)

        result = self.runner.invoke(cli, ["exec", "uptime", "-H", "example.com", "-u", "deploy"])

        assert result.exit_code == 1
        assert "code 255" in result.output

    @patch('ssh_session.main.setup_logging')
    @patch('ssh_session.main.hold_tunnel', new_callable=AsyncMock)
    def test_tunnel_options(self, mock_hold: AsyncMock, mock_setup_logging: Mock) -> None:
        with patch.dict(os.environ, {}, clear=True):
            result = self.runner.invoke(cli, [
                "tunnel", "-H", "example.com", "-u", "deploy",
                "--local-port", "1080", "--reconnect"
            ])

        assert result.exit_code == 0
        connection = mock_hold.call_args.args[0]
        assert connection.tunnel_config.local_port == 1080
        assert connection.config.reconnect is True

    def test_init_and_validate_config(self, tmp_path: Path) -> None:
        output = tmp_path / "session.json"

        result = self.runner.invoke(cli, ["init-config", "-o", str(output), "-f", "json"])
        assert result.exit_code == 0
        assert output.exists()

        # The generated file has no host yet.
        result = self.runner.invoke(cli, ["validate-config", str(output)])
        assert result.exit_code == 1
        assert "validation failed" in result.output

        data = json.loads(output.read_text())
        data["connection"].update({"host": "example.com", "username": "deploy"})
        output.write_text(json.dumps(data))

        with patch.dict(os.environ, {}, clear=True):
            result = self.runner.invoke(cli, ["validate-config", str(output)])
        assert result.exit_code == 0
        assert "deploy@example.com" in result.output

    def test_init_config_bad_format(self, tmp_path: Path) -> None:
        result = self.runner.invoke(cli, ["init-config", "-o", str(tmp_path / "x"), "-f", "ini"])

        assert result.exit_code == 1


class TestHelpers:
    """Test the coroutines behind the commands."""

    def test_load_application_config_overrides(self) -> None:
        with patch.dict(os.environ, {"SSH_SESSION_HOST": "env.example.com"}, clear=True):
            config = load_application_config(None, username="ops", port=2200, log_level="debug")

        assert config.connection.host == "env.example.com"
        assert config.connection.username == "ops"
        assert config.connection.port == 2200
        assert config.logging.level == "DEBUG"

    async def test_run_command_strips_marker(self, spawn_mock, process_factory) -> None:
        process = FakeProcess()

        def respond(data: bytes) -> None:
            marker = data.decode().split("echo ")[-1].strip()
            process.stdout.feed_data(f"up 3 days\n{marker}\n".encode())

        process.stdin.responder = respond
        process_factory.queue.append(process)
        connection = OpenSSHConnection(ConnectionConfig(host="example.com", username="u"))

        output = await run_command(connection, "uptime")

        assert output == "up 3 days\n"
        assert process.terminated

    async def test_hold_tunnel_returns_when_session_ends(self, spawn_mock, process_factory) -> None:
        process = FakeProcess()
        process_factory.queue.append(process)
        connection = OpenSSHConnection(ConnectionConfig(host="example.com", username="u"))

        with patch('ssh_session.main.typer.echo') as mock_echo:
            task = asyncio.ensure_future(hold_tunnel(connection))
            await wait_until(lambda: mock_echo.called)
            process.exit(255)
            await asyncio.wait_for(task, timeout=1.0)

        assert not connection.is_connected()
        assert spawn_mock.await_count == 1

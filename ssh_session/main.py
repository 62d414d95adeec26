"""
Command-line interface for ssh-session.

Provides commands to run a single remote command, hold a SOCKS tunnel open
and manage configuration files.
"""

import asyncio
import logging
import sys
import uuid
from typing import Optional

import typer

from .core.domain.state import ConnectionStatus
from .core.exceptions import SSHException
from .infrastructure.clients.ssh import Channel, OpenSSHConnection, Status, TunnelConfig
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging

cli = typer.Typer(
    name="ssh-session",
    help="Manage an SSH session and SOCKS tunnel through the OpenSSH client"
)

logger = logging.getLogger(__name__)


def load_application_config(
    config_file: Optional[str],
    host: Optional[str] = None,
    username: Optional[str] = None,
    port: Optional[int] = None,
    identity: Optional[str] = None,
    log_level: Optional[str] = None
) -> ApplicationConfig:
    """Load configuration and apply command line overrides."""
    config = ConfigLoader().load_config(config_file)

    config.connection = config.connection.merge({
        'host': host,
        'username': username,
        'port': port,
        'identity': identity,
    })
    if log_level:
        config.logging.level = log_level.upper()

    return config


def create_connection(config: ApplicationConfig) -> OpenSSHConnection:
    """Build a connection handle from application configuration."""
    return OpenSSHConnection(
        config.connection,
        tunnel_config=config.tunnel,
        askpass=config.askpass
    )


async def run_command(connection: OpenSSHConnection, command: str,
                      timeout: Optional[float] = None) -> str:
    """
    Run ``command`` and return its stdout.

    A unique marker echoed after the command tells when its output is
    complete.
    """
    marker = f"__ssh_session_{uuid.uuid4().hex}__"
    try:
        result = await connection.exec(
            f"{command}; echo {marker}",
            lambda stdout, stderr: marker in stdout,
            timeout=timeout
        )
    finally:
        await connection.stop()

    return result['stdout'].split(marker, 1)[0]


async def hold_tunnel(connection: OpenSSHConnection) -> None:
    """Connect and wait until the session is gone for good."""
    closed = asyncio.Event()

    def on_disconnect(conn: OpenSSHConnection, payload: object) -> None:
        if conn.status != ConnectionStatus.WAITING:
            closed.set()

    connection.on(f"{Channel.SSH}:{Status.DISCONNECT}", on_disconnect)
    await connection.connect()
    typer.echo(f"SOCKS tunnel listening on 127.0.0.1:{connection.tunnel_port}")

    try:
        await closed.wait()
    finally:
        await connection.stop()


@cli.command("exec")
def exec_command(
    command: str = typer.Argument(..., help="Command to run on the remote host"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Remote host"),
    username: Optional[str] = typer.Option(None, "--user", "-u", help="Remote user"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Remote SSH port"),
    identity: Optional[str] = typer.Option(None, "--identity", "-i", help="Identity file"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds to wait for output"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level")
) -> None:
    """Run one command on the remote host and print its output."""
    config = load_application_config(config_file, host, username, port, identity, log_level)
    setup_logging(config.logging)

    try:
        output = asyncio.run(run_command(create_connection(config), command, timeout))
    except SSHException as e:
        typer.echo(f"Command failed: {e}", err=True)
        sys.exit(1)

    typer.echo(output, nl=False)


@cli.command()
def tunnel(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Remote host"),
    username: Optional[str] = typer.Option(None, "--user", "-u", help="Remote user"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Remote SSH port"),
    identity: Optional[str] = typer.Option(None, "--identity", "-i", help="Identity file"),
    local_port: Optional[int] = typer.Option(
        None, "--local-port", "-L", help="Local SOCKS port, random if omitted"
    ),
    reconnect: bool = typer.Option(False, "--reconnect", help="Reconnect after failures"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level")
) -> None:
    """Open a SOCKS tunnel and keep it open until interrupted."""
    config = load_application_config(config_file, host, username, port, identity, log_level)
    if config.tunnel is None:
        config.tunnel = TunnelConfig()
    if local_port:
        config.tunnel.local_port = local_port
    if reconnect:
        config.connection.reconnect = True
    setup_logging(config.logging)

    try:
        asyncio.run(hold_tunnel(create_connection(config)))
    except KeyboardInterrupt:
        logger.info("Tunnel interrupted by user")
    except SSHException as e:
        typer.echo(f"Tunnel failed: {e}", err=True)
        sys.exit(1)


@cli.command()
def init_config(
    output: str = typer.Option(
        "ssh-session.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""
    config = ApplicationConfig()

    try:
        ConfigLoader().save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except (OSError, ValueError) as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""
    try:
        config = ConfigLoader().load_config(config_file)
        config.connection.validate()
    except (OSError, ValueError) as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)

    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Connection: {config.connection.unique_id}")
    if config.tunnel is not None:
        typer.echo(f"Tunnel: {config.tunnel.name or 'socks'}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

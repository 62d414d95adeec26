"""
Tests for connection and tunnel configuration.
"""

import pytest

from ssh_session.core.exceptions import SSHConfigurationError
from ssh_session.infrastructure.clients.ssh.config import (
    DEFAULT_OPTIONS, Channel, ConnectionConfig, Status, TunnelConfig
)


class TestConnectionConfig:
    """Test connection configuration."""

    def test_defaults(self):
        config = ConnectionConfig(host="example.com", username="deploy")

        assert config.port == 22
        assert config.reconnect is False
        assert config.reconnect_tries == 3
        assert config.reconnect_delay == 5000
        assert config.unique_id == "deploy@example.com"
        assert DEFAULT_OPTIONS == {
            'reconnect': False, 'port': 22, 'reconnect_tries': 3, 'reconnect_delay': 5000
        }

    def test_explicit_unique_id_is_kept(self):
        config = ConnectionConfig(host="example.com", username="deploy", unique_id="prod")

        assert config.unique_id == "prod"

    @pytest.mark.parametrize("host,sock,username,valid", [
        ("example.com", None, "u", True),
        (None, "/tmp/ssh.sock", "u", True),
        ("example.com", None, None, False),
        ("", None, "u", False),
        (None, None, "u", False),
        ("example.com", None, "", False),
    ])
    def test_validity(self, host, sock, username, valid):
        config = ConnectionConfig(host=host, sock=sock, username=username)

        assert config.is_valid is valid
        if valid:
            config.validate()
        else:
            with pytest.raises(SSHConfigurationError, match="host/username can't be empty"):
                config.validate()

    def test_out_of_range_port_rejected(self):
        with pytest.raises(SSHConfigurationError, match="between 1 and 65535"):
            ConnectionConfig(host="example.com", username="u", port=70000)

    def test_negative_reconnect_settings_rejected(self):
        with pytest.raises(SSHConfigurationError):
            ConnectionConfig(reconnect_tries=-1)
        with pytest.raises(SSHConfigurationError):
            ConnectionConfig(reconnect_delay=-5)

    def test_from_dict_accepts_camel_case(self):
        config = ConnectionConfig.from_dict({
            "host": "example.com",
            "username": "u",
            "uniqueId": "box",
            "reconnectTries": 5,
            "reconnectDelay": 100,
        })

        assert config.unique_id == "box"
        assert config.reconnect_tries == 5
        assert config.reconnect_delay == 100

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(SSHConfigurationError, match="Unknown ConnectionConfig option"):
            ConnectionConfig.from_dict({"hostname": "example.com"})


class TestConnectionConfigMerge:
    """Test merging override configuration."""

    def test_mapping_override(self):
        base = ConnectionConfig(host="a.example.com", username="u", port=2222)

        merged = base.merge({"host": "b.example.com", "port": None})

        assert merged.host == "b.example.com"
        assert merged.port == 2222
        assert merged.unique_id == "u@b.example.com"
        assert base.host == "a.example.com"

    def test_config_override_applies_only_non_defaults(self):
        base = ConnectionConfig(host="a.example.com", username="u", port=2222, reconnect=True)

        merged = base.merge(ConnectionConfig(host="b.example.com"))

        assert merged.host == "b.example.com"
        assert merged.username == "u"
        assert merged.port == 2222
        assert merged.reconnect is True

    def test_explicit_unique_id_survives_merge(self):
        base = ConnectionConfig(host="a.example.com", username="u", unique_id="box")

        merged = base.merge({"host": "b.example.com"})

        assert merged.unique_id == "box"

    def test_merge_none_copies(self):
        base = ConnectionConfig(host="a.example.com", username="u")

        merged = base.merge(None)

        assert merged == base
        assert merged is not base

    def test_to_dict_drops_derived_unique_id(self):
        data = ConnectionConfig(host="a.example.com", username="u").to_dict()

        assert data["unique_id"] is None
        assert ConnectionConfig.from_dict(data).unique_id == "u@a.example.com"


class TestTunnelConfig:
    """Test tunnel argument building."""

    def test_default_is_socks(self):
        tunnel = TunnelConfig(local_port=1080)

        assert tunnel.is_dynamic
        assert tunnel.to_ssh_args(1080) == ['-D', '1080']

    def test_remote_target_still_socks_by_default(self):
        tunnel = TunnelConfig(remote_addr="db.internal", remote_port=5432)

        assert tunnel.to_ssh_args(9000) == ['-D', '9000']

    def test_local_forward(self):
        tunnel = TunnelConfig(remote_addr="db.internal", remote_port=5432, socks=False)

        assert tunnel.to_ssh_args(9000) == ['-L', '9000:db.internal:5432']

    def test_local_forward_to_socket(self):
        tunnel = TunnelConfig(remote_socket_path="/run/app.sock", socks=False)

        assert tunnel.to_ssh_args(9000) == ['-L', '9000:/run/app.sock']

    def test_no_target_falls_back_to_socks(self):
        tunnel = TunnelConfig(socks=False)

        assert tunnel.to_ssh_args(9000) == ['-D', '9000']

    def test_from_dict(self):
        tunnel = TunnelConfig.from_dict({"localPort": 1080, "name": "proxy"})

        assert tunnel.local_port == 1080
        assert tunnel.name == "proxy"


def test_vocabulary():
    assert (Channel.SSH, Channel.TUNNEL, Channel.X11) == ("ssh", "tunnel", "x11")
    assert (Status.BEFORECONNECT, Status.CONNECT, Status.BEFOREDISCONNECT, Status.DISCONNECT) == (
        "beforeconnect", "connect", "beforedisconnect", "disconnect")

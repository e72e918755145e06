"""
Unit tests for configuration loading and validation.
"""

import dataclasses
import logging

import pytest

from edgeserver.config import EdgeConfig, parse_address, parse_bool
from edgeserver.__main__ import load_config


class TestDefaults:

    def test_production_defaults(self):
        config = EdgeConfig()

        assert config.canonical_domain == "kingland.id"
        assert config.canonical_host == "www.kingland.id"
        assert config.enforce_canonical_redirect is True
        assert config.enable_secure_listener is True
        assert config.plain_address == ("0.0.0.0", 80)
        assert config.secure_address == ("0.0.0.0", 443)
        assert config.cert_file == "certs/certificate.crt"
        assert config.key_file == "certs/private.key"
        assert config.public_dir == "public"
        assert config.invite_url == "https://discord.gg/PEsARGFup7"

    def test_limits_off_by_default(self):
        config = EdgeConfig()

        assert config.idle_timeout is None
        assert config.max_connections is None

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            EdgeConfig().canonical_domain = "example.com"

    def test_defaults_validate(self):
        EdgeConfig().validate()

    def test_log_level_number(self):
        assert EdgeConfig(log_level="debug").log_level_number == logging.DEBUG


class TestParseAddress:

    @pytest.mark.parametrize("value, expected", [
        ("0.0.0.0:80", ("0.0.0.0", 80)),
        ("127.0.0.1:8443", ("127.0.0.1", 8443)),
        ("[::]:443", ("::", 443)),
        ("[::1]:8080", ("::1", 8080)),
        ("8080", ("0.0.0.0", 8080)),
        (":8080", ("0.0.0.0", 8080)),
    ])
    def test_valid(self, value, expected):
        assert parse_address(value) == expected

    @pytest.mark.parametrize("value", ["localhost:http", "::1:80", "[::1]80", "host:"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_address(value)


class TestParseBool:

    @pytest.mark.parametrize("value", ["1", "true", "Yes", "ON"])
    def test_true(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "false", "No", "off"])
    def test_false(self, value):
        assert parse_bool(value) is False

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestFromEnv:

    def test_empty_environment_gives_defaults(self):
        assert EdgeConfig.from_env({}) == EdgeConfig()

    def test_reads_variables(self):
        config = EdgeConfig.from_env({
            "EDGE_CANONICAL_DOMAIN": "example.org",
            "EDGE_ENFORCE_REDIRECT": "false",
            "EDGE_ENABLE_TLS": "0",
            "EDGE_PLAIN_ADDRESS": "127.0.0.1:8080",
            "EDGE_SECURE_ADDRESS": "[::]:8443",
            "EDGE_IDLE_TIMEOUT": "30",
            "EDGE_MAX_CONNECTIONS": "100",
            "EDGE_LOG_LEVEL": "debug",
            "EDGE_LOG_FORMAT": "JSON",
        })

        assert config.canonical_domain == "example.org"
        assert config.enforce_canonical_redirect is False
        assert config.enable_secure_listener is False
        assert config.plain_address == ("127.0.0.1", 8080)
        assert config.secure_address == ("::", 8443)
        assert config.idle_timeout == 30.0
        assert config.max_connections == 100
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_empty_value_ignored(self):
        assert EdgeConfig.from_env({"EDGE_CANONICAL_DOMAIN": ""}).canonical_domain == "kingland.id"

    def test_bad_value_names_variable(self):
        with pytest.raises(ValueError, match="EDGE_MAX_CONNECTIONS"):
            EdgeConfig.from_env({"EDGE_MAX_CONNECTIONS": "lots"})


class TestValidate:

    @pytest.mark.parametrize("changes", [
        {"canonical_domain": ""},
        {"plain_address": ("0.0.0.0", 70000)},
        {"secure_address": ("0.0.0.0", -1)},
        {"plain_address": ("0.0.0.0", 8080), "secure_address": ("0.0.0.0", 8080)},
        {"idle_timeout": 0},
        {"max_connections": 0},
        {"buffer_size": 10},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"invite_url": ""},
    ])
    def test_rejects(self, changes):
        with pytest.raises(ValueError):
            dataclasses.replace(EdgeConfig(), **changes).validate()

    def test_secure_address_ignored_without_tls(self):
        EdgeConfig(enable_secure_listener=False, secure_address=("0.0.0.0", 80)).validate()

    def test_ephemeral_ports_allowed(self):
        EdgeConfig(plain_address=("127.0.0.1", 0), secure_address=("127.0.0.1", 0)).validate()


class TestCommandLine:

    def test_cli_overrides_environment(self):
        config = load_config(
            ["--domain", "cli.example", "--no-tls", "--plain", "127.0.0.1:8080"],
            environ={"EDGE_CANONICAL_DOMAIN": "env.example", "EDGE_LOG_LEVEL": "WARNING"},
        )

        assert config.canonical_domain == "cli.example"
        assert config.enable_secure_listener is False
        assert config.plain_address == ("127.0.0.1", 8080)
        assert config.log_level == "WARNING"

    def test_flags_absent_keep_environment(self):
        config = load_config([], environ={"EDGE_ENFORCE_REDIRECT": "no"})
        assert config.enforce_canonical_redirect is False

    def test_no_redirect_flag(self):
        assert load_config(["--no-redirect"], environ={}).enforce_canonical_redirect is False

    def test_limits(self):
        config = load_config(["--idle-timeout", "15", "--max-connections", "64"], environ={})

        assert config.idle_timeout == 15.0
        assert config.max_connections == 64

    def test_bad_address_exits(self):
        with pytest.raises(SystemExit):
            load_config(["--plain", "nowhere"], environ={})

"""Tests for configuration loading (config.py).

Coverage:
* Defaults, YAML file, environment and flag layering.
* Validation of unknown keys and malformed values.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from multidialer.config import DEFAULT_HOST, DEFAULT_PORT, AppConfig, ManagerConfig, load_config
from multidialer.core.models import LinePlan
from multidialer.exceptions import ConfigurationError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "multidialer.yaml"
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------

class TestLayering:
    def test_defaults(self) -> None:
        config = load_config(environ={})
        assert config == AppConfig()
        assert config.manager.host == DEFAULT_HOST
        assert config.manager.port == DEFAULT_PORT == 5038
        assert config.manager.username is None
        assert config.plan == LinePlan()

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "manager:\n"
            "  host: pbx.example\n"
            "  port: 5039\n"
            "  username: dialer\n"
            "lines:\n"
            "  peer_prefix: bench\n"
            "  plar_code: \"07\"\n"
            "  priority: 2\n",
        )
        config = load_config(path, environ={})
        assert config.manager.host == "pbx.example"
        assert config.manager.port == 5039
        assert config.manager.username == "dialer"
        assert config.plan.peer_prefix == "bench"
        assert config.plan.dial_target(1) == "PJSIP/07@bench1"
        assert config.plan.priority == 2

    def test_config_path_from_environment(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "manager:\n  username: from-file\n")
        config = load_config(environ={"MULTIDIALER_CONFIG": str(path)})
        assert config.manager.username == "from-file"

    def test_environment_beats_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "manager:\n  host: file-host\n  port: 1\n")
        config = load_config(
            path,
            environ={
                "MULTIDIALER_HOST": "env-host",
                "MULTIDIALER_PORT": "6000",
                "MULTIDIALER_CONTEXT": "wait",
                "MULTIDIALER_MANAGER_CONF": "/tmp/manager.conf",
            },
        )
        assert config.manager.host == "env-host"
        assert config.manager.port == 6000
        assert config.manager.manager_conf == Path("/tmp/manager.conf")
        assert config.plan.context == "wait"

    def test_flags_beat_environment(self) -> None:
        config = load_config(
            environ={"MULTIDIALER_USERNAME": "env-user", "MULTIDIALER_PASSWORD": "env-pw"},
            overrides={"username": "flag-user", "password": None, "host": None},
        )
        assert config.manager.username == "flag-user"
        assert config.manager.password == "env-pw"

    def test_debug_level_carried(self) -> None:
        assert load_config(environ={}, debug_level=2).debug_level == 2

    def test_empty_file(self, tmp_path: Path) -> None:
        assert load_config(_write(tmp_path, ""), environ={}) == AppConfig()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidation:
    def test_unknown_section(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Unknown configuration section 'audio'"):
            load_config(_write(tmp_path, "audio:\n  file: x.wav\n"), environ={})

    def test_unknown_key(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Unknown key"):
            load_config(_write(tmp_path, "manager:\n  hostname: x\n"), environ={})

    def test_invalid_port(self) -> None:
        with pytest.raises(ConfigurationError, match="manager.port must be an integer"):
            load_config(environ={"MULTIDIALER_PORT": "fifty"})

    def test_port_out_of_range(self) -> None:
        with pytest.raises(ConfigurationError, match="between 1 and 65535"):
            load_config(environ={"MULTIDIALER_PORT": "70000"})

    def test_invalid_priority(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="lines.priority"):
            load_config(_write(tmp_path, "lines:\n  priority: first\n"), environ={})

    def test_unquoted_numeric_code_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="lines.plar_code") as info:
            load_config(_write(tmp_path, "lines:\n  plar_code: 01\n"), environ={})
        assert info.value.hint

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(_write(tmp_path, "manager: [unclosed\n"), environ={})

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(_write(tmp_path, "- a\n- b\n"), environ={})

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Failed to read configuration file"):
            load_config(tmp_path / "absent.yaml", environ={})


# ---------------------------------------------------------------------------
# ManagerConfig
# ---------------------------------------------------------------------------

class TestManagerConfig:
    @pytest.mark.parametrize("host", ["127.0.0.1", "localhost", "::1", "127.0.1.1"])
    def test_loopback(self, host: str) -> None:
        assert ManagerConfig(host=host).is_loopback

    @pytest.mark.parametrize("host", ["10.1.2.3", "pbx.example"])
    def test_remote(self, host: str) -> None:
        assert not ManagerConfig(host=host).is_loopback

from __future__ import annotations

from pathlib import Path

import pytest

from custody.config import RegistryConfig, load_config
from custody.errors import ConfigError


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config(env={})
    assert config == RegistryConfig()
    assert config.state_path == Path(".custody") / "state.json"
    assert config.journal_path == Path(".custody") / "events.jsonl"


def test_toml_file_relative_data_dir(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "custody.toml",
        '[registry]\ndata_dir = "var/custody"\npersist = false\nlog_level = "debug"\n',
    )
    config = load_config(path, env={})
    assert config.data_dir == tmp_path.resolve() / "var" / "custody"
    assert config.persist is False
    assert config.journal is True
    assert config.log_level == "DEBUG"


def test_cwd_file_is_picked_up(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path / "custody.toml", "[registry]\njournal = false\n")
    monkeypatch.chdir(tmp_path)
    assert load_config(env={}).journal is False


def test_env_overrides_file_and_flags_override_env(tmp_path: Path) -> None:
    path = _write(tmp_path / "custody.toml", '[registry]\ndata_dir = "from-file"\nlog_level = "ERROR"\n')
    env = {"CUSTODY_HOME": str(tmp_path / "from-env"), "CUSTODY_LOG_LEVEL": "INFO"}

    config = load_config(path, env=env)
    assert config.data_dir == tmp_path / "from-env"
    assert config.log_level == "INFO"

    config = load_config(path, env=env, overrides={"data_dir": tmp_path / "from-flag", "log_level": None})
    assert config.data_dir == tmp_path / "from-flag"
    assert config.log_level == "INFO"


def test_wrong_types_raise(tmp_path: Path) -> None:
    path = _write(tmp_path / "custody.toml", '[registry]\npersist = "yes"\n')
    with pytest.raises(ConfigError, match="persist"):
        load_config(path, env={})


def test_unknown_log_level(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigError, match="log level"):
        load_config(None, env={"CUSTODY_LOG_LEVEL": "LOUD"})


def test_malformed_toml(tmp_path: Path) -> None:
    path = _write(tmp_path / "custody.toml", "[registry\n")
    with pytest.raises(ConfigError, match="Malformed"):
        load_config(path, env={})


def test_missing_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.toml", env={})


def test_unknown_keys_ignored(tmp_path: Path) -> None:
    path = _write(tmp_path / "custody.toml", "[registry]\ncolour = 'blue'\n\n[other]\nx = 1\n")
    assert load_config(path, env={}).persist is True

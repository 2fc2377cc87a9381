import json
from pathlib import Path

import pytest

from phrasesync.config import (
    PhraseSyncConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
    write_config_file,
)


def test_config_path_honours_env(tmp_path: Path) -> None:
    assert get_config_path() == tmp_path / "config.json"
    assert get_config_path(tmp_path / "other.json") == tmp_path / "other.json"


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be an object"):
        read_config_file(config_path)


def test_missing_or_empty_config_is_default(tmp_path: Path) -> None:
    assert read_config_file() == {}
    (tmp_path / "config.json").write_text("  \n")
    assert read_config_file() == {}
    assert load_config() == PhraseSyncConfig()


def test_load_config_reads_file_then_env(tmp_path: Path, monkeypatch) -> None:
    write_config_file(
        {
            "user_id": "alice",
            "remote_url": "http://sync.local:3000",
            "sync_interval_s": 5,
            "server_port": "4000",
            "unknown": "ignored",
        }
    )
    monkeypatch.setenv("PHRASESYNC_REMOTE_URL", "http://override:9000")
    monkeypatch.setenv("PHRASESYNC_SYNC_TIMEOUT_S", "1.5")

    cfg = load_config()

    assert cfg.user_id == "alice"
    assert cfg.remote_url == "http://override:9000"
    assert cfg.sync_interval_s == 5.0
    assert cfg.sync_timeout_s == 1.5
    assert cfg.server_port == 4000
    assert get_env_overrides() == {
        "remote_url": "http://override:9000",
        "sync_timeout_s": "1.5",
    }


def test_empty_user_env_clears_user(monkeypatch) -> None:
    write_config_file({"user_id": "alice"})
    monkeypatch.setenv("PHRASESYNC_USER_ID", "")
    assert load_config().user_id is None


def test_invalid_numbers_warn_and_keep_defaults(monkeypatch) -> None:
    monkeypatch.setenv("PHRASESYNC_SERVER_PORT", "abc")
    monkeypatch.setenv("PHRASESYNC_SYNC_INTERVAL_S", "-3")
    with pytest.warns(RuntimeWarning):
        cfg = load_config()
    assert cfg.server_port == 3000
    assert cfg.sync_interval_s == 30.0


def test_load_config_ignores_unreadable_json(tmp_path: Path) -> None:
    (tmp_path / "config.json").write_text("{oops")
    assert load_config().remote_url == PhraseSyncConfig().remote_url


def test_write_config_file_round_trips(tmp_path: Path) -> None:
    path = write_config_file({"user_id": "bob"}, tmp_path / "nested" / "config.json")
    assert json.loads(path.read_text()) == {"user_id": "bob"}

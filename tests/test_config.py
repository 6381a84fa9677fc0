# File: tests/test_config.py
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from indie_scout.config import CrawlerConfig, QueueConfig, config_to_dict, load_config


def write_file(tmp_path: Path, content: str, suffix: str) -> Path:
    path = tmp_path / f"config{suffix}"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "content,suffix,expect_exc",
    [
        ("timeout: 3\nqueue:\n  batch_size: 5", ".yaml", None),
        (json.dumps({"timeout": 3, "queue": {"batch_size": 5}}), ".json", None),
        ("timeout: -1", ".yaml", ValidationError),
        ("unknown_option: 1", ".yaml", ValidationError),
        ("not: a: mapping", ".yaml", ValueError),
        ("- just\n- a list", ".yaml", TypeError),
        ("{broken json", ".json", ValueError),
        ("timeout = 3", ".toml", ValueError),
    ],
)
def test_load_config_variants(tmp_path, content, suffix, expect_exc):
    cfg_path = write_file(tmp_path, content, suffix)
    if expect_exc:
        with pytest.raises(expect_exc):
            load_config(cfg_path)
    else:
        cfg = load_config(cfg_path)
        assert isinstance(cfg, CrawlerConfig)
        assert cfg.timeout == 3
        assert cfg.queue.batch_size == 5
        # остальные значения очереди по умолчанию
        assert cfg.queue.max_retries == 3


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_load_config_without_default_file_uses_model_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = load_config(None)
    assert cfg == CrawlerConfig()


def test_load_config_picks_up_default_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "default.yaml").write_text("concurrency: 7\n", encoding="utf-8")
    assert load_config(None).concurrency == 7


def test_queue_defaults():
    queue = QueueConfig()
    assert queue.batch_size == 10
    assert queue.max_links_per_site == 10
    assert queue.max_links_extract_all == 100
    assert queue.max_pending == 5000
    assert queue.retention_days == 30
    assert queue.discovery_delay_hours == (48.0, 120.0)


def test_discovery_window_must_be_ordered():
    with pytest.raises(ValidationError):
        QueueConfig(discovery_delay_hours=(10, 5))


def test_for_worker_uses_worker_timeout():
    cfg = CrawlerConfig(timeout=10, queue=QueueConfig(worker_timeout=15))
    worker = cfg.for_worker()
    assert worker.timeout == 15
    assert cfg.timeout == 10


def test_user_agent_is_stripped():
    assert CrawlerConfig(user_agent="  Bot/1.0  ").user_agent == "Bot/1.0"


def test_config_to_dict_is_json_serialisable(tmp_path):
    cfg = CrawlerConfig(database=tmp_path / "db.sqlite")
    data = config_to_dict(cfg)
    json.dumps(data)
    assert data["database"].endswith("db.sqlite")
    assert data["queue"]["batch_size"] == 10

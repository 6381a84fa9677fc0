# File: tests/test_cli.py
"""Тесты для CLI (`indie_scout/cli.py`) с использованием click.testing.CliRunner.
Команды очереди работают с настоящей SQLite-базой во временном каталоге,
`run` и `test-url` используют подменённый Engine без сети.
"""
import json

import pytest
from click.testing import CliRunner

import indie_scout.cli as cli_module
from indie_scout import __version__
from indie_scout.aggregator import BatchReport
from indie_scout.cli import cli

QUIET = ["--log-level", "ERROR"]


@pytest.fixture()
def runner(tmp_path, monkeypatch):
    # без configs/default.yaml в рабочем каталоге
    monkeypatch.chdir(tmp_path)
    return CliRunner()


@pytest.fixture()
def db_args(tmp_path):
    return QUIET + ["--database", str(tmp_path / "scout.sqlite3")]


class FakeEngine:
    """Engine без сети: возвращает заранее заданный отчёт."""

    report = BatchReport(processed=2, successful=1, skipped=1)
    error = None

    def __init__(self, config):
        self.config = config

    def run_batch(self):
        if self.error is not None:
            raise self.error
        return self.report

    def test_url(self, url):
        class Result:
            def to_dict(self):
                return {"url": url, "action": "crawl_failed"}

        return Result()


@pytest.fixture()
def fake_engine(monkeypatch):
    monkeypatch.setattr(cli_module, "Engine", FakeEngine)
    yield FakeEngine
    FakeEngine.report = BatchReport(processed=2, successful=1, skipped=1)
    FakeEngine.error = None


def test_version_option(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert f"IndieScout, version {__version__}" in result.output


def test_show_config(runner, tmp_path):
    cfg_file = tmp_path / "config.json"
    cfg_file.write_text(
        json.dumps({"user_agent": " Agent/1.0 ", "queue": {"batch_size": 4}}), encoding="utf-8"
    )
    result = runner.invoke(cli, QUIET + ["--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["user_agent"] == "Agent/1.0"
    assert data["queue"]["batch_size"] == 4
    assert data["database"] is None


def test_database_option_overrides_config(runner, tmp_path):
    result = runner.invoke(cli, QUIET + ["--database", str(tmp_path / "x.db"), "config"])
    assert result.exit_code == 0
    assert json.loads(result.output)["database"] == str(tmp_path / "x.db")


def test_invalid_config_is_reported(runner, tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("concurrency: 0\n", encoding="utf-8")
    result = runner.invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 1
    assert "Ошибка загрузки конфигурации" in result.output


def test_enqueue_stats_and_browse(runner, db_args):
    result = runner.invoke(cli, db_args + ["enqueue", "https://alice.example/", "not-a-url", "-p", "7"])
    assert result.exit_code == 0
    assert "Added: 1, already queued: 0" in result.output
    assert "Invalid URL skipped: not-a-url" in result.output

    again = runner.invoke(cli, db_args + ["enqueue", "https://alice.example/"])
    assert "Added: 0, already queued: 1" in again.output

    stats = runner.invoke(cli, db_args + ["stats", "--json"])
    assert stats.exit_code == 0
    data = json.loads(stats.output)
    assert data["pending"] == 1
    assert data["total"] == 1

    listing = runner.invoke(cli, db_args + ["queue", "--status", "pending"])
    assert listing.exit_code == 0
    assert "https://alice.example/" in listing.output
    assert "p=7" in listing.output

    empty = runner.invoke(cli, db_args + ["queue", "--status", "failed"])
    assert "Queue page is empty" in empty.output


def test_enqueue_from_file(runner, db_args, tmp_path):
    url_file = tmp_path / "urls.txt"
    url_file.write_text("# seeds\nhttps://a.example/\n\nhttps://b.example/\n", encoding="utf-8")
    result = runner.invoke(cli, db_args + ["enqueue", "--file", str(url_file), "--extract-all-links"])
    assert result.exit_code == 0
    assert "Added: 2" in result.output


def test_enqueue_without_urls_fails(runner, db_args):
    result = runner.invoke(cli, db_args + ["enqueue"])
    assert result.exit_code == 1


def test_retry_failed_and_cleanup(runner, db_args):
    retry = runner.invoke(cli, db_args + ["retry-failed"])
    assert retry.exit_code == 0
    assert "Reset 0 failed items" in retry.output

    cleanup = runner.invoke(cli, db_args + ["cleanup", "--days", "7"])
    assert cleanup.exit_code == 0
    assert "Deleted 0 completed items" in cleanup.output


def test_run_prints_report(runner, fake_engine):
    result = runner.invoke(cli, QUIET + ["run"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["processed"] == 2
    assert data["skipped"] == 1


def test_run_writes_json_file(runner, fake_engine, tmp_path):
    out = tmp_path / "reports" / "batch.json"
    result = runner.invoke(cli, QUIET + ["run", "--json", str(out)])
    assert result.exit_code == 0
    assert out.exists()
    assert json.loads(out.read_text(encoding="utf-8"))["successful"] == 1


def test_aborted_run_exits_non_zero(runner, fake_engine):
    fake_engine.report = BatchReport(aborted=True, errors=["Queue selection failed: locked"])
    result = runner.invoke(cli, QUIET + ["run"])
    assert result.exit_code == 1
    assert "Queue selection failed: locked" in result.output


def test_run_timeout(runner, fake_engine):
    fake_engine.error = TimeoutError()
    result = runner.invoke(cli, QUIET + ["run"])
    assert result.exit_code == 1
    assert "не завершён" in result.output


def test_test_url(runner, fake_engine):
    result = runner.invoke(cli, QUIET + ["test-url", "https://alice.example/", "--pretty"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"url": "https://alice.example/", "action": "crawl_failed"}

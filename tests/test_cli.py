"""Tests for the command-line interface."""

import yaml
from typer.testing import CliRunner

from reader_sync import __version__
from reader_sync.cli import app

runner = CliRunner()


def write_config(path, **server):
    path.write_text(yaml.dump({"server": {"base_url": "https://reader.example.com", **server}}))
    return path


def test_config_example():
    result = runner.invoke(app, ["config", "--example"])

    assert result.exit_code == 0
    assert "article_limit" in result.output


def test_config_show_masks_password(tmp_path):
    config_file = write_config(tmp_path / "config.yaml", username="alice", password="hunter2")

    result = runner.invoke(app, ["config", "--show", "--config", str(config_file)])

    assert result.exit_code == 0
    assert "hunter2" not in result.output
    assert "********" in result.output


def test_status(tmp_path):
    config_file = write_config(tmp_path / "config.yaml", username="alice")

    result = runner.invoke(app, ["status", "--config", str(config_file)])

    assert result.exit_code == 0
    assert f"Reader Sync v{__version__}" in result.output
    assert "Server: https://reader.example.com" in result.output


def test_login_without_password_fails(tmp_path, monkeypatch):
    monkeypatch.delenv("READER_SYNC_PASSWORD", raising=False)
    config_file = write_config(tmp_path / "config.yaml", username="alice")

    result = runner.invoke(app, ["login", "--config", str(config_file)])

    assert result.exit_code == 1


def test_no_sign_out_command():
    result = runner.invoke(app, ["logout"])

    assert result.exit_code != 0

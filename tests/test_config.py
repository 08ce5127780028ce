"""Tests for configuration loading."""

import pytest
import yaml

from reader_sync.config import Config, ServerConfig, create_example_config, load_config, save_config


def test_missing_file_creates_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"

    config = load_config(config_file)

    assert config_file.exists()
    assert config.article_limit == 100
    assert config.action_token_ttl == 1500


def test_round_trip(tmp_path):
    config_file = tmp_path / "config.yaml"
    config = Config(server=ServerConfig(base_url="https://reader.example.com/", username="bob"), article_limit=50)

    save_config(config, config_file)
    loaded = load_config(config_file)

    assert loaded.server.base_url == "https://reader.example.com"
    assert loaded.server.username == "bob"
    assert loaded.article_limit == 50


def test_host_alias(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({"server": {"host": "reader.example.com"}, "log_level": "debug"}))

    config = load_config(config_file)

    assert config.server.base_url == "https://reader.example.com"
    assert config.log_level == "DEBUG"


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        Config(log_level="LOUD")
    with pytest.raises(ValueError):
        Config(article_limit=0)
    with pytest.raises(ValueError):
        ServerConfig(base_url="reader.example.com")


def test_example_config_parses():
    data = yaml.safe_load(create_example_config())

    assert Config(**data).server.username == "reader"

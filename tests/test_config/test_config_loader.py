"""
Tests for ConfigState and ConfigLoader.
"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from quant_loader.config import ConfigLoader, ConfigState, get_config
from quant_loader.config.state import DatabaseConfig, LoaderSettings, SourcesConfig
from quant_loader.ingestion.config.value_objects import BatchConfig, RetryConfig

REPO_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"

ENV_VARS = (
    "LOADER_ENV",
    "LOADER_CONFIG_DIR",
    "LOADER_DATABASE_URL",
    "LOG_LEVEL",
    "ALPHAVANTAGE_API_KEY",
    "COINGECKO_API_KEY",
    "COINCAP_API_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_yaml(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


@pytest.fixture
def config_dir(tmp_path):
    write_yaml(tmp_path / "loader.yaml", {"loader": {"max_concurrent": 8, "batch_size": 50}})
    write_yaml(tmp_path / "cache.yaml", {"cache": {"ttl_hours": 12}})
    write_yaml(
        tmp_path / "sources.yaml",
        {
            "sources": {
                "priority": ["AlphaVantage", "coingecko"],
                "vendors": {"alphavantage": {"base_url": "https://av.test", "request_interval": 12}},
            }
        },
    )
    write_yaml(tmp_path / "env" / "test.yaml", {"loader": {"max_concurrent": 2}})
    return tmp_path


class TestConfigLoader:
    def test_yaml_files_merged(self, config_dir):
        state = ConfigLoader(config_dir).load()

        assert state.loader.max_concurrent == 8
        assert state.loader.batch_size == 50
        assert state.loader.max_retries == 3
        assert state.cache.ttl_hours == 12
        assert state.cache.ttl_seconds == 12 * 3600
        assert state.sources.priority == ["alphavantage", "coingecko"]
        assert state.sources.vendors["alphavantage"].base_url == "https://av.test"
        assert state.env == "dev"

    def test_env_file_overrides_base(self, config_dir, monkeypatch):
        monkeypatch.setenv("LOADER_ENV", "test")

        state = ConfigLoader(config_dir).load()

        assert state.env == "test"
        assert state.loader.max_concurrent == 2
        assert state.loader.batch_size == 50

    def test_environment_variable_overrides(self, config_dir, monkeypatch):
        monkeypatch.setenv("LOADER_DATABASE_URL", "postgresql://u:p@db:5432/prod")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setenv("ALPHAVANTAGE_API_KEY", "av-key")
        monkeypatch.setenv("COINGECKO_API_KEY", "cg-key")
        monkeypatch.setenv("COINCAP_API_KEY", "ignored")

        state = ConfigLoader(config_dir).load()

        assert state.database.url == "postgresql://u:p@db:5432/prod"
        assert state.logging.level == "WARNING"
        assert state.sources.vendors["alphavantage"].api_key == "av-key"
        assert state.sources.vendors["alphavantage"].base_url == "https://av.test"
        # Known from the priority list only
        assert state.sources.vendors["coingecko"].api_key == "cg-key"
        assert "coincap" not in state.sources.vendors

    def test_missing_directory_gives_defaults(self, tmp_path):
        state = ConfigLoader(tmp_path / "nowhere").load()

        assert state == ConfigState(env="dev", config_dir=str(tmp_path / "nowhere"))

    def test_non_mapping_yaml_rejected(self, tmp_path):
        (tmp_path / "loader.yaml").write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            ConfigLoader(tmp_path).load()

    def test_invalid_values_rejected(self, tmp_path):
        write_yaml(tmp_path / "loader.yaml", {"loader": {"max_concurrent": 0}})

        with pytest.raises(ValidationError):
            ConfigLoader(tmp_path).load()

    def test_get_config_reads_directory_from_environment(self, config_dir, monkeypatch):
        monkeypatch.setenv("LOADER_CONFIG_DIR", str(config_dir))

        assert get_config().loader.batch_size == 50

    def test_repository_config_loads(self):
        state = get_config(REPO_CONFIG_DIR)

        assert state.sources.priority[0] == "alphavantage"
        assert state.loader.max_concurrent == 2  # env/dev.yaml


class TestModels:
    def test_database_url_validated(self):
        with pytest.raises(ValidationError):
            DatabaseConfig(url="mysql://localhost/db")

    def test_source_names_normalized(self):
        sources = SourcesConfig(priority=["CoinGecko"], vendors={"CoinGecko": {"base_url": "x"}})

        assert sources.priority == ["coingecko"]
        assert list(sources.vendors) == ["coingecko"]

    def test_value_objects_from_settings(self):
        settings = LoaderSettings(max_concurrent=4, batch_size=20, max_retries=1, continue_on_error=False)

        batch = BatchConfig.from_settings(settings)
        retry = RetryConfig.from_settings(settings)

        assert (batch.max_concurrent, batch.batch_size, batch.continue_on_error) == (4, 20, False)
        assert retry.max_retries == 1
        assert retry.rate_limit_max_delay == settings.rate_limit_max_delay

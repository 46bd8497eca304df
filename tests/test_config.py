"""Tests for configuration handling."""

import stat

import pytest

from bucketsync.config import Config
from bucketsync.exceptions import ConfigError


@pytest.fixture
def cfg(tmp_path, monkeypatch):
    for key in (
        "BUCKETSYNC_REGION",
        "BUCKETSYNC_ENDPOINT_URL",
        "BUCKETSYNC_PROFILE",
        "BUCKETSYNC_CONCURRENCY",
        "BUCKETSYNC_DEFAULT_BUCKET",
        "BUCKETSYNC_COMPARATOR",
    ):
        monkeypatch.delenv(key, raising=False)
    return Config(config_dir=tmp_path / "bucketsync")


class TestConfig:
    """Test layered configuration."""

    def test_defaults(self, cfg):
        assert not cfg.is_configured()
        assert cfg.region is None
        assert cfg.comparator == "smart"
        assert cfg.concurrency == 5

    def test_save_and_read(self, cfg):
        path = cfg.save_settings(BUCKETSYNC_REGION="eu-west-1", BUCKETSYNC_PROFILE=None)

        assert cfg.is_configured()
        assert cfg.region == "eu-west-1"
        assert cfg.profile is None
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_save_merges(self, cfg):
        cfg.save_settings(BUCKETSYNC_REGION="eu-west-1")
        cfg.save_settings(BUCKETSYNC_DEFAULT_BUCKET="backups")

        assert cfg.region == "eu-west-1"
        assert cfg.default_bucket == "backups"

    def test_environment_overrides_file(self, cfg, monkeypatch):
        cfg.save_settings(BUCKETSYNC_REGION="eu-west-1")
        monkeypatch.setenv("BUCKETSYNC_REGION", "us-east-2")

        assert cfg.region == "us-east-2"

    def test_file_comments_and_quotes(self, cfg):
        cfg.config_dir.mkdir(parents=True)
        cfg.config_file.write_text(
            "# comment\n\nBUCKETSYNC_ENDPOINT_URL=\"http://minio:9000\"\nbroken line\n"
        )

        assert cfg.endpoint_url == "http://minio:9000"

    def test_unknown_key_rejected(self, cfg):
        with pytest.raises(ConfigError, match="Unknown config keys"):
            cfg.save_settings(API_KEY="x")

    @pytest.mark.parametrize("value", ["abc", "0", "101"])
    def test_invalid_concurrency(self, cfg, monkeypatch, value):
        monkeypatch.setenv("BUCKETSYNC_CONCURRENCY", value)

        with pytest.raises(ConfigError):
            cfg.concurrency

    def test_concurrency_from_env(self, cfg, monkeypatch):
        monkeypatch.setenv("BUCKETSYNC_CONCURRENCY", "12")
        assert cfg.concurrency == 12

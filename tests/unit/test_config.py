"""Unit tests for installer configuration."""

from pathlib import Path

import pytest

from packsmith.config import DEFAULT_DOWNLOAD_SERVER, InstallerConfig, get_cache_root


class TestGetCacheRoot:
    def test_explicit_cache_dir_wins(self, tmp_path: Path) -> None:
        env = {"PACKSMITH_CACHE_DIR": str(tmp_path / "c"), "PACKSMITH_DEV_MODE": "1"}
        assert get_cache_root(env) == (tmp_path / "c").resolve()

    def test_dev_mode(self) -> None:
        assert get_cache_root({"PACKSMITH_DEV_MODE": "1"}) == Path.home() / ".packsmith" / "cache_dev"

    def test_default(self) -> None:
        assert get_cache_root({}) == Path.home() / ".packsmith" / "cache"


class TestInstallerConfig:
    def test_server_gets_trailing_slash(self, tmp_path: Path) -> None:
        config = InstallerConfig(download_server="https://mirror.example/atl", cache_root=tmp_path)
        assert config.download_server == "https://mirror.example/atl/"

    def test_urls(self, tmp_path: Path) -> None:
        config = InstallerConfig(download_server="https://mirror.example/atl/", cache_root=tmp_path)
        assert config.manifest_url("SkyFactory4", "4.2.4") == "https://mirror.example/atl/packs/SkyFactory4/versions/4.2.4/Configs.xml"
        assert config.config_archive_url("SkyFactory4", "4.2.4") == "https://mirror.example/atl/packs/SkyFactory4/versions/4.2.4/Configs.zip"

    @pytest.mark.parametrize("field", ["download_workers", "extract_workers", "max_retries"])
    def test_counts_must_be_positive(self, tmp_path: Path, field: str) -> None:
        with pytest.raises(ValueError, match=field):
            InstallerConfig(cache_root=tmp_path, **{field: 0})

    def test_from_env_defaults(self) -> None:
        config = InstallerConfig.from_env({})
        assert config.download_server == DEFAULT_DOWNLOAD_SERVER
        assert config.cache_root == Path.home() / ".packsmith" / "cache"

    def test_from_env_reads_environment(self, tmp_path: Path) -> None:
        env = {"PACKSMITH_DOWNLOAD_SERVER": "https://env.example/", "PACKSMITH_CACHE_DIR": str(tmp_path)}
        config = InstallerConfig.from_env(env)
        assert config.download_server == "https://env.example/"
        assert config.cache_root == tmp_path.resolve()

    def test_overrides_win_unless_none(self, tmp_path: Path) -> None:
        env = {"PACKSMITH_DOWNLOAD_SERVER": "https://env.example/"}
        config = InstallerConfig.from_env(env, download_server=None, cache_root=tmp_path, max_retries=5)
        assert config.download_server == "https://env.example/"
        assert config.cache_root == tmp_path
        assert config.max_retries == 5

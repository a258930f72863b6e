"""設定テスト"""

import pytest

from src.config.settings import ConfigurationError, Settings, get_settings, load_settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)
        assert s.monitoring_window_seconds == 900.0
        assert s.monitoring_sweep_interval_seconds == 300.0
        assert s.monitoring_threshold == 100
        assert s.fanout_page_size_default == 25
        assert s.generation_interval_seconds == 30.0
        assert s.catalog_initial_size == 100

    def test_is_sqlite(self) -> None:
        s = Settings(_env_file=None, database_url="sqlite+aiosqlite:///x.db")
        assert s.is_sqlite is True

    def test_is_production(self) -> None:
        s = Settings(_env_file=None, app_env="production")
        assert s.is_production is True
        assert s.is_development is False

    def test_cors_origins_json_string(self) -> None:
        s = Settings(_env_file=None, cors_origins='["http://a.example"]')
        assert s.cors_origins == ["http://a.example"]

    @pytest.mark.parametrize(
        "field",
        [
            "monitoring_window_seconds",
            "monitoring_sweep_interval_seconds",
            "monitoring_threshold",
            "generation_interval_seconds",
            "fanout_page_size_default",
        ],
    )
    def test_non_positive_rejected(self, field: str) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None, **{field: 0})

    def test_default_above_max_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None, fanout_page_size_default=50, fanout_page_size_max=10)

    def test_negative_initial_size_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(_env_file=None, catalog_initial_size=-1)


@pytest.mark.unit
class TestLoadSettings:
    def test_invalid_env_raises_configuration_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        get_settings.cache_clear()
        monkeypatch.setenv("MONITORING_THRESHOLD", "-5")
        try:
            with pytest.raises(ConfigurationError):
                load_settings()
        finally:
            get_settings.cache_clear()

    def test_valid_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        get_settings.cache_clear()
        monkeypatch.setenv("MONITORING_THRESHOLD", "42")
        try:
            assert load_settings().monitoring_threshold == 42
        finally:
            get_settings.cache_clear()

"""
Unit tests for pay station settings.
"""
import pytest
from pydantic import ValidationError

from pay_station.config import Settings, get_settings
from pay_station.domain.value_objects import ParkingRate


class TestSettings:
    """Test suite for Settings."""

    def test_defaults(self, settings):
        assert settings.accepted_coins == {5, 10, 25}
        assert settings.parking_rate() == ParkingRate(cents_per_unit=5, minutes_per_unit=2)
        assert settings.log_level == "INFO"
        assert not settings.is_production

    def test_accepted_coins_from_env(self, monkeypatch):
        monkeypatch.setenv("PAY_STATION_ACCEPTED_COINS", "[5, 10, 25, 100]")
        settings = Settings(_env_file=None)
        assert settings.accepted_coins == {5, 10, 25, 100}

    def test_rate_from_env(self, monkeypatch):
        monkeypatch.setenv("PAY_STATION_CENTS_PER_UNIT", "25")
        monkeypatch.setenv("PAY_STATION_MINUTES_PER_UNIT", "15")
        rate = Settings(_env_file=None).parking_rate()
        assert rate.minutes_for(50) == 30

    def test_log_level_normalised(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="Invalid log level"):
            Settings(_env_file=None, log_level="LOUD")

    @pytest.mark.parametrize("coins", [set(), {0, 5}, {-25}])
    def test_invalid_accepted_coins(self, coins):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, accepted_coins=coins)

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cents_per_unit=0)

    def test_production_flag(self):
        assert Settings(_env_file=None, app_env="Production").is_production

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

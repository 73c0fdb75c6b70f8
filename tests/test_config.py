"""Tests for BookingSettings loading and validation."""

import pytest

from holdfast.config import BookingSettings, SettingsError


class TestDefaults:
    def test_defaults(self):
        settings = BookingSettings.from_env({})
        assert settings.inventory_tz == "Asia/Ho_Chi_Minh"
        assert settings.hold_minutes == 15
        assert settings.review_hold_days == 1
        assert settings.auto_decline_high is False
        assert settings.max_nights == 30
        assert settings.expire_batch_size == 200
        assert settings.expire_lock_ttl_sec == 55
        assert settings.outbox_batch == 200
        assert settings.redis_prefix == "dev:"
        assert settings.scheduler_enabled is False


class TestFromEnv:
    def test_reads_values(self):
        settings = BookingSettings.from_env(
            {
                "INVENTORY_TZ": "UTC",
                "HOLD_MINUTES": "20",
                "REVIEW_HOLD_DAYS": "3",
                "AUTO_DECLINE_HIGH": "true",
                "OUTBOX_TOPIC_PREFIX": "prod.",
                "APP_ENV": "prod",
                "SCHEDULER_ENABLED": "1",
            }
        )
        assert settings.inventory_tz == "UTC"
        assert settings.hold_minutes == 20
        assert settings.review_hold_days == 3
        assert settings.auto_decline_high is True
        assert settings.outbox_topic_prefix == "prod."
        assert settings.redis_prefix == "prod:"
        assert settings.scheduler_enabled is True

    @pytest.mark.parametrize("value", ["0", "181", "abc"])
    def test_hold_minutes_out_of_range(self, value):
        with pytest.raises(SettingsError, match="HOLD_MINUTES"):
            BookingSettings.from_env({"HOLD_MINUTES": value})

    @pytest.mark.parametrize("value", ["0", "15"])
    def test_review_hold_days_out_of_range(self, value):
        with pytest.raises(SettingsError, match="REVIEW_HOLD_DAYS"):
            BookingSettings.from_env({"REVIEW_HOLD_DAYS": value})

    def test_unknown_timezone(self):
        with pytest.raises(SettingsError, match="INVENTORY_TZ"):
            BookingSettings.from_env({"INVENTORY_TZ": "Mars/Olympus"})

    def test_lock_ttl_must_be_below_interval(self):
        with pytest.raises(SettingsError):
            BookingSettings(expire_lock_ttl_sec=60, expire_interval_sec=60)


class TestOverrides:
    def test_with_overrides_returns_new_instance(self):
        base = BookingSettings()
        changed = base.with_overrides(auto_decline_high=True)
        assert changed.auto_decline_high is True
        assert base.auto_decline_high is False

"""
Tests for environment-driven settings.
"""
from secureheart_alerts.core.config import Settings


def test_defaults(monkeypatch):
    for name in ("INVITATION_TTL_HOURS", "PUSH_MAX_RETRIES", "SCHEDULER_ENABLED", "NOTIFICATION_RETENTION_DAYS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.invitation_ttl_hours == 24
    assert settings.notification_retention_days == 7
    assert settings.invitation_sweep_interval_hours == 6
    assert settings.push_max_retries == 0
    assert settings.push_timeout_seconds == 5.0
    assert settings.scheduler_enabled is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PUSH_MAX_RETRIES", "2")
    monkeypatch.setenv("PUSH_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("FCM_PROJECT_ID", "secureheart-prod")

    settings = Settings(_env_file=None)

    assert settings.push_max_retries == 2
    assert settings.push_timeout_seconds == 2.5
    assert settings.scheduler_enabled is False
    assert settings.fcm_project_id == "secureheart-prod"

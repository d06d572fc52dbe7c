import pytest

from funnel_crm.settings import Settings


def test_prod_requires_non_default_secrets(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("AUTH_SECRET_KEY", "dev-auth-secret")
    monkeypatch.setenv("CRON_SECRET", "cron-secret-prod")

    with pytest.raises(ValueError):
        Settings()


def test_prod_requires_cron_secret(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("AUTH_SECRET_KEY", "auth-secret-prod")
    monkeypatch.delenv("CRON_SECRET", raising=False)

    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_prod_settings_accept_configured_secrets(monkeypatch):
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("AUTH_SECRET_KEY", "auth-secret-prod")
    monkeypatch.setenv("CRON_SECRET", "cron-secret-prod")
    monkeypatch.setenv("TESTING", "false")

    prod_settings = Settings(_env_file=None)

    assert prod_settings.app_env == "prod"
    assert prod_settings.commission_hold_days == 30


def test_rejects_unknown_default_lead_range(monkeypatch):
    monkeypatch.setenv("DEFAULT_LEAD_DATE_RANGE", "2w")

    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_rejects_negative_hold_days(monkeypatch):
    monkeypatch.setenv("COMMISSION_HOLD_DAYS", "-1")

    with pytest.raises(ValueError):
        Settings(_env_file=None)

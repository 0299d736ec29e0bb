"""
Unit test configuration.

Settings are built only from what a test passes or sets with
monkeypatch.setenv(): the project's .env file is never read and the OTP,
SMS and runtime variables of the developer's shell are cleared.
"""

import pytest

_RUNTIME_ENV = (
    "ENV",
    "REDIS_URI",
    "SMS_PROVIDER",
    "OTP_TTL_SECONDS",
    "OTP_MAX_ATTEMPTS",
    "OTP_RESEND_COOLDOWN_SECONDS",
    "OTP_MAX_SENDS_PER_HOUR",
    "OTP_LOCKOUT_SECONDS",
    "MEDIA_MAX_BYTES",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
    for name in _RUNTIME_ENV:
        monkeypatch.delenv(name, raising=False)

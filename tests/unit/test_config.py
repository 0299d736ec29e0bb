"""Unit tests for AppSettings and sub-configs."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AppSettings,
    DatabaseSettings,
    JWTSettings,
    OTPSettings,
    RedisSettings,
    SMSSettings,
    StorageSettings,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def with_mongo(monkeypatch):
    """Set the required MONGODB_URI so AppSettings can be instantiated."""
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
    return monkeypatch


# ---------------------------------------------------------------------------
# DatabaseSettings / RedisSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_loads_mongodb_uri(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        assert DatabaseSettings().mongodb_uri == "mongodb://localhost:27017/"

    def test_default_db_name(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        monkeypatch.delenv("DB_NAME", raising=False)
        assert DatabaseSettings().db_name == "ride-booking"

    def test_missing_mongodb_uri_raises(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        with pytest.raises(PydanticValidationError):
            DatabaseSettings()


class TestRedisSettings:
    def test_redis_uri_optional(self, monkeypatch):
        monkeypatch.delenv("REDIS_URI", raising=False)
        assert RedisSettings().redis_uri is None

    def test_redis_uri_loaded(self, monkeypatch):
        monkeypatch.setenv("REDIS_URI", "redis://localhost:6379")
        assert RedisSettings().redis_uri == "redis://localhost:6379"


# ---------------------------------------------------------------------------
# JWTSettings
# ---------------------------------------------------------------------------


class TestJWTSettings:
    def test_defaults(self, monkeypatch):
        for var in (
            "JWT_ISSUER",
            "JWT_AUDIENCE",
            "ACCESS_TOKEN_TTL_SECONDS",
            "REFRESH_TOKEN_TTL_SECONDS",
        ):
            monkeypatch.delenv(var, raising=False)
        s = JWTSettings()
        assert s.jwt_algorithm == "HS256"
        assert s.access_token_ttl_seconds == 86400
        assert s.refresh_token_ttl_seconds == 604800

    def test_secrets_from_env(self, monkeypatch):
        monkeypatch.setenv("JWT_ACCESS_SECRET", "access-one")
        monkeypatch.setenv("JWT_REFRESH_SECRET", "refresh-two")
        s = JWTSettings()
        assert s.jwt_access_secret == "access-one"
        assert s.jwt_refresh_secret == "refresh-two"

    def test_identical_secrets_rejected(self, monkeypatch):
        monkeypatch.setenv("JWT_ACCESS_SECRET", "same")
        monkeypatch.setenv("JWT_REFRESH_SECRET", "same")
        with pytest.raises(PydanticValidationError):
            JWTSettings()


# ---------------------------------------------------------------------------
# OTP / SMS / storage
# ---------------------------------------------------------------------------


def test_otp_defaults(monkeypatch):
    for var in (
        "OTP_TTL_SECONDS",
        "OTP_MAX_ATTEMPTS",
        "OTP_RESEND_COOLDOWN_SECONDS",
        "OTP_MAX_SENDS_PER_HOUR",
        "OTP_LOCKOUT_SECONDS",
    ):
        monkeypatch.delenv(var, raising=False)
    s = OTPSettings()
    assert (s.otp_ttl_seconds, s.otp_max_attempts) == (600, 3)
    assert s.otp_resend_cooldown_seconds == 60
    assert s.otp_max_sends_per_hour == 5
    assert s.otp_lockout_seconds == 900


def test_sms_provider_from_env(monkeypatch):
    monkeypatch.setenv("SMS_PROVIDER", "twilio")
    assert SMSSettings().sms_provider == "twilio"


@pytest.mark.parametrize(
    "bucket, expected",
    [("media-bucket", True), ("", False)],
    ids=["bucket_set", "bucket_missing"],
)
def test_storage_is_configured(monkeypatch, bucket, expected):
    monkeypatch.setenv("AWS_S3_BUCKET_NAME", bucket)
    assert StorageSettings().is_configured is expected


# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "env, expected",
    [("production", True), ("development", False), ("staging", False)],
    ids=["production", "development", "staging"],
)
def test_is_production(with_mongo, env, expected):
    with_mongo.setenv("ENV", env)
    assert AppSettings().is_production is expected


class TestAppSettings:
    def test_sub_configs_populated(self, with_mongo):
        s = AppSettings()
        for attr in (
            "db",
            "redis",
            "jwt",
            "otp",
            "sms",
            "storage",
            "logging",
            "sentry",
        ):
            assert getattr(s, attr) is not None, f"sub-config '{attr}' is None"

    def test_explicit_sub_config_kept(self, with_mongo):
        otp = OTPSettings(otp_max_attempts=5)
        assert AppSettings(otp=otp).otp.otp_max_attempts == 5

    def test_cors_origins_default(self, with_mongo):
        assert AppSettings().cors_origins == ["*"]

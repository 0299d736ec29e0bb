"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

ENV is the only switch between production and non-production behaviour.
Outside production a failed SMS delivery is tolerated and the OTP is echoed
back in the response body so local clients can complete the flow.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "ride-booking"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional - without Redis the OTP rate limiter counts documents in MongoDB
    redis_uri: Optional[str] = None
    redis_key_prefix: str = "ride"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "ride-booking"
    jwt_audience: str = "ride-booking.api"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 86400
    refresh_token_ttl_seconds: int = 604800

    # Access and refresh tokens must never share a key
    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""

    @model_validator(mode="after")
    def _secrets_differ(self) -> "JWTSettings":
        if self.jwt_access_secret and self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        return self


class OTPSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_ttl_seconds: int = 600
    otp_max_attempts: int = 3
    otp_resend_cooldown_seconds: int = 60
    otp_max_sends_per_hour: int = 5
    otp_lockout_seconds: int = 900


class SMSSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sms_provider: str = "console"  # console | fast2sms | twilio
    sms_brand_name: str = "PremiumForce"
    sms_send_whatsapp: bool = False
    sms_timeout_seconds: float = 10.0

    fast2sms_api_key: str = ""
    fast2sms_entity_id: str = ""
    fast2sms_template_id: str = ""
    fast2sms_sender_id: str = "TXTLCL"

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_whatsapp_number: str = ""


class StorageSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "ap-southeast-2"
    aws_s3_bucket_name: str = ""
    # Public URL prefix for stored objects; defaults to the bucket's S3 URL
    media_base_url: str = ""
    media_key_prefix: str = "media"
    media_max_bytes: int = 5 * 1024 * 1024

    @property
    def is_configured(self) -> bool:
        return bool(self.aws_s3_bucket_name)


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "ride-booking"

    # CORS - all origins, credentials allowed
    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    otp: Optional[OTPSettings] = None
    sms: Optional[SMSSettings] = None
    storage: Optional[StorageSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.otp is None:
            self.otp = OTPSettings()
        if self.sms is None:
            self.sms = SMSSettings()
        if self.storage is None:
            self.storage = StorageSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"

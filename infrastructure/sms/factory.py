"""Pick the SmsNotifier named by SMS_PROVIDER."""

from config import AppSettings
from infrastructure.http_client import HttpClient
from infrastructure.sms.console import ConsoleNotifier
from infrastructure.sms.fast2sms import Fast2SmsNotifier
from infrastructure.sms.protocol import SmsNotifier
from infrastructure.sms.twilio import TwilioNotifier
from shared.logging import get_logger

log = get_logger(__name__)


def create_notifier(settings: AppSettings, http_client: HttpClient) -> SmsNotifier:
    sms = settings.sms
    ttl_minutes = max(settings.otp.otp_ttl_seconds // 60, 1)
    provider = sms.sms_provider.lower()

    if provider == "fast2sms":
        return Fast2SmsNotifier(sms, http_client, ttl_minutes)
    if provider == "twilio":
        return TwilioNotifier(sms, http_client, ttl_minutes)
    if provider != "console":
        raise ValueError(f"Unknown SMS_PROVIDER: {sms.sms_provider!r}")

    if settings.is_production:
        log.warning("sms_console_provider_in_production")
    return ConsoleNotifier(sms.sms_brand_name, ttl_minutes)

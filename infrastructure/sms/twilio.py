"""Twilio implementation of SmsNotifier.

Talks to the Messages REST endpoint directly over httpx with basic auth.
SMS is the delivery that counts; the optional WhatsApp copy is best-effort
and its failure is only logged.
"""

from typing import Optional

import httpx

from config import SMSSettings
from infrastructure.http_client import HttpClient
from infrastructure.sms.protocol import NotifierResult
from infrastructure.sms.templates import otp_message
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)

_TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioNotifier:
    def __init__(
        self, settings: SMSSettings, http_client: HttpClient, ttl_minutes: int = 10
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._ttl_minutes = ttl_minutes

    async def _create_message(self, to: str, sender: str, body: str) -> NotifierResult:
        url = _TWILIO_API_URL.format(sid=self._settings.twilio_account_sid)
        try:
            response = await self._http.post(
                url,
                data={"To": to, "From": sender, "Body": body},
                auth=(
                    self._settings.twilio_account_sid,
                    self._settings.twilio_auth_token,
                ),
            )
        except httpx.HTTPError as e:
            return NotifierResult(success=False, error=f"{type(e).__name__}: {e}")

        if response.status_code not in (200, 201):
            return NotifierResult(
                success=False,
                error=f"HTTP {response.status_code}: {response.text[:200]}",
            )
        return NotifierResult(success=True, message_id=response.json().get("sid"))

    async def send(
        self, phone_number: str, country_code: str, code: str, purpose: str
    ) -> NotifierResult:
        if not (self._settings.twilio_account_sid and self._settings.twilio_auth_token):
            log.error("sms_send_failed", provider="twilio", reason="credentials_not_configured")
            return NotifierResult(success=False, error="twilio credentials not configured")

        to = f"{country_code}{phone_number}"
        body = otp_message(self._settings.sms_brand_name, purpose, self._ttl_minutes, var=code)

        result = await self._create_message(to, self._settings.twilio_phone_number, body)
        if not result.success:
            log.error(
                "sms_send_failed",
                provider="twilio",
                to=mask_phone(phone_number),
                error=result.error,
            )
            return result
        log.info("sms_sent", provider="twilio", to=mask_phone(phone_number), purpose=purpose)

        if self._settings.sms_send_whatsapp:
            await self._send_whatsapp(to, phone_number, body)
        return result

    async def _send_whatsapp(self, to: str, phone_number: str, body: str) -> Optional[str]:
        if not self._settings.twilio_whatsapp_number:
            return None
        result = await self._create_message(
            f"whatsapp:{to}",
            f"whatsapp:{self._settings.twilio_whatsapp_number}",
            body,
        )
        if not result.success:
            log.warning(
                "whatsapp_send_failed",
                provider="twilio",
                to=mask_phone(phone_number),
                error=result.error,
            )
            return None
        return result.message_id

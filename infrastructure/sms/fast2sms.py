"""Fast2SMS implementation of SmsNotifier (DLT manual route).

The message text must match the DLT-approved template character for
character; the code travels separately in variables_dict.
"""

import httpx

from config import SMSSettings
from infrastructure.http_client import HttpClient
from infrastructure.sms.protocol import NotifierResult
from infrastructure.sms.templates import otp_message
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)

_FAST2SMS_API_URL = "https://www.fast2sms.com/dev/custom"


class Fast2SmsNotifier:
    def __init__(
        self, settings: SMSSettings, http_client: HttpClient, ttl_minutes: int = 10
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._ttl_minutes = ttl_minutes

    def _payload(self, phone_number: str, country_code: str, code: str, purpose: str) -> dict:
        return {
            "route": "dlt_manual",
            "requests": [
                {
                    "sender_id": self._settings.fast2sms_sender_id,
                    "entity_id": self._settings.fast2sms_entity_id,
                    "template_id": self._settings.fast2sms_template_id,
                    "message": otp_message(
                        self._settings.sms_brand_name, purpose, self._ttl_minutes
                    ),
                    "flash": 0,
                    "numbers": f"{country_code.lstrip('+')}{phone_number}",
                    "variables_dict": {"var": code},
                }
            ],
        }

    async def send(
        self, phone_number: str, country_code: str, code: str, purpose: str
    ) -> NotifierResult:
        if not self._settings.fast2sms_api_key:
            log.error("sms_send_failed", provider="fast2sms", reason="api_key_not_configured")
            return NotifierResult(success=False, error="fast2sms api key not configured")

        headers = {
            "authorization": self._settings.fast2sms_api_key,
            "Content-Type": "application/json",
        }
        try:
            response = await self._http.post(
                _FAST2SMS_API_URL,
                json=self._payload(phone_number, country_code, code, purpose),
                headers=headers,
            )
        except httpx.HTTPError as e:
            log.error(
                "sms_send_error",
                provider="fast2sms",
                to=mask_phone(phone_number),
                error=str(e),
                error_type=type(e).__name__,
            )
            return NotifierResult(success=False, error=str(e))

        if response.status_code != 200:
            log.error(
                "sms_send_failed",
                provider="fast2sms",
                to=mask_phone(phone_number),
                status_code=response.status_code,
                response=response.text[:200],
            )
            return NotifierResult(success=False, error=f"HTTP {response.status_code}")

        body = response.json()
        if not body.get("return", False):
            log.error(
                "sms_send_rejected",
                provider="fast2sms",
                to=mask_phone(phone_number),
                response=str(body)[:200],
            )
            return NotifierResult(success=False, error=str(body.get("message", "rejected")))

        log.info("sms_sent", provider="fast2sms", to=mask_phone(phone_number), purpose=purpose)
        return NotifierResult(success=True, message_id=body.get("request_id"))

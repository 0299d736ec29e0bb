"""Development notifier: writes the code to the log instead of sending it."""

from infrastructure.sms.protocol import NotifierResult
from infrastructure.sms.templates import otp_message
from shared.logging import get_logger, mask_phone

log = get_logger(__name__)


class ConsoleNotifier:
    def __init__(self, brand: str = "PremiumForce", ttl_minutes: int = 10) -> None:
        self._brand = brand
        self._ttl_minutes = ttl_minutes

    async def send(
        self, phone_number: str, country_code: str, code: str, purpose: str
    ) -> NotifierResult:
        log.info(
            "otp_console_delivery",
            to=f"{country_code}{mask_phone(phone_number)}",
            purpose=purpose,
            dev_otp=code,
            message=otp_message(self._brand, purpose, self._ttl_minutes, var=code),
        )
        return NotifierResult(success=True, message_id="console")

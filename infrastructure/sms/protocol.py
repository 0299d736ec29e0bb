"""SmsNotifier protocol. Services depend on this, not on a concrete provider."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class NotifierResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class SmsNotifier(Protocol):
    async def send(
        self, phone_number: str, country_code: str, code: str, purpose: str
    ) -> NotifierResult: ...

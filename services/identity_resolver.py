"""
Identity Resolver: maps a verified phone identity to an account.

Registration is find-or-create: an existing account turns the registration
into a login and is reported with is_new_account=False.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from errors import ConflictError, NotFoundError
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc
from schemas.models.otp import OtpPurpose
from services.variants import AccountVariant
from shared.datetime_utils import utcnow
from shared.generators import generate_display_name
from shared.logging import get_logger

log = get_logger(__name__)


class IdentityResolver:
    def __init__(
        self,
        accounts: AccountRepository,
        variant: AccountVariant,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._accounts = accounts
        self._variant = variant
        self._now = clock

    def not_found(self) -> NotFoundError:
        return NotFoundError(
            f"{self._variant.label} not found. Please register first.",
            code="account_not_found",
        )

    async def find(self, country_code: str, phone_number: str) -> Optional[AccountDoc]:
        return await self._accounts.find_by_identity(country_code, phone_number)

    async def require_existing(self, country_code: str, phone_number: str) -> AccountDoc:
        account = await self.find(country_code, phone_number)
        if account is None:
            raise self.not_found()
        return account

    async def resolve(
        self, country_code: str, phone_number: str, purpose: OtpPurpose
    ) -> tuple[AccountDoc, bool]:
        """Return (account, is_new_account) and stamp last_login_at."""
        account = await self.find(country_code, phone_number)
        is_new = False

        if account is None:
            if purpose is not OtpPurpose.REGISTRATION:
                raise self.not_found()
            account, is_new = await self._register(country_code, phone_number)

        touched = await self._accounts.touch_login(account.id, self._now())
        if touched is None:
            # Deleted between the read and the stamp
            raise self.not_found()
        return touched, is_new

    async def _register(
        self, country_code: str, phone_number: str
    ) -> tuple[AccountDoc, bool]:
        now = self._now()
        placeholder = AccountDoc(
            country_code=country_code,
            phone_number=phone_number,
            display_name=generate_display_name(
                self._variant.display_name_prefix, phone_number
            ),
            role=self._variant.default_role,
            is_active=True,
            is_verified=True,
            created_at=now,
            updated_at=now,
        )
        try:
            created = await self._accounts.create(placeholder)
        except ConflictError:
            # Lost a concurrent registration; the winner's account stands
            existing = await self.find(country_code, phone_number)
            if existing is None:
                raise
            log.info("registration_race_lost", variant=self._variant.name)
            return existing, False

        log.info(
            "account_registered",
            variant=self._variant.name,
            account_id=str(created.id),
        )
        return created, True

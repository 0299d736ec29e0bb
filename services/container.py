"""
Per-variant service wiring.

build_variant_services() is called once from the app lifespan (and from the
integration tests with an in-memory database). Every collaborator is passed
in; nothing here opens a connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from config import AppSettings
from infrastructure.sms.protocol import SmsNotifier
from infrastructure.storage.protocol import MediaStorage
from repositories.account_repository import AccountRepository
from repositories.blacklist_repository import BlacklistRepository
from repositories.indexes import BLACKLIST_COLLECTION, LOCKOUT_COLLECTION
from repositories.otp_repository import LockoutRepository, OtpRepository
from services.auth_service import AuthService
from services.identity_resolver import IdentityResolver
from services.media_service import MediaService
from services.otp_store import OtpStore
from services.rate_limiter import OtpRateLimiter
from services.token_service import TokenService
from services.variants import VARIANTS, AccountVariant
from shared.datetime_utils import utcnow


@dataclass(frozen=True)
class VariantServices:
    variant: AccountVariant
    auth: AuthService
    media: MediaService


def build_variant_services(
    db: Any,
    settings: AppSettings,
    *,
    notifier: SmsNotifier,
    redis_client: Optional[Any] = None,
    storage: Optional[MediaStorage] = None,
    variants: Iterable[AccountVariant] = VARIANTS.values(),
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, VariantServices]:
    blacklist = BlacklistRepository(db[BLACKLIST_COLLECTION])
    lockouts = LockoutRepository(db[LOCKOUT_COLLECTION])

    services: dict[str, VariantServices] = {}
    for variant in variants:
        accounts = AccountRepository(db[variant.account_collection])
        otps = OtpRepository(db[variant.otp_collection])

        tokens = TokenService(
            settings.jwt, accounts, variant, blacklist=blacklist, clock=clock
        )
        auth = AuthService(
            variant,
            settings,
            otp_store=OtpStore(otps, settings.otp, clock=clock),
            rate_limiter=OtpRateLimiter(
                otps,
                lockouts,
                settings.otp,
                variant,
                redis_client=redis_client,
                key_prefix=settings.redis.redis_key_prefix,
                clock=clock,
            ),
            resolver=IdentityResolver(accounts, variant, clock=clock),
            tokens=tokens,
            notifier=notifier,
            accounts=accounts,
            clock=clock,
        )
        media = MediaService(storage, accounts, variant, settings.storage, clock=clock)
        services[variant.name] = VariantServices(variant=variant, auth=auth, media=media)
    return services

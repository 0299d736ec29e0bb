"""
Account variants.

The user, driver and admin OTP flows run the same state machine; an
AccountVariant carries everything that differs between them: collections,
allowed purposes, role default, placeholder-name prefix and whether logout
blacklists the presented access token.
"""

from __future__ import annotations

from dataclasses import dataclass

from schemas.models.otp import OtpPurpose


@dataclass(frozen=True)
class AccountVariant:
    name: str
    label: str  # human-readable, used in error messages ("Driver not found")
    account_collection: str
    otp_collection: str
    route_prefix: str
    account_prefix: str
    default_role: str
    display_name_prefix: str
    purposes: frozenset[OtpPurpose]
    blacklist_on_logout: bool = False

    def allows(self, purpose: OtpPurpose) -> bool:
        return purpose in self.purposes


USER = AccountVariant(
    name="user",
    label="User",
    account_collection="users",
    otp_collection="otps",
    route_prefix="/api/v1/otp",
    account_prefix="/api/v1/users",
    default_role="customer",
    display_name_prefix="user",
    purposes=frozenset(
        {
            OtpPurpose.REGISTRATION,
            OtpPurpose.LOGIN,
            OtpPurpose.PASSWORD_RESET,
            OtpPurpose.PHONE_VERIFICATION,
            OtpPurpose.UPDATE_PHONE,
        }
    ),
)

DRIVER = AccountVariant(
    name="driver",
    label="Driver",
    account_collection="drivers",
    otp_collection="driver-otps",
    route_prefix="/api/v1/drivers/otp",
    account_prefix="/api/v1/drivers",
    default_role="driver",
    display_name_prefix="Driver",
    purposes=frozenset(
        {OtpPurpose.LOGIN, OtpPurpose.REGISTRATION, OtpPurpose.UPDATE_PHONE}
    ),
)

ADMIN = AccountVariant(
    name="admin",
    label="Admin",
    account_collection="admins",
    otp_collection="admin-otps",
    route_prefix="/api/v1/admins/otp",
    account_prefix="/api/v1/admins",
    default_role="admin",
    display_name_prefix="admin",
    purposes=frozenset({OtpPurpose.LOGIN, OtpPurpose.UPDATE_PHONE}),
    blacklist_on_logout=True,
)

VARIANTS: dict[str, AccountVariant] = {v.name: v for v in (USER, DRIVER, ADMIN)}

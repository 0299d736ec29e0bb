"""Unit tests for IdentityResolver and AccountRepository."""

import asyncio

import pytest

from errors import ConflictError, NotFoundError
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc
from schemas.models.otp import OtpPurpose
from services.identity_resolver import IdentityResolver
from services.variants import DRIVER, USER

CC, PHONE = "+91", "9876543210"


@pytest.fixture
def accounts(db):
    return AccountRepository(db[DRIVER.account_collection])


@pytest.fixture
def resolver(accounts, clock):
    return IdentityResolver(accounts, DRIVER, clock=clock)


async def _seed(accounts, **overrides) -> AccountDoc:
    fields = dict(
        country_code=CC,
        phone_number=PHONE,
        display_name="Driver_3210_0001",
        role="driver",
        is_verified=True,
    )
    fields.update(overrides)
    return await accounts.create(AccountDoc(**fields))


class TestResolve:
    async def test_registration_creates_placeholder(self, resolver, accounts, clock):
        account, is_new = await resolver.resolve(CC, PHONE, OtpPurpose.REGISTRATION)

        assert is_new is True
        assert account.role == "driver"
        assert account.is_verified is True
        assert account.is_active is True
        assert account.display_name.startswith("Driver_3210_")
        assert account.last_login_at is not None

    async def test_registration_on_existing_degrades_to_login(self, resolver, accounts):
        existing = await _seed(accounts)
        account, is_new = await resolver.resolve(CC, PHONE, OtpPurpose.REGISTRATION)
        assert is_new is False
        assert account.id == existing.id

    async def test_login_requires_account(self, resolver):
        with pytest.raises(NotFoundError) as exc:
            await resolver.resolve(CC, PHONE, OtpPurpose.LOGIN)
        assert exc.value.message == "Driver not found. Please register first."

    async def test_login_never_creates(self, resolver, accounts):
        with pytest.raises(NotFoundError):
            await resolver.resolve(CC, PHONE, OtpPurpose.LOGIN)
        assert await accounts.find_by_identity(CC, PHONE) is None

    async def test_login_touches_last_login(self, resolver, accounts, clock):
        await _seed(accounts)
        account, is_new = await resolver.resolve(CC, PHONE, OtpPurpose.LOGIN)
        assert is_new is False
        assert account.last_login_at.replace(tzinfo=None) == clock().replace(tzinfo=None)

    async def test_concurrent_registration_creates_one_account(self, resolver, accounts):
        results = await asyncio.gather(
            resolver.resolve(CC, PHONE, OtpPurpose.REGISTRATION),
            resolver.resolve(CC, PHONE, OtpPurpose.REGISTRATION),
        )
        assert {acc.id for acc, _ in results} == {results[0][0].id}
        assert accounts.collection.sync.count_documents({}) == 1

    async def test_lost_registration_race_reports_existing(self, resolver, accounts, mocker):
        winner = await _seed(accounts)
        # The read before create misses; the insert then hits the unique index
        mocker.patch.object(
            accounts, "find_by_identity", side_effect=[None, winner]
        )
        account, is_new = await resolver.resolve(CC, PHONE, OtpPurpose.REGISTRATION)
        assert is_new is False
        assert account.id == winner.id


async def test_require_existing(resolver, accounts):
    with pytest.raises(NotFoundError):
        await resolver.require_existing(CC, PHONE)
    await _seed(accounts)
    assert (await resolver.require_existing(CC, PHONE)).phone_number == PHONE


class TestAccountRepository:
    async def test_duplicate_identity_conflicts(self, accounts):
        await _seed(accounts)
        with pytest.raises(ConflictError):
            await _seed(accounts, display_name="other")

    async def test_same_phone_allowed_across_variants(self, db, accounts):
        await _seed(accounts)
        users = AccountRepository(db[USER.account_collection])
        await _seed(users, role="customer")

    async def test_refresh_token_excluded_from_reads(self, accounts):
        account = await _seed(accounts)
        assert await accounts.set_refresh_token(account.id, "rt-1")
        loaded = await accounts.find_by_id(account.id)
        assert loaded.refresh_token is None
        raw = accounts.collection.sync.find_one({"_id": account.id})
        assert raw["refresh_token"] == "rt-1"

    async def test_rotate_is_compare_and_set(self, accounts):
        account = await _seed(accounts)
        await accounts.set_refresh_token(account.id, "rt-1")
        assert await accounts.rotate_refresh_token(account.id, "rt-1", "rt-2") is True
        assert await accounts.rotate_refresh_token(account.id, "rt-1", "rt-3") is False

    async def test_clear_refresh_token(self, accounts):
        account = await _seed(accounts)
        await accounts.set_refresh_token(account.id, "rt-1")
        await accounts.clear_refresh_token(account.id)
        assert await accounts.rotate_refresh_token(account.id, "rt-1", "rt-2") is False

    async def test_find_by_invalid_id(self, accounts):
        assert await accounts.find_by_id("not-an-id") is None

"""Unit tests for TokenService."""

from datetime import timedelta

import jwt
import pytest

from config import JWTSettings
from errors import (
    AccountDeactivatedError,
    AccountNotFoundError,
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    NoTokenError,
    RevokedTokenError,
)
from repositories.account_repository import AccountRepository
from repositories.blacklist_repository import BlacklistRepository
from repositories.indexes import BLACKLIST_COLLECTION
from schemas.models.account import AccountDoc
from services.token_service import TokenService
from services.variants import ADMIN, DRIVER, USER
from shared.crypto import hash_token
from tests.fakes import ACCESS_SECRET, REFRESH_SECRET, AsyncMongoDatabase, FakeClock


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_access_secret=ACCESS_SECRET, jwt_refresh_secret=REFRESH_SECRET)


def _service(db, jwt_settings, variant, clock):
    return TokenService(
        jwt_settings,
        AccountRepository(db[variant.account_collection]),
        variant,
        blacklist=BlacklistRepository(db[BLACKLIST_COLLECTION]),
        clock=clock,
    )


async def _account(db, variant, **overrides) -> AccountDoc:
    fields = dict(
        country_code="+91",
        phone_number="9876543210",
        display_name="x",
        role=variant.default_role,
    )
    fields.update(overrides)
    return await AccountRepository(db[variant.account_collection]).create(AccountDoc(**fields))


def test_missing_secrets_rejected():
    with pytest.raises(RuntimeError):
        TokenService(JWTSettings(), AccountRepository(AsyncMongoDatabase()["users"]), USER)


class TestIssueAndVerify:
    async def test_round_trip(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, DRIVER, clock)
        account = await _account(db, DRIVER)

        pair = tokens.issue(account)
        loaded, claims = await tokens.verify_access(pair.access_token)

        assert loaded.id == account.id
        assert claims["accountId"] == str(account.id)
        assert claims["role"] == "driver"
        assert claims["phone"] == "+919876543210"
        assert claims["type"] == "access"
        assert pair.expires_in == 86400

    async def test_pairs_minted_same_second_differ(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, USER, clock)
        account = await _account(db, USER)
        first, second = tokens.issue(account), tokens.issue(account)
        assert first.refresh_token != second.refresh_token
        assert first.access_token != second.access_token

    async def test_refresh_claims(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, USER, clock)
        account = await _account(db, USER)
        claims = tokens.decode_refresh(tokens.issue(account).refresh_token)
        assert claims["type"] == "refresh"
        assert claims["accountId"] == str(account.id)
        assert "role" not in claims


class TestFailureTaxonomy:
    async def test_no_token(self, db, jwt_settings, clock):
        with pytest.raises(NoTokenError):
            await _service(db, jwt_settings, USER, clock).decode_access(None)

    async def test_malformed(self, db, jwt_settings, clock):
        with pytest.raises(MalformedTokenError):
            await _service(db, jwt_settings, USER, clock).decode_access("not.a.jwt")

    async def test_expired(self, db, jwt_settings):
        past = FakeClock()
        past.advance(-2 * 86400)
        tokens = _service(db, jwt_settings, USER, past)
        account = await _account(db, USER)
        with pytest.raises(ExpiredTokenError):
            await tokens.decode_access(tokens.issue(account).access_token)

    async def test_wrong_secret(self, db, jwt_settings, clock):
        forged = jwt.encode(
            {"accountId": "x", "type": "access", "variant": "user"},
            "someone-elses-secret-that-is-long-enough",
            algorithm="HS256",
        )
        with pytest.raises(InvalidSignatureError):
            await _service(db, jwt_settings, USER, clock).decode_access(forged)

    async def test_refresh_token_is_not_an_access_token(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, USER, clock)
        account = await _account(db, USER)
        with pytest.raises(InvalidSignatureError):
            await tokens.decode_access(tokens.issue(account).refresh_token)

    async def test_other_variant_rejected(self, db, jwt_settings, clock):
        drivers = _service(db, jwt_settings, DRIVER, clock)
        users = _service(db, jwt_settings, USER, clock)
        account = await _account(db, DRIVER)
        with pytest.raises(InvalidSignatureError):
            await users.decode_access(drivers.issue(account).access_token)

    async def test_account_not_found(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, USER, clock)
        account = await _account(db, USER)
        pair = tokens.issue(account)
        await db[USER.account_collection].delete_one({"_id": account.id})
        with pytest.raises(AccountNotFoundError):
            await tokens.verify_access(pair.access_token)

    async def test_account_deactivated(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, USER, clock)
        account = await _account(db, USER, is_active=False)
        with pytest.raises(AccountDeactivatedError) as exc:
            await tokens.verify_access(tokens.issue(account).access_token)
        assert exc.value.status_code == 403


class TestRevoke:
    async def test_admin_logout_blacklists_access_token(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, ADMIN, clock)
        account = await _account(db, ADMIN)
        pair = tokens.issue(account)
        await tokens.persist(account.id, pair)
        claims = await tokens.decode_access(pair.access_token)

        await tokens.revoke(account.id, pair.access_token, claims)

        with pytest.raises(RevokedTokenError):
            await tokens.decode_access(pair.access_token)
        entry = db[BLACKLIST_COLLECTION].sync.find_one(
            {"token_hash": hash_token(pair.access_token)}
        )
        assert entry["variant"] == "admin"
        # the entry lives exactly as long as the token would have
        assert entry["expires_at"] - clock().replace(tzinfo=None) == timedelta(seconds=86400)

    async def test_revoke_twice_is_idempotent(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, ADMIN, clock)
        account = await _account(db, ADMIN)
        pair = tokens.issue(account)
        claims = await tokens.decode_access(pair.access_token)
        await tokens.revoke(account.id, pair.access_token, claims)
        await tokens.revoke(account.id, pair.access_token, claims)
        assert db[BLACKLIST_COLLECTION].sync.count_documents({}) == 1

    async def test_user_logout_does_not_blacklist(self, db, jwt_settings, clock):
        tokens = _service(db, jwt_settings, USER, clock)
        account = await _account(db, USER)
        pair = tokens.issue(account)
        await tokens.persist(account.id, pair)
        claims = await tokens.decode_access(pair.access_token)

        await tokens.revoke(account.id, pair.access_token, claims)

        assert db[BLACKLIST_COLLECTION].sync.count_documents({}) == 0
        # the session is over: the stored refresh token no longer rotates
        assert not await tokens.rotate(account.id, pair.refresh_token, tokens.issue(account))

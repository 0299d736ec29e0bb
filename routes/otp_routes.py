"""
OTP authentication routes, one router per account variant.

POST {prefix}/send           - issue and deliver an OTP
POST {prefix}/resend         - re-deliver a fresh code for the active OTP
POST {prefix}/verify         - consume an OTP; login/registration start a session
POST {prefix}/refresh-token  - exchange a refresh token for a new pair
POST {prefix}/logout         - end the session (bearer)
POST {prefix}/change-phone   - move the account to a verified new number (bearer)
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends

from dependencies import AuthContext, auth_service_for, current_account_for
from schemas.dto.requests.otp import (
    ChangePhoneRequest,
    RefreshTokenRequest,
    SendOtpRequest,
    VerifyOtpRequest,
)
from schemas.dto.responses.common import MessageResponse
from schemas.dto.responses.otp import (
    AccountProfile,
    AccountResponse,
    OtpSentResponse,
    SessionResponse,
    VerificationResponse,
)
from services.auth_service import AuthService, OtpDispatch, SessionResult
from services.variants import AccountVariant


def _otp_sent(dispatch: OtpDispatch) -> OtpSentResponse:
    return OtpSentResponse(
        message=dispatch.message, expires_in=dispatch.expires_in, otp=dispatch.otp
    )


def _session(result: SessionResult, message: str) -> SessionResponse:
    return SessionResponse(
        message=message,
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type=result.tokens.token_type,
        expires_in=result.tokens.expires_in,
        account=AccountProfile.from_account(result.account),
        is_new_account=result.is_new_account,
    )


def create_otp_router(variant: AccountVariant) -> APIRouter:
    router = APIRouter(prefix=variant.route_prefix, tags=[f"{variant.name}-otp"])
    get_auth_service = auth_service_for(variant)
    get_current_account = current_account_for(variant)

    @router.post(
        "/send", response_model=OtpSentResponse, response_model_exclude_none=True
    )
    async def send_otp(
        body: SendOtpRequest, auth: AuthService = Depends(get_auth_service)
    ) -> OtpSentResponse:
        dispatch = await auth.send(body.country_code, body.phone_number, body.purpose)
        return _otp_sent(dispatch)

    @router.post(
        "/resend", response_model=OtpSentResponse, response_model_exclude_none=True
    )
    async def resend_otp(
        body: SendOtpRequest, auth: AuthService = Depends(get_auth_service)
    ) -> OtpSentResponse:
        dispatch = await auth.resend(body.country_code, body.phone_number, body.purpose)
        return _otp_sent(dispatch)

    @router.post(
        "/verify",
        response_model=Union[SessionResponse, VerificationResponse],
        response_model_exclude_none=True,
    )
    async def verify_otp(
        body: VerifyOtpRequest, auth: AuthService = Depends(get_auth_service)
    ) -> Union[SessionResponse, VerificationResponse]:
        result = await auth.verify(
            body.country_code, body.phone_number, body.purpose, body.otp
        )
        if isinstance(result, SessionResult):
            message = (
                "Registration successful"
                if result.is_new_account
                else "Login successful"
            )
            return _session(result, message)
        return VerificationResponse(
            message="OTP verified successfully",
            is_existing_account=result.is_existing_account,
            account_id=result.account_id,
        )

    @router.post(
        "/refresh-token",
        response_model=SessionResponse,
        response_model_exclude_none=True,
    )
    async def refresh_token(
        body: RefreshTokenRequest, auth: AuthService = Depends(get_auth_service)
    ) -> SessionResponse:
        result = await auth.refresh(body.refresh_token)
        return _session(result, "Token refreshed successfully")

    @router.post("/logout", response_model=MessageResponse)
    async def logout(
        ctx: AuthContext = Depends(get_current_account),
        auth: AuthService = Depends(get_auth_service),
    ) -> MessageResponse:
        await auth.logout(ctx.account, ctx.access_token, ctx.claims)
        return MessageResponse(success=True, message="Logged out successfully")

    @router.post(
        "/change-phone",
        response_model=AccountResponse,
        response_model_exclude_none=True,
    )
    async def change_phone(
        body: ChangePhoneRequest,
        ctx: AuthContext = Depends(get_current_account),
        auth: AuthService = Depends(get_auth_service),
    ) -> AccountResponse:
        account = await auth.change_phone(
            ctx.account, body.country_code, body.phone_number, body.otp
        )
        return AccountResponse(
            message="Phone number updated successfully",
            account=AccountProfile.from_account(account),
        )

    return router

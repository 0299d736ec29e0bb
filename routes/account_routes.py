"""
Authenticated account routes, one router per account variant.

GET {account_prefix}/me        - the caller's profile
PUT {account_prefix}/me/media  - replace the caller's image (multipart "file")
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile

from dependencies import (
    AuthContext,
    current_account_for,
    get_settings,
    media_service_for,
)
from config import AppSettings
from schemas.dto.responses.otp import AccountProfile, AccountResponse
from services.media_service import MediaService
from services.variants import AccountVariant


def create_account_router(variant: AccountVariant) -> APIRouter:
    router = APIRouter(prefix=variant.account_prefix, tags=[f"{variant.name}-account"])
    get_current_account = current_account_for(variant)
    get_media_service = media_service_for(variant)

    @router.get("/me", response_model=AccountResponse, response_model_exclude_none=True)
    async def get_me(ctx: AuthContext = Depends(get_current_account)) -> AccountResponse:
        return AccountResponse(account=AccountProfile.from_account(ctx.account))

    @router.put(
        "/me/media", response_model=AccountResponse, response_model_exclude_none=True
    )
    async def upload_media(
        file: UploadFile = File(...),
        ctx: AuthContext = Depends(get_current_account),
        media: MediaService = Depends(get_media_service),
        settings: AppSettings = Depends(get_settings),
    ) -> AccountResponse:
        # One byte over the cap is enough to reject the upload
        data = await file.read(settings.storage.media_max_bytes + 1)
        account = await media.replace_media(
            ctx.account, data, file.content_type, file.filename
        )
        return AccountResponse(
            message="Media updated successfully",
            account=AccountProfile.from_account(account),
        )

    return router

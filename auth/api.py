"""HTTP routes for authentication and the current user's account."""

import ipaddress

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from auth.profile_service import ProfileService
from auth.service import AccountService
from auth.types import (
    DeviceInfo,
    LoginRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    ResendVerificationRequest,
)
from api.base import success_response, error_response, ErrorCodes
from utils.user_context import get_current_user_id


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _device_info(request: Request, supplied: DeviceInfo | None) -> DeviceInfo:
    """Client-supplied device info, filled in from the request where missing."""
    supplied = supplied or DeviceInfo()
    return DeviceInfo(
        user_agent=supplied.user_agent or request.headers.get("User-Agent"),
        ip_address=supplied.ip_address or _get_client_ip(request),
    )


def create_auth_router(account_service: AccountService) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    @router.post("/register", status_code=201)
    async def register(body: RegisterRequest):
        """Create a pending account. A verification email follows asynchronously."""
        result = await account_service.register(
            email=body.email,
            password=body.password,
            full_name=body.full_name,
            phone_number=body.phone_number,
            date_of_birth=body.date_of_birth,
        )
        return success_response(result.model_dump())

    @router.get("/verify")
    async def verify_email(token: str = Query(None)):
        """Consume an email verification token."""
        if not token:
            return JSONResponse(
                status_code=400,
                content=error_response(
                    ErrorCodes.INVALID_REQUEST,
                    "Token parameter is required",
                ).model_dump(mode="json"),
            )

        profile = await account_service.verify_email(token)
        return success_response({
            "user_id": str(profile.id),
            "email": profile.email,
            "message": "Email verified successfully",
        })

    @router.post("/resend-verification")
    async def resend_verification(body: ResendVerificationRequest):
        """Issue a new verification token and email it.

        The token itself travels only by email, never in this response.
        """
        result = await account_service.resend_verification(body.email)
        return success_response({
            "email": result.email,
            "expires_at": result.expires_at,
            "message": "Verification email sent",
        })

    @router.post("/login")
    async def login(request: Request, body: LoginRequest):
        """Email/password login. Returns an access/refresh token pair."""
        pair = await account_service.login(
            email=body.email,
            password=body.password,
            device_info=_device_info(request, body.device_info),
        )
        return success_response(pair.model_dump())

    @router.post("/refresh")
    async def refresh(body: RefreshRequest):
        """Rotate a refresh token into a new token pair."""
        pair = await account_service.refresh(body.refresh_token)
        return success_response(pair.model_dump())

    @router.post("/logout")
    async def logout(request: Request):
        """Revoke the session behind the presented access token."""
        await account_service.logout(
            session_id=request.state.session_id,
            user_id=request.state.user_id,
        )
        return success_response({"message": "Logged out successfully"})

    return router


def create_users_router(profile_service: ProfileService) -> APIRouter:
    """Create router for the authenticated user's own profile."""
    router = APIRouter(tags=["users"])

    @router.get("/me")
    async def get_me():
        """Current user's profile (served from cache when warm)."""
        profile = await profile_service.get_profile(get_current_user_id())
        return success_response(profile.model_dump())

    @router.patch("/me")
    async def update_me(body: ProfileUpdate):
        """Change profile fields. Omitted fields are left as they are."""
        profile = await profile_service.update_profile(get_current_user_id(), body)
        return success_response(profile.model_dump())

    @router.delete("/me")
    async def delete_me():
        """Soft-delete the current user's account."""
        await profile_service.delete_account(get_current_user_id())
        return success_response({"message": "Account deleted"})

    return router

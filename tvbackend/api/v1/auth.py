from typing import Any

from fastapi import APIRouter, Depends, Request, status

from tvbackend.api.deps import (
    form_or_json,
    get_account_service,
    get_refresh_service,
    require_bearer_token,
)
from tvbackend.core.config import settings
from tvbackend.core.rate_limit import limiter
from tvbackend.schemas.auth import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    ForgotPasswordRequest,
    LoginData,
    LoginRequest,
    ProfileOut,
    RefreshData,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from tvbackend.services.accounts import AccountService
from tvbackend.services.refresh import RefreshService

router = APIRouter(tags=["auth"])


def _ok(message: str | None = None, data: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.auth_rate_limit)
async def register(
    request: Request,
    payload: RegisterRequest = Depends(form_or_json(RegisterRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    account = await accounts.register(payload.username, payload.password)
    profile = ProfileOut.model_validate(account)
    return _ok("User registered successfully.", profile.model_dump(mode="json"))


@router.post("/login")
@limiter.limit(settings.auth_rate_limit)
async def login(
    request: Request,
    payload: LoginRequest = Depends(form_or_json(LoginRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    result = await accounts.login(payload.username, payload.password)
    data = LoginData(
        access_token=result.access_token,
        expires_in=result.expires_in,
        expires_at=result.expires_at,
        profile=ProfileOut.model_validate(result.account),
    )
    return _ok(data=data.model_dump(mode="json"))


@router.post("/password/forgot")
@limiter.limit(settings.auth_rate_limit)
async def forgot_password(
    request: Request,
    payload: ForgotPasswordRequest = Depends(form_or_json(ForgotPasswordRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    code = await accounts.forgot_password(payload.username)
    data = None
    if not settings.is_production:
        # Dev/testing convenience when no email service is configured.
        data = {"reset_token": code}
    return _ok("Password reset code has been sent (simulated)", data)


@router.post("/password/reset")
@limiter.limit(settings.auth_rate_limit)
async def reset_password(
    request: Request,
    payload: ResetPasswordRequest = Depends(form_or_json(ResetPasswordRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.reset_password(payload.username, payload.token, payload.new_password)
    return _ok("Password has been reset successfully")


@router.post("/password/change")
@limiter.limit(settings.auth_rate_limit)
async def change_password(
    request: Request,
    token: str = Depends(require_bearer_token),
    payload: ChangePasswordRequest = Depends(form_or_json(ChangePasswordRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.change_password(token, payload.old_password, payload.new_password)
    return _ok("Password changed successfully")


@router.delete("/user/delete")
@limiter.limit(settings.auth_rate_limit)
async def delete_account(
    request: Request,
    payload: DeleteAccountRequest = Depends(form_or_json(DeleteAccountRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.delete_account(payload.username, payload.password)
    return _ok("Account deleted")


@router.post("/refresh")
@limiter.limit(settings.auth_rate_limit)
async def refresh(
    request: Request,
    token: str = Depends(require_bearer_token),
    refresher: RefreshService = Depends(get_refresh_service),
):
    result = refresher.refresh(token)
    data = RefreshData(
        access_token=result.access_token,
        expires_at=result.expires_at,
        reissued=result.reissued,
    )
    return _ok(data=data.model_dump())


@router.post("/email/verify/request")
@limiter.limit(settings.auth_rate_limit)
async def request_email_verification(
    request: Request,
    payload: ForgotPasswordRequest = Depends(form_or_json(ForgotPasswordRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    code = await accounts.request_email_verification(payload.username)
    data = None
    if not settings.is_production:
        data = {"verification_token": code}
    return _ok("Verification code has been sent (simulated)", data)


@router.post("/email/verify")
@limiter.limit(settings.auth_rate_limit)
async def verify_email(
    request: Request,
    payload: VerifyEmailRequest = Depends(form_or_json(VerifyEmailRequest)),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.verify_email(payload.username, payload.token)
    return _ok("Email verified")


@router.get("/profile")
async def profile(
    token: str = Depends(require_bearer_token),
    accounts: AccountService = Depends(get_account_service),
):
    account = await accounts.authenticate(token)
    return _ok(data=ProfileOut.model_validate(account).model_dump(mode="json"))

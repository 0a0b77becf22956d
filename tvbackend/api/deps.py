import json
from functools import lru_cache
from typing import Callable, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from sqlalchemy.ext.asyncio import AsyncSession

from tvbackend.core.config import settings
from tvbackend.core.errors import AuthError, ValidationError
from tvbackend.core.security import PasswordHasher, TokenIssuer
from tvbackend.db.session import get_db
from tvbackend.repositories.accounts import AccountStore
from tvbackend.services.accounts import AccountService
from tvbackend.services.refresh import RefreshService
from tvbackend.tasks.notifications import dispatch_account_code

ModelT = TypeVar("ModelT", bound=BaseModel)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(settings.password_schemes_list)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        settings.secret_key,
        algorithm=settings.algorithm,
        default_ttl=settings.access_token_ttl_seconds,
    )


def get_account_store(db: AsyncSession = Depends(get_db)) -> AccountStore:
    return AccountStore(db)


def get_account_service(
    store: AccountStore = Depends(get_account_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AccountService:
    return AccountService(
        store,
        hasher,
        tokens,
        dispatch_code=dispatch_account_code,
        pending_token_ttl=settings.pending_token_ttl_seconds,
        code_length=settings.reset_code_length,
    )


def get_refresh_service(tokens: TokenIssuer = Depends(get_token_issuer)) -> RefreshService:
    return RefreshService(tokens, grace_seconds=settings.refresh_grace_seconds)


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        return None
    if not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


async def require_bearer_token(request: Request) -> str:
    token = _extract_bearer_token(request)
    if token is None:
        raise AuthError("Unauthorized: Bearer token missing or malformed")
    return token


def _describe(exc: SchemaError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        if err.get("type") == "missing":
            problems.append(f"Missing required field: {field}")
        else:
            problems.append(f"{field}: {err.get('msg')}")
    return "; ".join(problems)


def form_or_json(model: type[ModelT]) -> Callable:
    """Body dependency accepting JSON or form fields, like the mobile clients send."""

    async def dependency(request: Request) -> ModelT:
        content_type = request.headers.get("content-type", "").lower()
        try:
            if content_type.startswith(_FORM_TYPES):
                form = await request.form()
                raw = {key: value for key, value in form.items() if isinstance(value, str)}
            else:
                body = await request.body()
                raw = json.loads(body) if body.strip() else {}
        except ValueError as exc:
            raise ValidationError("Request body must be JSON or form data") from exc

        if not isinstance(raw, dict):
            raise ValidationError("Request body must be an object")
        try:
            return model.model_validate(raw)
        except SchemaError as exc:
            raise ValidationError(_describe(exc)) from exc

    return dependency

"""
Client configuration metadata.

Tells the TV/mobile client which account routes exist and which fields each
form needs, so screens can be rendered without hardcoding the API.
"""
from fastapi import APIRouter

from tvbackend.core.config import settings

router = APIRouter(tags=["config"])

API_PREFIX = "/api/v1"


def _field(label: str, key: str, data_type: str = "string") -> dict[str, str]:
    return {"label": label, "key": key, "data_type": data_type}


def build_client_config() -> dict:
    return {
        "app_name": settings.app_name,
        "logo": "https://placehold.co/600x400",
        "login": [
            {
                "label": "Normal Login",
                "key": "normal",
                "data_type": "auth",
                "route": f"{API_PREFIX}/login",
                "form": [_field("Username", "username"), _field("Password", "password", "password")],
            },
        ],
        "register": {
            "label": "Register",
            "route": f"{API_PREFIX}/register",
            "form": [_field("Email", "username"), _field("Password", "password", "password")],
        },
        "forgot_password": {
            "label": "Forgot Password",
            "route": f"{API_PREFIX}/password/forgot",
            "form": [_field("Email", "username")],
        },
        "reset_password": {
            "label": "Reset Password",
            "route": f"{API_PREFIX}/password/reset",
            "form": [
                _field("Email", "username"),
                _field("Password", "new_password", "password"),
                _field("Token", "token"),
            ],
        },
        "change_password": {
            "label": "Change Password",
            "route": f"{API_PREFIX}/password/change",
            "auth": "bearer",
            "form": [
                _field("Current Password", "old_password", "password"),
                _field("New Password", "new_password", "password"),
            ],
        },
        "verify_email": {
            "label": "Verify Email",
            "request_route": f"{API_PREFIX}/email/verify/request",
            "route": f"{API_PREFIX}/email/verify",
            "form": [_field("Email", "username"), _field("Token", "token")],
        },
        "delete_account": {
            "label": "Delete Account",
            "route": f"{API_PREFIX}/user/delete",
            "method": "DELETE",
            "form": [_field("Email", "username"), _field("Password", "password", "password")],
        },
        "session": {
            "refresh_route": f"{API_PREFIX}/refresh",
            "profile_route": f"{API_PREFIX}/profile",
            "access_token_ttl": settings.access_token_ttl_seconds,
            "refresh_grace": settings.refresh_grace_seconds,
        },
    }


@router.get("/config")
async def client_config():
    return {"status": True, "data": build_client_config()}

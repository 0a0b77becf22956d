"""Tasks package initialization"""
from tvbackend.tasks.notifications import deliver_account_code, dispatch_account_code

__all__ = [
    "deliver_account_code",
    "dispatch_account_code",
]

from tvbackend.db.base import Base
from tvbackend.models.account import Account

__all__ = [
    "Base",
    "Account",
]

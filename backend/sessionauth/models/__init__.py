from sessionauth.models.user import User
from sessionauth.models.user_session import UserSession

__all__ = [
    "User",
    "UserSession",
]

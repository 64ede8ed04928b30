from models.users import User
from models.one_time_tokens import OneTimeToken
from models.sessions import UserSession

__all__ = ["User", "OneTimeToken", "UserSession"]

from __future__ import annotations

from typing import Optional

from ..core.exceptions import AuthenticationError
from ..users.repository import UserRepository
from .context import CallerContext
from .tokens import decode_access_token


class CallerAuthenticator:
    """Use case: turn an ``Authorization`` header into a CallerContext."""

    def __init__(self, users: UserRepository, *, secret_key: str, algorithm: str = "HS256"):
        self._users = users
        self._secret_key = secret_key
        self._algorithm = algorithm

    def authenticate(self, authorization: Optional[str]) -> CallerContext:
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("Access token required")

        token = authorization[len("Bearer "):].strip()
        if not token:
            raise AuthenticationError("Access token required")

        caller = decode_access_token(token, secret_key=self._secret_key, algorithm=self._algorithm)

        user = self._users.get_by_id(caller.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("Invalid or inactive user")

        return caller

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from ..core.enums import Role
from ..core.exceptions import AuthenticationError
from .context import CallerContext


def issue_access_token(
    *,
    user_id: int,
    role: Role,
    secret_key: str,
    algorithm: str = "HS256",
    expires_delta: Optional[timedelta] = None,
    expire_minutes: int = 30,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=expire_minutes))
    claims = {
        "sub": str(int(user_id)),
        "role": Role.parse(role).value,
        "exp": expire,
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def decode_access_token(token: str, *, secret_key: str, algorithm: str = "HS256") -> CallerContext:
    try:
        claims = jwt.decode(token, secret_key, algorithms=[algorithm])
    except ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except JWTError:
        raise AuthenticationError("Invalid token")

    try:
        user_id = int(claims["sub"])
        role = Role.parse(claims["role"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token claims")

    return CallerContext(user_id=user_id, role=role)

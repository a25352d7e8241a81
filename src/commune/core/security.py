"""Bearer token helpers used by the HTTP layer."""
from __future__ import annotations

from datetime import timedelta

from jose import JWTError, jwt

from commune.core.settings import settings
from commune.db.time import utcnow


def create_access_token(user_id: int, extra_claims: dict[str, str] | None = None) -> str:
    """Create a signed JWT whose subject is the user's primary key."""
    to_encode: dict[str, object] = {"sub": str(user_id)}
    if extra_claims:
        to_encode.update(extra_claims)
    to_encode["exp"] = utcnow() + timedelta(minutes=settings.access_token_expire_minutes)
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_access_token(token: str) -> int | None:
    """Return the user id carried by ``token``, or None when it is invalid."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        return None
    return int(subject)

from datetime import datetime, timedelta, timezone

import jwt

from fitcoach.core import config


def create_access_token(user_id: int, role: str, expires_minutes: int | None = None) -> str:
    """Mint a bearer token for local use and tests; production tokens come from the identity provider."""
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": now + timedelta(minutes=expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])

from datetime import datetime, timedelta, timezone

import jwt

_ALGO = "HS256"


def create_token(user_id: int, secret: str, ttl_minutes: int = 60) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
    payload = {"sub": str(user_id), "exp": exp}
    return jwt.encode(payload, secret, algorithm=_ALGO)


def verify_token(token: str, secret: str) -> int:
    """Return the user id; raises `jwt.InvalidTokenError` on a bad/expired token."""
    payload = jwt.decode(token, secret, algorithms=[_ALGO])
    try:
        return int(payload["sub"])
    except (KeyError, ValueError) as e:
        raise jwt.InvalidTokenError("token subject is not a user id") from e

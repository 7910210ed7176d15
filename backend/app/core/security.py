from typing import Any

from jose import JWTError, jwt

from app.core.config import get_settings


def decode_access_token(token: str) -> dict[str, Any] | None:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=["HS256"])
    except JWTError:
        return None


def owner_id_from_token(token: str | None) -> str | None:
    if not token:
        return None
    claims = decode_access_token(token)
    if not claims:
        return None
    subject = claims.get("sub")
    return str(subject) if subject else None

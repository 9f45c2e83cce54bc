"""Session token creation and decoding.

Token claims:
  - sub:   user ID
  - type:  "access"
  - exp:   expiry timestamp

Permissions are deliberately NOT embedded: every authorization decision
re-reads role and override rows so revocation applies on the next request.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from punt.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}

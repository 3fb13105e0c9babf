"""
JWT token utilities.

Issues and verifies HS256 access tokens whose subject is the numeric user id.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from pydantic import BaseModel


class JWTConfig(BaseModel):
    """JWT signing configuration."""

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15


class TokenData(BaseModel):
    """Decoded token payload."""

    sub: str
    type: str
    exp: datetime


def create_access_token(user_id: int | str, config: JWTConfig) -> str:
    """
    Create a signed access token.

    Args:
        user_id: User identifier stored in the ``sub`` claim.
        config: JWT configuration.

    Returns:
        Encoded JWT string.
    """
    expire = datetime.now(UTC) + timedelta(minutes=config.access_token_expire_minutes)
    payload = {"sub": str(user_id), "type": "access", "exp": expire}
    return jwt.encode(payload, config.secret_key, algorithm=config.algorithm)


def verify_token(token: str, config: JWTConfig) -> TokenData | None:
    """
    Verify and decode a token.

    Args:
        token: Encoded JWT.
        config: JWT configuration.

    Returns:
        Token data, or None if the token is invalid or expired.
    """
    try:
        payload = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except JWTError:
        return None

    sub = payload.get("sub")
    exp = payload.get("exp")
    if sub is None or exp is None:
        return None

    return TokenData(
        sub=str(sub),
        type=str(payload.get("type", "access")),
        exp=datetime.fromtimestamp(int(exp), tz=UTC),
    )

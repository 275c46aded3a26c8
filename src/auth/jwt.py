"""JWT token creation and verification."""

from datetime import datetime, timedelta, timezone

import jwt

from src.config.settings import get_settings


def create_access_token(user_id: str, email: str = "", is_anonymous: bool = False) -> str:
    settings = get_settings()
    payload = {
        "sub": user_id,
        "email": email,
        "is_anonymous": is_anonymous,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def verify_token(token: str) -> dict:
    """Decode and validate a JWT. Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError."""
    settings = get_settings()
    return jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])

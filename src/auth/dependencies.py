"""Auth dependencies for FastAPI route injection."""

from dataclasses import dataclass

import jwt
from fastapi import HTTPException, Request

from src.auth.jwt import verify_token


@dataclass
class CurrentUser:
    id: str
    email: str
    is_anonymous: bool = False


def _extract_bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth[7:]
    return None


async def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: authenticate via Bearer JWT."""
    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authentication credentials")

    try:
        payload = verify_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token type")

    return CurrentUser(
        id=payload["sub"],
        email=payload.get("email", ""),
        is_anonymous=bool(payload.get("is_anonymous", False)),
    )

"""Caller authentication - GoTrue JWT decoding and service-role key check."""

import hmac
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from config import get_settings

settings = get_settings()


class TokenData(BaseModel):
    """Data extracted from a GoTrue access token."""
    account_id: str
    email: Optional[str] = None
    role: Optional[str] = None


class AuthService:
    """Verifies the bearer credential presented to trigger endpoints."""

    @staticmethod
    def decode_token(token: str) -> Optional[TokenData]:
        """Decode and validate a GoTrue (Supabase) JWT. Returns None if invalid."""
        if not settings.gotrue_jwt_secret:
            return None
        try:
            payload = jwt.decode(
                token,
                settings.gotrue_jwt_secret,
                algorithms=[settings.jwt_algorithm],
                audience="authenticated",
            )
        except JWTError:
            return None

        account_id = payload.get("sub")
        if account_id is None:
            return None
        return TokenData(
            account_id=account_id,
            email=payload.get("email"),
            role=payload.get("role"),
        )

    @staticmethod
    def is_service_key(token: str) -> bool:
        """Constant-time comparison against the configured service-role key."""
        if not settings.service_role_key:
            return False
        return hmac.compare_digest(token.encode("utf-8"), settings.service_role_key.encode("utf-8"))

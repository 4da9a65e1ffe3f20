"""Authentication middleware - caller identity for trigger endpoints."""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.auth_service import AuthService

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerIdentity:
    """Who is calling: a signed-in user (their account id) or the service role."""
    account_id: Optional[str]
    is_service: bool = False


async def get_caller(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> CallerIdentity:
    """Accept either the service-role key or a valid user JWT."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    if AuthService.is_service_key(token):
        return CallerIdentity(account_id=None, is_service=True)

    token_data = AuthService.decode_token(token)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CallerIdentity(account_id=token_data.account_id)


def resolve_account_id(caller: CallerIdentity, requested: Optional[str]) -> str:
    """Account a request acts on.

    Users always act on their own account; service callers must name one.
    """
    if caller.is_service:
        if not requested:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="accountId is required for service calls",
            )
        return requested
    if requested and requested != caller.account_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on another account",
        )
    return caller.account_id


async def require_service_role(
    caller: Annotated[CallerIdentity, Depends(get_caller)],
) -> CallerIdentity:
    """Restrict an endpoint to cron / operator calls."""
    if not caller.is_service:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service role required",
        )
    return caller

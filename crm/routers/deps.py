from typing import Callable

from fastapi import Depends, Header, HTTPException, status

from crm.exceptions import InvalidTokenError
from crm.schemas.tokens import CurrentUser
from crm.services.tokens import TokenCodec, get_token_codec

STAFF_ROLES = ("ROLE_ADMIN", "ROLE_EMPLOYEE", "ROLE_SUPER_ADMIN")


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header",
        )
    return token.strip()


def get_current_user(
    authorization: str | None = Header(default=None),
    codec: TokenCodec = Depends(get_token_codec),
) -> CurrentUser:
    token = _bearer_token(authorization)
    if not codec.is_valid(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    try:
        subject = codec.extract_subject(token)
        role = codec.extract_role(token)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    return CurrentUser(subject=subject, role=role or "")


def require_roles(*roles: str) -> Callable[..., CurrentUser]:
    allowed = frozenset(roles)

    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return user

    return dependency

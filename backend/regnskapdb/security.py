"""
Bearer-token authentication and role checks for the API.

Tokens are issued elsewhere. They carry the user id in `sub` and, when
present, the user's tenant in `tenant_id`; a token whose tenant does not
match the stored user is rejected.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, FrozenSet, Optional, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from regnskapdb.apps.accounts import models as account_models
from regnskapdb.apps.accounts.models import AccountRole

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(
    *,
    user_id: str,
    tenant_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expires_at = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {"sub": str(user_id), "exp": expires_at}
    if tenant_id:
        claims["tenant_id"] = str(tenant_id)
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode(token: str) -> dict:
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized()
    if not claims.get("sub"):
        raise _unauthorized()
    return claims


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.User:
    claims = _decode(token)
    user = db.query(account_models.User).filter(account_models.User.id == str(claims["sub"])).first()
    if user is None:
        raise _unauthorized()
    token_tenant = claims.get("tenant_id")
    if token_tenant and token_tenant != user.tenant_id:
        raise _unauthorized()
    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user account")
    return current_user


def require_roles(*roles: Union[AccountRole, str]) -> Callable[..., account_models.User]:
    """
    Dependency factory: the current user must hold one of `roles`.

    ADMIN is the platform operator and passes every check.
    """
    allowed: FrozenSet[AccountRole] = frozenset(AccountRole(role) for role in roles)

    def dependency(
        current_user: account_models.User = Depends(get_current_active_user),
    ) -> account_models.User:
        if current_user.role == AccountRole.ADMIN or current_user.role in allowed:
            return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions for this operation",
        )

    return dependency

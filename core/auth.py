from typing import Optional

import jwt
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from core.db import get_db
from core.errors import AuthError, ForbiddenError
from models.user import User, UserRole, ROLE_ADMIN
from security import jwt as jwt_utils


def _user_from_header(db: Session, authorization: Optional[str]) -> Optional[User]:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        raise AuthError("Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt_utils.decode_access(token)
    except jwt.PyJWTError:
        raise AuthError("Invalid token")
    user = db.query(User).filter(User.id == int(payload.get("sub", 0))).one_or_none()
    if not user or not user.is_active:
        raise AuthError("User not found")
    return user


def get_current_user(
    db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None, alias="Authorization")
) -> User:
    user = _user_from_header(db, authorization)
    if user is None:
        raise AuthError("Not authenticated")
    return user


def get_optional_user(
    db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None, alias="Authorization")
) -> Optional[User]:
    """Like get_current_user, but guests (no header) get None."""
    return _user_from_header(db, authorization)


def has_role(db: Session, user_id: int, role: str) -> bool:
    return (
        db.query(UserRole.id).filter(UserRole.user_id == user_id, UserRole.role == role).first()
        is not None
    )


def require_admin(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
    if not has_role(db, user.id, ROLE_ADMIN):
        raise ForbiddenError("Admin role required")
    return user

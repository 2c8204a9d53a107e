
import secrets
from dataclasses import dataclass

from fastapi import Request, Depends, HTTPException, status
from sqlalchemy.orm import Session
from jose import JWTError
from roots.auth.permissions import CapabilitySet
from roots.auth.service import load_auth_user
from roots.db.session import Database, get_database
from roots.models.user import User
from roots.utils.security import decode_token

COOKIE_NAME = "roots_jwt"


@dataclass(frozen=True)
class CurrentUser:
    id: int
    full_name: str
    email: str
    phone: str | None
    status: str
    role_id: int | None
    role_name: str | None
    capabilities: CapabilitySet

    @classmethod
    def from_model(cls, user: User) -> "CurrentUser":
        role_name = user.role.name if user.role else None
        granted = [p.permission for p in user.role.permissions] if user.role else []
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            status=user.status,
            role_id=user.role_id,
            role_name=role_name,
            capabilities=CapabilitySet.from_role(user.role_id, role_name, granted),
        )


def get_db(database: Database = Depends(get_database)):
    with database.session() as db:
        yield db

def _get_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip()
    return request.cookies.get(COOKIE_NAME)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def get_current_user(request: Request, db: Session = Depends(get_db)) -> CurrentUser:
    token = _get_token(request)
    if not token:
        raise _unauthorized("No token provided")

    try:
        payload = decode_token(token)
    except JWTError:
        raise _unauthorized("Invalid token")

    sub = payload.get("sub")
    sid = payload.get("sid")
    if not sub or not sid:
        raise _unauthorized("Invalid token")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token")

    user = load_auth_user(db, user_id)
    if user is None:
        raise _unauthorized("Invalid token")
    if str(user.status).lower() != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    if not user.session_token or not secrets.compare_digest(user.session_token, str(sid)):
        raise _unauthorized("Session expired")

    return CurrentUser.from_model(user)

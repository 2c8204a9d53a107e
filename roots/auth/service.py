
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from roots.auth.permissions import ADMIN_ROLE_ID, ADMIN_ROLE_NAME
from roots.models.user import Role, User
from roots.utils.security import hash_password, verify_password, create_access_token, new_session_id

USER_ROLE_ID = 2
USER_ROLE_NAME = "user"

def seed_roles(db: Session) -> None:
    for role_id, name in ((ADMIN_ROLE_ID, ADMIN_ROLE_NAME), (USER_ROLE_ID, USER_ROLE_NAME)):
        if db.get(Role, role_id) is None:
            db.add(Role(id=role_id, name=name))
    db.commit()

def load_auth_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)

def register_user(db: Session, full_name: str, email: str, password: str, phone: str | None = None) -> User:
    email = email.strip().lower()
    if db.scalar(select(User).where(User.email == email)):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        full_name=full_name.strip(),
        email=email,
        phone=(phone or "").strip() or None,
        password_hash=hash_password(password),
        status="active",
        role_id=USER_ROLE_ID,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def login_user(db: Session, email: str, password: str) -> tuple[User, str]:
    """Verify credentials and start a new session.

    Rotating ``session_token`` invalidates every token issued before.
    """
    user = db.scalar(select(User).where(User.email == email.strip().lower()))
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if str(user.status).lower() != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")

    sid = new_session_id()
    user.session_token = sid
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user, create_access_token(str(user.id), sid)

def logout_user(db: Session, user_id: int) -> None:
    user = db.get(User, user_id)
    if user is not None:
        user.session_token = None
        db.commit()


from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from roots.auth.deps import COOKIE_NAME, CurrentUser, get_current_user, get_db
from roots.auth.service import login_user, logout_user, register_user
from roots.config import settings
from roots.schemas.auth import LoginIn, RegisterIn, TokenOut, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])

def set_auth_cookie(response: Response, token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="Lax",
        secure=not settings.is_dev,
        path="/",
        max_age=settings.access_token_expire_minutes * 60,
    )

def user_out(user: CurrentUser) -> UserOut:
    return UserOut(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        phone=user.phone,
        status=user.status,
        role_id=user.role_id,
        role_name=user.role_name,
        permissions=user.capabilities.names(),
        is_admin=user.capabilities.is_admin,
    )

@router.post("/signup", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def signup(body: RegisterIn, response: Response, db: Session = Depends(get_db)):
    user = register_user(db, body.full_name, body.email, body.password, body.phone)
    user, token = login_user(db, user.email, body.password)
    set_auth_cookie(response, token)
    return TokenOut(access_token=token, user=user_out(CurrentUser.from_model(user)))

@router.post("/login", response_model=TokenOut)
def login(body: LoginIn, response: Response, db: Session = Depends(get_db)):
    user, token = login_user(db, body.email, body.password)
    set_auth_cookie(response, token)
    return TokenOut(access_token=token, user=user_out(CurrentUser.from_model(user)))

@router.get("/me", response_model=UserOut)
def me(user: CurrentUser = Depends(get_current_user)):
    return user_out(user)

@router.post("/logout")
def logout(response: Response, db: Session = Depends(get_db), user: CurrentUser = Depends(get_current_user)):
    logout_user(db, user.id)
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"message": "Logged out"}


from pydantic import BaseModel, EmailStr, Field
from pydantic.alias_generators import to_camel

class RegisterIn(BaseModel):
    full_name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=256)
    phone: str | None = Field(default=None, max_length=40)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class LoginIn(BaseModel):
    email: EmailStr
    password: str

class UserOut(BaseModel):
    id: int
    full_name: str
    email: str
    phone: str | None = None
    status: str
    role_id: int | None = None
    role_name: str | None = None
    permissions: list[str] = []
    is_admin: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut

# Fichier: eduup/schemas/user/user_schema.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


# --- Registration ---
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    username: Optional[str] = None


class UsernameUpdate(BaseModel):
    username: str


class PasswordChange(BaseModel):
    password: str


# --- API response ---
# No password hash in here.
class User(BaseModel):
    id: int
    email: EmailStr
    username: Optional[str] = None
    is_active: bool
    is_superuser: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

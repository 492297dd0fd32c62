from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class UserBase(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None


class UserPublic(UserBase):
    id: int
    is_active: bool
    is_admin: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True  # pydantic v2


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

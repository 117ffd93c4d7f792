# User, auth and profile schemas
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from .models import RoleEnum


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    role: RoleEnum = RoleEnum.BUYER

    @field_validator("role")
    @classmethod
    def no_self_service_admin(cls, v):
        if v == RoleEnum.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered")
        return v


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: RoleEnum
    is_verified: bool
    profile_picture: str
    dark_mode: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserAdminOut(UserOut):
    is_deleted: bool


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class OTPVerify(BaseModel):
    email: EmailStr
    otp: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordOTP(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=4, max_length=6)
    new_password: str = Field(min_length=6)


class UserSelfUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    dark_mode: Optional[bool] = None
    profile_picture: Optional[str] = None


class UserAdminUpdate(UserSelfUpdate):
    role: Optional[RoleEnum] = None
    is_deleted: Optional[bool] = None


# ---------- PROFILE ----------

class ProfileCreate(BaseModel):
    full_name: str = ""
    bio: str = Field("", max_length=500)
    profile_image: str = ""


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    profile_image: Optional[str] = None


class ProfileOut(BaseModel):
    id: int
    user_id: int
    full_name: str
    bio: str
    profile_image: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

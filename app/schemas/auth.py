from pydantic import BaseModel, EmailStr
from typing import Optional


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    name: str
    referral_code: Optional[str] = None  # Code of the account that referred this one


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    plan: str
    role: str
    status: str
    bl_coins: int
    referral_code: Optional[str] = None
    referral_count: int = 0
    scans_limit: int
    builds_limit: int
    max_sites: int
    billing_interval: Optional[str] = None
    preferred_ai: str
    has_github_token: bool = False
    created_at: Optional[str] = None

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    name: Optional[str] = None
    preferred_ai: Optional[str] = None
    github_token: Optional[str] = None

"""
User Pydantic schemas for request/response validation
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserRegister(BaseModel):
    """Schema for user registration"""
    name: str
    email: str
    password: str


class UserLogin(BaseModel):
    """Schema for user login"""
    email: str
    password: str


class UserResponse(BaseModel):
    """Schema for user response"""
    id: int
    name: Optional[str] = None
    email: str
    role: str = "USER"
    status: str = "ACTIVE"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for token response"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
    message: Optional[str] = None


class UserStatusResponse(BaseModel):
    status: str
    role: str

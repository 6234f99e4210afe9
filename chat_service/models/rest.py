from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """User without sensitive data"""

    id: str
    username: str
    email: str
    settings: Dict[str, Any]


class AuthResponse(BaseModel):
    token: str
    user: UserResponse


class CreateConversationRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=500)


class User(BaseModel):
    """User record as owned by the identity subsystem"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str
    password_hash: str
    created_at: datetime
    settings: Dict[str, Any]

    def to_response(self) -> UserResponse:
        return UserResponse(
            id=self.id,
            username=self.username,
            email=self.email,
            settings=self.settings,
        )

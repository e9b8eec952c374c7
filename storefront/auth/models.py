from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional


class RegisterUserRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str


class EmailVerification(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1, max_length=12)


class ResendOtpRequest(BaseModel):
    email: Optional[EmailStr] = None


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    token: str
    new_password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str
    revoke_other_sessions: bool = False


class AddPasswordRequest(BaseModel):
    new_password: str


class RevokeSessionRequest(BaseModel):
    session_id: UUID


class Token(BaseModel):
    access_token: str
    token_type: str
    expires_at: Optional[datetime] = None


class TokenData(BaseModel):
    user_id: str | None = None
    session_token: str | None = None
    role: str = "user"

    #  converts the id back into a UUID for database lookups
    def get_uuid(self) -> UUID | None:
        if self.user_id:
            return UUID(self.user_id)
        return None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class SessionUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: EmailStr
    email_verified: bool
    image: Optional[str] = None
    role: str
    created_at: datetime


class SessionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    is_current: bool = False


class SessionResponse(BaseModel):
    user: SessionUser
    session: SessionInfo


class SessionListResponse(BaseModel):
    sessions: List[SessionInfo]


class LinkedAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    provider_id: str
    account_id: str
    created_at: datetime


class MessageResponse(BaseModel):
    message: str

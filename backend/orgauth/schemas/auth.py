from typing import Any

from pydantic import BaseModel, Field


class LoginIn(BaseModel):
    identifier: str | None = Field(default=None, max_length=254, examples=["admin@example.com"])
    password: str | None = Field(default=None, max_length=128)


class OTPRequestIn(BaseModel):
    identifier: str | None = Field(default=None, max_length=254, examples=["admin@example.com"])


class OTPVerifyIn(BaseModel):
    identifier: str | None = Field(default=None, max_length=254)
    otp: str | None = Field(default=None, max_length=12, examples=["123456"])


class GoogleLoginIn(BaseModel):
    token: str | None = Field(default=None, max_length=8192)


class Envelope(BaseModel):
    success: bool = True
    message: str = ""
    data: dict[str, Any] | None = None


class OrganizationOut(BaseModel):
    organization_id: str
    name: str
    db: str
    status: str
    subscription_plan: str
    enabled_modules: list[str]


class UserOut(BaseModel):
    id: str
    name: str | None = None
    email: str
    role: str
    organization: str | None = None
    profile_picture: str | None = None
    auth_provider: str | None = None


class SessionDataOut(BaseModel):
    user: UserOut
    organization: OrganizationOut
    token: str
    token_type: str = "bearer"

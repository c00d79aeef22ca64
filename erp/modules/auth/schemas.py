from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from erp.common.validators import clean_optional_phone


# User schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    company_name: Optional[str] = Field(
        None, min_length=2, max_length=200,
        description="Si se envía, se crea la empresa y el usuario queda como owner"
    )

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return clean_optional_phone(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserCompanyOut(BaseModel):
    id: UUID
    company_id: UUID
    role: str
    is_active: bool
    joined_at: datetime
    company_name: str

    class Config:
        from_attributes = True


# Token schemas
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut
    companies: List[UserCompanyOut] = []
    refresh_token: Optional[str] = None


class ContextTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    tenant_id: UUID
    company_name: str
    user_role: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


# Company selection schemas
class CompanySelectionRequest(BaseModel):
    company_id: UUID


# Auth context schemas
class AuthContext(BaseModel):
    user_id: UUID
    tenant_id: Optional[UUID] = None
    user_role: Optional[str] = None
    companies: List[UserCompanyOut] = []

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from erp.common.validators import clean_optional_phone, validate_kra_pin
from erp.modules.auth.models import UserRole


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    tax_pin: Optional[str] = Field(None, description="PIN de la KRA (ej: P051234567X)")

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, v):
        return clean_optional_phone(v)

    @field_validator('tax_pin')
    @classmethod
    def validate_tax_pin(cls, v):
        if v is None or v.strip() == "":
            return None
        if not validate_kra_pin(v):
            raise ValueError('PIN tributario inválido. Formato: letra A/P, 9 dígitos y una letra (ej: P051234567X)')
        return v.strip().upper()

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v


class CompanyOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    tax_pin: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CompanyOutWithRole(CompanyOut):
    role: str


class CompanyCreateResponse(CompanyOut):
    numbering_settings_created: int = 0


class AddUserToCompany(BaseModel):
    email: EmailStr
    role: UserRole = UserRole.VIEWER


class CompanyUserOut(BaseModel):
    user_id: UUID
    email: str
    full_name: str
    role: str
    is_active: bool
    joined_at: datetime


class CompanyUsersResponse(BaseModel):
    users: List[CompanyUserOut]
    total: int

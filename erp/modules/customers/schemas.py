from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from erp.common.validators import clean_optional_phone, validate_kra_pin
from erp.modules.customers.models import CustomerType, LeadStatus, LeadPriority


class CustomerBase(BaseModel):
    customer_type: CustomerType = CustomerType.INDIVIDUAL
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    website: Optional[str] = Field(None, max_length=255)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    tax_id: Optional[str] = Field(None, description="PIN de la KRA")
    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    payment_terms: int = Field(30, ge=0, le=365)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    customer_group: Optional[str] = Field(None, max_length=100)
    industry: Optional[str] = Field(None, max_length=100)
    lead_source: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @field_validator('phone', 'mobile')
    @classmethod
    def validate_phones(cls, v):
        return clean_optional_phone(v)

    @field_validator('tax_id')
    @classmethod
    def validate_tax_id(cls, v):
        if v is None or v.strip() == "":
            return None
        if not validate_kra_pin(v):
            raise ValueError('PIN de la KRA inválido (ej: A123456789B)')
        return v.strip().upper()


class CustomerCreate(CustomerBase):
    customer_number: Optional[str] = Field(None, max_length=50, description="Si se omite se asigna automáticamente")

    @model_validator(mode="after")
    def require_name(self):
        if not (self.company_name or self.first_name or self.last_name):
            raise ValueError("Se requiere nombre o razón social del cliente")
        return self


class CustomerUpdate(BaseModel):
    customer_type: Optional[CustomerType] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    website: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    payment_terms: Optional[int] = Field(None, ge=0, le=365)
    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    customer_group: Optional[str] = None
    industry: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('phone', 'mobile')
    @classmethod
    def validate_phones(cls, v):
        return clean_optional_phone(v)


class CustomerOut(BaseModel):
    id: UUID
    customer_number: str
    customer_type: str
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    tax_id: Optional[str] = None
    credit_limit: Decimal
    payment_terms: int
    currency: Optional[str] = None
    discount_percentage: Decimal
    customer_group: Optional[str] = None
    notes: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CustomerList(BaseModel):
    items: List[CustomerOut]
    total: int
    limit: int
    offset: int


# ===== Contactos y notas =====

class CustomerContactCreate(BaseModel):
    contact_type: str = Field("primary", max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    title: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    department: Optional[str] = None
    is_primary: bool = False
    notes: Optional[str] = None

    @field_validator('phone', 'mobile')
    @classmethod
    def validate_phones(cls, v):
        return clean_optional_phone(v)


class CustomerContactOut(BaseModel):
    id: UUID
    customer_id: UUID
    contact_type: str
    first_name: str
    last_name: str
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    department: Optional[str] = None
    is_primary: bool
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class CustomerNoteCreate(BaseModel):
    note: str = Field(..., min_length=1)
    note_type: str = Field("general", max_length=20)
    is_important: bool = False


class CustomerNoteOut(BaseModel):
    id: UUID
    customer_id: UUID
    note: str
    note_type: str
    is_important: bool
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CustomerDetail(CustomerOut):
    contacts: List[CustomerContactOut] = []
    customer_notes: List[CustomerNoteOut] = []


# ===== Leads =====

class LeadCreate(BaseModel):
    lead_number: Optional[str] = Field(None, max_length=50)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    source: Optional[str] = None
    priority: LeadPriority = LeadPriority.MEDIUM
    estimated_value: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return clean_optional_phone(v)

    @model_validator(mode="after")
    def require_name(self):
        if not (self.company_name or self.first_name or self.last_name):
            raise ValueError("Se requiere nombre o empresa del prospecto")
        return self


class LeadUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    source: Optional[str] = None
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    estimated_value: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator('status')
    @classmethod
    def no_manual_conversion(cls, v):
        if v == LeadStatus.CONVERTED:
            raise ValueError("Use el endpoint de conversión para convertir el prospecto")
        return v


class LeadOut(BaseModel):
    id: UUID
    lead_number: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    source: Optional[str] = None
    status: str
    priority: str
    estimated_value: Decimal
    notes: Optional[str] = None
    converted_customer_id: Optional[UUID] = None
    converted_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LeadList(BaseModel):
    items: List[LeadOut]
    total: int
    limit: int
    offset: int


class LeadConvert(BaseModel):
    customer_type: Optional[CustomerType] = None
    customer_number: Optional[str] = Field(None, max_length=50)


class LeadConversionOut(BaseModel):
    lead: LeadOut
    customer: CustomerOut

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from erp.common.validators import clean_optional_phone, validate_kra_pin
from erp.modules.hr.models import LeaveType


# ===== Departamentos =====

class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[UUID] = Field(None, description="Empleado responsable del departamento")

    @field_validator('name')
    @classmethod
    def clean_name(cls, v):
        return v.strip()


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class DepartmentOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    manager_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ===== Empleados =====

class EmployeeBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    national_id: Optional[str] = Field(None, max_length=20)
    tax_number: Optional[str] = Field(None, description="PIN de la KRA")
    position: Optional[str] = Field(None, max_length=100)
    department_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    hire_date: Optional[date] = None
    salary: Decimal = Field(Decimal("0"), ge=0, description="Salario base mensual")
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    emergency_contact_name: Optional[str] = Field(None, max_length=150)
    emergency_contact_phone: Optional[str] = None
    bank_name: Optional[str] = Field(None, max_length=100)
    bank_account_number: Optional[str] = Field(None, max_length=50)

    @field_validator('phone', 'emergency_contact_phone')
    @classmethod
    def validate_phone(cls, v):
        return clean_optional_phone(v)

    @field_validator('tax_number')
    @classmethod
    def validate_tax_number(cls, v):
        if v is None or v.strip() == "":
            return None
        if not validate_kra_pin(v):
            raise ValueError('PIN de la KRA inválido (ej: A123456789B)')
        return v.strip().upper()


class EmployeeCreate(EmployeeBase):
    employee_number: Optional[str] = Field(None, max_length=50, description="Si se omite se asigna automáticamente")


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    position: Optional[str] = None
    department_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    salary: Optional[Decimal] = Field(None, ge=0)
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None

    @field_validator('phone', 'emergency_contact_phone')
    @classmethod
    def validate_phone(cls, v):
        return clean_optional_phone(v)


class EmployeeOut(BaseModel):
    id: UUID
    employee_number: str
    first_name: str
    last_name: str
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    national_id: Optional[str] = None
    tax_number: Optional[str] = None
    position: Optional[str] = None
    department_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    hire_date: Optional[date] = None
    salary: Decimal
    city: Optional[str] = None
    country: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class EmployeeList(BaseModel):
    items: List[EmployeeOut]
    total: int
    limit: int
    offset: int


# ===== Permisos / vacaciones =====

class LeaveRequestCreate(BaseModel):
    employee_id: UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError('La fecha de fin no puede ser anterior a la fecha de inicio')
        return self


class LeaveReject(BaseModel):
    rejection_reason: str = Field(..., min_length=1, max_length=255)


class LeaveRequestOut(BaseModel):
    id: UUID
    employee_id: UUID
    leave_type: str
    start_date: date
    end_date: date
    days_requested: int
    reason: Optional[str] = None
    status: str
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LeaveRequestList(BaseModel):
    items: List[LeaveRequestOut]
    total: int
    limit: int
    offset: int


# ===== Nómina =====

class PayrollCreate(BaseModel):
    employee_id: UUID
    pay_period_start: date
    pay_period_end: date
    base_salary: Optional[Decimal] = Field(None, ge=0, description="Si se omite se toma el salario del empleado")
    overtime_hours: Decimal = Field(Decimal("0"), ge=0)
    overtime_rate: Decimal = Field(Decimal("0"), ge=0)
    bonuses: Decimal = Field(Decimal("0"), ge=0)
    deductions: Decimal = Field(Decimal("0"), ge=0)
    tax_deductions: Decimal = Field(Decimal("0"), ge=0, description="PAYE y otras retenciones")
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_period(self):
        if self.pay_period_end < self.pay_period_start:
            raise ValueError('El fin del periodo no puede ser anterior al inicio')
        return self


class PayrollUpdate(BaseModel):
    base_salary: Optional[Decimal] = Field(None, ge=0)
    overtime_hours: Optional[Decimal] = Field(None, ge=0)
    overtime_rate: Optional[Decimal] = Field(None, ge=0)
    bonuses: Optional[Decimal] = Field(None, ge=0)
    deductions: Optional[Decimal] = Field(None, ge=0)
    tax_deductions: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class PayrollOut(BaseModel):
    id: UUID
    employee_id: UUID
    pay_period_start: date
    pay_period_end: date
    base_salary: Decimal
    overtime_hours: Decimal
    overtime_rate: Decimal
    bonuses: Decimal
    deductions: Decimal
    tax_deductions: Decimal
    gross_pay: Decimal
    net_pay: Decimal
    status: str
    approved_by: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayrollList(BaseModel):
    items: List[PayrollOut]
    total: int
    limit: int
    offset: int

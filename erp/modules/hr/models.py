from sqlalchemy import Column, String, Integer, Boolean, Text, Date, DateTime, Numeric, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin, SoftDeleteMixin


class LeaveType(str, Enum):
    ANNUAL = "annual"
    SICK = "sick"
    MATERNITY = "maternity"
    PATERNITY = "paternity"
    COMPASSIONATE = "compassionate"
    UNPAID = "unpaid"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PayrollStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"


class Department(Base, BaseMixin):
    __tablename__ = "departments"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    manager_id = Column(Uuid(as_uuid=True), nullable=True)  # employees.id
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_department_tenant_name"),
    )


class Employee(Base, BaseMixin, SoftDeleteMixin):
    __tablename__ = "employees"

    employee_number = Column(String(50), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    national_id = Column(String(20), nullable=True)
    tax_number = Column(String(20), nullable=True)  # PIN de la KRA
    position = Column(String(100), nullable=True)
    department_id = Column(Uuid(as_uuid=True), ForeignKey("departments.id"), nullable=True)
    manager_id = Column(Uuid(as_uuid=True), ForeignKey("employees.id"), nullable=True)
    hire_date = Column(Date, nullable=True)
    salary = Column(Numeric(12, 2), nullable=False, default=0)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    emergency_contact_name = Column(String(150), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)
    bank_name = Column(String(100), nullable=True)
    bank_account_number = Column(String(50), nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    department = relationship("Department", foreign_keys=[department_id])

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_number", name="uq_employee_tenant_number"),
        UniqueConstraint("tenant_id", "email", name="uq_employee_tenant_email"),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class LeaveRequest(Base, BaseMixin):
    __tablename__ = "leave_requests"

    employee_id = Column(Uuid(as_uuid=True), ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    days_requested = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=LeaveStatus.PENDING.value, index=True)
    reviewed_by = Column(Uuid(as_uuid=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(255), nullable=True)

    employee = relationship("Employee")


class PayrollRecord(Base, BaseMixin):
    __tablename__ = "payroll_records"

    employee_id = Column(Uuid(as_uuid=True), ForeignKey("employees.id"), nullable=False, index=True)
    pay_period_start = Column(Date, nullable=False)
    pay_period_end = Column(Date, nullable=False)
    base_salary = Column(Numeric(12, 2), nullable=False)
    overtime_hours = Column(Numeric(8, 2), nullable=False, default=0)
    overtime_rate = Column(Numeric(10, 2), nullable=False, default=0)
    bonuses = Column(Numeric(12, 2), nullable=False, default=0)
    deductions = Column(Numeric(12, 2), nullable=False, default=0)
    tax_deductions = Column(Numeric(12, 2), nullable=False, default=0)
    gross_pay = Column(Numeric(12, 2), nullable=False)
    net_pay = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=PayrollStatus.DRAFT.value, index=True)
    approved_by = Column(Uuid(as_uuid=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    employee = relationship("Employee")

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_id", "pay_period_start", "pay_period_end",
                         name="uq_payroll_employee_period"),
    )

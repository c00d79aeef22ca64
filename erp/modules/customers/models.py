from sqlalchemy import Column, String, Integer, Boolean, Numeric, Text, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin, SoftDeleteMixin


class CustomerType(str, Enum):
    INDIVIDUAL = "individual"
    BUSINESS = "business"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    WON = "won"
    LOST = "lost"
    CONVERTED = "converted"


class LeadPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Customer(Base, BaseMixin, SoftDeleteMixin):
    __tablename__ = "customers"

    customer_number = Column(String(50), nullable=False)
    customer_type = Column(String(20), nullable=False, default=CustomerType.INDIVIDUAL.value)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    company_name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)
    mobile = Column(String(30), nullable=True)
    website = Column(String(255), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    tax_id = Column(String(20), nullable=True)
    credit_limit = Column(Numeric(12, 2), nullable=False, default=0)
    payment_terms = Column(Integer, nullable=False, default=30)
    currency = Column(String(3), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    customer_group = Column(String(100), nullable=True)
    industry = Column(String(100), nullable=True)
    lead_source = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    contacts = relationship("CustomerContact", back_populates="customer", cascade="all, delete-orphan")
    customer_notes = relationship("CustomerNote", back_populates="customer", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "customer_number", name="uq_customer_tenant_number"),
    )

    @property
    def display_name(self):
        if self.company_name:
            return self.company_name
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class CustomerContact(Base, BaseMixin):
    __tablename__ = "customer_contacts"

    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    contact_type = Column(String(20), nullable=False, default="primary")
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    title = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    mobile = Column(String(30), nullable=True)
    department = Column(String(100), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    customer = relationship("Customer", back_populates="contacts")


class CustomerNote(Base, BaseMixin):
    __tablename__ = "customer_notes"

    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    note_type = Column(String(20), nullable=False, default="general")
    is_important = Column(Boolean, nullable=False, default=False)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    customer = relationship("Customer", back_populates="customer_notes")


class Lead(Base, BaseMixin):
    __tablename__ = "leads"

    lead_number = Column(String(50), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    company_name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    source = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=LeadStatus.NEW.value, index=True)
    priority = Column(String(10), nullable=False, default=LeadPriority.MEDIUM.value)
    estimated_value = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    converted_customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "lead_number", name="uq_lead_tenant_number"),
    )

"""
Common mixins for multi-tenant models
"""
from sqlalchemy import Column, DateTime, String, Numeric, Uuid
from sqlalchemy.sql import func
from uuid import uuid4


class TenantMixin:
    """Mixin for multi-tenant models that adds tenant_id and ensures tenant isolation"""

    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class BaseMixin(TenantMixin, TimestampMixin):
    """Combines tenant and timestamp functionality for most business models"""

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4, index=True)


class SoftDeleteMixin:
    """
    Soft delete by status flag.

    Rows are never removed; status goes to 'inactive' and deleted_at is stamped.
    """

    status = Column(String(20), nullable=False, default="active", index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self):
        return self.status == "inactive"

    def soft_delete(self):
        self.deleted_at = func.now()
        self.status = "inactive"

    def restore(self):
        self.deleted_at = None
        self.status = "active"


class LineItemMixin:
    """Priced document line. Amounts are computed server side (erp.common.calculations)."""

    description = Column(String(255), nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)
    line_subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False, default=0)


class DocumentTotalsMixin:
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)

from sqlalchemy import Column, String, Integer, Text, Date, Numeric, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin, SoftDeleteMixin, LineItemMixin, DocumentTotalsMixin


class SupplierType(str, Enum):
    COMPANY = "company"
    INDIVIDUAL = "individual"


class PurchaseOrderStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    CONFIRMED = "confirmed"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class ReturnType(str, Enum):
    REFUND = "refund"
    REPLACEMENT = "replacement"
    CREDIT = "credit"


class Vendor(Base, BaseMixin, SoftDeleteMixin):
    __tablename__ = "vendors"

    vendor_number = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    company_name = Column(String(200), nullable=True)
    supplier_type = Column(String(20), nullable=False, default=SupplierType.COMPANY.value)
    contact_person = Column(String(150), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    tax_id = Column(String(20), nullable=True)
    preferred_currency = Column(String(3), nullable=True)
    payment_terms = Column(Integer, nullable=False, default=30)
    lead_time_days = Column(Integer, nullable=True)
    credit_limit = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "vendor_number", name="uq_vendor_tenant_number"),
    )


class PurchaseOrder(Base, BaseMixin, DocumentTotalsMixin):
    __tablename__ = "purchase_orders"

    po_number = Column(String(50), nullable=False)
    vendor_id = Column(Uuid(as_uuid=True), ForeignKey("vendors.id"), nullable=False)
    order_date = Column(Date, nullable=False, default=date.today)
    expected_delivery_date = Column(Date, nullable=True)
    status = Column(String(30), nullable=False, default=PurchaseOrderStatus.DRAFT.value, index=True)
    currency = Column(String(3), nullable=False, default="KES")
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    vendor = relationship("Vendor")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order", cascade="all, delete-orphan",
                         order_by="PurchaseOrderItem.line_number")

    __table_args__ = (
        UniqueConstraint("tenant_id", "po_number", name="uq_purchase_order_tenant_number"),
    )


class PurchaseOrderItem(Base, BaseMixin, LineItemMixin):
    __tablename__ = "purchase_order_items"

    purchase_order_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True)
    line_number = Column(Integer, nullable=False, default=1)
    received_quantity = Column(Numeric(12, 2), nullable=False, default=0)

    purchase_order = relationship("PurchaseOrder", back_populates="items")

    @property
    def pending_quantity(self):
        return (self.quantity or 0) - (self.received_quantity or 0)


class GoodsReceiving(Base, BaseMixin):
    """Nota de recepción (GRN) contra una orden de compra"""
    __tablename__ = "goods_receiving"

    grn_number = Column(String(50), nullable=False)
    purchase_order_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_orders.id"), nullable=False, index=True)
    vendor_id = Column(Uuid(as_uuid=True), ForeignKey("vendors.id"), nullable=False)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    receiving_date = Column(Date, nullable=False, default=date.today)
    status = Column(String(20), nullable=False, default="received")
    received_by = Column(String(100), nullable=True)
    delivery_note_number = Column(String(50), nullable=True)  # número de remisión del proveedor
    total_value = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    items = relationship("GoodsReceivingItem", back_populates="goods_receiving", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "grn_number", name="uq_grn_tenant_number"),
    )


class GoodsReceivingItem(Base, BaseMixin):
    __tablename__ = "goods_receiving_items"

    grn_id = Column(Uuid(as_uuid=True), ForeignKey("goods_receiving.id"), nullable=False, index=True)
    purchase_order_item_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_order_items.id"), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True)
    description = Column(String(255), nullable=True)
    ordered_quantity = Column(Numeric(12, 2), nullable=False)
    received_quantity = Column(Numeric(12, 2), nullable=False)
    rejected_quantity = Column(Numeric(12, 2), nullable=False, default=0)
    accepted_quantity = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    total_value = Column(Numeric(15, 2), nullable=False, default=0)
    batch_number = Column(String(50), nullable=True)
    condition_status = Column(String(20), nullable=False, default="good")
    rejection_reason = Column(String(255), nullable=True)

    goods_receiving = relationship("GoodsReceiving", back_populates="items")


class PurchaseReturn(Base, BaseMixin):
    """Devolución a proveedor; descuenta stock"""
    __tablename__ = "purchase_returns"

    return_number = Column(String(50), nullable=False)
    vendor_id = Column(Uuid(as_uuid=True), ForeignKey("vendors.id"), nullable=False)
    grn_id = Column(Uuid(as_uuid=True), ForeignKey("goods_receiving.id"), nullable=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    return_date = Column(Date, nullable=False, default=date.today)
    return_type = Column(String(20), nullable=False, default=ReturnType.REFUND.value)
    reason = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="returned")
    total_value = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    items = relationship("PurchaseReturnItem", back_populates="purchase_return", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "return_number", name="uq_purchase_return_tenant_number"),
    )


class PurchaseReturnItem(Base, BaseMixin):
    __tablename__ = "purchase_return_items"

    purchase_return_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_returns.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False, default=0)

    purchase_return = relationship("PurchaseReturn", back_populates="items")

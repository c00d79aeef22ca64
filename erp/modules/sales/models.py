from sqlalchemy import Column, String, Integer, Text, Date, Numeric, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import date
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin, LineItemMixin, DocumentTotalsMixin


class QuotationStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"


class SalesOrderStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PARTIALLY_DELIVERED = "partially_delivered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"                    # Borrador, editable
    SENT = "sent"                      # Emitida al cliente, pendiente de pago
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class DeliveryNoteStatus(str, Enum):
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Quotation(Base, BaseMixin, DocumentTotalsMixin):
    __tablename__ = "quotations"

    quotation_number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    quotation_date = Column(Date, nullable=False, default=date.today)
    valid_until = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=QuotationStatus.DRAFT.value, index=True)
    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    sales_order_id = Column(Uuid(as_uuid=True), nullable=True)  # orden creada al convertir
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    customer = relationship("Customer")
    items = relationship("QuotationItem", back_populates="quotation", cascade="all, delete-orphan",
                         order_by="QuotationItem.line_number")

    __table_args__ = (
        UniqueConstraint("tenant_id", "quotation_number", name="uq_quotation_tenant_number"),
    )


class QuotationItem(Base, BaseMixin, LineItemMixin):
    __tablename__ = "quotation_items"

    quotation_id = Column(Uuid(as_uuid=True), ForeignKey("quotations.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True)
    line_number = Column(Integer, nullable=False, default=1)

    quotation = relationship("Quotation", back_populates="items")


class SalesOrder(Base, BaseMixin, DocumentTotalsMixin):
    __tablename__ = "sales_orders"

    order_number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    quotation_id = Column(Uuid(as_uuid=True), ForeignKey("quotations.id"), nullable=True)
    order_date = Column(Date, nullable=False, default=date.today)
    expected_delivery_date = Column(Date, nullable=True)
    status = Column(String(30), nullable=False, default=SalesOrderStatus.DRAFT.value, index=True)
    invoice_id = Column(Uuid(as_uuid=True), nullable=True)  # factura generada desde la orden
    delivery_address = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    customer = relationship("Customer")
    items = relationship("SalesOrderItem", back_populates="sales_order", cascade="all, delete-orphan",
                         order_by="SalesOrderItem.line_number")

    __table_args__ = (
        UniqueConstraint("tenant_id", "order_number", name="uq_sales_order_tenant_number"),
    )


class SalesOrderItem(Base, BaseMixin, LineItemMixin):
    __tablename__ = "sales_order_items"

    sales_order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_orders.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True)
    line_number = Column(Integer, nullable=False, default=1)
    delivered_quantity = Column(Numeric(12, 2), nullable=False, default=0)

    sales_order = relationship("SalesOrder", back_populates="items")


class Invoice(Base, BaseMixin, DocumentTotalsMixin):
    __tablename__ = "invoices"

    invoice_number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    sales_order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_orders.id"), nullable=True)
    invoice_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value, index=True)
    currency = Column(String(3), nullable=False, default="KES")
    amount_paid = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    customer = relationship("Customer")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceItem.line_number")

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoice_tenant_number"),
    )

    @property
    def balance_due(self):
        """Saldo pendiente"""
        return (self.total_amount or 0) - (self.amount_paid or 0)


class InvoiceItem(Base, BaseMixin, LineItemMixin):
    __tablename__ = "invoice_items"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=True)
    line_number = Column(Integer, nullable=False, default=1)

    invoice = relationship("Invoice", back_populates="items")


class DeliveryNote(Base, BaseMixin):
    __tablename__ = "delivery_notes"

    delivery_number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    sales_order_id = Column(Uuid(as_uuid=True), ForeignKey("sales_orders.id"), nullable=True)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    delivery_date = Column(Date, nullable=False, default=date.today)
    status = Column(String(20), nullable=False, default=DeliveryNoteStatus.DELIVERED.value)
    delivery_address = Column(String(255), nullable=True)
    received_by = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    items = relationship("DeliveryNoteItem", back_populates="delivery_note", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "delivery_number", name="uq_delivery_note_tenant_number"),
    )


class DeliveryNoteItem(Base, BaseMixin):
    __tablename__ = "delivery_note_items"

    delivery_note_id = Column(Uuid(as_uuid=True), ForeignKey("delivery_notes.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    sales_order_item_id = Column(Uuid(as_uuid=True), ForeignKey("sales_order_items.id"), nullable=True)
    description = Column(String(255), nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False)

    delivery_note = relationship("DeliveryNote", back_populates="items")


class CustomerReturn(Base, BaseMixin):
    __tablename__ = "customer_returns"

    return_number = Column(String(50), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    return_date = Column(Date, nullable=False, default=date.today)
    reason = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="received")
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    items = relationship("CustomerReturnItem", back_populates="customer_return", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "return_number", name="uq_customer_return_tenant_number"),
    )


class CustomerReturnItem(Base, BaseMixin):
    __tablename__ = "customer_return_items"

    customer_return_id = Column(Uuid(as_uuid=True), ForeignKey("customer_returns.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False, default=0)
    condition = Column(String(20), nullable=False, default="good")

    customer_return = relationship("CustomerReturn", back_populates="items")

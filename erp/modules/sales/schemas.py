from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date, datetime

from erp.common.schemas import LineItemCreate, LineItemOut
from erp.modules.sales.models import QuotationStatus


class DocumentTotalsOut(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


# ===== Cotizaciones =====

class QuotationCreate(BaseModel):
    quotation_number: Optional[str] = Field(None, max_length=50, description="Si se omite se asigna automáticamente")
    customer_id: UUID
    quotation_date: date = Field(default_factory=date.today)
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.valid_until and self.valid_until < self.quotation_date:
            raise ValueError('La fecha de validez no puede ser anterior a la fecha de la cotización')
        return self


class QuotationUpdate(BaseModel):
    valid_until: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class QuotationStatusUpdate(BaseModel):
    status: QuotationStatus

    @model_validator(mode='after')
    def not_converted(self):
        if self.status == QuotationStatus.CONVERTED:
            raise ValueError('Use el endpoint de conversión para generar la orden de venta')
        return self


class QuotationOut(DocumentTotalsOut):
    id: UUID
    quotation_number: str
    customer_id: UUID
    quotation_date: date
    valid_until: Optional[date] = None
    status: str
    notes: Optional[str] = None
    terms: Optional[str] = None
    sales_order_id: Optional[UUID] = None
    created_at: datetime
    items: List[LineItemOut] = []

    class Config:
        from_attributes = True


class QuotationList(BaseModel):
    items: List[QuotationOut]
    total: int
    limit: int
    offset: int


# ===== Órdenes de venta =====

class SalesOrderCreate(BaseModel):
    order_number: Optional[str] = Field(None, max_length=50)
    customer_id: UUID
    order_date: date = Field(default_factory=date.today)
    expected_delivery_date: Optional[date] = None
    delivery_address: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1)


class SalesOrderUpdate(BaseModel):
    expected_delivery_date: Optional[date] = None
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class ConvertQuotation(BaseModel):
    order_number: Optional[str] = Field(None, max_length=50)
    expected_delivery_date: Optional[date] = None


class SalesOrderItemOut(LineItemOut):
    delivered_quantity: Decimal


class SalesOrderOut(DocumentTotalsOut):
    id: UUID
    order_number: str
    customer_id: UUID
    quotation_id: Optional[UUID] = None
    order_date: date
    expected_delivery_date: Optional[date] = None
    status: str
    invoice_id: Optional[UUID] = None
    delivery_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    items: List[SalesOrderItemOut] = []

    class Config:
        from_attributes = True


class SalesOrderList(BaseModel):
    items: List[SalesOrderOut]
    total: int
    limit: int
    offset: int


class SalesOrderStats(BaseModel):
    """Resumen de órdenes; total_value excluye las canceladas."""
    total_orders: int
    total_value: Decimal
    by_status: Dict[str, int]
    pending_delivery: int
    overdue_deliveries: int
    due_soon: int
    recent_orders: int


# ===== Facturas =====

class InvoiceCreate(BaseModel):
    invoice_number: Optional[str] = Field(None, max_length=50)
    customer_id: UUID
    invoice_date: date = Field(default_factory=date.today)
    due_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")

    @model_validator(mode='after')
    def validate_due_date(self):
        if self.due_date and self.due_date < self.invoice_date:
            raise ValueError('La fecha de vencimiento no puede ser anterior a la fecha de emisión')
        return self


class InvoiceUpdate(BaseModel):
    due_date: Optional[date] = None
    notes: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class InvoiceFromOrder(BaseModel):
    invoice_number: Optional[str] = Field(None, max_length=50)
    due_date: Optional[date] = None


class InvoiceOut(DocumentTotalsOut):
    id: UUID
    invoice_number: str
    customer_id: UUID
    sales_order_id: Optional[UUID] = None
    invoice_date: date
    due_date: Optional[date] = None
    status: str
    currency: str
    amount_paid: Decimal
    balance_due: Decimal
    notes: Optional[str] = None
    created_at: datetime
    items: List[LineItemOut] = []

    class Config:
        from_attributes = True


class InvoiceList(BaseModel):
    items: List[InvoiceOut]
    total: int
    limit: int
    offset: int


# ===== Notas de entrega =====

class DeliveryNoteItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0)
    sales_order_item_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=255)


class DeliveryNoteCreate(BaseModel):
    delivery_number: Optional[str] = Field(None, max_length=50)
    customer_id: Optional[UUID] = Field(None, description="Obligatorio si no se envía sales_order_id")
    sales_order_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    warehouse_id: Optional[UUID] = Field(None, description="Si se omite se usa la bodega predeterminada")
    delivery_date: date = Field(default_factory=date.today)
    delivery_address: Optional[str] = Field(None, max_length=255)
    received_by: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    items: List[DeliveryNoteItemCreate] = Field(
        default_factory=list,
        description="Vacío con sales_order_id: se entrega todo lo pendiente de la orden"
    )

    @model_validator(mode='after')
    def customer_or_order(self):
        if self.customer_id is None and self.sales_order_id is None:
            raise ValueError('Se requiere customer_id o sales_order_id')
        if not self.items and self.sales_order_id is None:
            raise ValueError('Debe incluir al menos un item')
        return self


class DeliveryNoteItemOut(BaseModel):
    id: UUID
    product_id: UUID
    sales_order_item_id: Optional[UUID] = None
    description: Optional[str] = None
    quantity: Decimal

    class Config:
        from_attributes = True


class DeliveryNoteOut(BaseModel):
    id: UUID
    delivery_number: str
    customer_id: UUID
    sales_order_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    warehouse_id: UUID
    delivery_date: date
    status: str
    delivery_address: Optional[str] = None
    received_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    items: List[DeliveryNoteItemOut] = []

    class Config:
        from_attributes = True


# ===== Devoluciones de clientes =====

class CustomerReturnItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    condition: str = Field("good", max_length=20)


class CustomerReturnCreate(BaseModel):
    return_number: Optional[str] = Field(None, max_length=50)
    customer_id: UUID
    invoice_id: Optional[UUID] = None
    warehouse_id: Optional[UUID] = None
    return_date: date = Field(default_factory=date.today)
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    items: List[CustomerReturnItemCreate] = Field(..., min_length=1)


class CustomerReturnItemOut(BaseModel):
    id: UUID
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    condition: str

    class Config:
        from_attributes = True


class CustomerReturnOut(BaseModel):
    id: UUID
    return_number: str
    customer_id: UUID
    invoice_id: Optional[UUID] = None
    warehouse_id: UUID
    return_date: date
    reason: Optional[str] = None
    status: str
    total_amount: Decimal
    notes: Optional[str] = None
    created_at: datetime
    items: List[CustomerReturnItemOut] = []

    class Config:
        from_attributes = True

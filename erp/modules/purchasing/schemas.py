from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from erp.common.schemas import LineItemCreate, LineItemOut
from erp.common.validators import clean_optional_phone, validate_kra_pin
from erp.modules.purchasing.models import SupplierType, ReturnType


# ===== Proveedores =====

class VendorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    supplier_type: SupplierType = SupplierType.COMPANY
    contact_person: Optional[str] = Field(None, max_length=150)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    tax_id: Optional[str] = Field(None, description="PIN de la KRA")
    preferred_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms: int = Field(30, ge=0, le=365)
    lead_time_days: Optional[int] = Field(None, ge=0)
    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return clean_optional_phone(v)

    @field_validator('tax_id')
    @classmethod
    def validate_tax_id(cls, v):
        if v is None or v.strip() == "":
            return None
        if not validate_kra_pin(v):
            raise ValueError('PIN de la KRA inválido (ej: A123456789B)')
        return v.strip().upper()


class VendorCreate(VendorBase):
    vendor_number: Optional[str] = Field(None, max_length=50, description="Si se omite se asigna automáticamente")


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    preferred_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms: Optional[int] = Field(None, ge=0, le=365)
    lead_time_days: Optional[int] = Field(None, ge=0)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v):
        return clean_optional_phone(v)


class VendorOut(BaseModel):
    id: UUID
    vendor_number: str
    name: str
    company_name: Optional[str] = None
    supplier_type: str
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    tax_id: Optional[str] = None
    preferred_currency: Optional[str] = None
    payment_terms: int
    lead_time_days: Optional[int] = None
    credit_limit: Decimal
    notes: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VendorList(BaseModel):
    items: List[VendorOut]
    total: int
    limit: int
    offset: int


# ===== Órdenes de compra =====

class PurchaseOrderCreate(BaseModel):
    po_number: Optional[str] = Field(None, max_length=50)
    vendor_id: UUID
    order_date: date = Field(default_factory=date.today)
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: List[LineItemCreate] = Field(..., min_length=1, description="Debe incluir al menos un item")

    @model_validator(mode='after')
    def validate_dates(self):
        if self.expected_delivery_date and self.expected_delivery_date < self.order_date:
            raise ValueError('La fecha de entrega esperada no puede ser anterior a la fecha de la orden')
        return self


class PurchaseOrderUpdate(BaseModel):
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    items: Optional[List[LineItemCreate]] = Field(None, min_length=1)


class PurchaseOrderItemOut(LineItemOut):
    received_quantity: Decimal


class PurchaseOrderOut(BaseModel):
    id: UUID
    po_number: str
    vendor_id: UUID
    order_date: date
    expected_delivery_date: Optional[date] = None
    status: str
    currency: str
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: Optional[str] = None
    terms: Optional[str] = None
    created_at: datetime
    items: List[PurchaseOrderItemOut] = []

    class Config:
        from_attributes = True


class PurchaseOrderList(BaseModel):
    items: List[PurchaseOrderOut]
    total: int
    limit: int
    offset: int


# ===== Recepción de mercancía =====

class GoodsReceivingItemCreate(BaseModel):
    purchase_order_item_id: UUID
    received_quantity: Decimal = Field(..., gt=0)
    rejected_quantity: Decimal = Field(Decimal("0"), ge=0)
    batch_number: Optional[str] = Field(None, max_length=50)
    condition_status: str = Field("good", max_length=20)
    rejection_reason: Optional[str] = Field(None, max_length=255)

    @model_validator(mode='after')
    def rejected_within_received(self):
        if self.rejected_quantity > self.received_quantity:
            raise ValueError('La cantidad rechazada no puede superar la recibida')
        return self


class GoodsReceivingCreate(BaseModel):
    grn_number: Optional[str] = Field(None, max_length=50)
    purchase_order_id: UUID
    warehouse_id: Optional[UUID] = Field(None, description="Si se omite se usa la bodega predeterminada")
    receiving_date: date = Field(default_factory=date.today)
    received_by: Optional[str] = Field(None, max_length=100)
    delivery_note_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    items: List[GoodsReceivingItemCreate] = Field(
        default_factory=list,
        description="Vacío: se recibe todo lo pendiente de la orden"
    )


class GoodsReceivingItemOut(BaseModel):
    id: UUID
    purchase_order_item_id: UUID
    product_id: Optional[UUID] = None
    description: Optional[str] = None
    ordered_quantity: Decimal
    received_quantity: Decimal
    rejected_quantity: Decimal
    accepted_quantity: Decimal
    unit_price: Decimal
    total_value: Decimal
    batch_number: Optional[str] = None
    condition_status: str
    rejection_reason: Optional[str] = None

    class Config:
        from_attributes = True


class GoodsReceivingOut(BaseModel):
    id: UUID
    grn_number: str
    purchase_order_id: UUID
    vendor_id: UUID
    warehouse_id: UUID
    receiving_date: date
    status: str
    received_by: Optional[str] = None
    delivery_note_number: Optional[str] = None
    total_value: Decimal
    notes: Optional[str] = None
    created_at: datetime
    items: List[GoodsReceivingItemOut] = []

    class Config:
        from_attributes = True


# ===== Devoluciones a proveedor =====

class PurchaseReturnItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Si se omite se toma de la recepción o del costo")


class PurchaseReturnCreate(BaseModel):
    return_number: Optional[str] = Field(None, max_length=50)
    vendor_id: UUID
    grn_id: Optional[UUID] = None
    warehouse_id: Optional[UUID] = None
    return_date: date = Field(default_factory=date.today)
    return_type: ReturnType = ReturnType.REFUND
    reason: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = None
    items: List[PurchaseReturnItemCreate] = Field(..., min_length=1)


class PurchaseReturnItemOut(BaseModel):
    id: UUID
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class PurchaseReturnOut(BaseModel):
    id: UUID
    return_number: str
    vendor_id: UUID
    grn_id: Optional[UUID] = None
    warehouse_id: UUID
    return_date: date
    return_type: str
    reason: str
    status: str
    total_value: Decimal
    notes: Optional[str] = None
    created_at: datetime
    items: List[PurchaseReturnItemOut] = []

    class Config:
        from_attributes = True

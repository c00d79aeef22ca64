from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from erp.modules.inventory.models import MovementType


# Category schemas
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    parent_id: Optional[UUID] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class CategoryOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# Warehouse schemas
class WarehouseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    is_default: bool = False

    @field_validator('code')
    @classmethod
    def upper_code(cls, v):
        return v.strip().upper()


class WarehouseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = None
    city: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class WarehouseOut(BaseModel):
    id: UUID
    code: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    is_default: bool
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# Product schemas
class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    barcode: Optional[str] = Field(None, max_length=50)
    unit_of_measure: str = Field("unit", max_length=20)
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    selling_price: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    reorder_level: Decimal = Field(Decimal("0"), ge=0)
    track_inventory: bool = True
    category_id: Optional[UUID] = None

    @field_validator('sku')
    @classmethod
    def upper_sku(cls, v):
        return v.strip().upper()


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    barcode: Optional[str] = None
    unit_of_measure: Optional[str] = None
    cost_price: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    reorder_level: Optional[Decimal] = Field(None, ge=0)
    track_inventory: Optional[bool] = None
    category_id: Optional[UUID] = None


class ProductOut(BaseModel):
    id: UUID
    sku: str
    name: str
    description: Optional[str] = None
    barcode: Optional[str] = None
    unit_of_measure: str
    cost_price: Decimal
    selling_price: Decimal
    tax_rate: Decimal
    reorder_level: Decimal
    track_inventory: bool
    category_id: Optional[UUID] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    items: List[ProductOut]
    total: int
    limit: int
    offset: int


# Stock schemas
class StockOut(BaseModel):
    id: UUID
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal
    product_name: Optional[str] = None
    product_sku: Optional[str] = None
    warehouse_name: Optional[str] = None

    class Config:
        from_attributes = True


class ProductStockSummary(BaseModel):
    product_id: UUID
    product_name: str
    product_sku: str
    total_quantity: Decimal
    reorder_level: Decimal
    warehouse_stocks: List[StockOut]


class LowStockItem(BaseModel):
    product_id: UUID
    product_name: str
    product_sku: str
    warehouse_id: UUID
    warehouse_name: str
    quantity: Decimal
    reorder_level: Decimal


class CategoryStockValue(BaseModel):
    category_id: Optional[UUID] = None
    category_name: str
    product_count: int
    quantity: Decimal
    stock_value: Decimal


class InventoryStats(BaseModel):
    """Totals for the inventory dashboard. Values use cost price; retail value uses selling price."""
    total_products: int
    tracked_products: int
    total_quantity: Decimal
    stock_value: Decimal
    retail_value: Decimal
    low_stock_items: int
    out_of_stock_products: int
    categories: List[CategoryStockValue]


# Movement schemas
class StockMovementCreate(BaseModel):
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal = Field(..., description="Positivo para IN, negativo para OUT")
    movement_type: MovementType
    reference: Optional[str] = Field(None, max_length=100, description="Orden/factura de referencia")
    notes: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_sign(self):
        if self.quantity == 0:
            raise ValueError("La cantidad del movimiento no puede ser cero")
        if self.movement_type == MovementType.IN and self.quantity < 0:
            raise ValueError("Un movimiento IN debe tener cantidad positiva")
        if self.movement_type == MovementType.OUT and self.quantity > 0:
            raise ValueError("Un movimiento OUT debe tener cantidad negativa")
        if self.movement_type not in (MovementType.IN, MovementType.OUT):
            raise ValueError("Use los endpoints de ajuste o transferencia para ese tipo de movimiento")
        return self


class StockMovementOut(BaseModel):
    id: UUID
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal
    balance_after: Decimal
    movement_type: str
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Adjustment / transfer schemas
class StockAdjustmentCreate(BaseModel):
    adjustment_number: Optional[str] = Field(None, max_length=50)
    product_id: UUID
    warehouse_id: UUID
    new_quantity: Decimal = Field(..., ge=0, description="Cantidad contada")
    reason: Optional[str] = Field(None, max_length=255)


class StockAdjustmentOut(BaseModel):
    id: UUID
    adjustment_number: str
    product_id: UUID
    warehouse_id: UUID
    previous_quantity: Decimal
    new_quantity: Decimal
    difference: Decimal
    reason: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StockTransferCreate(BaseModel):
    product_id: UUID
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    quantity: Decimal = Field(..., gt=0, description="Cantidad a transferir")
    notes: Optional[str] = Field(None, max_length=255)


class StockTransferOut(BaseModel):
    transfer_number: str
    movements: List[StockMovementOut]

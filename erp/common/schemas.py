"""
Shared schemas for priced document lines
"""
from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional
from uuid import UUID


class LineItemCreate(BaseModel):
    product_id: Optional[UUID] = None
    description: Optional[str] = Field(None, max_length=255)
    quantity: Decimal = Field(..., gt=0, description="Cantidad debe ser mayor a 0")
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Si se omite se toma el precio del producto")
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100, description="Si se omite se toma el del producto")

    @model_validator(mode="after")
    def product_or_description(self):
        if self.product_id is None and not self.description:
            raise ValueError("Cada línea necesita un producto o una descripción")
        if self.product_id is None and self.unit_price is None:
            raise ValueError("Las líneas sin producto necesitan precio unitario")
        return self


class LineItemOut(BaseModel):
    id: UUID
    line_number: int
    product_id: Optional[UUID] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    discount_percentage: Decimal
    tax_rate: Decimal
    line_subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True

from sqlalchemy import Column, String, Boolean, Numeric, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin, SoftDeleteMixin


class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    ADJ = "ADJ"
    TRANSFER = "TRANSFER"
    RETURN = "RETURN"


class Category(Base, BaseMixin):
    __tablename__ = "categories"

    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    products = relationship("Product", back_populates="category")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_category_tenant_name"),
    )


class Warehouse(Base, BaseMixin):
    __tablename__ = "warehouses"

    code = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    stocks = relationship("Stock", back_populates="warehouse")

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_warehouse_tenant_code"),
    )


class Product(Base, BaseMixin, SoftDeleteMixin):
    __tablename__ = "products"

    sku = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    barcode = Column(String(50), nullable=True)
    unit_of_measure = Column(String(20), nullable=False, default="unit")
    cost_price = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de costo
    selling_price = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de venta
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)  # % (16 = IVA Kenia)
    reorder_level = Column(Numeric(12, 2), nullable=False, default=0)  # Alerta de stock bajo
    track_inventory = Column(Boolean, nullable=False, default=True)

    category_id = Column(Uuid(as_uuid=True), ForeignKey("categories.id"), nullable=True)

    category = relationship("Category", back_populates="products")
    stocks = relationship("Stock", back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
    )


class Stock(Base, BaseMixin):
    __tablename__ = "stocks"

    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False, default=0)

    product = relationship("Product", back_populates="stocks")
    warehouse = relationship("Warehouse", back_populates="stocks")

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", "warehouse_id", name="uq_stock_tenant_product_warehouse"),
    )


class StockMovement(Base, BaseMixin):
    __tablename__ = "stock_movements"

    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)  # positivo entra, negativo sale
    balance_after = Column(Numeric(12, 2), nullable=False)
    movement_type = Column(String(20), nullable=False)
    reference = Column(String(100), nullable=True)  # número del documento origen
    notes = Column(String(255), nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    product = relationship("Product")
    warehouse = relationship("Warehouse")


class StockAdjustment(Base, BaseMixin):
    __tablename__ = "stock_adjustments"

    adjustment_number = Column(String(50), nullable=False)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id"), nullable=False)
    warehouse_id = Column(Uuid(as_uuid=True), ForeignKey("warehouses.id"), nullable=False)
    previous_quantity = Column(Numeric(12, 2), nullable=False)
    new_quantity = Column(Numeric(12, 2), nullable=False)
    difference = Column(Numeric(12, 2), nullable=False)
    reason = Column(String(255), nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    product = relationship("Product")
    warehouse = relationship("Warehouse")

    __table_args__ = (
        UniqueConstraint("tenant_id", "adjustment_number", name="uq_stock_adjustment_tenant_number"),
    )

from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from erp.core.config import settings
from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.inventory.models import MovementType
from erp.modules.inventory.service import CategoryService, WarehouseService, ProductService, StockService
from erp.modules.inventory.schemas import (
    CategoryCreate, CategoryUpdate, CategoryOut, WarehouseCreate, WarehouseUpdate, WarehouseOut,
    ProductCreate, ProductUpdate, ProductOut, ProductList, StockOut, ProductStockSummary, LowStockItem,
    StockMovementCreate, StockMovementOut, StockAdjustmentCreate, StockAdjustmentOut,
    StockTransferCreate, StockTransferOut, InventoryStats
)

ADMIN_ROLES = ["owner", "admin"]
STOCK_ROLES = ["owner", "admin", "seller"]

categories_router = APIRouter(prefix="/categories", tags=["Categories"])
warehouses_router = APIRouter(prefix="/warehouses", tags=["Warehouses"])
products_router = APIRouter(prefix="/products", tags=["Products"])
stock_router = APIRouter(prefix="/stock", tags=["Stock Management"])


# ===== CATEGORÍAS =====

@categories_router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return CategoryService(db).create_category(data, auth_context.tenant_id)


@categories_router.get("", response_model=List[CategoryOut])
async def get_categories(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CategoryService(db).get_categories(auth_context.tenant_id, include_inactive)


@categories_router.get("/{category_id}", response_model=CategoryOut)
async def get_category(
    category_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CategoryService(db).get_category(category_id, auth_context.tenant_id)


@categories_router.put("/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return CategoryService(db).update_category(category_id, data, auth_context.tenant_id)


@categories_router.delete("/{category_id}")
async def delete_category(
    category_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    CategoryService(db).delete_category(category_id, auth_context.tenant_id)
    return {"message": "Categoría desactivada"}


# ===== BODEGAS =====

@warehouses_router.post("", response_model=WarehouseOut, status_code=status.HTTP_201_CREATED)
async def create_warehouse(
    data: WarehouseCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """La primera bodega de la empresa queda como predeterminada."""
    return WarehouseService(db).create_warehouse(data, auth_context.tenant_id)


@warehouses_router.get("", response_model=List[WarehouseOut])
async def get_warehouses(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return WarehouseService(db).get_warehouses(auth_context.tenant_id, include_inactive)


@warehouses_router.get("/{warehouse_id}", response_model=WarehouseOut)
async def get_warehouse(
    warehouse_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return WarehouseService(db).get_warehouse(warehouse_id, auth_context.tenant_id)


@warehouses_router.put("/{warehouse_id}", response_model=WarehouseOut)
async def update_warehouse(
    warehouse_id: UUID,
    data: WarehouseUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return WarehouseService(db).update_warehouse(warehouse_id, data, auth_context.tenant_id)


# ===== PRODUCTOS =====

@products_router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """
    Crear producto

    - **sku**: único por empresa (se guarda en mayúsculas)
    - **tax_rate**: porcentaje de impuesto aplicado en los documentos de venta
    - **reorder_level**: cantidad a partir de la cual el producto aparece en stock bajo
    """
    return ProductService(db).create_product(data, auth_context.tenant_id)


@products_router.get("", response_model=ProductList)
async def get_products(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Nombre, SKU o código de barras"),
    category_id: Optional[UUID] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return ProductService(db).get_products(
        auth_context.tenant_id, limit, offset, search, category_id, include_inactive
    )


@products_router.get("/{product_id}", response_model=ProductOut)
async def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return ProductService(db).get_product(product_id, auth_context.tenant_id)


@products_router.put("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return ProductService(db).update_product(product_id, data, auth_context.tenant_id)


@products_router.delete("/{product_id}")
async def delete_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    ProductService(db).delete_product(product_id, auth_context.tenant_id)
    return {"message": "Producto eliminado exitosamente"}


@products_router.post("/{product_id}/restore", response_model=ProductOut)
async def restore_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return ProductService(db).restore_product(product_id, auth_context.tenant_id)


# ===== STOCK =====

@stock_router.get("", response_model=List[StockOut])
async def get_stock(
    product_id: Optional[UUID] = Query(None),
    warehouse_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return StockService(db).get_stock(auth_context.tenant_id, product_id, warehouse_id)


@stock_router.get("/low-stock", response_model=List[LowStockItem])
async def get_low_stock(
    warehouse_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    """Productos con stock igual o menor a su nivel de reorden."""
    return StockService(db).get_low_stock(auth_context.tenant_id, warehouse_id)


@stock_router.get("/stats", response_model=InventoryStats)
async def get_inventory_stats(
    warehouse_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    """
    Resumen del inventario

    Valor del stock a costo y a precio de venta, productos bajo el nivel de
    reorden, productos sin existencias y desglose por categoría.
    """
    return StockService(db).get_inventory_stats(auth_context.tenant_id, warehouse_id)


@stock_router.get("/product/{product_id}/summary", response_model=ProductStockSummary)
async def get_product_stock_summary(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return StockService(db).get_product_stock_summary(auth_context.tenant_id, product_id)


@stock_router.post("/movements", response_model=StockMovementOut, status_code=status.HTTP_201_CREATED)
async def create_movement(
    data: StockMovementCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(STOCK_ROLES))
):
    """Entrada (IN, cantidad positiva) o salida (OUT, cantidad negativa) manual."""
    return StockService(db).create_movement(auth_context.tenant_id, data, auth_context.user_id)


@stock_router.get("/movements", response_model=List[StockMovementOut])
async def get_movements(
    product_id: Optional[UUID] = Query(None),
    warehouse_id: Optional[UUID] = Query(None),
    movement_type: Optional[MovementType] = Query(None),
    reference: Optional[str] = Query(None, description="Número del documento origen"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return StockService(db).get_movements(
        auth_context.tenant_id, product_id, warehouse_id, movement_type, reference, limit, offset
    )


@stock_router.post("/adjustments", response_model=StockAdjustmentOut, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    data: StockAdjustmentCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """Ajustar el stock a la cantidad contada (número de ajuste automático)."""
    return StockService(db).create_adjustment(auth_context.tenant_id, data, auth_context.user_id)


@stock_router.get("/adjustments", response_model=List[StockAdjustmentOut])
async def get_adjustments(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return StockService(db).get_adjustments(auth_context.tenant_id, limit, offset)


@stock_router.post("/transfers", response_model=StockTransferOut, status_code=status.HTTP_201_CREATED)
async def transfer_stock(
    data: StockTransferCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(STOCK_ROLES))
):
    return StockService(db).transfer_stock(auth_context.tenant_id, data, auth_context.user_id)

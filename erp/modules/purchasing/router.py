"""
Router para compras

- /vendors, /purchase-orders, /goods-receiving, /purchase-returns
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from erp.core.config import settings
from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.purchasing.models import PurchaseOrderStatus
from erp.modules.purchasing.service import (
    VendorService, PurchaseOrderService, GoodsReceivingService, PurchaseReturnService
)
from erp.modules.purchasing.schemas import (
    VendorCreate, VendorUpdate, VendorOut, VendorList,
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderOut, PurchaseOrderList,
    GoodsReceivingCreate, GoodsReceivingOut, PurchaseReturnCreate, PurchaseReturnOut
)

PURCHASE_ROLES = ["owner", "admin", "accountant"]
RECEIVING_ROLES = ["owner", "admin", "accountant", "seller"]

vendors_router = APIRouter(prefix="/vendors", tags=["Vendors"])
purchase_orders_router = APIRouter(prefix="/purchase-orders", tags=["Purchase Orders"])
goods_receiving_router = APIRouter(prefix="/goods-receiving", tags=["Goods Receiving"])
purchase_returns_router = APIRouter(prefix="/purchase-returns", tags=["Purchase Returns"])


# ===== PROVEEDORES =====

@vendors_router.post("", response_model=VendorOut, status_code=status.HTTP_201_CREATED)
async def create_vendor(
    vendor_data: VendorCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    """
    Crear proveedor

    - **vendor_number**: opcional; si se omite se asigna del contador `vendor`
    """
    return VendorService(db).create_vendor(vendor_data, auth_context.tenant_id, auth_context.user_id)


@vendors_router.get("", response_model=VendorList)
async def get_vendors(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return VendorService(db).get_vendors(auth_context.tenant_id, limit, offset, search, include_inactive)


@vendors_router.get("/{vendor_id}", response_model=VendorOut)
async def get_vendor(
    vendor_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return VendorService(db).get_vendor(vendor_id, auth_context.tenant_id)


@vendors_router.put("/{vendor_id}", response_model=VendorOut)
async def update_vendor(
    vendor_id: UUID,
    vendor_data: VendorUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    return VendorService(db).update_vendor(vendor_id, vendor_data, auth_context.tenant_id)


@vendors_router.delete("/{vendor_id}")
async def delete_vendor(
    vendor_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    """Desactivar proveedor (status='inactive')"""
    VendorService(db).delete_vendor(vendor_id, auth_context.tenant_id)
    return {"message": "Proveedor desactivado"}


@vendors_router.post("/{vendor_id}/restore", response_model=VendorOut)
async def restore_vendor(
    vendor_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    return VendorService(db).restore_vendor(vendor_id, auth_context.tenant_id)


# ===== ÓRDENES DE COMPRA =====

@purchase_orders_router.post("", response_model=PurchaseOrderOut, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    order_data: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    """
    Crear orden de compra en borrador

    - **po_number**: opcional; si se omite se asigna del contador `purchase_order`
    - **items**: el precio por defecto es el costo del producto
    """
    return PurchaseOrderService(db).create_order(order_data, auth_context.tenant_id, auth_context.user_id)


@purchase_orders_router.get("", response_model=PurchaseOrderList)
async def get_purchase_orders(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    order_status: Optional[PurchaseOrderStatus] = Query(None, alias="status"),
    vendor_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return PurchaseOrderService(db).get_orders(
        auth_context.tenant_id, limit, offset, order_status.value if order_status else None, vendor_id
    )


@purchase_orders_router.get("/{order_id}", response_model=PurchaseOrderOut)
async def get_purchase_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return PurchaseOrderService(db).get_order(order_id, auth_context.tenant_id)


@purchase_orders_router.put("/{order_id}", response_model=PurchaseOrderOut)
async def update_purchase_order(
    order_id: UUID,
    order_data: PurchaseOrderUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    return PurchaseOrderService(db).update_order(order_id, order_data, auth_context.tenant_id)


@purchase_orders_router.post("/{order_id}/send", response_model=PurchaseOrderOut)
async def send_purchase_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    return PurchaseOrderService(db).send_order(order_id, auth_context.tenant_id)


@purchase_orders_router.post("/{order_id}/confirm", response_model=PurchaseOrderOut)
async def confirm_purchase_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    return PurchaseOrderService(db).confirm_order(order_id, auth_context.tenant_id)


@purchase_orders_router.post("/{order_id}/cancel", response_model=PurchaseOrderOut)
async def cancel_purchase_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    return PurchaseOrderService(db).cancel_order(order_id, auth_context.tenant_id)


@purchase_orders_router.delete("/{order_id}")
async def delete_purchase_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PURCHASE_ROLES))
):
    PurchaseOrderService(db).delete_order(order_id, auth_context.tenant_id)
    return {"message": "Orden de compra eliminada"}


# ===== RECEPCIÓN DE MERCANCÍA =====

@goods_receiving_router.post("", response_model=GoodsReceivingOut, status_code=status.HTTP_201_CREATED)
async def create_goods_receiving(
    grn_data: GoodsReceivingCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(RECEIVING_ROLES))
):
    """
    Registrar recepción (GRN) de una orden de compra enviada o confirmada.

    Sin items se recibe todo lo pendiente. Lo aceptado entra al stock.
    """
    return GoodsReceivingService(db).create_grn(grn_data, auth_context.tenant_id, auth_context.user_id)


@goods_receiving_router.get("", response_model=List[GoodsReceivingOut])
async def get_goods_receiving(
    purchase_order_id: Optional[UUID] = Query(None),
    vendor_id: Optional[UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return GoodsReceivingService(db).get_grns(auth_context.tenant_id, purchase_order_id, vendor_id, limit, offset)


@goods_receiving_router.get("/{grn_id}", response_model=GoodsReceivingOut)
async def get_goods_receiving_note(
    grn_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return GoodsReceivingService(db).get_grn(grn_id, auth_context.tenant_id)


# ===== DEVOLUCIONES A PROVEEDOR =====

@purchase_returns_router.post("", response_model=PurchaseReturnOut, status_code=status.HTTP_201_CREATED)
async def create_purchase_return(
    return_data: PurchaseReturnCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(RECEIVING_ROLES))
):
    """Registrar devolución a proveedor; descuenta el stock de la bodega."""
    return PurchaseReturnService(db).create_return(return_data, auth_context.tenant_id, auth_context.user_id)


@purchase_returns_router.get("", response_model=List[PurchaseReturnOut])
async def get_purchase_returns(
    vendor_id: Optional[UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return PurchaseReturnService(db).get_returns(auth_context.tenant_id, vendor_id, limit, offset)


@purchase_returns_router.get("/{return_id}", response_model=PurchaseReturnOut)
async def get_purchase_return(
    return_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return PurchaseReturnService(db).get_return(return_id, auth_context.tenant_id)

"""
Servicios de compras

- Proveedores con número del contador `vendor` y soft delete
- Órdenes de compra (precios por defecto desde el costo del producto)
- Recepción de mercancía (GRN): lo aceptado entra al stock y avanza la orden
- Devoluciones a proveedor: descuentan stock
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import or_, func
from collections import defaultdict
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4
import logging

from erp.core.config import settings
from erp.common.calculations import fill_document, money
from erp.common.transactions import service_transaction
from erp.modules.inventory.models import MovementType
from erp.modules.inventory.service import ProductService, WarehouseService, StockService
from erp.modules.numbering.service import NumberingService
from erp.modules.purchasing.models import (
    Vendor, PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus,
    GoodsReceiving, GoodsReceivingItem, PurchaseReturn, PurchaseReturnItem
)
from erp.modules.purchasing.schemas import (
    VendorCreate, VendorUpdate, VendorList, PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderList,
    GoodsReceivingCreate, PurchaseReturnCreate
)

logger = logging.getLogger(__name__)

RECEIVABLE_STATUSES = (
    PurchaseOrderStatus.SENT.value,
    PurchaseOrderStatus.CONFIRMED.value,
    PurchaseOrderStatus.PARTIALLY_RECEIVED.value,
)


class VendorService:
    """Proveedores"""

    def __init__(self, db: Session):
        self.db = db

    def create_vendor(self, data: VendorCreate, tenant_id: UUID, user_id: UUID) -> Vendor:
        with service_transaction(self.db, "Error interno al crear el proveedor", "Ya existe un proveedor con ese número"):
            vendor_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                Vendor, "vendor_number", tenant_id, "vendor",
                explicit_number=data.vendor_number, reference_id=str(vendor_id), created_by=user_id
            )
            values = data.model_dump(exclude={"vendor_number"})
            values["supplier_type"] = data.supplier_type.value
            values["country"] = values.get("country") or settings.DEFAULT_COUNTRY
            values["preferred_currency"] = values.get("preferred_currency") or settings.DEFAULT_CURRENCY
            vendor = Vendor(id=vendor_id, tenant_id=tenant_id, vendor_number=number, created_by=user_id, **values)
            self.db.add(vendor)

        self.db.refresh(vendor)
        logger.info(f"Vendor {vendor.vendor_number} created for tenant {tenant_id}")
        return vendor

    def get_vendors(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                    search: Optional[str] = None, include_inactive: bool = False) -> VendorList:
        query = self.db.query(Vendor).filter(Vendor.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Vendor.status == "active")
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Vendor.name.ilike(term),
                Vendor.company_name.ilike(term),
                Vendor.email.ilike(term),
                Vendor.vendor_number.ilike(term)
            ))
        total = query.count()
        vendors = query.order_by(Vendor.vendor_number).offset(offset).limit(limit).all()
        return VendorList(items=vendors, total=total, limit=limit, offset=offset)

    def get_vendor(self, vendor_id: UUID, tenant_id: UUID, include_deleted: bool = False) -> Vendor:
        query = self.db.query(Vendor).filter(Vendor.id == vendor_id, Vendor.tenant_id == tenant_id)
        if not include_deleted:
            query = query.filter(Vendor.status == "active")
        vendor = query.first()
        if not vendor:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proveedor no encontrado")
        return vendor

    def require_active_vendor(self, vendor_id: UUID, tenant_id: UUID) -> Vendor:
        vendor = self.db.query(Vendor).filter(Vendor.id == vendor_id, Vendor.tenant_id == tenant_id).first()
        if not vendor or vendor.is_deleted:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El proveedor especificado no existe, está inactivo o no pertenece a esta empresa"
            )
        return vendor

    def update_vendor(self, vendor_id: UUID, data: VendorUpdate, tenant_id: UUID) -> Vendor:
        vendor = self.get_vendor(vendor_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(vendor, field, value)
        self.db.commit()
        self.db.refresh(vendor)
        return vendor

    def delete_vendor(self, vendor_id: UUID, tenant_id: UUID) -> None:
        vendor = self.get_vendor(vendor_id, tenant_id)
        vendor.soft_delete()
        self.db.commit()
        logger.info(f"Vendor {vendor.vendor_number} deactivated")

    def restore_vendor(self, vendor_id: UUID, tenant_id: UUID) -> Vendor:
        vendor = self.get_vendor(vendor_id, tenant_id, include_deleted=True)
        if not vendor.is_deleted:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El proveedor ya está activo")
        vendor.restore()
        self.db.commit()
        self.db.refresh(vendor)
        return vendor


class PurchaseOrderService:
    """Órdenes de compra"""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, data: PurchaseOrderCreate, tenant_id: UUID, user_id: UUID) -> PurchaseOrder:
        vendor = VendorService(self.db).require_active_vendor(data.vendor_id, tenant_id)
        lines = ProductService(self.db).price_lines(data.items, tenant_id, price_field="cost_price")

        with service_transaction(self.db, "Error interno al crear la orden de compra", "Ya existe una orden de compra con ese número"):
            order_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                PurchaseOrder, "po_number", tenant_id, "purchase_order",
                explicit_number=data.po_number, reference_id=str(order_id), created_by=user_id
            )
            order = PurchaseOrder(
                id=order_id,
                tenant_id=tenant_id,
                po_number=number,
                vendor_id=vendor.id,
                order_date=data.order_date,
                expected_delivery_date=data.expected_delivery_date,
                currency=vendor.preferred_currency or settings.DEFAULT_CURRENCY,
                notes=data.notes,
                terms=data.terms,
                created_by=user_id
            )
            fill_document(order, PurchaseOrderItem, lines)
            self.db.add(order)

        self.db.refresh(order)
        logger.info(f"Purchase order {order.po_number} created for vendor {vendor.vendor_number}")
        return order

    def get_orders(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                   status_filter: Optional[str] = None, vendor_id: Optional[UUID] = None) -> PurchaseOrderList:
        query = self.db.query(PurchaseOrder).filter(PurchaseOrder.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(PurchaseOrder.status == status_filter)
        if vendor_id:
            query = query.filter(PurchaseOrder.vendor_id == vendor_id)
        total = query.count()
        orders = query.order_by(PurchaseOrder.created_at.desc()).offset(offset).limit(limit).all()
        return PurchaseOrderList(items=orders, total=total, limit=limit, offset=offset)

    def get_order(self, order_id: UUID, tenant_id: UUID) -> PurchaseOrder:
        order = self.db.query(PurchaseOrder).filter(
            PurchaseOrder.id == order_id,
            PurchaseOrder.tenant_id == tenant_id
        ).first()
        if not order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Orden de compra no encontrada")
        return order

    def update_order(self, order_id: UUID, data: PurchaseOrderUpdate, tenant_id: UUID) -> PurchaseOrder:
        order = self.get_order(order_id, tenant_id)
        if order.status != PurchaseOrderStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden modificar órdenes de compra en borrador"
            )
        values = data.model_dump(exclude_unset=True, exclude={"items"})
        lines = ProductService(self.db).price_lines(data.items, tenant_id, price_field="cost_price") if data.items else None

        with service_transaction(self.db, "Error interno al actualizar la orden de compra"):
            for field, value in values.items():
                setattr(order, field, value)
            if lines is not None:
                fill_document(order, PurchaseOrderItem, lines)

        self.db.refresh(order)
        return order

    def _transition(self, order_id: UUID, tenant_id: UUID, allowed: tuple, new_status: PurchaseOrderStatus) -> PurchaseOrder:
        order = self.get_order(order_id, tenant_id)
        if order.status not in allowed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede pasar de {order.status} a {new_status.value}"
            )
        order.status = new_status.value
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Purchase order {order.po_number} -> {new_status.value}")
        return order

    def send_order(self, order_id: UUID, tenant_id: UUID) -> PurchaseOrder:
        return self._transition(order_id, tenant_id, (PurchaseOrderStatus.DRAFT.value,), PurchaseOrderStatus.SENT)

    def confirm_order(self, order_id: UUID, tenant_id: UUID) -> PurchaseOrder:
        return self._transition(
            order_id, tenant_id,
            (PurchaseOrderStatus.DRAFT.value, PurchaseOrderStatus.SENT.value),
            PurchaseOrderStatus.CONFIRMED
        )

    def cancel_order(self, order_id: UUID, tenant_id: UUID) -> PurchaseOrder:
        order = self.get_order(order_id, tenant_id)
        if any(Decimal(item.received_quantity) > 0 for item in order.items):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede cancelar una orden con mercancía recibida"
            )
        return self._transition(
            order_id, tenant_id,
            (PurchaseOrderStatus.DRAFT.value, PurchaseOrderStatus.SENT.value, PurchaseOrderStatus.CONFIRMED.value),
            PurchaseOrderStatus.CANCELLED
        )

    def delete_order(self, order_id: UUID, tenant_id: UUID) -> None:
        order = self.get_order(order_id, tenant_id)
        if order.status != PurchaseOrderStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden eliminar órdenes de compra en borrador"
            )
        self.db.delete(order)
        self.db.commit()

    def refresh_receiving_status(self, order: PurchaseOrder) -> None:
        if all(Decimal(item.received_quantity) >= Decimal(item.quantity) for item in order.items):
            order.status = PurchaseOrderStatus.RECEIVED.value
        elif any(Decimal(item.received_quantity) > 0 for item in order.items):
            order.status = PurchaseOrderStatus.PARTIALLY_RECEIVED.value


class GoodsReceivingService:
    """Recepción de mercancía contra órdenes de compra"""

    def __init__(self, db: Session):
        self.db = db

    def create_grn(self, data: GoodsReceivingCreate, tenant_id: UUID, user_id: UUID) -> GoodsReceiving:
        """
        Recibir mercancía de una orden de compra.

        La cantidad aceptada (recibida - rechazada) no puede superar lo
        pendiente de la línea; entra al stock y suma a received_quantity.
        """
        orders = PurchaseOrderService(self.db)
        order = orders.get_order(data.purchase_order_id, tenant_id)
        if order.status not in RECEIVABLE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede recibir mercancía de una orden en estado {order.status}"
            )
        warehouse = WarehouseService(self.db).resolve_warehouse(data.warehouse_id, tenant_id)
        products = ProductService(self.db)

        # (línea de la orden, recibida, rechazada, datos de la línea recibida)
        receipts = []
        if not data.items:
            for item in order.items:
                pending = Decimal(item.quantity) - Decimal(item.received_quantity)
                if pending > 0:
                    receipts.append((item, pending, Decimal("0"), None))
            if not receipts:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La orden no tiene cantidades pendientes de recibir"
                )
        else:
            order_items = {item.id: item for item in order.items}
            accepted_so_far = defaultdict(Decimal)
            for entry in data.items:
                item = order_items.get(entry.purchase_order_item_id)
                if item is None:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="La línea no pertenece a la orden de compra"
                    )
                accepted = entry.received_quantity - entry.rejected_quantity
                # lo pendiente descuenta lo aceptado en líneas anteriores de esta misma recepción
                pending = Decimal(item.quantity) - Decimal(item.received_quantity) - accepted_so_far[item.id]
                accepted_so_far[item.id] += accepted
                if accepted > pending:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"La cantidad aceptada ({accepted}) supera lo pendiente de la línea {item.line_number} ({pending})"
                    )
                receipts.append((item, entry.received_quantity, entry.rejected_quantity, entry))

        stock = StockService(self.db)
        with service_transaction(self.db, "Error interno al registrar la recepción", "Ya existe una recepción con ese número"):
            grn_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                GoodsReceiving, "grn_number", tenant_id, "goods_receiving",
                explicit_number=data.grn_number, reference_id=str(grn_id), created_by=user_id
            )
            grn = GoodsReceiving(
                id=grn_id,
                tenant_id=tenant_id,
                grn_number=number,
                purchase_order_id=order.id,
                vendor_id=order.vendor_id,
                warehouse_id=warehouse.id,
                receiving_date=data.receiving_date,
                received_by=data.received_by,
                delivery_note_number=data.delivery_note_number,
                notes=data.notes,
                created_by=user_id
            )
            total_value = Decimal("0.00")
            for item, received, rejected, entry in receipts:
                accepted = received - rejected
                value = money(accepted * Decimal(item.unit_price))
                total_value += value
                grn.items.append(GoodsReceivingItem(
                    tenant_id=tenant_id,
                    purchase_order_item_id=item.id,
                    product_id=item.product_id,
                    description=item.description,
                    ordered_quantity=item.quantity,
                    received_quantity=received,
                    rejected_quantity=rejected,
                    accepted_quantity=accepted,
                    unit_price=item.unit_price,
                    total_value=value,
                    batch_number=entry.batch_number if entry else None,
                    condition_status=entry.condition_status if entry else "good",
                    rejection_reason=entry.rejection_reason if entry else None
                ))
                item.received_quantity = Decimal(item.received_quantity) + accepted
                if item.product_id and accepted > 0:
                    product = products.get_product(item.product_id, tenant_id, include_deleted=True)
                    stock.apply_movement(
                        tenant_id, product, warehouse, accepted, MovementType.IN,
                        user_id=user_id, reference=number, notes=f"Recepción {order.po_number}"
                    )
            grn.total_value = total_value
            self.db.add(grn)
            orders.refresh_receiving_status(order)

        self.db.refresh(grn)
        logger.info(f"GRN {grn.grn_number} received against {order.po_number} ({order.status})")
        return grn

    def get_grns(self, tenant_id: UUID, purchase_order_id: Optional[UUID] = None,
                 vendor_id: Optional[UUID] = None, limit: int = 100, offset: int = 0) -> List[GoodsReceiving]:
        query = self.db.query(GoodsReceiving).filter(GoodsReceiving.tenant_id == tenant_id)
        if purchase_order_id:
            query = query.filter(GoodsReceiving.purchase_order_id == purchase_order_id)
        if vendor_id:
            query = query.filter(GoodsReceiving.vendor_id == vendor_id)
        return query.order_by(GoodsReceiving.created_at.desc()).offset(offset).limit(limit).all()

    def get_grn(self, grn_id: UUID, tenant_id: UUID) -> GoodsReceiving:
        grn = self.db.query(GoodsReceiving).filter(
            GoodsReceiving.id == grn_id,
            GoodsReceiving.tenant_id == tenant_id
        ).first()
        if not grn:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recepción no encontrada")
        return grn


class PurchaseReturnService:
    """Devoluciones a proveedor"""

    def __init__(self, db: Session):
        self.db = db

    def _returned_quantity(self, grn_id: UUID, product_id: UUID) -> Decimal:
        returned = self.db.query(func.sum(PurchaseReturnItem.quantity)).join(
            PurchaseReturn, PurchaseReturnItem.purchase_return_id == PurchaseReturn.id
        ).filter(
            PurchaseReturn.grn_id == grn_id,
            PurchaseReturnItem.product_id == product_id
        ).scalar()
        return Decimal(returned) if returned is not None else Decimal("0")

    def create_return(self, data: PurchaseReturnCreate, tenant_id: UUID, user_id: UUID) -> PurchaseReturn:
        vendor = VendorService(self.db).require_active_vendor(data.vendor_id, tenant_id)
        products = ProductService(self.db)

        grn = None
        if data.grn_id:
            grn = GoodsReceivingService(self.db).get_grn(data.grn_id, tenant_id)
            if grn.vendor_id != vendor.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La recepción no corresponde al proveedor"
                )
        warehouse_id = data.warehouse_id or (grn.warehouse_id if grn else None)
        warehouse = WarehouseService(self.db).resolve_warehouse(warehouse_id, tenant_id)

        lines = []
        requested = defaultdict(Decimal)
        for entry in data.items:
            product = products.get_product(entry.product_id, tenant_id, include_deleted=True)
            unit_price = entry.unit_price
            if grn is not None:
                received = [item for item in grn.items if item.product_id == product.id]
                if not received:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"El producto '{product.name}' no está en la recepción {grn.grn_number}"
                    )
                available = (
                    sum(Decimal(item.accepted_quantity) for item in received)
                    - self._returned_quantity(grn.id, product.id)
                    - requested[product.id]
                )
                requested[product.id] += entry.quantity
                if entry.quantity > available:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Se pueden devolver como máximo {available} de '{product.name}'"
                    )
                if unit_price is None:
                    unit_price = received[0].unit_price
            if unit_price is None:
                unit_price = product.cost_price
            lines.append((product, entry.quantity, money(unit_price)))

        stock = StockService(self.db)
        with service_transaction(self.db, "Error interno al registrar la devolución", "Ya existe una devolución con ese número"):
            return_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                PurchaseReturn, "return_number", tenant_id, "purchase_return",
                explicit_number=data.return_number, reference_id=str(return_id), created_by=user_id
            )
            purchase_return = PurchaseReturn(
                id=return_id,
                tenant_id=tenant_id,
                return_number=number,
                vendor_id=vendor.id,
                grn_id=data.grn_id,
                warehouse_id=warehouse.id,
                return_date=data.return_date,
                return_type=data.return_type.value,
                reason=data.reason,
                notes=data.notes,
                created_by=user_id
            )
            total = Decimal("0.00")
            for product, quantity, unit_price in lines:
                line_total = money(quantity * unit_price)
                total += line_total
                purchase_return.items.append(PurchaseReturnItem(
                    tenant_id=tenant_id,
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=unit_price,
                    line_total=line_total
                ))
                stock.apply_movement(
                    tenant_id, product, warehouse, -quantity, MovementType.OUT,
                    user_id=user_id, reference=number, notes=data.reason
                )
            purchase_return.total_value = total
            self.db.add(purchase_return)

        self.db.refresh(purchase_return)
        logger.info(f"Purchase return {purchase_return.return_number} to vendor {vendor.vendor_number}")
        return purchase_return

    def get_returns(self, tenant_id: UUID, vendor_id: Optional[UUID] = None,
                    limit: int = 100, offset: int = 0) -> List[PurchaseReturn]:
        query = self.db.query(PurchaseReturn).filter(PurchaseReturn.tenant_id == tenant_id)
        if vendor_id:
            query = query.filter(PurchaseReturn.vendor_id == vendor_id)
        return query.order_by(PurchaseReturn.created_at.desc()).offset(offset).limit(limit).all()

    def get_return(self, return_id: UUID, tenant_id: UUID) -> PurchaseReturn:
        purchase_return = self.db.query(PurchaseReturn).filter(
            PurchaseReturn.id == return_id,
            PurchaseReturn.tenant_id == tenant_id
        ).first()
        if not purchase_return:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Devolución no encontrada")
        return purchase_return

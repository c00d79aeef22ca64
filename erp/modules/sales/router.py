"""
Router para documentos de venta

- /quotations, /sales-orders, /invoices, /delivery-notes, /customer-returns
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from erp.core.config import settings
from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.sales.models import InvoiceStatus, SalesOrderStatus, QuotationStatus
from erp.modules.sales.service import (
    QuotationService, SalesOrderService, InvoiceService, DeliveryNoteService, CustomerReturnService
)
from erp.modules.sales.schemas import (
    QuotationCreate, QuotationUpdate, QuotationStatusUpdate, QuotationOut, QuotationList, ConvertQuotation,
    SalesOrderCreate, SalesOrderUpdate, SalesOrderOut, SalesOrderList, SalesOrderStats, InvoiceFromOrder,
    InvoiceCreate, InvoiceUpdate, InvoiceOut, InvoiceList,
    DeliveryNoteCreate, DeliveryNoteOut, CustomerReturnCreate, CustomerReturnOut
)

SALES_ROLES = ["owner", "admin", "seller"]
BILLING_ROLES = ["owner", "admin", "seller", "accountant"]

quotations_router = APIRouter(prefix="/quotations", tags=["Quotations"])
sales_orders_router = APIRouter(prefix="/sales-orders", tags=["Sales Orders"])
invoices_router = APIRouter(prefix="/invoices", tags=["Invoices"])
delivery_notes_router = APIRouter(prefix="/delivery-notes", tags=["Delivery Notes"])
customer_returns_router = APIRouter(prefix="/customer-returns", tags=["Customer Returns"])


# ===== COTIZACIONES =====

@quotations_router.post("", response_model=QuotationOut, status_code=status.HTTP_201_CREATED)
async def create_quotation(
    quotation_data: QuotationCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    """
    Crear cotización

    - **quotation_number**: opcional; si se omite se asigna del contador `quotation`
    - **items**: precio e impuesto se toman del producto si no se envían
    """
    return QuotationService(db).create_quotation(quotation_data, auth_context.tenant_id, auth_context.user_id)


@quotations_router.get("", response_model=QuotationList)
async def get_quotations(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    quotation_status: Optional[QuotationStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return QuotationService(db).get_quotations(
        auth_context.tenant_id, limit, offset,
        quotation_status.value if quotation_status else None, customer_id
    )


@quotations_router.get("/{quotation_id}", response_model=QuotationOut)
async def get_quotation(
    quotation_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return QuotationService(db).get_quotation(quotation_id, auth_context.tenant_id)


@quotations_router.put("/{quotation_id}", response_model=QuotationOut)
async def update_quotation(
    quotation_id: UUID,
    quotation_data: QuotationUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    return QuotationService(db).update_quotation(quotation_id, quotation_data, auth_context.tenant_id)


@quotations_router.patch("/{quotation_id}/status", response_model=QuotationOut)
async def update_quotation_status(
    quotation_id: UUID,
    status_data: QuotationStatusUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    return QuotationService(db).update_status(quotation_id, status_data.status, auth_context.tenant_id)


@quotations_router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    QuotationService(db).delete_quotation(quotation_id, auth_context.tenant_id)
    return {"message": "Cotización eliminada"}


@quotations_router.post("/{quotation_id}/convert", response_model=SalesOrderOut, status_code=status.HTTP_201_CREATED)
async def convert_quotation(
    quotation_id: UUID,
    convert_data: Optional[ConvertQuotation] = None,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    """Convertir la cotización en una orden de venta confirmada."""
    return QuotationService(db).convert_to_order(
        quotation_id, convert_data or ConvertQuotation(), auth_context.tenant_id, auth_context.user_id
    )


# ===== ÓRDENES DE VENTA =====

@sales_orders_router.post("", response_model=SalesOrderOut, status_code=status.HTTP_201_CREATED)
async def create_sales_order(
    order_data: SalesOrderCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    return SalesOrderService(db).create_order(order_data, auth_context.tenant_id, auth_context.user_id)


@sales_orders_router.get("", response_model=SalesOrderList)
async def get_sales_orders(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    order_status: Optional[SalesOrderStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return SalesOrderService(db).get_orders(
        auth_context.tenant_id, limit, offset, order_status.value if order_status else None, customer_id
    )


@sales_orders_router.get("/stats", response_model=SalesOrderStats)
async def get_sales_order_stats(
    days: int = Query(7, ge=1, le=365, description="Ventana para órdenes recientes y entregas próximas"),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return SalesOrderService(db).get_stats(auth_context.tenant_id, days)


@sales_orders_router.get("/{order_id}", response_model=SalesOrderOut)
async def get_sales_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return SalesOrderService(db).get_order(order_id, auth_context.tenant_id)


@sales_orders_router.put("/{order_id}", response_model=SalesOrderOut)
async def update_sales_order(
    order_id: UUID,
    order_data: SalesOrderUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    return SalesOrderService(db).update_order(order_id, order_data, auth_context.tenant_id)


@sales_orders_router.post("/{order_id}/confirm", response_model=SalesOrderOut)
async def confirm_sales_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    return SalesOrderService(db).confirm_order(order_id, auth_context.tenant_id)


@sales_orders_router.post("/{order_id}/cancel", response_model=SalesOrderOut)
async def cancel_sales_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    return SalesOrderService(db).cancel_order(order_id, auth_context.tenant_id)


@sales_orders_router.delete("/{order_id}")
async def delete_sales_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    SalesOrderService(db).delete_order(order_id, auth_context.tenant_id)
    return {"message": "Orden de venta eliminada"}


@sales_orders_router.post("/{order_id}/invoice", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
async def invoice_sales_order(
    order_id: UUID,
    invoice_data: Optional[InvoiceFromOrder] = None,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(BILLING_ROLES))
):
    """Generar la factura (en borrador) de la orden de venta."""
    return SalesOrderService(db).create_invoice(
        order_id, invoice_data or InvoiceFromOrder(), auth_context.tenant_id, auth_context.user_id
    )


# ===== FACTURAS =====

@invoices_router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(BILLING_ROLES))
):
    """
    Crear factura en borrador

    - **invoice_number**: opcional; si se omite se asigna del contador `invoice`
    - Los totales (subtotal, descuentos, impuestos) se calculan en el servidor
    """
    return InvoiceService(db).create_invoice(invoice_data, auth_context.tenant_id, auth_context.user_id)


@invoices_router.get("", response_model=InvoiceList)
async def get_invoices(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[UUID] = Query(None),
    overdue: bool = Query(False, description="Solo facturas vencidas con saldo"),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return InvoiceService(db).get_invoices(
        auth_context.tenant_id, limit, offset,
        invoice_status.value if invoice_status else None, customer_id, overdue
    )


@invoices_router.get("/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return InvoiceService(db).get_invoice(invoice_id, auth_context.tenant_id)


@invoices_router.put("/{invoice_id}", response_model=InvoiceOut)
async def update_invoice(
    invoice_id: UUID,
    invoice_data: InvoiceUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(BILLING_ROLES))
):
    return InvoiceService(db).update_invoice(invoice_id, invoice_data, auth_context.tenant_id)


@invoices_router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    InvoiceService(db).delete_invoice(invoice_id, auth_context.tenant_id)
    return {"message": "Factura eliminada"}


@invoices_router.post("/{invoice_id}/send", response_model=InvoiceOut)
async def send_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(BILLING_ROLES))
):
    """Emitir la factura (draft → sent); a partir de aquí admite pagos."""
    return InvoiceService(db).send_invoice(invoice_id, auth_context.tenant_id)


@invoices_router.post("/{invoice_id}/cancel", response_model=InvoiceOut)
async def cancel_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin", "accountant"]))
):
    return InvoiceService(db).cancel_invoice(invoice_id, auth_context.tenant_id)


# ===== NOTAS DE ENTREGA =====

@delivery_notes_router.post("", response_model=DeliveryNoteOut, status_code=status.HTTP_201_CREATED)
async def create_delivery_note(
    note_data: DeliveryNoteCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    """
    Emitir nota de entrega; descuenta el stock de la bodega.

    Con **sales_order_id** y sin items se entrega todo lo pendiente de la orden.
    """
    return DeliveryNoteService(db).create_delivery_note(note_data, auth_context.tenant_id, auth_context.user_id)


@delivery_notes_router.get("", response_model=List[DeliveryNoteOut])
async def get_delivery_notes(
    sales_order_id: Optional[UUID] = Query(None),
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return DeliveryNoteService(db).get_delivery_notes(
        auth_context.tenant_id, sales_order_id, customer_id, limit, offset
    )


@delivery_notes_router.get("/{note_id}", response_model=DeliveryNoteOut)
async def get_delivery_note(
    note_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return DeliveryNoteService(db).get_delivery_note(note_id, auth_context.tenant_id)


@delivery_notes_router.post("/{note_id}/cancel", response_model=DeliveryNoteOut)
async def cancel_delivery_note(
    note_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    return DeliveryNoteService(db).cancel_delivery_note(note_id, auth_context.tenant_id, auth_context.user_id)


# ===== DEVOLUCIONES =====

@customer_returns_router.post("", response_model=CustomerReturnOut, status_code=status.HTTP_201_CREATED)
async def create_customer_return(
    return_data: CustomerReturnCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(SALES_ROLES))
):
    """Registrar devolución; las cantidades vuelven al stock."""
    return CustomerReturnService(db).create_return(return_data, auth_context.tenant_id, auth_context.user_id)


@customer_returns_router.get("", response_model=List[CustomerReturnOut])
async def get_customer_returns(
    customer_id: Optional[UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CustomerReturnService(db).get_returns(auth_context.tenant_id, customer_id, limit, offset)


@customer_returns_router.get("/{return_id}", response_model=CustomerReturnOut)
async def get_customer_return(
    return_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CustomerReturnService(db).get_return(return_id, auth_context.tenant_id)

"""
Servicios de documentos de venta

- Cotizaciones → órdenes de venta → facturas
- Notas de entrega (descuentan stock) y devoluciones de clientes (reingresan stock)
- Estados de factura: draft → sent → partially_paid → paid, o cancelled

Cada documento toma su número de NumberingService dentro de la misma
transacción que lo inserta.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from collections import defaultdict
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4
from datetime import date, timedelta
import logging

from erp.core.config import settings
from erp.common.calculations import fill_document, money
from erp.common.transactions import service_transaction
from erp.modules.customers.models import Customer
from erp.modules.inventory.models import MovementType
from erp.modules.inventory.service import ProductService, WarehouseService, StockService
from erp.modules.numbering.service import NumberingService
from erp.modules.sales.models import (
    Quotation, QuotationItem, QuotationStatus, SalesOrder, SalesOrderItem, SalesOrderStatus,
    Invoice, InvoiceItem, InvoiceStatus, DeliveryNote, DeliveryNoteItem, DeliveryNoteStatus,
    CustomerReturn, CustomerReturnItem
)
from erp.modules.sales.schemas import (
    QuotationCreate, QuotationUpdate, QuotationList, ConvertQuotation,
    SalesOrderCreate, SalesOrderUpdate, SalesOrderList, SalesOrderStats, InvoiceFromOrder,
    InvoiceCreate, InvoiceUpdate, InvoiceList, DeliveryNoteCreate, CustomerReturnCreate
)

logger = logging.getLogger(__name__)

LINE_FIELDS = (
    "line_number", "product_id", "description", "quantity", "unit_price", "discount_percentage",
    "tax_rate", "line_subtotal", "discount_amount", "tax_amount", "line_total"
)


def require_customer(db: Session, customer_id: UUID, tenant_id: UUID) -> Customer:
    customer = db.query(Customer).filter(
        Customer.id == customer_id,
        Customer.tenant_id == tenant_id
    ).first()
    if not customer or customer.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El cliente especificado no existe, está inactivo o no pertenece a esta empresa"
        )
    return customer


def copy_lines(items) -> List[dict]:
    return [{field: getattr(item, field) for field in LINE_FIELDS} for item in items]


class QuotationService:
    """Cotizaciones y su conversión a orden de venta"""

    def __init__(self, db: Session):
        self.db = db

    def create_quotation(self, data: QuotationCreate, tenant_id: UUID, user_id: UUID) -> Quotation:
        require_customer(self.db, data.customer_id, tenant_id)
        lines = ProductService(self.db).price_lines(data.items, tenant_id)

        with service_transaction(self.db, "Error interno al crear la cotización", "Ya existe una cotización con ese número"):
            quotation_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                Quotation, "quotation_number", tenant_id, "quotation",
                explicit_number=data.quotation_number, reference_id=str(quotation_id), created_by=user_id
            )
            quotation = Quotation(
                id=quotation_id,
                tenant_id=tenant_id,
                quotation_number=number,
                customer_id=data.customer_id,
                quotation_date=data.quotation_date,
                valid_until=data.valid_until,
                notes=data.notes,
                terms=data.terms,
                created_by=user_id
            )
            fill_document(quotation, QuotationItem, lines)
            self.db.add(quotation)

        self.db.refresh(quotation)
        logger.info(f"Quotation {quotation.quotation_number} created for tenant {tenant_id}")
        return quotation

    def get_quotations(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                       status_filter: Optional[str] = None, customer_id: Optional[UUID] = None) -> QuotationList:
        query = self.db.query(Quotation).filter(Quotation.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(Quotation.status == status_filter)
        if customer_id:
            query = query.filter(Quotation.customer_id == customer_id)
        total = query.count()
        quotations = query.order_by(Quotation.created_at.desc()).offset(offset).limit(limit).all()
        return QuotationList(items=quotations, total=total, limit=limit, offset=offset)

    def get_quotation(self, quotation_id: UUID, tenant_id: UUID) -> Quotation:
        quotation = self.db.query(Quotation).filter(
            Quotation.id == quotation_id,
            Quotation.tenant_id == tenant_id
        ).first()
        if not quotation:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cotización no encontrada")
        return quotation

    def update_quotation(self, quotation_id: UUID, data: QuotationUpdate, tenant_id: UUID) -> Quotation:
        quotation = self.get_quotation(quotation_id, tenant_id)
        if quotation.status not in (QuotationStatus.DRAFT.value, QuotationStatus.SENT.value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede modificar una cotización en estado {quotation.status}"
            )
        values = data.model_dump(exclude_unset=True, exclude={"items"})
        lines = ProductService(self.db).price_lines(data.items, tenant_id) if data.items else None

        with service_transaction(self.db, "Error interno al actualizar la cotización"):
            for field, value in values.items():
                setattr(quotation, field, value)
            if lines is not None:
                fill_document(quotation, QuotationItem, lines)

        self.db.refresh(quotation)
        return quotation

    def update_status(self, quotation_id: UUID, new_status: QuotationStatus, tenant_id: UUID) -> Quotation:
        quotation = self.get_quotation(quotation_id, tenant_id)
        if quotation.status == QuotationStatus.CONVERTED.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La cotización ya fue convertida en orden de venta"
            )
        quotation.status = new_status.value
        self.db.commit()
        self.db.refresh(quotation)
        logger.info(f"Quotation {quotation.quotation_number} -> {new_status.value}")
        return quotation

    def delete_quotation(self, quotation_id: UUID, tenant_id: UUID) -> None:
        quotation = self.get_quotation(quotation_id, tenant_id)
        if quotation.status != QuotationStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden eliminar cotizaciones en borrador"
            )
        self.db.delete(quotation)
        self.db.commit()

    def convert_to_order(self, quotation_id: UUID, data: ConvertQuotation, tenant_id: UUID,
                         user_id: UUID) -> SalesOrder:
        """Crear una orden de venta confirmada con las líneas de la cotización."""
        quotation = self.get_quotation(quotation_id, tenant_id)
        if quotation.status == QuotationStatus.CONVERTED.value:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La cotización ya fue convertida en orden de venta"
            )
        if quotation.status in (QuotationStatus.REJECTED.value, QuotationStatus.EXPIRED.value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede convertir una cotización en estado {quotation.status}"
            )

        with service_transaction(self.db, "Error interno al convertir la cotización", "Ya existe una orden con ese número"):
            order_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                SalesOrder, "order_number", tenant_id, "sales_order",
                explicit_number=data.order_number, reference_id=str(order_id), created_by=user_id
            )
            order = SalesOrder(
                id=order_id,
                tenant_id=tenant_id,
                order_number=number,
                customer_id=quotation.customer_id,
                quotation_id=quotation.id,
                expected_delivery_date=data.expected_delivery_date,
                status=SalesOrderStatus.CONFIRMED.value,
                notes=quotation.notes,
                created_by=user_id
            )
            fill_document(order, SalesOrderItem, copy_lines(quotation.items))
            self.db.add(order)

            quotation.status = QuotationStatus.CONVERTED.value
            quotation.sales_order_id = order.id

        self.db.refresh(order)
        logger.info(f"Quotation {quotation.quotation_number} converted to order {order.order_number}")
        return order


class SalesOrderService:
    """Órdenes de venta"""

    def __init__(self, db: Session):
        self.db = db

    def create_order(self, data: SalesOrderCreate, tenant_id: UUID, user_id: UUID) -> SalesOrder:
        require_customer(self.db, data.customer_id, tenant_id)
        lines = ProductService(self.db).price_lines(data.items, tenant_id)

        with service_transaction(self.db, "Error interno al crear la orden de venta", "Ya existe una orden con ese número"):
            order_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                SalesOrder, "order_number", tenant_id, "sales_order",
                explicit_number=data.order_number, reference_id=str(order_id), created_by=user_id
            )
            order = SalesOrder(
                id=order_id,
                tenant_id=tenant_id,
                order_number=number,
                customer_id=data.customer_id,
                order_date=data.order_date,
                expected_delivery_date=data.expected_delivery_date,
                delivery_address=data.delivery_address,
                notes=data.notes,
                created_by=user_id
            )
            fill_document(order, SalesOrderItem, lines)
            self.db.add(order)

        self.db.refresh(order)
        logger.info(f"Sales order {order.order_number} created for tenant {tenant_id}")
        return order

    def get_orders(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                   status_filter: Optional[str] = None, customer_id: Optional[UUID] = None) -> SalesOrderList:
        query = self.db.query(SalesOrder).filter(SalesOrder.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(SalesOrder.status == status_filter)
        if customer_id:
            query = query.filter(SalesOrder.customer_id == customer_id)
        total = query.count()
        orders = query.order_by(SalesOrder.created_at.desc()).offset(offset).limit(limit).all()
        return SalesOrderList(items=orders, total=total, limit=limit, offset=offset)

    def get_stats(self, tenant_id: UUID, days: int = 7, today: Optional[date] = None) -> SalesOrderStats:
        """
        Resumen de órdenes de la empresa

        - pending_delivery: confirmadas o parcialmente entregadas
        - overdue_deliveries: pendientes con fecha esperada anterior a hoy
        - due_soon: pendientes con fecha esperada entre hoy y hoy + days
        - recent_orders: órdenes con fecha en los últimos days días
        """
        today = today or date.today()
        counts = dict(self.db.query(SalesOrder.status, func.count(SalesOrder.id)).filter(
            SalesOrder.tenant_id == tenant_id
        ).group_by(SalesOrder.status).all())
        by_status = {s.value: counts.get(s.value, 0) for s in SalesOrderStatus}

        total_value = self.db.query(func.coalesce(func.sum(SalesOrder.total_amount), 0)).filter(
            SalesOrder.tenant_id == tenant_id,
            SalesOrder.status != SalesOrderStatus.CANCELLED.value
        ).scalar()

        open_statuses = [SalesOrderStatus.CONFIRMED.value, SalesOrderStatus.PARTIALLY_DELIVERED.value]
        open_dates = [
            row[0] for row in self.db.query(SalesOrder.expected_delivery_date).filter(
                SalesOrder.tenant_id == tenant_id,
                SalesOrder.status.in_(open_statuses)
            ).all()
        ]
        horizon = today + timedelta(days=days)

        recent = self.db.query(func.count(SalesOrder.id)).filter(
            SalesOrder.tenant_id == tenant_id,
            SalesOrder.order_date >= today - timedelta(days=days)
        ).scalar()

        return SalesOrderStats(
            total_orders=sum(by_status.values()),
            total_value=money(total_value),
            by_status=by_status,
            pending_delivery=len(open_dates),
            overdue_deliveries=sum(1 for d in open_dates if d is not None and d < today),
            due_soon=sum(1 for d in open_dates if d is not None and today <= d <= horizon),
            recent_orders=recent
        )

    def get_order(self, order_id: UUID, tenant_id: UUID) -> SalesOrder:
        order = self.db.query(SalesOrder).filter(
            SalesOrder.id == order_id,
            SalesOrder.tenant_id == tenant_id
        ).first()
        if not order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Orden de venta no encontrada")
        return order

    def _require_draft(self, order: SalesOrder) -> None:
        if order.status != SalesOrderStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"La orden está en estado {order.status}; solo se modifican órdenes en borrador"
            )

    def update_order(self, order_id: UUID, data: SalesOrderUpdate, tenant_id: UUID) -> SalesOrder:
        order = self.get_order(order_id, tenant_id)
        self._require_draft(order)
        values = data.model_dump(exclude_unset=True, exclude={"items"})
        lines = ProductService(self.db).price_lines(data.items, tenant_id) if data.items else None

        with service_transaction(self.db, "Error interno al actualizar la orden"):
            for field, value in values.items():
                setattr(order, field, value)
            if lines is not None:
                fill_document(order, SalesOrderItem, lines)

        self.db.refresh(order)
        return order

    def confirm_order(self, order_id: UUID, tenant_id: UUID) -> SalesOrder:
        order = self.get_order(order_id, tenant_id)
        self._require_draft(order)
        order.status = SalesOrderStatus.CONFIRMED.value
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Sales order {order.order_number} confirmed")
        return order

    def cancel_order(self, order_id: UUID, tenant_id: UUID) -> SalesOrder:
        order = self.get_order(order_id, tenant_id)
        if order.invoice_id or any(Decimal(item.delivered_quantity) > 0 for item in order.items):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede cancelar una orden facturada o con entregas"
            )
        if order.status == SalesOrderStatus.CANCELLED.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="La orden ya está cancelada")
        order.status = SalesOrderStatus.CANCELLED.value
        self.db.commit()
        self.db.refresh(order)
        return order

    def delete_order(self, order_id: UUID, tenant_id: UUID) -> None:
        order = self.get_order(order_id, tenant_id)
        self._require_draft(order)
        self.db.delete(order)
        self.db.commit()

    def create_invoice(self, order_id: UUID, data: InvoiceFromOrder, tenant_id: UUID, user_id: UUID) -> Invoice:
        """Facturar la orden completa (una factura por orden)."""
        order = self.get_order(order_id, tenant_id)
        if order.invoice_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="La orden ya fue facturada")
        if order.status in (SalesOrderStatus.DRAFT.value, SalesOrderStatus.CANCELLED.value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede facturar una orden en estado {order.status}"
            )

        with service_transaction(self.db, "Error interno al facturar la orden", "Ya existe una factura con ese número"):
            invoice = InvoiceService(self.db).build_invoice(
                tenant_id, user_id, order.customer_id, copy_lines(order.items),
                invoice_number=data.invoice_number, due_date=data.due_date,
                sales_order_id=order.id, notes=order.notes
            )
            order.invoice_id = invoice.id

        self.db.refresh(invoice)
        logger.info(f"Sales order {order.order_number} invoiced as {invoice.invoice_number}")
        return invoice

    def refresh_delivery_status(self, order: SalesOrder) -> None:
        tracked = [item for item in order.items if item.product_id]
        if tracked and all(Decimal(i.delivered_quantity) >= Decimal(i.quantity) for i in tracked):
            order.status = SalesOrderStatus.DELIVERED.value
        elif any(Decimal(i.delivered_quantity) > 0 for i in tracked):
            order.status = SalesOrderStatus.PARTIALLY_DELIVERED.value
        else:
            order.status = SalesOrderStatus.CONFIRMED.value


class InvoiceService:
    """Facturas de venta y su estado de pago"""

    def __init__(self, db: Session):
        self.db = db

    def build_invoice(self, tenant_id: UUID, user_id: UUID, customer_id: UUID, lines: List[dict],
                      invoice_number: Optional[str] = None, invoice_date: Optional[date] = None,
                      due_date: Optional[date] = None, sales_order_id: Optional[UUID] = None,
                      notes: Optional[str] = None) -> Invoice:
        """Insert a draft invoice inside the caller's transaction."""
        customer = require_customer(self.db, customer_id, tenant_id)
        invoice_id = uuid4()
        number = NumberingService(self.db).assign_document_number(
            Invoice, "invoice_number", tenant_id, "invoice",
            explicit_number=invoice_number, reference_id=str(invoice_id), created_by=user_id
        )
        invoice = Invoice(
            id=invoice_id,
            tenant_id=tenant_id,
            invoice_number=number,
            customer_id=customer.id,
            sales_order_id=sales_order_id,
            invoice_date=invoice_date or date.today(),
            due_date=due_date,
            currency=customer.currency or settings.DEFAULT_CURRENCY,
            amount_paid=Decimal("0"),
            notes=notes,
            created_by=user_id
        )
        fill_document(invoice, InvoiceItem, lines)
        self.db.add(invoice)
        self.db.flush()
        return invoice

    def create_invoice(self, data: InvoiceCreate, tenant_id: UUID, user_id: UUID) -> Invoice:
        lines = ProductService(self.db).price_lines(data.items, tenant_id)
        with service_transaction(self.db, "Error interno al crear la factura", "Ya existe una factura con ese número"):
            invoice = self.build_invoice(
                tenant_id, user_id, data.customer_id, lines,
                invoice_number=data.invoice_number, invoice_date=data.invoice_date,
                due_date=data.due_date, notes=data.notes
            )
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} created for tenant {tenant_id}")
        return invoice

    def get_invoices(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                     status_filter: Optional[str] = None, customer_id: Optional[UUID] = None,
                     overdue: bool = False) -> InvoiceList:
        query = self.db.query(Invoice).filter(Invoice.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(Invoice.status == status_filter)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if overdue:
            query = query.filter(
                Invoice.due_date < date.today(),
                Invoice.status.in_([InvoiceStatus.SENT.value, InvoiceStatus.PARTIALLY_PAID.value])
            )
        total = query.count()
        invoices = query.order_by(Invoice.created_at.desc()).offset(offset).limit(limit).all()
        return InvoiceList(items=invoices, total=total, limit=limit, offset=offset)

    def get_invoice(self, invoice_id: UUID, tenant_id: UUID, for_update: bool = False) -> Invoice:
        query = self.db.query(Invoice).filter(
            Invoice.id == invoice_id,
            Invoice.tenant_id == tenant_id
        )
        if for_update:
            query = query.with_for_update()
        invoice = query.first()
        if not invoice:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Factura no encontrada")
        return invoice

    def update_invoice(self, invoice_id: UUID, data: InvoiceUpdate, tenant_id: UUID) -> Invoice:
        invoice = self.get_invoice(invoice_id, tenant_id)
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden modificar facturas en borrador"
            )
        values = data.model_dump(exclude_unset=True, exclude={"items"})
        lines = ProductService(self.db).price_lines(data.items, tenant_id) if data.items else None

        with service_transaction(self.db, "Error interno al actualizar la factura"):
            for field, value in values.items():
                setattr(invoice, field, value)
            if lines is not None:
                fill_document(invoice, InvoiceItem, lines)

        self.db.refresh(invoice)
        return invoice

    def delete_invoice(self, invoice_id: UUID, tenant_id: UUID) -> None:
        invoice = self.get_invoice(invoice_id, tenant_id)
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden eliminar facturas en borrador; use cancelar"
            )
        self._release_order(invoice)
        self.db.delete(invoice)
        self.db.commit()

    def send_invoice(self, invoice_id: UUID, tenant_id: UUID) -> Invoice:
        """draft → sent"""
        invoice = self.get_invoice(invoice_id, tenant_id)
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede emitir una factura en estado {invoice.status}"
            )
        invoice.status = InvoiceStatus.SENT.value
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} sent")
        return invoice

    def cancel_invoice(self, invoice_id: UUID, tenant_id: UUID) -> Invoice:
        invoice = self.get_invoice(invoice_id, tenant_id)
        if invoice.status not in (InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value) or Decimal(invoice.amount_paid) > 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden cancelar facturas sin pagos"
            )
        invoice.status = InvoiceStatus.CANCELLED.value
        self._release_order(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice {invoice.invoice_number} cancelled")
        return invoice

    def _release_order(self, invoice: Invoice) -> None:
        if invoice.sales_order_id:
            self.db.query(SalesOrder).filter(
                SalesOrder.id == invoice.sales_order_id,
                SalesOrder.invoice_id == invoice.id
            ).update({"invoice_id": None})

    def apply_payment(self, invoice: Invoice, amount: Decimal) -> None:
        """
        Registrar un pago sobre la factura (sin commit). El saldo no puede
        quedar negativo; el estado pasa a partially_paid o paid.
        """
        if invoice.status not in (InvoiceStatus.SENT.value, InvoiceStatus.PARTIALLY_PAID.value):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se pueden registrar pagos en una factura en estado {invoice.status}"
            )
        amount = money(amount)
        if amount > money(invoice.balance_due):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El pago ({amount}) supera el saldo pendiente ({money(invoice.balance_due)})"
            )
        invoice.amount_paid = money(invoice.amount_paid) + amount
        self._refresh_payment_status(invoice)
        logger.info(f"Invoice {invoice.invoice_number}: payment {amount}, status {invoice.status}")

    def revert_payment(self, invoice: Invoice, amount: Decimal) -> None:
        invoice.amount_paid = max(money(invoice.amount_paid) - money(amount), Decimal("0.00"))
        self._refresh_payment_status(invoice)

    def _refresh_payment_status(self, invoice: Invoice) -> None:
        paid = money(invoice.amount_paid)
        if paid <= 0:
            invoice.status = InvoiceStatus.SENT.value
        elif paid >= money(invoice.total_amount):
            invoice.status = InvoiceStatus.PAID.value
        else:
            invoice.status = InvoiceStatus.PARTIALLY_PAID.value


class DeliveryNoteService:
    """Notas de entrega: cada línea descuenta stock de la bodega"""

    def __init__(self, db: Session):
        self.db = db

    def create_delivery_note(self, data: DeliveryNoteCreate, tenant_id: UUID, user_id: UUID) -> DeliveryNote:
        products = ProductService(self.db)
        warehouse = WarehouseService(self.db).resolve_warehouse(data.warehouse_id, tenant_id)

        order = None
        customer_id = data.customer_id
        if data.sales_order_id:
            order = SalesOrderService(self.db).get_order(data.sales_order_id, tenant_id)
            if order.status not in (SalesOrderStatus.CONFIRMED.value, SalesOrderStatus.PARTIALLY_DELIVERED.value):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"No se puede entregar una orden en estado {order.status}"
                )
            if customer_id and customer_id != order.customer_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="El cliente no coincide con el de la orden de venta"
                )
            customer_id = order.customer_id
        require_customer(self.db, customer_id, tenant_id)

        if data.invoice_id:
            InvoiceService(self.db).get_invoice(data.invoice_id, tenant_id)

        # (producto, cantidad, línea de la orden, descripción)
        deliveries = []
        if order and not data.items:
            for item in order.items:
                pending = Decimal(item.quantity) - Decimal(item.delivered_quantity)
                if item.product_id and pending > 0:
                    deliveries.append((products.require_active_product(item.product_id, tenant_id),
                                       pending, item, item.description))
            if not deliveries:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La orden no tiene cantidades pendientes de entrega"
                )
        else:
            planned = defaultdict(Decimal)
            for entry in data.items:
                product = products.require_active_product(entry.product_id, tenant_id)
                order_item = self._match_order_item(order, entry, planned) if order else None
                deliveries.append((product, entry.quantity, order_item, entry.description or product.name))

        stock = StockService(self.db)
        with service_transaction(self.db, "Error interno al crear la nota de entrega", "Ya existe una nota de entrega con ese número"):
            note_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                DeliveryNote, "delivery_number", tenant_id, "delivery_note",
                explicit_number=data.delivery_number, reference_id=str(note_id), created_by=user_id
            )
            note = DeliveryNote(
                id=note_id,
                tenant_id=tenant_id,
                delivery_number=number,
                customer_id=customer_id,
                sales_order_id=order.id if order else None,
                invoice_id=data.invoice_id,
                warehouse_id=warehouse.id,
                delivery_date=data.delivery_date,
                delivery_address=data.delivery_address or (order.delivery_address if order else None),
                received_by=data.received_by,
                notes=data.notes,
                created_by=user_id
            )
            for product, quantity, order_item, description in deliveries:
                stock.apply_movement(
                    tenant_id, product, warehouse, -Decimal(quantity), MovementType.OUT,
                    user_id=user_id, reference=number
                )
                if order_item is not None:
                    order_item.delivered_quantity = Decimal(order_item.delivered_quantity) + Decimal(quantity)
                note.items.append(DeliveryNoteItem(
                    tenant_id=tenant_id,
                    product_id=product.id,
                    sales_order_item_id=order_item.id if order_item is not None else None,
                    description=description,
                    quantity=quantity
                ))
            self.db.add(note)
            if order:
                SalesOrderService(self.db).refresh_delivery_status(order)

        self.db.refresh(note)
        logger.info(f"Delivery note {note.delivery_number} issued from warehouse {warehouse.code}")
        return note

    def _match_order_item(self, order: SalesOrder, entry, planned) -> SalesOrderItem:
        """Línea de la orden con pendiente suficiente; `planned` acumula lo ya asignado en esta nota."""
        candidates = [
            item for item in order.items
            if (entry.sales_order_item_id and item.id == entry.sales_order_item_id)
            or (not entry.sales_order_item_id and item.product_id == entry.product_id)
        ]
        for item in candidates:
            pending = Decimal(item.quantity) - Decimal(item.delivered_quantity) - planned[item.id]
            if pending >= entry.quantity:
                planned[item.id] += entry.quantity
                return item
        if not candidates:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El producto no pertenece a la orden de venta"
            )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"La cantidad a entregar ({entry.quantity}) supera lo pendiente de la orden"
        )

    def get_delivery_notes(self, tenant_id: UUID, sales_order_id: Optional[UUID] = None,
                           customer_id: Optional[UUID] = None, limit: int = 100,
                           offset: int = 0) -> List[DeliveryNote]:
        query = self.db.query(DeliveryNote).filter(DeliveryNote.tenant_id == tenant_id)
        if sales_order_id:
            query = query.filter(DeliveryNote.sales_order_id == sales_order_id)
        if customer_id:
            query = query.filter(DeliveryNote.customer_id == customer_id)
        return query.order_by(DeliveryNote.created_at.desc()).offset(offset).limit(limit).all()

    def get_delivery_note(self, note_id: UUID, tenant_id: UUID) -> DeliveryNote:
        note = self.db.query(DeliveryNote).filter(
            DeliveryNote.id == note_id,
            DeliveryNote.tenant_id == tenant_id
        ).first()
        if not note:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nota de entrega no encontrada")
        return note

    def cancel_delivery_note(self, note_id: UUID, tenant_id: UUID, user_id: UUID) -> DeliveryNote:
        """Anular la entrega: reingresa el stock y libera las cantidades de la orden."""
        note = self.get_delivery_note(note_id, tenant_id)
        if note.status == DeliveryNoteStatus.CANCELLED.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="La nota de entrega ya está anulada")

        products = ProductService(self.db)
        warehouse = WarehouseService(self.db).get_warehouse(note.warehouse_id, tenant_id)
        stock = StockService(self.db)
        with service_transaction(self.db, "Error interno al anular la nota de entrega"):
            for item in note.items:
                product = products.get_product(item.product_id, tenant_id, include_deleted=True)
                stock.apply_movement(
                    tenant_id, product, warehouse, Decimal(item.quantity), MovementType.IN,
                    user_id=user_id, reference=note.delivery_number, notes="Anulación de entrega"
                )
                if item.sales_order_item_id:
                    order_item = self.db.get(SalesOrderItem, item.sales_order_item_id)
                    order_item.delivered_quantity = Decimal(order_item.delivered_quantity) - Decimal(item.quantity)
            note.status = DeliveryNoteStatus.CANCELLED.value
            if note.sales_order_id:
                order = SalesOrderService(self.db).get_order(note.sales_order_id, tenant_id)
                SalesOrderService(self.db).refresh_delivery_status(order)

        self.db.refresh(note)
        return note


class CustomerReturnService:
    """Devoluciones de clientes: las cantidades devueltas vuelven al stock"""

    def __init__(self, db: Session):
        self.db = db

    def _returned_quantity(self, invoice_id: UUID, product_id: UUID) -> Decimal:
        returned = self.db.query(func.sum(CustomerReturnItem.quantity)).join(
            CustomerReturn, CustomerReturnItem.customer_return_id == CustomerReturn.id
        ).filter(
            CustomerReturn.invoice_id == invoice_id,
            CustomerReturnItem.product_id == product_id
        ).scalar()
        return Decimal(returned) if returned is not None else Decimal("0")

    def create_return(self, data: CustomerReturnCreate, tenant_id: UUID, user_id: UUID) -> CustomerReturn:
        require_customer(self.db, data.customer_id, tenant_id)
        warehouse = WarehouseService(self.db).resolve_warehouse(data.warehouse_id, tenant_id)
        products = ProductService(self.db)

        invoice = None
        if data.invoice_id:
            invoice = InvoiceService(self.db).get_invoice(data.invoice_id, tenant_id)
            if invoice.customer_id != data.customer_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="La factura no corresponde al cliente"
                )

        lines = []
        requested = defaultdict(Decimal)
        for entry in data.items:
            product = products.require_active_product(entry.product_id, tenant_id)
            unit_price = entry.unit_price
            if invoice is not None:
                invoiced = [item for item in invoice.items if item.product_id == product.id]
                if not invoiced:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"El producto '{product.name}' no está en la factura {invoice.invoice_number}"
                    )
                available = (
                    sum(Decimal(item.quantity) for item in invoiced)
                    - self._returned_quantity(invoice.id, product.id)
                    - requested[product.id]
                )
                requested[product.id] += entry.quantity
                if entry.quantity > available:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Se pueden devolver como máximo {available} de '{product.name}'"
                    )
                if unit_price is None:
                    unit_price = invoiced[0].unit_price
            if unit_price is None:
                unit_price = product.selling_price
            lines.append((product, entry, money(unit_price)))

        stock = StockService(self.db)
        with service_transaction(self.db, "Error interno al registrar la devolución", "Ya existe una devolución con ese número"):
            return_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                CustomerReturn, "return_number", tenant_id, "customer_return",
                explicit_number=data.return_number, reference_id=str(return_id), created_by=user_id
            )
            customer_return = CustomerReturn(
                id=return_id,
                tenant_id=tenant_id,
                return_number=number,
                customer_id=data.customer_id,
                invoice_id=data.invoice_id,
                warehouse_id=warehouse.id,
                return_date=data.return_date,
                reason=data.reason,
                notes=data.notes,
                created_by=user_id
            )
            total = Decimal("0.00")
            for product, entry, unit_price in lines:
                line_total = money(entry.quantity * unit_price)
                total += line_total
                customer_return.items.append(CustomerReturnItem(
                    tenant_id=tenant_id,
                    product_id=product.id,
                    quantity=entry.quantity,
                    unit_price=unit_price,
                    line_total=line_total,
                    condition=entry.condition
                ))
                stock.apply_movement(
                    tenant_id, product, warehouse, entry.quantity, MovementType.RETURN,
                    user_id=user_id, reference=number, notes=data.reason
                )
            customer_return.total_amount = total
            self.db.add(customer_return)

        self.db.refresh(customer_return)
        logger.info(f"Customer return {customer_return.return_number} restocked into {warehouse.code}")
        return customer_return

    def get_returns(self, tenant_id: UUID, customer_id: Optional[UUID] = None,
                    limit: int = 100, offset: int = 0) -> List[CustomerReturn]:
        query = self.db.query(CustomerReturn).filter(CustomerReturn.tenant_id == tenant_id)
        if customer_id:
            query = query.filter(CustomerReturn.customer_id == customer_id)
        return query.order_by(CustomerReturn.created_at.desc()).offset(offset).limit(limit).all()

    def get_return(self, return_id: UUID, tenant_id: UUID) -> CustomerReturn:
        customer_return = self.db.query(CustomerReturn).filter(
            CustomerReturn.id == return_id,
            CustomerReturn.tenant_id == tenant_id
        ).first()
        if not customer_return:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Devolución no encontrada")
        return customer_return

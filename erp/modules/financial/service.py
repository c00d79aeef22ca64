"""
Servicios financieros

- Plan de cuentas (código único por empresa)
- Asientos contables: deben cuadrar; al contabilizar se actualizan los saldos
- Cobros y pagos (número `payment_receipt`); un cobro aplicado a una factura
  actualiza su saldo y estado
- Cuentas bancarias, movimientos y conciliación
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import func
from decimal import Decimal
from typing import List, Optional
from uuid import UUID, uuid4
from datetime import date, datetime, timezone
import logging

from erp.core.config import settings
from erp.common.calculations import money
from erp.common.transactions import service_transaction
from erp.modules.numbering.service import NumberingService
from erp.modules.sales.service import InvoiceService, require_customer
from erp.modules.sales.models import Invoice, InvoiceStatus
from erp.modules.purchasing.service import VendorService
from erp.modules.purchasing.models import Vendor, GoodsReceiving, PurchaseReturn, ReturnType
from erp.modules.financial.models import (
    Account, DEBIT_NORMAL_TYPES, JournalEntry, JournalLine, JournalEntryStatus,
    Payment, PaymentType, PaymentStatus, BankAccount, BankTransaction, BankTransactionType,
    BankReconciliation, ReconciliationStatus
)
from erp.modules.financial.schemas import (
    AccountCreate, AccountUpdate, JournalEntryCreate, JournalEntryList, JournalReverse,
    PaymentCreate, PaymentList, BankAccountCreate, BankAccountUpdate, BankTransactionCreate,
    ReconciliationCreate, ReconciliationMark, AccountOut, AccountLedger, LedgerLineOut,
    ReceivableOut, ReceivablesReport, PayableOut, PayablesReport
)

logger = logging.getLogger(__name__)


class AccountService:
    """Plan de cuentas"""

    def __init__(self, db: Session):
        self.db = db

    def create_account(self, data: AccountCreate, tenant_id: UUID) -> Account:
        if data.parent_account_id:
            self.get_account(data.parent_account_id, tenant_id)

        with service_transaction(self.db, "Error interno al crear la cuenta",
                                 f"Ya existe una cuenta con el código '{data.account_code}'"):
            account = Account(
                tenant_id=tenant_id,
                account_code=data.account_code,
                account_name=data.account_name,
                account_type=data.account_type.value,
                parent_account_id=data.parent_account_id,
                description=data.description
            )
            self.db.add(account)

        self.db.refresh(account)
        logger.info(f"Account {account.account_code} created for tenant {tenant_id}")
        return account

    def get_accounts(self, tenant_id: UUID, account_type: Optional[str] = None,
                     include_inactive: bool = False) -> List[Account]:
        query = self.db.query(Account).filter(Account.tenant_id == tenant_id)
        if account_type:
            query = query.filter(Account.account_type == account_type)
        if not include_inactive:
            query = query.filter(Account.is_active == True)
        return query.order_by(Account.account_code).all()

    def get_account(self, account_id: UUID, tenant_id: UUID, for_update: bool = False) -> Account:
        query = self.db.query(Account).filter(Account.id == account_id, Account.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update()
        account = query.first()
        if not account:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cuenta no encontrada")
        return account

    def update_account(self, account_id: UUID, data: AccountUpdate, tenant_id: UUID) -> Account:
        account = self.get_account(account_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("parent_account_id"):
            if values["parent_account_id"] == account.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Una cuenta no puede ser su propia cuenta padre"
                )
            self.get_account(values["parent_account_id"], tenant_id)
        for field, value in values.items():
            setattr(account, field, value)
        self.db.commit()
        self.db.refresh(account)
        return account

    def deactivate_account(self, account_id: UUID, tenant_id: UUID) -> None:
        account = self.get_account(account_id, tenant_id)
        if money(account.balance) != 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede desactivar una cuenta con saldo"
            )
        account.is_active = False
        self.db.commit()

    def _booked_lines(self, account: Account):
        return self.db.query(JournalLine, JournalEntry).join(
            JournalEntry, JournalLine.journal_entry_id == JournalEntry.id
        ).filter(
            JournalLine.tenant_id == account.tenant_id,
            JournalLine.account_id == account.id,
            JournalEntry.status.in_([JournalEntryStatus.POSTED.value, JournalEntryStatus.REVERSED.value])
        )

    def get_ledger(self, account_id: UUID, tenant_id: UUID, date_from: Optional[date] = None,
                   date_to: Optional[date] = None) -> AccountLedger:
        """
        Libro mayor de una cuenta: líneas de asientos contabilizados (los
        revertidos también, junto con su reversión) con saldo acumulado.
        El saldo sigue el lado normal de la cuenta, igual que `balance`.
        """
        if date_from and date_to and date_to < date_from:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="date_to no puede ser anterior a date_from"
            )
        account = self.get_account(account_id, tenant_id)
        debit_normal = account.account_type in DEBIT_NORMAL_TYPES

        def signed(debit, credit):
            return debit - credit if debit_normal else credit - debit

        opening = Decimal("0.00")
        if date_from:
            for line, _ in self._booked_lines(account).filter(JournalEntry.entry_date < date_from):
                opening += signed(money(line.debit_amount), money(line.credit_amount))

        query = self._booked_lines(account)
        if date_from:
            query = query.filter(JournalEntry.entry_date >= date_from)
        if date_to:
            query = query.filter(JournalEntry.entry_date <= date_to)
        rows = query.order_by(JournalEntry.entry_date, JournalEntry.created_at, JournalLine.line_number).all()

        running = opening
        total_debit = total_credit = Decimal("0.00")
        lines = []
        for line, entry in rows:
            debit, credit = money(line.debit_amount), money(line.credit_amount)
            running += signed(debit, credit)
            total_debit += debit
            total_credit += credit
            lines.append(LedgerLineOut(
                journal_entry_id=entry.id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                reference=entry.reference,
                description=line.description or entry.description,
                debit_amount=debit,
                credit_amount=credit,
                running_balance=running
            ))

        return AccountLedger(
            account=AccountOut.model_validate(account),
            date_from=date_from,
            date_to=date_to,
            opening_balance=opening,
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=running,
            lines=lines
        )


class JournalService:
    """Asientos contables"""

    def __init__(self, db: Session):
        self.db = db

    def create_entry(self, data: JournalEntryCreate, tenant_id: UUID, user_id: UUID) -> JournalEntry:
        accounts = AccountService(self.db)
        for line in data.lines:
            account = accounts.get_account(line.account_id, tenant_id)
            if not account.is_active:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"La cuenta {account.account_code} está inactiva"
                )

        with service_transaction(self.db, "Error interno al crear el asiento", "Ya existe un asiento con ese número"):
            entry_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                JournalEntry, "entry_number", tenant_id, "journal_entry",
                explicit_number=data.entry_number, reference_id=str(entry_id), created_by=user_id
            )
            entry = JournalEntry(
                id=entry_id,
                tenant_id=tenant_id,
                entry_number=number,
                entry_date=data.entry_date,
                reference=data.reference,
                description=data.description,
                currency=settings.DEFAULT_CURRENCY,
                created_by=user_id
            )
            for position, line in enumerate(data.lines, start=1):
                entry.lines.append(JournalLine(
                    tenant_id=tenant_id,
                    account_id=line.account_id,
                    line_number=position,
                    description=line.description,
                    debit_amount=money(line.debit_amount),
                    credit_amount=money(line.credit_amount)
                ))
            entry.total_debit = money(sum(line.debit_amount for line in data.lines))
            entry.total_credit = money(sum(line.credit_amount for line in data.lines))
            self.db.add(entry)

        self.db.refresh(entry)
        logger.info(f"Journal entry {entry.entry_number} created ({entry.total_debit})")
        return entry

    def get_entries(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                    status_filter: Optional[str] = None, date_from: Optional[date] = None,
                    date_to: Optional[date] = None) -> JournalEntryList:
        query = self.db.query(JournalEntry).filter(JournalEntry.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(JournalEntry.status == status_filter)
        if date_from:
            query = query.filter(JournalEntry.entry_date >= date_from)
        if date_to:
            query = query.filter(JournalEntry.entry_date <= date_to)
        total = query.count()
        entries = query.order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc()) \
            .offset(offset).limit(limit).all()
        return JournalEntryList(items=entries, total=total, limit=limit, offset=offset)

    def get_entry(self, entry_id: UUID, tenant_id: UUID) -> JournalEntry:
        entry = self.db.query(JournalEntry).filter(
            JournalEntry.id == entry_id,
            JournalEntry.tenant_id == tenant_id
        ).first()
        if not entry:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Asiento no encontrado")
        return entry

    def _apply_balances(self, entry: JournalEntry) -> None:
        accounts = AccountService(self.db)
        for line in entry.lines:
            account = accounts.get_account(line.account_id, entry.tenant_id, for_update=True)
            debit, credit = money(line.debit_amount), money(line.credit_amount)
            delta = debit - credit if account.account_type in DEBIT_NORMAL_TYPES else credit - debit
            account.balance = money(account.balance) + delta

    def post_entry(self, entry_id: UUID, tenant_id: UUID, user_id: UUID) -> JournalEntry:
        """Contabilizar: actualiza los saldos de las cuentas."""
        entry = self.get_entry(entry_id, tenant_id)
        if entry.status != JournalEntryStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El asiento ya está en estado {entry.status}"
            )
        with service_transaction(self.db, "Error interno al contabilizar el asiento"):
            self._apply_balances(entry)
            entry.status = JournalEntryStatus.POSTED.value
            entry.posted_by = user_id
            entry.posted_at = datetime.now(timezone.utc)

        self.db.refresh(entry)
        logger.info(f"Journal entry {entry.entry_number} posted")
        return entry

    def reverse_entry(self, entry_id: UUID, data: JournalReverse, tenant_id: UUID, user_id: UUID) -> JournalEntry:
        """Crear y contabilizar el asiento inverso (débitos ↔ créditos)."""
        entry = self.get_entry(entry_id, tenant_id)
        if entry.status == JournalEntryStatus.REVERSED.value:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El asiento ya fue revertido")
        if entry.status != JournalEntryStatus.POSTED.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden revertir asientos contabilizados"
            )

        with service_transaction(self.db, "Error interno al revertir el asiento"):
            reversal_id = uuid4()
            number = NumberingService(self.db).next_document_number(
                tenant_id, "journal_entry", reference_id=str(reversal_id), created_by=user_id
            )
            now = datetime.now(timezone.utc)
            reversal = JournalEntry(
                id=reversal_id,
                tenant_id=tenant_id,
                entry_number=number,
                entry_date=data.reversal_date,
                reference=entry.entry_number,
                description=f"Reversión de {entry.entry_number}: {data.reason}"[:255],
                status=JournalEntryStatus.POSTED.value,
                total_debit=entry.total_credit,
                total_credit=entry.total_debit,
                currency=entry.currency,
                posted_by=user_id,
                posted_at=now,
                reversal_of_id=entry.id,
                created_by=user_id
            )
            for line in entry.lines:
                reversal.lines.append(JournalLine(
                    tenant_id=tenant_id,
                    account_id=line.account_id,
                    line_number=line.line_number,
                    description=line.description,
                    debit_amount=line.credit_amount,
                    credit_amount=line.debit_amount
                ))
            self.db.add(reversal)
            self._apply_balances(reversal)

            entry.status = JournalEntryStatus.REVERSED.value
            entry.reversed_by = user_id
            entry.reversed_at = now
            entry.reversal_reason = data.reason

        self.db.refresh(reversal)
        logger.info(f"Journal entry {entry.entry_number} reversed by {reversal.entry_number}")
        return reversal

    def delete_entry(self, entry_id: UUID, tenant_id: UUID) -> None:
        entry = self.get_entry(entry_id, tenant_id)
        if entry.status != JournalEntryStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden eliminar asientos en borrador; use reversar"
            )
        self.db.delete(entry)
        self.db.commit()


class BankService:
    """Cuentas bancarias, movimientos y conciliaciones"""

    def __init__(self, db: Session):
        self.db = db

    def create_account(self, data: BankAccountCreate, tenant_id: UUID) -> BankAccount:
        if data.ledger_account_id:
            AccountService(self.db).get_account(data.ledger_account_id, tenant_id)
        has_accounts = self.db.query(BankAccount.id).filter(BankAccount.tenant_id == tenant_id).first() is not None

        with service_transaction(self.db, "Error interno al crear la cuenta bancaria",
                                 "Ya existe una cuenta bancaria con ese número"):
            is_default = data.is_default or not has_accounts
            if is_default:
                self._clear_default(tenant_id)
            account = BankAccount(
                tenant_id=tenant_id,
                account_name=data.account_name,
                bank_name=data.bank_name,
                account_number=data.account_number,
                branch=data.branch,
                swift_code=data.swift_code,
                currency=data.currency or settings.DEFAULT_CURRENCY,
                account_type=data.account_type,
                opening_balance=money(data.opening_balance),
                current_balance=money(data.opening_balance),
                is_default=is_default,
                ledger_account_id=data.ledger_account_id,
                notes=data.notes
            )
            self.db.add(account)

        self.db.refresh(account)
        logger.info(f"Bank account {account.bank_name} {account.account_number} created")
        return account

    def _clear_default(self, tenant_id: UUID) -> None:
        self.db.query(BankAccount).filter(
            BankAccount.tenant_id == tenant_id,
            BankAccount.is_default == True
        ).update({"is_default": False})

    def get_accounts(self, tenant_id: UUID) -> List[BankAccount]:
        return self.db.query(BankAccount).filter(
            BankAccount.tenant_id == tenant_id
        ).order_by(BankAccount.bank_name, BankAccount.account_name).all()

    def get_account(self, account_id: UUID, tenant_id: UUID, for_update: bool = False) -> BankAccount:
        query = self.db.query(BankAccount).filter(BankAccount.id == account_id, BankAccount.tenant_id == tenant_id)
        if for_update:
            query = query.with_for_update()
        account = query.first()
        if not account:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cuenta bancaria no encontrada")
        return account

    def update_account(self, account_id: UUID, data: BankAccountUpdate, tenant_id: UUID) -> BankAccount:
        account = self.get_account(account_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("ledger_account_id"):
            AccountService(self.db).get_account(values["ledger_account_id"], tenant_id)
        if values.get("is_default"):
            self._clear_default(tenant_id)
        for field, value in values.items():
            setattr(account, field, value)
        self.db.commit()
        self.db.refresh(account)
        return account

    def record_transaction(self, account: BankAccount, transaction_type: BankTransactionType, amount: Decimal,
                           description: str, reference: Optional[str] = None, payment_id: Optional[UUID] = None,
                           transaction_date: Optional[date] = None) -> BankTransaction:
        """Insert a movement and move the account balance (caller commits; account must be locked)."""
        amount = money(amount)
        delta = amount if transaction_type == BankTransactionType.CREDIT else -amount
        account.current_balance = money(account.current_balance) + delta
        transaction = BankTransaction(
            tenant_id=account.tenant_id,
            bank_account_id=account.id,
            transaction_date=transaction_date or date.today(),
            description=description,
            reference=reference,
            amount=amount,
            transaction_type=transaction_type.value,
            balance_after=account.current_balance,
            payment_id=payment_id
        )
        self.db.add(transaction)
        return transaction

    def add_transaction(self, account_id: UUID, data: BankTransactionCreate, tenant_id: UUID) -> BankTransaction:
        with service_transaction(self.db, "Error interno al registrar el movimiento bancario"):
            account = self.get_account(account_id, tenant_id, for_update=True)
            if not account.is_active:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="La cuenta bancaria está inactiva")
            transaction = self.record_transaction(
                account, data.transaction_type, data.amount, data.description,
                reference=data.reference, transaction_date=data.transaction_date
            )

        self.db.refresh(transaction)
        return transaction

    def get_transactions(self, account_id: UUID, tenant_id: UUID, status_filter: Optional[str] = None,
                         limit: int = 100, offset: int = 0) -> List[BankTransaction]:
        self.get_account(account_id, tenant_id)
        query = self.db.query(BankTransaction).filter(
            BankTransaction.tenant_id == tenant_id,
            BankTransaction.bank_account_id == account_id
        )
        if status_filter:
            query = query.filter(BankTransaction.status == status_filter)
        return query.order_by(BankTransaction.transaction_date.desc(), BankTransaction.created_at.desc()) \
            .offset(offset).limit(limit).all()

    # ===== Conciliación =====

    def start_reconciliation(self, data: ReconciliationCreate, tenant_id: UUID) -> BankReconciliation:
        """
        Abrir una conciliación. El saldo en libros parte del último saldo
        conciliado (o del saldo inicial) y suma los movimientos que se marquen.
        """
        account = self.get_account(data.bank_account_id, tenant_id)
        open_reconciliation = self.db.query(BankReconciliation.id).filter(
            BankReconciliation.bank_account_id == account.id,
            BankReconciliation.status == ReconciliationStatus.IN_PROGRESS.value
        ).first()
        if open_reconciliation:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La cuenta ya tiene una conciliación en curso"
            )
        base = account.last_reconciled_balance if account.last_reconciled_balance is not None else account.opening_balance
        reconciliation = BankReconciliation(
            tenant_id=tenant_id,
            bank_account_id=account.id,
            period_start=data.period_start,
            period_end=data.period_end,
            statement_balance=money(data.statement_balance),
            book_balance=money(base),
            notes=data.notes
        )
        self.db.add(reconciliation)
        self.db.commit()
        self.db.refresh(reconciliation)
        return reconciliation

    def get_reconciliations(self, tenant_id: UUID, bank_account_id: Optional[UUID] = None) -> List[BankReconciliation]:
        query = self.db.query(BankReconciliation).filter(BankReconciliation.tenant_id == tenant_id)
        if bank_account_id:
            query = query.filter(BankReconciliation.bank_account_id == bank_account_id)
        return query.order_by(BankReconciliation.period_end.desc()).all()

    def get_reconciliation(self, reconciliation_id: UUID, tenant_id: UUID) -> BankReconciliation:
        reconciliation = self.db.query(BankReconciliation).filter(
            BankReconciliation.id == reconciliation_id,
            BankReconciliation.tenant_id == tenant_id
        ).first()
        if not reconciliation:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conciliación no encontrada")
        return reconciliation

    def _require_open(self, reconciliation: BankReconciliation) -> None:
        if reconciliation.status != ReconciliationStatus.IN_PROGRESS.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="La conciliación ya está completada")

    def mark_transactions(self, reconciliation_id: UUID, data: ReconciliationMark, tenant_id: UUID) -> BankReconciliation:
        reconciliation = self.get_reconciliation(reconciliation_id, tenant_id)
        self._require_open(reconciliation)

        with service_transaction(self.db, "Error interno al conciliar movimientos"):
            for transaction_id in data.transaction_ids:
                transaction = self.db.query(BankTransaction).filter(
                    BankTransaction.id == transaction_id,
                    BankTransaction.tenant_id == tenant_id,
                    BankTransaction.bank_account_id == reconciliation.bank_account_id
                ).first()
                if not transaction:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"El movimiento {transaction_id} no pertenece a la cuenta"
                    )
                if transaction.status != "pending":
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"El movimiento {transaction_id} ya está conciliado"
                    )
                if transaction.transaction_date > reconciliation.period_end:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"El movimiento {transaction_id} es posterior al periodo"
                    )
                transaction.status = "reconciled"
                transaction.reconciliation_id = reconciliation.id
                reconciliation.book_balance = money(reconciliation.book_balance) + money(transaction.signed_amount)

        self.db.refresh(reconciliation)
        return reconciliation

    def unmark_transaction(self, reconciliation_id: UUID, transaction_id: UUID, tenant_id: UUID) -> BankReconciliation:
        reconciliation = self.get_reconciliation(reconciliation_id, tenant_id)
        self._require_open(reconciliation)
        transaction = self.db.query(BankTransaction).filter(
            BankTransaction.id == transaction_id,
            BankTransaction.reconciliation_id == reconciliation.id
        ).first()
        if not transaction:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Movimiento no encontrado en la conciliación")
        transaction.status = "pending"
        transaction.reconciliation_id = None
        reconciliation.book_balance = money(reconciliation.book_balance) - money(transaction.signed_amount)
        self.db.commit()
        self.db.refresh(reconciliation)
        return reconciliation

    def complete_reconciliation(self, reconciliation_id: UUID, tenant_id: UUID, user_id: UUID) -> BankReconciliation:
        """Cerrar la conciliación; solo si extracto y libros coinciden."""
        reconciliation = self.get_reconciliation(reconciliation_id, tenant_id)
        self._require_open(reconciliation)
        difference = money(reconciliation.difference)
        if difference != 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"La conciliación tiene una diferencia de {difference}"
            )
        account = self.get_account(reconciliation.bank_account_id, tenant_id)
        reconciliation.status = ReconciliationStatus.COMPLETED.value
        reconciliation.completed_by = user_id
        reconciliation.completed_at = datetime.now(timezone.utc)
        account.last_reconciled_date = reconciliation.period_end
        account.last_reconciled_balance = reconciliation.statement_balance
        self.db.commit()
        self.db.refresh(reconciliation)
        logger.info(f"Bank account {account.account_number} reconciled to {reconciliation.period_end}")
        return reconciliation


class PaymentService:
    """Cobros a clientes y pagos a proveedores"""

    def __init__(self, db: Session):
        self.db = db

    def create_payment(self, data: PaymentCreate, tenant_id: UUID, user_id: UUID) -> Payment:
        invoices = InvoiceService(self.db)
        banks = BankService(self.db)

        with service_transaction(self.db, "Error interno al registrar el pago", "Ya existe un pago con ese número"):
            customer_id = data.customer_id
            currency = settings.DEFAULT_CURRENCY
            invoice = None
            if data.invoice_id:
                invoice = invoices.get_invoice(data.invoice_id, tenant_id, for_update=True)
                if customer_id and customer_id != invoice.customer_id:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="La factura no corresponde al cliente"
                    )
                customer_id = invoice.customer_id
                currency = invoice.currency
            elif customer_id:
                require_customer(self.db, customer_id, tenant_id)
            if data.vendor_id:
                vendor = VendorService(self.db).require_active_vendor(data.vendor_id, tenant_id)
                currency = vendor.preferred_currency or currency

            bank_account = banks.get_account(data.bank_account_id, tenant_id, for_update=True) if data.bank_account_id else None

            payment_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                Payment, "payment_number", tenant_id, "payment_receipt",
                explicit_number=data.payment_number, reference_id=str(payment_id), created_by=user_id
            )
            payment = Payment(
                id=payment_id,
                tenant_id=tenant_id,
                payment_number=number,
                payment_type=data.payment_type.value,
                payment_date=data.payment_date,
                amount=money(data.amount),
                currency=currency,
                payment_method=data.payment_method.value,
                reference=data.reference,
                description=data.description,
                customer_id=customer_id,
                vendor_id=data.vendor_id,
                invoice_id=data.invoice_id,
                bank_account_id=data.bank_account_id,
                notes=data.notes,
                created_by=user_id
            )
            self.db.add(payment)

            if invoice is not None:
                invoices.apply_payment(invoice, data.amount)
            if bank_account is not None:
                transaction_type = BankTransactionType.CREDIT if data.payment_type == PaymentType.RECEIVED else BankTransactionType.DEBIT
                banks.record_transaction(
                    bank_account, transaction_type, data.amount, data.description or f"Pago {number}",
                    reference=number, payment_id=payment_id, transaction_date=data.payment_date
                )

        self.db.refresh(payment)
        logger.info(f"Payment {payment.payment_number} ({payment.payment_type}) for {payment.amount} {payment.currency}")
        return payment

    def get_payments(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                     payment_type: Optional[str] = None, customer_id: Optional[UUID] = None,
                     vendor_id: Optional[UUID] = None, invoice_id: Optional[UUID] = None) -> PaymentList:
        query = self.db.query(Payment).filter(Payment.tenant_id == tenant_id)
        if payment_type:
            query = query.filter(Payment.payment_type == payment_type)
        if customer_id:
            query = query.filter(Payment.customer_id == customer_id)
        if vendor_id:
            query = query.filter(Payment.vendor_id == vendor_id)
        if invoice_id:
            query = query.filter(Payment.invoice_id == invoice_id)
        total = query.count()
        payments = query.order_by(Payment.payment_date.desc(), Payment.created_at.desc()).offset(offset).limit(limit).all()
        return PaymentList(items=payments, total=total, limit=limit, offset=offset)

    def get_payment(self, payment_id: UUID, tenant_id: UUID) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id, Payment.tenant_id == tenant_id).first()
        if not payment:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pago no encontrado")
        return payment

    def void_payment(self, payment_id: UUID, tenant_id: UUID, user_id: UUID) -> Payment:
        """Anular: devuelve el saldo a la factura y revierte el movimiento bancario."""
        payment = self.get_payment(payment_id, tenant_id)
        if payment.status == PaymentStatus.VOID.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El pago ya está anulado")

        with service_transaction(self.db, "Error interno al anular el pago"):
            if payment.invoice_id:
                invoices = InvoiceService(self.db)
                invoice = invoices.get_invoice(payment.invoice_id, tenant_id, for_update=True)
                invoices.revert_payment(invoice, payment.amount)
            if payment.bank_account_id:
                banks = BankService(self.db)
                account = banks.get_account(payment.bank_account_id, tenant_id, for_update=True)
                transaction_type = BankTransactionType.DEBIT if payment.payment_type == PaymentType.RECEIVED.value else BankTransactionType.CREDIT
                banks.record_transaction(
                    account, transaction_type, payment.amount, f"Anulación {payment.payment_number}",
                    reference=payment.payment_number, payment_id=payment.id
                )
            payment.status = PaymentStatus.VOID.value

        self.db.refresh(payment)
        logger.info(f"Payment {payment.payment_number} voided")
        return payment


class ReportService:
    """Cartera: cuentas por cobrar y por pagar"""

    def __init__(self, db: Session):
        self.db = db

    def accounts_receivable(self, tenant_id: UUID, customer_id: Optional[UUID] = None,
                            as_of: Optional[date] = None) -> ReceivablesReport:
        """Facturas emitidas con saldo pendiente y días de mora a la fecha de corte."""
        as_of = as_of or date.today()
        query = self.db.query(Invoice).filter(
            Invoice.tenant_id == tenant_id,
            Invoice.status.in_([InvoiceStatus.SENT.value, InvoiceStatus.PARTIALLY_PAID.value])
        )
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)

        items = []
        total_outstanding = total_overdue = Decimal("0.00")
        for invoice in query.order_by(Invoice.invoice_date, Invoice.invoice_number).all():
            balance = money(invoice.balance_due)
            if balance <= 0:
                continue
            days_overdue = (as_of - invoice.due_date).days if invoice.due_date and invoice.due_date < as_of else 0
            total_outstanding += balance
            if days_overdue:
                total_overdue += balance
            items.append(ReceivableOut(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                customer_id=invoice.customer_id,
                customer_name=invoice.customer.display_name,
                invoice_date=invoice.invoice_date,
                due_date=invoice.due_date,
                status=invoice.status,
                total_amount=money(invoice.total_amount),
                amount_paid=money(invoice.amount_paid),
                balance_due=balance,
                days_overdue=days_overdue
            ))
        return ReceivablesReport(as_of=as_of, items=items, total_outstanding=total_outstanding,
                                 total_overdue=total_overdue)

    def _totals_by_vendor(self, model, amount, *criteria) -> dict:
        rows = self.db.query(model.vendor_id, func.sum(amount)).filter(*criteria).group_by(model.vendor_id).all()
        return {vendor_id: money(total or 0) for vendor_id, total in rows}

    def accounts_payable(self, tenant_id: UUID, vendor_id: Optional[UUID] = None) -> PayablesReport:
        """
        Saldo por proveedor: mercancía recibida − devoluciones con reembolso
        o nota crédito − pagos realizados no anulados.
        """
        received = self._totals_by_vendor(GoodsReceiving, GoodsReceiving.total_value, GoodsReceiving.tenant_id == tenant_id)
        returned = self._totals_by_vendor(
            PurchaseReturn, PurchaseReturn.total_value,
            PurchaseReturn.tenant_id == tenant_id,
            PurchaseReturn.return_type.in_([ReturnType.REFUND.value, ReturnType.CREDIT.value])
        )
        paid = self._totals_by_vendor(
            Payment, Payment.amount,
            Payment.tenant_id == tenant_id,
            Payment.payment_type == PaymentType.MADE.value,
            Payment.status == PaymentStatus.COMPLETED.value,
            Payment.vendor_id.isnot(None)
        )

        vendor_ids = set(received) | set(returned) | set(paid)
        if vendor_id:
            vendor_ids &= {vendor_id}
        vendors = self.db.query(Vendor).filter(
            Vendor.tenant_id == tenant_id, Vendor.id.in_(vendor_ids)
        ).order_by(Vendor.name).all() if vendor_ids else []

        zero = Decimal("0.00")
        items = []
        for vendor in vendors:
            balance = received.get(vendor.id, zero) - returned.get(vendor.id, zero) - paid.get(vendor.id, zero)
            if balance == 0:
                continue
            items.append(PayableOut(
                vendor_id=vendor.id,
                vendor_number=vendor.vendor_number,
                vendor_name=vendor.name,
                received_value=received.get(vendor.id, zero),
                returned_value=returned.get(vendor.id, zero),
                paid_amount=paid.get(vendor.id, zero),
                balance=balance
            ))
        return PayablesReport(as_of=date.today(), items=items,
                              total_outstanding=sum((item.balance for item in items), zero))

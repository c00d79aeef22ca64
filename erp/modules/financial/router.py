"""
Router financiero

- /accounts: plan de cuentas
- /journal-entries: asientos, contabilización y reversión
- /payments: cobros y pagos
- /bank: cuentas bancarias, movimientos y conciliaciones
- /financial: cuentas por cobrar y por pagar
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date

from erp.core.config import settings
from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies
from erp.modules.financial.models import AccountType, JournalEntryStatus, PaymentType
from erp.modules.financial.service import AccountService, JournalService, PaymentService, BankService, ReportService
from erp.modules.financial.schemas import (
    AccountCreate, AccountUpdate, AccountOut,
    JournalEntryCreate, JournalEntryOut, JournalEntryList, JournalReverse,
    PaymentCreate, PaymentOut, PaymentList,
    BankAccountCreate, BankAccountUpdate, BankAccountOut, BankTransactionCreate, BankTransactionOut,
    ReconciliationCreate, ReconciliationMark, ReconciliationOut,
    AccountLedger, ReceivablesReport, PayablesReport
)

FINANCE_ROLES = ["owner", "admin", "accountant"]
PAYMENT_ROLES = ["owner", "admin", "accountant", "seller"]

accounts_router = APIRouter(prefix="/accounts", tags=["Chart of Accounts"])
journal_router = APIRouter(prefix="/journal-entries", tags=["Journal Entries"])
payments_router = APIRouter(prefix="/payments", tags=["Payments"])
bank_router = APIRouter(prefix="/bank", tags=["Banking"])
reports_router = APIRouter(prefix="/financial", tags=["Financial Reports"])


# ===== PLAN DE CUENTAS =====

@accounts_router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
async def create_account(
    account_data: AccountCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """Crear cuenta contable. El código es único por empresa."""
    return AccountService(db).create_account(account_data, auth_context.tenant_id)


@accounts_router.get("", response_model=List[AccountOut])
async def get_accounts(
    account_type: Optional[AccountType] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return AccountService(db).get_accounts(
        auth_context.tenant_id, account_type.value if account_type else None, include_inactive
    )


@accounts_router.get("/{account_id}", response_model=AccountOut)
async def get_account(
    account_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return AccountService(db).get_account(account_id, auth_context.tenant_id)


@accounts_router.get("/{account_id}/ledger", response_model=AccountLedger)
async def get_account_ledger(
    account_id: UUID,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """
    Libro mayor de la cuenta

    - **date_from**: los movimientos anteriores forman el saldo inicial
    - Solo asientos contabilizados o revertidos; los borradores no aparecen
    """
    return AccountService(db).get_ledger(account_id, auth_context.tenant_id, date_from, date_to)


@accounts_router.put("/{account_id}", response_model=AccountOut)
async def update_account(
    account_id: UUID,
    account_data: AccountUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return AccountService(db).update_account(account_id, account_data, auth_context.tenant_id)


@accounts_router.delete("/{account_id}")
async def deactivate_account(
    account_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    AccountService(db).deactivate_account(account_id, auth_context.tenant_id)
    return {"message": "Cuenta desactivada"}


# ===== ASIENTOS =====

@journal_router.post("", response_model=JournalEntryOut, status_code=status.HTTP_201_CREATED)
async def create_journal_entry(
    entry_data: JournalEntryCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """
    Crear asiento en borrador

    - **lines**: cada línea lleva débito o crédito; la suma de débitos debe igualar la de créditos
    - **entry_number**: opcional; si se omite se asigna del contador `journal_entry`
    """
    return JournalService(db).create_entry(entry_data, auth_context.tenant_id, auth_context.user_id)


@journal_router.get("", response_model=JournalEntryList)
async def get_journal_entries(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    entry_status: Optional[JournalEntryStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return JournalService(db).get_entries(
        auth_context.tenant_id, limit, offset, entry_status.value if entry_status else None, date_from, date_to
    )


@journal_router.get("/{entry_id}", response_model=JournalEntryOut)
async def get_journal_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return JournalService(db).get_entry(entry_id, auth_context.tenant_id)


@journal_router.post("/{entry_id}/post", response_model=JournalEntryOut)
async def post_journal_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return JournalService(db).post_entry(entry_id, auth_context.tenant_id, auth_context.user_id)


@journal_router.post("/{entry_id}/reverse", response_model=JournalEntryOut, status_code=status.HTTP_201_CREATED)
async def reverse_journal_entry(
    entry_id: UUID,
    reverse_data: JournalReverse,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """Devuelve el asiento inverso ya contabilizado."""
    return JournalService(db).reverse_entry(entry_id, reverse_data, auth_context.tenant_id, auth_context.user_id)


@journal_router.delete("/{entry_id}")
async def delete_journal_entry(
    entry_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    JournalService(db).delete_entry(entry_id, auth_context.tenant_id)
    return {"message": "Asiento eliminado"}


# ===== PAGOS =====

@payments_router.post("", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYMENT_ROLES))
):
    """
    Registrar cobro o pago

    - **payment_type**: received (cliente) o made (proveedor)
    - **invoice_id**: aplica el cobro a la factura (sent o partially_paid); no puede superar el saldo
    - **bank_account_id**: registra el movimiento en la cuenta bancaria
    """
    return PaymentService(db).create_payment(payment_data, auth_context.tenant_id, auth_context.user_id)


@payments_router.get("", response_model=PaymentList)
async def get_payments(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    payment_type: Optional[PaymentType] = Query(None),
    customer_id: Optional[UUID] = Query(None),
    vendor_id: Optional[UUID] = Query(None),
    invoice_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYMENT_ROLES))
):
    return PaymentService(db).get_payments(
        auth_context.tenant_id, limit, offset,
        payment_type.value if payment_type else None, customer_id, vendor_id, invoice_id
    )


@payments_router.get("/{payment_id}", response_model=PaymentOut)
async def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYMENT_ROLES))
):
    return PaymentService(db).get_payment(payment_id, auth_context.tenant_id)


@payments_router.post("/{payment_id}/void", response_model=PaymentOut)
async def void_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return PaymentService(db).void_payment(payment_id, auth_context.tenant_id, auth_context.user_id)


# ===== BANCOS =====

@bank_router.post("/accounts", response_model=BankAccountOut, status_code=status.HTTP_201_CREATED)
async def create_bank_account(
    account_data: BankAccountCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).create_account(account_data, auth_context.tenant_id)


@bank_router.get("/accounts", response_model=List[BankAccountOut])
async def get_bank_accounts(
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).get_accounts(auth_context.tenant_id)


@bank_router.get("/accounts/{account_id}", response_model=BankAccountOut)
async def get_bank_account(
    account_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).get_account(account_id, auth_context.tenant_id)


@bank_router.put("/accounts/{account_id}", response_model=BankAccountOut)
async def update_bank_account(
    account_id: UUID,
    account_data: BankAccountUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).update_account(account_id, account_data, auth_context.tenant_id)


@bank_router.post("/accounts/{account_id}/transactions", response_model=BankTransactionOut,
                  status_code=status.HTTP_201_CREATED)
async def create_bank_transaction(
    account_id: UUID,
    transaction_data: BankTransactionCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).add_transaction(account_id, transaction_data, auth_context.tenant_id)


@bank_router.get("/accounts/{account_id}/transactions", response_model=List[BankTransactionOut])
async def get_bank_transactions(
    account_id: UUID,
    transaction_status: Optional[str] = Query(None, alias="status", description="pending o reconciled"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).get_transactions(account_id, auth_context.tenant_id, transaction_status, limit, offset)


@bank_router.post("/reconciliations", response_model=ReconciliationOut, status_code=status.HTTP_201_CREATED)
async def start_reconciliation(
    reconciliation_data: ReconciliationCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """Abrir conciliación con el saldo del extracto bancario."""
    return BankService(db).start_reconciliation(reconciliation_data, auth_context.tenant_id)


@bank_router.get("/reconciliations", response_model=List[ReconciliationOut])
async def get_reconciliations(
    bank_account_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).get_reconciliations(auth_context.tenant_id, bank_account_id)


@bank_router.get("/reconciliations/{reconciliation_id}", response_model=ReconciliationOut)
async def get_reconciliation(
    reconciliation_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).get_reconciliation(reconciliation_id, auth_context.tenant_id)


@bank_router.post("/reconciliations/{reconciliation_id}/transactions", response_model=ReconciliationOut)
async def mark_reconciled_transactions(
    reconciliation_id: UUID,
    mark_data: ReconciliationMark,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).mark_transactions(reconciliation_id, mark_data, auth_context.tenant_id)


@bank_router.delete("/reconciliations/{reconciliation_id}/transactions/{transaction_id}",
                    response_model=ReconciliationOut)
async def unmark_reconciled_transaction(
    reconciliation_id: UUID,
    transaction_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return BankService(db).unmark_transaction(reconciliation_id, transaction_id, auth_context.tenant_id)


@bank_router.post("/reconciliations/{reconciliation_id}/complete", response_model=ReconciliationOut)
async def complete_reconciliation(
    reconciliation_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """Solo se completa cuando la diferencia es 0."""
    return BankService(db).complete_reconciliation(reconciliation_id, auth_context.tenant_id, auth_context.user_id)


# ===== CARTERA =====

@reports_router.get("/accounts-receivable", response_model=ReceivablesReport)
async def get_accounts_receivable(
    customer_id: Optional[UUID] = Query(None),
    as_of: Optional[date] = Query(None, description="Fecha de corte para los días de mora"),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    return ReportService(db).accounts_receivable(auth_context.tenant_id, customer_id, as_of)


@reports_router.get("/accounts-payable", response_model=PayablesReport)
async def get_accounts_payable(
    vendor_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(FINANCE_ROLES))
):
    """Saldo por proveedor: recibido − devoluciones − pagos"""
    return ReportService(db).accounts_payable(auth_context.tenant_id, vendor_id)

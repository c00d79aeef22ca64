from sqlalchemy import (
    Column, String, Integer, Boolean, Text, Date, DateTime, Numeric, ForeignKey, Uuid, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import date
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin


class AccountType(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


# Tipos cuyo saldo aumenta con el débito
DEBIT_NORMAL_TYPES = (AccountType.ASSET.value, AccountType.EXPENSE.value)


class JournalEntryStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


class PaymentType(str, Enum):
    RECEIVED = "received"    # cobro a cliente
    MADE = "made"            # pago a proveedor


class PaymentMethod(str, Enum):
    CASH = "cash"
    MPESA = "mpesa"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CARD = "card"


class PaymentStatus(str, Enum):
    COMPLETED = "completed"
    VOID = "void"


class BankTransactionType(str, Enum):
    CREDIT = "credit"    # depósito
    DEBIT = "debit"      # retiro


class ReconciliationStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Account(Base, BaseMixin):
    """Cuenta del plan de cuentas"""
    __tablename__ = "chart_of_accounts"

    account_code = Column(String(20), nullable=False)
    account_name = Column(String(150), nullable=False)
    account_type = Column(String(20), nullable=False)
    parent_account_id = Column(Uuid(as_uuid=True), ForeignKey("chart_of_accounts.id"), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    balance = Column(Numeric(15, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_code", name="uq_account_tenant_code"),
    )


class JournalEntry(Base, BaseMixin):
    __tablename__ = "journal_entries"

    entry_number = Column(String(50), nullable=False)
    entry_date = Column(Date, nullable=False, default=date.today)
    reference = Column(String(100), nullable=True)
    description = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=JournalEntryStatus.DRAFT.value, index=True)
    total_debit = Column(Numeric(15, 2), nullable=False, default=0)
    total_credit = Column(Numeric(15, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="KES")
    posted_by = Column(Uuid(as_uuid=True), nullable=True)
    posted_at = Column(DateTime(timezone=True), nullable=True)
    reversed_by = Column(Uuid(as_uuid=True), nullable=True)
    reversed_at = Column(DateTime(timezone=True), nullable=True)
    reversal_reason = Column(String(255), nullable=True)
    reversal_of_id = Column(Uuid(as_uuid=True), nullable=True)  # asiento original si este es una reversión
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    lines = relationship("JournalLine", back_populates="journal_entry", cascade="all, delete-orphan",
                         order_by="JournalLine.line_number")

    __table_args__ = (
        UniqueConstraint("tenant_id", "entry_number", name="uq_journal_entry_tenant_number"),
    )


class JournalLine(Base, BaseMixin):
    __tablename__ = "journal_lines"

    journal_entry_id = Column(Uuid(as_uuid=True), ForeignKey("journal_entries.id"), nullable=False, index=True)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("chart_of_accounts.id"), nullable=False)
    line_number = Column(Integer, nullable=False, default=1)
    description = Column(String(255), nullable=True)
    debit_amount = Column(Numeric(15, 2), nullable=False, default=0)
    credit_amount = Column(Numeric(15, 2), nullable=False, default=0)

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account")


class BankAccount(Base, BaseMixin):
    __tablename__ = "bank_accounts"

    account_name = Column(String(150), nullable=False)
    bank_name = Column(String(150), nullable=False)
    account_number = Column(String(50), nullable=False)
    branch = Column(String(100), nullable=True)
    swift_code = Column(String(20), nullable=True)
    currency = Column(String(3), nullable=False, default="KES")
    account_type = Column(String(20), nullable=False, default="current")
    opening_balance = Column(Numeric(15, 2), nullable=False, default=0)
    current_balance = Column(Numeric(15, 2), nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    ledger_account_id = Column(Uuid(as_uuid=True), ForeignKey("chart_of_accounts.id"), nullable=True)
    last_reconciled_date = Column(Date, nullable=True)
    last_reconciled_balance = Column(Numeric(15, 2), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "account_number", name="uq_bank_account_tenant_number"),
    )


class Payment(Base, BaseMixin):
    __tablename__ = "payments"

    payment_number = Column(String(50), nullable=False)
    payment_type = Column(String(20), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="KES")
    payment_method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.COMPLETED.value, index=True)
    reference = Column(String(100), nullable=True)  # código M-Pesa, número de cheque...
    description = Column(String(255), nullable=True)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=True)
    vendor_id = Column(Uuid(as_uuid=True), ForeignKey("vendors.id"), nullable=True)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id"), nullable=True, index=True)
    bank_account_id = Column(Uuid(as_uuid=True), ForeignKey("bank_accounts.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "payment_number", name="uq_payment_tenant_number"),
    )


class BankTransaction(Base, BaseMixin):
    __tablename__ = "bank_transactions"

    bank_account_id = Column(Uuid(as_uuid=True), ForeignKey("bank_accounts.id"), nullable=False, index=True)
    transaction_date = Column(Date, nullable=False, default=date.today)
    description = Column(String(255), nullable=False)
    reference = Column(String(100), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    transaction_type = Column(String(10), nullable=False)
    balance_after = Column(Numeric(15, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payments.id"), nullable=True)
    reconciliation_id = Column(Uuid(as_uuid=True), ForeignKey("bank_reconciliations.id"), nullable=True)

    @property
    def signed_amount(self):
        return self.amount if self.transaction_type == BankTransactionType.CREDIT.value else -self.amount


class BankReconciliation(Base, BaseMixin):
    __tablename__ = "bank_reconciliations"

    bank_account_id = Column(Uuid(as_uuid=True), ForeignKey("bank_accounts.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    statement_balance = Column(Numeric(15, 2), nullable=False)
    book_balance = Column(Numeric(15, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ReconciliationStatus.IN_PROGRESS.value)
    completed_by = Column(Uuid(as_uuid=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    transactions = relationship("BankTransaction", foreign_keys=[BankTransaction.reconciliation_id])

    @property
    def difference(self):
        return (self.statement_balance or 0) - (self.book_balance or 0)

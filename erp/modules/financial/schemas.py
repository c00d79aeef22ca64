from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from erp.modules.financial.models import AccountType, PaymentType, PaymentMethod, BankTransactionType


# ===== Plan de cuentas =====

class AccountCreate(BaseModel):
    account_code: str = Field(..., min_length=1, max_length=20)
    account_name: str = Field(..., min_length=1, max_length=150)
    account_type: AccountType
    parent_account_id: Optional[UUID] = None
    description: Optional[str] = None

    @field_validator('account_code')
    @classmethod
    def clean_code(cls, v):
        return v.strip()


class AccountUpdate(BaseModel):
    account_name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    parent_account_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class AccountOut(BaseModel):
    id: UUID
    account_code: str
    account_name: str
    account_type: str
    parent_account_id: Optional[UUID] = None
    description: Optional[str] = None
    is_active: bool
    balance: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


# ===== Asientos contables =====

class JournalLineCreate(BaseModel):
    account_id: UUID
    description: Optional[str] = Field(None, max_length=255)
    debit_amount: Decimal = Field(Decimal("0"), ge=0)
    credit_amount: Decimal = Field(Decimal("0"), ge=0)

    @model_validator(mode='after')
    def one_side(self):
        if (self.debit_amount > 0) == (self.credit_amount > 0):
            raise ValueError('Cada línea debe tener un débito o un crédito (solo uno)')
        return self


class JournalEntryCreate(BaseModel):
    entry_number: Optional[str] = Field(None, max_length=50)
    entry_date: date = Field(default_factory=date.today)
    reference: Optional[str] = Field(None, max_length=100)
    description: str = Field(..., min_length=1, max_length=255)
    lines: List[JournalLineCreate] = Field(..., min_length=2, description="Al menos dos líneas")

    @model_validator(mode='after')
    def balanced(self):
        debit = sum((line.debit_amount for line in self.lines), Decimal("0"))
        credit = sum((line.credit_amount for line in self.lines), Decimal("0"))
        if debit != credit:
            raise ValueError(f'El asiento no cuadra: débitos {debit} ≠ créditos {credit}')
        if debit <= 0:
            raise ValueError('El asiento debe tener importes mayores a 0')
        return self


class JournalReverse(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)
    reversal_date: date = Field(default_factory=date.today)


class JournalLineOut(BaseModel):
    id: UUID
    line_number: int
    account_id: UUID
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal

    class Config:
        from_attributes = True


class JournalEntryOut(BaseModel):
    id: UUID
    entry_number: str
    entry_date: date
    reference: Optional[str] = None
    description: str
    status: str
    total_debit: Decimal
    total_credit: Decimal
    currency: str
    posted_at: Optional[datetime] = None
    reversed_at: Optional[datetime] = None
    reversal_reason: Optional[str] = None
    reversal_of_id: Optional[UUID] = None
    created_at: datetime
    lines: List[JournalLineOut] = []

    class Config:
        from_attributes = True


class JournalEntryList(BaseModel):
    items: List[JournalEntryOut]
    total: int
    limit: int
    offset: int


# ===== Pagos =====

class PaymentCreate(BaseModel):
    payment_number: Optional[str] = Field(None, max_length=50)
    payment_type: PaymentType = PaymentType.RECEIVED
    payment_date: date = Field(default_factory=date.today)
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    customer_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = Field(None, description="Factura a la que se aplica el cobro")
    bank_account_id: Optional[UUID] = Field(None, description="Cuenta bancaria donde se registra el movimiento")
    reference: Optional[str] = Field(None, max_length=100, description="Código M-Pesa, número de cheque, etc.")
    description: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None

    @model_validator(mode='after')
    def counterpart(self):
        if self.payment_type == PaymentType.RECEIVED:
            if self.vendor_id:
                raise ValueError('Un cobro no puede tener proveedor')
            if not (self.customer_id or self.invoice_id):
                raise ValueError('Un cobro requiere customer_id o invoice_id')
        else:
            if self.customer_id or self.invoice_id:
                raise ValueError('Un pago a proveedor no puede tener cliente ni factura de venta')
            if not self.vendor_id:
                raise ValueError('Un pago a proveedor requiere vendor_id')
        return self


class PaymentOut(BaseModel):
    id: UUID
    payment_number: str
    payment_type: str
    payment_date: date
    amount: Decimal
    currency: str
    payment_method: str
    status: str
    reference: Optional[str] = None
    description: Optional[str] = None
    customer_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    bank_account_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentList(BaseModel):
    items: List[PaymentOut]
    total: int
    limit: int
    offset: int


# ===== Bancos =====

class BankAccountCreate(BaseModel):
    account_name: str = Field(..., min_length=1, max_length=150)
    bank_name: str = Field(..., min_length=1, max_length=150)
    account_number: str = Field(..., min_length=1, max_length=50)
    branch: Optional[str] = Field(None, max_length=100)
    swift_code: Optional[str] = Field(None, max_length=20)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    account_type: str = Field("current", max_length=20, description="current, savings o mobile_money")
    opening_balance: Decimal = Decimal("0")
    is_default: bool = False
    ledger_account_id: Optional[UUID] = None
    notes: Optional[str] = None


class BankAccountUpdate(BaseModel):
    account_name: Optional[str] = Field(None, min_length=1, max_length=150)
    branch: Optional[str] = None
    swift_code: Optional[str] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    ledger_account_id: Optional[UUID] = None
    notes: Optional[str] = None


class BankAccountOut(BaseModel):
    id: UUID
    account_name: str
    bank_name: str
    account_number: str
    branch: Optional[str] = None
    swift_code: Optional[str] = None
    currency: str
    account_type: str
    opening_balance: Decimal
    current_balance: Decimal
    is_default: bool
    is_active: bool
    ledger_account_id: Optional[UUID] = None
    last_reconciled_date: Optional[date] = None
    last_reconciled_balance: Optional[Decimal] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BankTransactionCreate(BaseModel):
    transaction_date: date = Field(default_factory=date.today)
    description: str = Field(..., min_length=1, max_length=255)
    reference: Optional[str] = Field(None, max_length=100)
    amount: Decimal = Field(..., gt=0)
    transaction_type: BankTransactionType


class BankTransactionOut(BaseModel):
    id: UUID
    bank_account_id: UUID
    transaction_date: date
    description: str
    reference: Optional[str] = None
    amount: Decimal
    transaction_type: str
    balance_after: Decimal
    status: str
    payment_id: Optional[UUID] = None
    reconciliation_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class ReconciliationCreate(BaseModel):
    bank_account_id: UUID
    period_start: date
    period_end: date
    statement_balance: Decimal
    notes: Optional[str] = None

    @model_validator(mode='after')
    def validate_period(self):
        if self.period_end < self.period_start:
            raise ValueError('El fin del periodo no puede ser anterior al inicio')
        return self


class ReconciliationMark(BaseModel):
    transaction_ids: List[UUID] = Field(..., min_length=1)


class ReconciliationOut(BaseModel):
    id: UUID
    bank_account_id: UUID
    period_start: date
    period_end: date
    statement_balance: Decimal
    book_balance: Decimal
    difference: Decimal
    status: str
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    transactions: List[BankTransactionOut] = []

    class Config:
        from_attributes = True


# ===== Libro mayor y cartera =====

class LedgerLineOut(BaseModel):
    journal_entry_id: UUID
    entry_number: str
    entry_date: date
    reference: Optional[str] = None
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal


class AccountLedger(BaseModel):
    account: AccountOut
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    lines: List[LedgerLineOut]


class ReceivableOut(BaseModel):
    invoice_id: UUID
    invoice_number: str
    customer_id: UUID
    customer_name: str
    invoice_date: date
    due_date: Optional[date] = None
    status: str
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    days_overdue: int


class ReceivablesReport(BaseModel):
    as_of: date
    items: List[ReceivableOut]
    total_outstanding: Decimal
    total_overdue: Decimal


class PayableOut(BaseModel):
    vendor_id: UUID
    vendor_number: str
    vendor_name: str
    received_value: Decimal
    returned_value: Decimal
    paid_amount: Decimal
    balance: Decimal


class PayablesReport(BaseModel):
    as_of: date
    items: List[PayableOut]
    total_outstanding: Decimal

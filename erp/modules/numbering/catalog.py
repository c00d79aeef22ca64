"""
Document type and format catalogs for document numbering.
"""
from enum import Enum
from typing import Dict, NamedTuple


class NumberFormat(str, Enum):
    PREFIX_NUMBER = "prefix-number"
    NUMBER_SUFFIX = "number-suffix"
    PREFIX_NUMBER_SUFFIX = "prefix-number-suffix"
    PREFIX_SEQUENTIAL = "prefix-sequential"
    PREFIX_TIMESTAMP = "prefix-timestamp"
    PREFIX_YEAR_SEQUENTIAL = "prefix-year-sequential"
    PREFIX_YEARMONTH_SEQUENTIAL = "prefix-yearmonth-sequential"
    PREFIX_DATE_SEQUENTIAL = "prefix-date-sequential"
    YEAR_PREFIX_SEQUENTIAL = "year-prefix-sequential"
    DATE_PREFIX_SEQUENTIAL = "date-prefix-sequential"
    SEQUENTIAL_ONLY = "sequential-only"
    CUSTOM = "custom"


class ResetFrequency(str, Enum):
    NEVER = "never"
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DocumentTypeInfo(NamedTuple):
    prefix: str
    default_start: int
    description: str


DEFAULT_FORMAT = NumberFormat.PREFIX_SEQUENTIAL
DEFAULT_SEPARATOR = "-"
DEFAULT_NUMBER_LENGTH = 6

DOCUMENT_TYPES: Dict[str, DocumentTypeInfo] = {
    "customer": DocumentTypeInfo("CUST", 1000, "Customer"),
    "lead": DocumentTypeInfo("LEAD", 1000, "Lead"),
    "vendor": DocumentTypeInfo("VEN", 3000, "Vendor"),
    "customer_return": DocumentTypeInfo("CR", 1000, "Customer Return"),
    "purchase_order": DocumentTypeInfo("PO", 2000, "Purchase Order"),
    "goods_receiving": DocumentTypeInfo("GRV", 4000, "Goods Receiving Voucher"),
    "sales_order": DocumentTypeInfo("SO", 5000, "Sales Order"),
    "quotation": DocumentTypeInfo("QUO", 6000, "Quotation"),
    "invoice": DocumentTypeInfo("INV", 7000, "Invoice"),
    "receipt": DocumentTypeInfo("RCP", 8000, "Receipt"),
    "payment_receipt": DocumentTypeInfo("PAY", 9000, "Payment Receipt"),
    "delivery_note": DocumentTypeInfo("DN", 10000, "Delivery Note"),
    "credit_note": DocumentTypeInfo("CN", 11000, "Credit Note"),
    "debit_note": DocumentTypeInfo("DB", 12000, "Debit Note"),
    "purchase_return": DocumentTypeInfo("PR", 13000, "Purchase Return"),
    "stock_adjustment": DocumentTypeInfo("SA", 14000, "Stock Adjustment"),
    "stock_transfer": DocumentTypeInfo("ST", 15000, "Stock Transfer"),
    "work_order": DocumentTypeInfo("WO", 16000, "Work Order"),
    "service_order": DocumentTypeInfo("SRV", 17000, "Service Order"),
    "expense_claim": DocumentTypeInfo("EXP", 18000, "Expense Claim"),
    "petty_cash": DocumentTypeInfo("PC", 19000, "Petty Cash"),
    "journal_entry": DocumentTypeInfo("JE", 20000, "Journal Entry"),
    "employee": DocumentTypeInfo("EMP", 1000, "Employee"),
}

FORMAT_NAMES: Dict[NumberFormat, str] = {
    NumberFormat.PREFIX_NUMBER: "Prefix + Number",
    NumberFormat.NUMBER_SUFFIX: "Number + Suffix",
    NumberFormat.PREFIX_NUMBER_SUFFIX: "Prefix + Number + Suffix",
    NumberFormat.PREFIX_SEQUENTIAL: "Prefix + Sequential Number",
    NumberFormat.PREFIX_TIMESTAMP: "Prefix + Timestamp",
    NumberFormat.PREFIX_YEAR_SEQUENTIAL: "Prefix + Year + Sequential",
    NumberFormat.PREFIX_YEARMONTH_SEQUENTIAL: "Prefix + Year/Month + Sequential",
    NumberFormat.PREFIX_DATE_SEQUENTIAL: "Prefix + Date + Sequential",
    NumberFormat.YEAR_PREFIX_SEQUENTIAL: "Year + Prefix + Sequential",
    NumberFormat.DATE_PREFIX_SEQUENTIAL: "Date + Prefix + Sequential",
    NumberFormat.SEQUENTIAL_ONLY: "Sequential Number Only",
    NumberFormat.CUSTOM: "Custom Format",
}


def document_type_info(document_type: str) -> DocumentTypeInfo:
    """Catalog entry for a type; custom types get a prefix derived from the code."""
    info = DOCUMENT_TYPES.get(document_type)
    if info:
        return info
    prefix = "".join(part[:1] for part in document_type.split("_")).upper() or "DOC"
    return DocumentTypeInfo(prefix, 1, document_type.replace("_", " ").title())

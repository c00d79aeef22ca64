"""
Tests for shared helpers: money math, validators and the service transaction block
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from erp.common.calculations import money, compute_line, summarize, fill_document
from erp.common.schemas import LineItemCreate
from erp.common.transactions import service_transaction
from erp.common.validators import validate_phone, format_phone, validate_kra_pin, clean_optional_phone


class TestCalculations:

    def test_money_rounds_half_up(self):
        assert money("2.345") == Decimal("2.35")
        assert money(Decimal("2.344")) == Decimal("2.34")
        assert money(7) == Decimal("7.00")

    def test_compute_line_discount_before_tax(self):
        line = compute_line(Decimal("10"), Decimal("100"), discount_percentage=10, tax_rate=16)
        assert line.line_subtotal == Decimal("1000.00")
        assert line.discount_amount == Decimal("100.00")
        assert line.tax_amount == Decimal("144.00")
        assert line.line_total == Decimal("1044.00")

    def test_compute_line_without_discount_or_tax(self):
        line = compute_line("3", "33.333")
        assert line.line_subtotal == Decimal("100.00")
        assert line.line_total == Decimal("100.00")

    def test_summarize_adds_extra_to_total_only(self):
        lines = [compute_line(1, 600, tax_rate=16), compute_line(2, 50, discount_percentage=50)]
        totals = summarize(lines, extra=Decimal("250"))
        assert totals.subtotal == Decimal("700.00")
        assert totals.discount_amount == Decimal("50.00")
        assert totals.tax_amount == Decimal("96.00")
        assert totals.total_amount == Decimal("996.00")

    def test_fill_document_replaces_items(self):
        document = SimpleNamespace(tenant_id="tenant", items=[SimpleNamespace(line_subtotal=1, discount_amount=0,
                                                                               tax_amount=0)])
        amounts = compute_line(2, 250, tax_rate=16)._asdict()
        fill_document(document, SimpleNamespace, [dict(line_number=1, **amounts)])

        assert len(document.items) == 1
        assert document.items[0].tenant_id == "tenant"
        assert document.subtotal == Decimal("500.00")
        assert document.tax_amount == Decimal("80.00")
        assert document.total_amount == Decimal("580.00")


class TestLineItemSchema:

    def test_free_text_line_needs_price(self):
        with pytest.raises(ValidationError):
            LineItemCreate(description="Diseño", quantity=Decimal("1"))
        line = LineItemCreate(description="Diseño", quantity=Decimal("1"), unit_price=Decimal("1500"))
        assert line.discount_percentage == Decimal("0")

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            LineItemCreate(description="x", quantity=Decimal("0"), unit_price=Decimal("1"))


class TestValidators:

    @pytest.mark.parametrize("phone", ["+254712345678", "0712345678", "0112345678", "254712345678", "+14155552671"])
    def test_valid_phones(self, phone):
        assert validate_phone(phone)

    @pytest.mark.parametrize("phone", ["12345", "0812345678", "+254", "abc"])
    def test_invalid_phones(self, phone):
        assert not validate_phone(phone)

    def test_format_phone_to_international(self):
        assert format_phone("0712 345 678") == "+254712345678"
        assert format_phone("254112345678") == "+254112345678"

    def test_clean_optional_phone(self):
        assert clean_optional_phone(None) is None
        assert clean_optional_phone("  ") is None
        assert clean_optional_phone("0722000111") == "+254722000111"
        with pytest.raises(ValueError):
            clean_optional_phone("999")

    def test_kra_pin(self):
        assert validate_kra_pin("A123456789B")
        assert validate_kra_pin(" p051234567z ")
        assert not validate_kra_pin("B123456789C")
        assert not validate_kra_pin("A12345678B")


class TestServiceTransaction:

    def test_commits_on_success(self):
        db = MagicMock()
        with service_transaction(db, "fallo"):
            pass
        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_http_exception_passes_through(self):
        db = MagicMock()
        with pytest.raises(HTTPException) as exc:
            with service_transaction(db, "fallo"):
                raise HTTPException(status_code=400, detail="Stock insuficiente")
        assert exc.value.status_code == 400
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_integrity_error_becomes_conflict(self):
        db = MagicMock()
        db.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        with pytest.raises(HTTPException) as exc:
            with service_transaction(db, "fallo", "Duplicado"):
                pass
        assert exc.value.status_code == 409
        assert exc.value.detail == "Duplicado"
        db.rollback.assert_called_once()

    def test_unexpected_error_is_hidden(self):
        db = MagicMock()
        with pytest.raises(HTTPException) as exc:
            with service_transaction(db, "Error interno"):
                raise RuntimeError("driver exploded")
        assert exc.value.status_code == 500
        assert exc.value.detail == "Error interno"

"""
Tests para la numeración de documentos

- Formatos y plantillas custom
- Asignación atómica (incluye concurrencia con hilos)
- Reinicio por período, reset manual y sincronización
- Endpoints bajo /api y /rest/v1
"""

import threading
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from fastapi import HTTPException

from erp.modules.numbering.catalog import DOCUMENT_TYPES, NumberFormat, document_type_info
from erp.modules.numbering.formatter import format_number, period_key, has_sequence_token, unknown_tokens
from erp.modules.numbering.models import NumberGenerationSetting, DocumentSequence
from erp.modules.numbering.schemas import NumberSettingCreate, NumberSettingUpdate, PreviewRequest
from erp.modules.numbering.service import NumberingService


JULY_11 = datetime(2025, 7, 11, 8, 30, tzinfo=timezone.utc)


# ===== FIXTURES =====

@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def numbering(db_session, tenant_id):
    service = NumberingService(db_session)
    service.initialize_defaults(tenant_id)
    return service


# ===== TESTS DE FORMATO =====

class TestFormatNumber:
    """Render de cada formato con una fecha fija"""

    @pytest.mark.parametrize("fmt,expected", [
        ("prefix-number", "PAY-000001"),
        ("prefix-sequential", "PAY-000001"),
        ("number-suffix", "000001-KE"),
        ("prefix-number-suffix", "PAY-000001-KE"),
        ("prefix-year-sequential", "PAY-2025-000001"),
        ("prefix-yearmonth-sequential", "PAY-202507-000001"),
        ("prefix-date-sequential", "PAY-20250711-000001"),
        ("year-prefix-sequential", "2025-PAY-000001"),
        ("date-prefix-sequential", "20250711-PAY-000001"),
        ("sequential-only", "000001"),
    ])
    def test_formats(self, fmt, expected):
        assert format_number(fmt, 1, prefix="PAY", suffix="KE", separator="-",
                             number_length=6, when=JULY_11) == expected

    def test_prefix_timestamp_uses_epoch_millis(self):
        number = format_number("prefix-timestamp", 1, prefix="PAY", when=JULY_11)
        assert number == f"PAY-{int(JULY_11.timestamp() * 1000)}"

    def test_unknown_format_falls_back_to_prefix_sequential(self):
        assert format_number("nonsense", 42, prefix="INV", number_length=4) == "INV-0042"

    def test_sequence_longer_than_padding_is_not_truncated(self):
        assert format_number("prefix-sequential", 1234567, prefix="INV", number_length=4) == "INV-1234567"

    def test_empty_prefix_keeps_separator(self):
        assert format_number("prefix-sequential", 7, prefix="", number_length=3) == "-007"

    def test_custom_template(self):
        number = format_number(
            "custom", 12, prefix="CUST", separator="/", number_length=6,
            custom_format="{PREFIX}{SEP}{YY}{MM}{DD}{SEP}{NNNN}", when=JULY_11
        )
        assert number == "CUST/250711/0012"

    def test_custom_template_seq_uses_number_length(self):
        number = format_number("custom", 5, prefix="X", number_length=3,
                               custom_format="{YYYY}-{SEQ}{SUFFIX}", suffix="B", when=JULY_11)
        assert number == "2025-005B"

    def test_custom_without_template_falls_back(self):
        assert format_number("custom", 3, prefix="Q", number_length=2) == "Q-03"

    def test_template_helpers(self):
        assert has_sequence_token("{PREFIX}-{NNN}")
        assert has_sequence_token("{SEQ}")
        assert not has_sequence_token("{PREFIX}-{YYYY}")
        assert not has_sequence_token(None)
        assert unknown_tokens("{PREFIX}-{FOO}-{SEQ}") == ["{FOO}"]

    def test_period_keys(self):
        assert period_key("daily", JULY_11) == "20250711"
        assert period_key("monthly", JULY_11) == "202507"
        assert period_key("yearly", JULY_11) == "2025"
        assert period_key("never", JULY_11) == ""


class TestCatalog:

    def test_catalog_defaults(self):
        assert DOCUMENT_TYPES["invoice"].prefix == "INV"
        assert DOCUMENT_TYPES["invoice"].default_start == 7000
        assert DOCUMENT_TYPES["goods_receiving"].prefix == "GRV"
        assert DOCUMENT_TYPES["customer"].default_start == 1000

    def test_custom_type_gets_derived_prefix(self):
        info = document_type_info("asset_tag")
        assert info.prefix == "AT"
        assert info.default_start == 1


# ===== TESTS DEL SERVICIO =====

class TestAllocation:

    def test_initialize_is_idempotent(self, db_session, numbering, tenant_id):
        assert numbering.initialize_defaults(tenant_id) == 0
        count = db_session.query(NumberGenerationSetting).filter_by(tenant_id=tenant_id).count()
        assert count == len(DOCUMENT_TYPES)

    def test_allocations_are_sequential_and_recorded(self, db_session, numbering, tenant_id):
        first = numbering.generate(tenant_id, "invoice")
        second = numbering.generate(tenant_id, "invoice")

        assert first.number == "INV-007000"
        assert first.sequence == 7000
        assert second.number == "INV-007001"

        history = db_session.query(DocumentSequence).filter_by(
            tenant_id=tenant_id, document_type="invoice"
        ).all()
        assert sorted(h.sequence_number for h in history) == [7000, 7001]
        assert numbering.get_setting(tenant_id, "invoice").next_number == 7002

    def test_counters_are_isolated_per_tenant(self, db_session, numbering, tenant_id):
        other = uuid4()
        numbering.initialize_defaults(other)
        numbering.generate(tenant_id, "quotation")
        assert numbering.generate(other, "quotation").number == "QUO-006000"

    def test_peek_does_not_consume(self, numbering, tenant_id):
        assert numbering.peek_next(tenant_id, "sales_order").number == "SO-005000"
        assert numbering.peek_next(tenant_id, "sales_order").number == "SO-005000"
        assert numbering.generate(tenant_id, "sales_order").number == "SO-005000"
        assert numbering.peek_next(tenant_id, "sales_order").number == "SO-005001"

    def test_manual_numbering_is_refused(self, numbering, tenant_id):
        numbering.update_setting(tenant_id, "receipt", NumberSettingUpdate(auto_increment=False))
        with pytest.raises(HTTPException) as exc:
            numbering.generate(tenant_id, "receipt")
        assert exc.value.status_code == 409

    def test_inactive_setting_is_not_found(self, numbering, tenant_id):
        numbering.update_setting(tenant_id, "receipt", NumberSettingUpdate(is_active=False))
        with pytest.raises(HTTPException) as exc:
            numbering.generate(tenant_id, "receipt")
        assert exc.value.status_code == 404

    def test_missing_and_malformed_types(self, numbering, tenant_id):
        with pytest.raises(HTTPException) as exc:
            numbering.generate(tenant_id, "unknown_type")
        assert exc.value.status_code == 404

        with pytest.raises(HTTPException) as exc:
            numbering.generate(tenant_id, "Bad Type!")
        assert exc.value.status_code == 400

    def test_rollback_releases_number(self, db_session, numbering, tenant_id):
        numbering.allocate(tenant_id, "debit_note")
        db_session.rollback()
        assert numbering.allocate(tenant_id, "debit_note").sequence == 12000


class TestResetFrequency:

    def _monthly(self, numbering, tenant_id):
        return numbering.create_setting(tenant_id, NumberSettingCreate(
            document_type="monthly_report",
            prefix="MR",
            start_number=1,
            format="prefix-yearmonth-sequential",
            reset_frequency="monthly",
            number_length=4
        ))

    def test_monthly_counter_restarts_in_new_period(self, numbering, tenant_id):
        self._monthly(numbering, tenant_id)
        jan_31 = datetime(2025, 1, 31, 23, 0, tzinfo=timezone.utc)
        feb_1 = datetime(2025, 2, 1, 0, 5, tzinfo=timezone.utc)

        assert numbering.allocate(tenant_id, "monthly_report", when=jan_31).number == "MR-202501-0001"
        assert numbering.allocate(tenant_id, "monthly_report", when=jan_31).number == "MR-202501-0002"
        rolled = numbering.allocate(tenant_id, "monthly_report", when=feb_1)
        assert rolled.number == "MR-202502-0001"
        assert rolled.period == "202502"

        setting = numbering.get_setting(tenant_id, "monthly_report")
        assert setting.current_period == "202502"
        assert setting.next_number == 2
        assert setting.last_reset_date is not None

    def test_daily_counter_restarts_at_start_number(self, numbering, tenant_id):
        numbering.create_setting(tenant_id, NumberSettingCreate(
            document_type="gate_pass",
            prefix="GP",
            start_number=100,
            format="prefix-date-sequential",
            reset_frequency="daily",
            number_length=3
        ))
        late = datetime(2025, 7, 11, 23, 59, tzinfo=timezone.utc)
        early = datetime(2025, 7, 12, 0, 1, tzinfo=timezone.utc)

        assert numbering.allocate(tenant_id, "gate_pass", when=late).number == "GP-20250711-100"
        assert numbering.allocate(tenant_id, "gate_pass", when=late).number == "GP-20250711-101"
        rolled = numbering.allocate(tenant_id, "gate_pass", when=early)
        assert rolled.number == "GP-20250712-100"
        assert rolled.period == "20250712"
        assert numbering.allocate(tenant_id, "gate_pass", when=early).sequence == 101

    def test_yearly_counter_restarts_at_start_number(self, numbering, tenant_id):
        numbering.create_setting(tenant_id, NumberSettingCreate(
            document_type="annual_return",
            prefix="AR",
            start_number=500,
            format="prefix-year-sequential",
            reset_frequency="yearly",
            number_length=4
        ))
        new_years_eve = datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc)
        new_year = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)

        for expected in ("AR-2024-0500", "AR-2024-0501", "AR-2024-0502"):
            assert numbering.allocate(tenant_id, "annual_return", when=new_years_eve).number == expected
        rolled = numbering.allocate(tenant_id, "annual_return", when=new_year)
        assert rolled.number == "AR-2025-0500"
        assert rolled.period == "2025"

        setting = numbering.get_setting(tenant_id, "annual_return")
        assert setting.current_period == "2025"
        assert setting.next_number == 501

    def test_peek_accounts_for_rollover(self, numbering, tenant_id):
        self._monthly(numbering, tenant_id)
        numbering.allocate(tenant_id, "monthly_report")
        numbering.allocate(tenant_id, "monthly_report")
        next_year = datetime.now(timezone.utc).replace(year=datetime.now(timezone.utc).year + 1, day=1)
        assert numbering.peek_next(tenant_id, "monthly_report", when=next_year).sequence == 1

    def test_never_does_not_reset(self, numbering, tenant_id):
        numbering.allocate(tenant_id, "petty_cash", when=datetime(2024, 12, 31, tzinfo=timezone.utc))
        second = numbering.allocate(tenant_id, "petty_cash", when=datetime(2025, 1, 1, tzinfo=timezone.utc))
        assert second.sequence == 19001


class TestCounterMaintenance:

    def test_reset_to_value_and_to_start(self, numbering, tenant_id):
        numbering.generate(tenant_id, "work_order")
        numbering.reset_counter(tenant_id, "work_order", 500)
        assert numbering.generate(tenant_id, "work_order").number == "WO-000500"

        result = numbering.reset_counter(tenant_id, "work_order")
        assert result.next_number == 16000

    def test_sync_repairs_counter_behind_history(self, numbering, tenant_id):
        for _ in range(3):
            numbering.generate(tenant_id, "credit_note")
        numbering.reset_counter(tenant_id, "credit_note")

        result = numbering.sync_counter(tenant_id, "credit_note")
        assert result.fixed is True
        assert result.next_number == 11003
        assert numbering.generate(tenant_id, "credit_note").sequence == 11003

    def test_sync_leaves_healthy_counter(self, numbering, tenant_id):
        numbering.generate(tenant_id, "credit_note")
        result = numbering.sync_counter(tenant_id, "credit_note")
        assert result.fixed is False
        assert result.next_number == 11001

    def test_preview_overrides_without_state_change(self, numbering, tenant_id):
        preview = numbering.preview(
            tenant_id, "invoice",
            PreviewRequest(format="prefix-year-sequential", separator="/", number_length=4),
            when=JULY_11
        )
        assert preview.preview == "INV/2025/7000"
        assert numbering.get_setting(tenant_id, "invoice").format == NumberFormat.PREFIX_SEQUENTIAL.value

    def test_update_to_custom_requires_sequence_token(self, numbering, tenant_id):
        with pytest.raises(HTTPException) as exc:
            numbering.update_setting(tenant_id, "invoice", NumberSettingUpdate(format="custom", custom_format="{PREFIX}-{YYYY}"))
        assert exc.value.status_code == 400


class TestConcurrency:
    """N asignaciones concurrentes producen N números distintos"""

    def test_concurrent_allocations_are_distinct(self, session_factory):
        tenant = uuid4()
        setup = session_factory()
        NumberingService(setup).initialize_defaults(tenant)
        setup.close()

        workers, per_worker = 8, 5
        issued, errors = [], []
        lock = threading.Lock()

        def worker():
            db = session_factory()
            try:
                service = NumberingService(db)
                for _ in range(per_worker):
                    generated = service.generate(tenant, "invoice")
                    with lock:
                        issued.append(generated.number)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                db.close()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        total = workers * per_worker
        assert errors == []
        assert len(issued) == total
        assert len(set(issued)) == total
        assert sorted(issued) == [f"INV-{n:06d}" for n in range(7000, 7000 + total)]

        check = session_factory()
        assert check.query(DocumentSequence).filter_by(tenant_id=tenant).count() == total
        check.close()

    def test_setting_created_meanwhile_is_reused(self, session_factory, monkeypatch):
        tenant = uuid4()
        late = session_factory()
        service = NumberingService(late)
        real_has_setting = service._has_setting
        calls = []

        def stale_first_check(tenant_id, document_type):
            calls.append(document_type)
            return len(calls) > 1 and real_has_setting(tenant_id, document_type)

        monkeypatch.setattr(service, "_has_setting", stale_first_check)

        first = session_factory()
        assert NumberingService(first).next_document_number(tenant, "delivery_note") == "DN-010000"
        first.commit()
        first.close()

        assert service.next_document_number(tenant, "delivery_note") == "DN-010001"
        late.commit()
        late.close()

        check = session_factory()
        assert check.query(NumberGenerationSetting).filter_by(tenant_id=tenant).count() == 1
        check.close()


# ===== TESTS DE ENDPOINTS =====

class TestNumberingAPI:

    def test_company_creation_seeds_settings(self, client, auth_headers):
        response = client.get("/api/number-generation-settings", headers=auth_headers)
        assert response.status_code == 200
        types = [s["document_type"] for s in response.json()]
        assert set(types) == set(DOCUMENT_TYPES)

    def test_generate_under_both_prefixes(self, client, auth_headers):
        first = client.post("/api/number-generation/invoice/generate", headers=auth_headers)
        assert first.status_code == 200
        assert first.json()["number"] == "INV-007000"

        second = client.post("/rest/v1/generate-number/invoice", headers=auth_headers)
        assert second.status_code == 200
        assert second.json()["number"] == "INV-007001"

        nxt = client.get("/api/number-generation/invoice/next", headers=auth_headers)
        assert nxt.json()["number"] == "INV-007002"

        history = client.get("/api/number-generation/invoice/history", headers=auth_headers)
        assert history.json()["total"] == 2
        assert history.json()["items"][0]["document_number"] in ("INV-007000", "INV-007001")

    def test_requires_authentication_and_company(self, client, owner):
        assert client.post("/api/number-generation/invoice/generate").status_code in (401, 403)
        no_company = client.post(
            "/api/number-generation/invoice/generate",
            headers={"Authorization": f"Bearer {owner['token']}"}
        )
        assert no_company.status_code == 400

    def test_foreign_company_is_forbidden(self, client, owner, register_user):
        other = register_user(email="otra@empresa.co.ke", company_name="Otra Empresa")
        response = client.post(
            "/api/number-generation/invoice/generate",
            headers={
                "Authorization": f"Bearer {owner['token']}",
                "X-Company-ID": other["companies"][0]["company_id"]
            }
        )
        assert response.status_code == 403

    def test_invalid_company_header(self, client, owner):
        response = client.get(
            "/api/number-generation-settings",
            headers={"Authorization": f"Bearer {owner['token']}", "X-Company-ID": "no-es-uuid"}
        )
        assert response.status_code == 400

    def test_context_token_selects_company(self, client, owner):
        selected = client.post(
            "/api/auth/select-company",
            json={"company_id": owner["company_id"]},
            headers={"Authorization": f"Bearer {owner['token']}"}
        )
        assert selected.status_code == 200
        token = selected.json()["access_token"]
        response = client.post(
            "/api/number-generation/quotation/generate",
            headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["number"] == "QUO-006000"

    def test_setting_crud(self, client, auth_headers):
        payload = {
            "document_type": "asset_tag",
            "prefix": "AST",
            "start_number": 1,
            "number_length": 4,
            "format": "custom",
            "custom_format": "{PREFIX}-{YY}-{NNNN}"
        }
        created = client.post("/api/number-generation-settings", json=payload, headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["next_number"] == 1

        duplicate = client.post("/api/number-generation-settings", json=payload, headers=auth_headers)
        assert duplicate.status_code == 409

        updated = client.put(
            "/api/number-generation-settings/asset_tag",
            json={"prefix": "TAG", "format": "prefix-sequential"},
            headers=auth_headers
        )
        assert updated.status_code == 200
        assert updated.json()["prefix"] == "TAG"

        generated = client.post("/api/number-generation/asset_tag/generate", headers=auth_headers)
        assert generated.json()["number"] == "TAG-0001"

        deleted = client.delete("/api/number-generation-settings/asset_tag", headers=auth_headers)
        assert deleted.status_code == 200
        missing = client.get("/api/number-generation-settings/asset_tag", headers=auth_headers)
        assert missing.status_code == 404

    def test_custom_format_without_sequence_is_rejected(self, client, auth_headers):
        response = client.post(
            "/api/number-generation-settings",
            json={"document_type": "bad_custom", "format": "custom", "custom_format": "{PREFIX}-{YYYY}"},
            headers=auth_headers
        )
        assert response.status_code == 400

    def test_missing_required_field_is_400(self, client, auth_headers):
        response = client.post("/api/number-generation-settings", json={"prefix": "X"}, headers=auth_headers)
        assert response.status_code == 400

    def test_catalog_endpoints(self, client, auth_headers):
        formats = client.get("/api/number-generation/formats", headers=auth_headers).json()
        by_name = {f["format"]: f for f in formats}
        assert by_name["prefix-year-sequential"]["example"] == "PAY-2025-000001"
        assert "custom" in by_name

        types = client.get("/api/number-generation/document-types", headers=auth_headers).json()
        assert {"document_type": "invoice", "prefix": "INV", "default_start": 7000,
                "description": "Invoice"} in types

    def test_bulk_format_update(self, client, auth_headers):
        response = client.put(
            "/api/number-generation/formats",
            json={"format": "prefix-year-sequential", "separator": "/"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["updated"] == len(DOCUMENT_TYPES)

        year = datetime.now(timezone.utc).strftime("%Y")
        generated = client.post("/api/number-generation/invoice/generate", headers=auth_headers)
        assert generated.json()["number"] == f"INV/{year}/007000"

    def test_preview_reset_and_initialize(self, client, auth_headers):
        preview = client.post(
            "/api/number-generation/invoice/preview",
            json={"prefix": "FAC", "number_length": 3},
            headers=auth_headers
        )
        assert preview.json()["preview"] == "FAC-7000"

        reset = client.post("/api/number-generation/invoice/reset", json={"value": 10}, headers=auth_headers)
        assert reset.status_code == 200
        assert client.get("/api/number-generation/invoice/next", headers=auth_headers).json()["number"] == "INV-000010"

        init = client.post("/api/number-generation-settings/initialize", headers=auth_headers)
        assert init.json()["created"] == 0

    def test_viewer_cannot_generate(self, client, owner, register_user):
        viewer = register_user(email="viewer@printsoft.co.ke")
        owner_headers = {"Authorization": f"Bearer {owner['token']}"}
        added = client.post(
            f"/api/company/{owner['company_id']}/users",
            json={"email": "viewer@printsoft.co.ke", "role": "viewer"},
            headers=owner_headers
        )
        assert added.status_code == 201

        viewer_headers = {
            "Authorization": f"Bearer {viewer['access_token']}",
            "X-Company-ID": owner["company_id"]
        }
        assert client.get("/api/number-generation/invoice/next", headers=viewer_headers).status_code == 200
        assert client.post("/api/number-generation/invoice/generate", headers=viewer_headers).status_code == 403

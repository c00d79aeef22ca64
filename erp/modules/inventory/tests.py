"""
Tests para inventario: categorías, bodegas, productos, stock, ajustes y transferencias
"""

from decimal import Decimal


class TestCatalogAPI:

    def test_category_crud(self, client, auth_headers):
        created = client.post("/api/categories", json={"name": "Papelería"}, headers=auth_headers)
        assert created.status_code == 201

        duplicate = client.post("/api/categories", json={"name": "Papelería"}, headers=auth_headers)
        assert duplicate.status_code == 409

        categories = client.get("/api/categories", headers=auth_headers).json()
        assert [c["name"] for c in categories] == ["Papelería"]

    def test_first_warehouse_is_default(self, client, auth_headers, warehouse):
        assert warehouse["code"] == "NBO"
        assert warehouse["is_default"] is True

        second = client.post("/api/warehouses", json={"code": "MSA", "name": "Bodega Mombasa"},
                             headers=auth_headers).json()
        assert second["is_default"] is False

        duplicate = client.post("/api/warehouses", json={"code": "msa", "name": "Otra"}, headers=auth_headers)
        assert duplicate.status_code == 409

    def test_product_sku_unique_per_company(self, client, auth_headers, product, register_user):
        assert product["sku"] == "PAPER-A4"
        duplicate = client.post("/api/products", json={"sku": "PAPER-A4", "name": "Otro"}, headers=auth_headers)
        assert duplicate.status_code == 409

        other = register_user(email="otra@empresa.co.ke", company_name="Otra Empresa")
        other_headers = {
            "Authorization": f"Bearer {other['access_token']}",
            "X-Company-ID": other["companies"][0]["company_id"]
        }
        same_sku = client.post("/api/products", json={"sku": "PAPER-A4", "name": "Papel"}, headers=other_headers)
        assert same_sku.status_code == 201

    def test_product_soft_delete(self, client, auth_headers, product):
        assert client.delete(f"/api/products/{product['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/products/{product['id']}", headers=auth_headers).status_code == 404
        assert client.get("/api/products", headers=auth_headers).json()["total"] == 0

        restored = client.post(f"/api/products/{product['id']}/restore", headers=auth_headers)
        assert restored.json()["status"] == "active"

    def test_viewer_cannot_create_products(self, client, auth_headers, owner, register_user):
        viewer = register_user(email="viewer@printsoft.co.ke")
        client.post(f"/api/company/{owner['company_id']}/users",
                    json={"email": "viewer@printsoft.co.ke", "role": "viewer"}, headers=auth_headers)
        viewer_headers = {
            "Authorization": f"Bearer {viewer['access_token']}",
            "X-Company-ID": owner["company_id"]
        }
        response = client.post("/api/products", json={"sku": "X1", "name": "X"}, headers=viewer_headers)
        assert response.status_code == 403
        assert client.get("/api/products", headers=viewer_headers).status_code == 200


class TestStockAPI:

    def test_movements_update_stock(self, client, auth_headers, warehouse, stocked_product):
        out = client.post("/api/stock/movements", json={
            "product_id": stocked_product["id"],
            "warehouse_id": warehouse["id"],
            "quantity": "-30",
            "movement_type": "OUT"
        }, headers=auth_headers)
        assert out.status_code == 201
        assert Decimal(out.json()["balance_after"]) == Decimal("70")

        summary = client.get(f"/api/stock/product/{stocked_product['id']}/summary", headers=auth_headers).json()
        assert Decimal(summary["total_quantity"]) == Decimal("70")
        assert summary["warehouse_stocks"][0]["warehouse_name"] == "Bodega Nairobi"

        movements = client.get("/api/stock/movements", params={"product_id": stocked_product["id"]},
                               headers=auth_headers).json()
        assert len(movements) == 2

    def test_stock_cannot_go_negative(self, client, auth_headers, warehouse, stocked_product):
        response = client.post("/api/stock/movements", json={
            "product_id": stocked_product["id"],
            "warehouse_id": warehouse["id"],
            "quantity": "-101",
            "movement_type": "OUT"
        }, headers=auth_headers)
        assert response.status_code == 400
        assert "Stock insuficiente" in response.json()["detail"]

    def test_movement_sign_is_validated(self, client, auth_headers, warehouse, product):
        response = client.post("/api/stock/movements", json={
            "product_id": product["id"],
            "warehouse_id": warehouse["id"],
            "quantity": "5",
            "movement_type": "OUT"
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_adjustment_is_numbered(self, client, auth_headers, warehouse, stocked_product):
        response = client.post("/api/stock/adjustments", json={
            "product_id": stocked_product["id"],
            "warehouse_id": warehouse["id"],
            "new_quantity": "95",
            "reason": "Conteo físico"
        }, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["adjustment_number"] == "SA-014000"
        assert Decimal(data["previous_quantity"]) == Decimal("100")
        assert Decimal(data["difference"]) == Decimal("-5")

        movements = client.get("/api/stock/movements", params={"reference": "SA-014000"},
                               headers=auth_headers).json()
        assert len(movements) == 1
        assert movements[0]["movement_type"] == "ADJ"

        second = client.post("/api/stock/adjustments", json={
            "product_id": stocked_product["id"],
            "warehouse_id": warehouse["id"],
            "new_quantity": "95"
        }, headers=auth_headers).json()
        assert second["adjustment_number"] == "SA-014001"
        assert Decimal(second["difference"]) == Decimal("0")

    def test_transfer_between_warehouses(self, client, auth_headers, warehouse, stocked_product):
        target = client.post("/api/warehouses", json={"code": "KSM", "name": "Bodega Kisumu"},
                             headers=auth_headers).json()
        response = client.post("/api/stock/transfers", json={
            "product_id": stocked_product["id"],
            "from_warehouse_id": warehouse["id"],
            "to_warehouse_id": target["id"],
            "quantity": "40"
        }, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["transfer_number"] == "ST-015000"
        assert [Decimal(m["balance_after"]) for m in data["movements"]] == [Decimal("60"), Decimal("40")]

        same = client.post("/api/stock/transfers", json={
            "product_id": stocked_product["id"],
            "from_warehouse_id": warehouse["id"],
            "to_warehouse_id": warehouse["id"],
            "quantity": "1"
        }, headers=auth_headers)
        assert same.status_code == 400

    def test_low_stock(self, client, auth_headers, warehouse, stocked_product):
        assert client.get("/api/stock/low-stock", headers=auth_headers).json() == []

        client.post("/api/stock/adjustments", json={
            "product_id": stocked_product["id"],
            "warehouse_id": warehouse["id"],
            "new_quantity": "8"
        }, headers=auth_headers)
        low = client.get("/api/stock/low-stock", headers=auth_headers).json()
        assert len(low) == 1
        assert low[0]["product_sku"] == "PAPER-A4"
        assert Decimal(low[0]["quantity"]) == Decimal("8")

    def test_inventory_stats(self, client, auth_headers, warehouse, stocked_product):
        category = client.post("/api/categories", json={"name": "Tintas"}, headers=auth_headers).json()
        client.post("/api/products", json={
            "sku": "ink-black",
            "name": "Tinta negra",
            "category_id": category["id"],
            "cost_price": "1200.00",
            "selling_price": "1500.00"
        }, headers=auth_headers)

        stats = client.get("/api/stock/stats", headers=auth_headers).json()
        assert stats["total_products"] == 2
        assert stats["tracked_products"] == 2
        assert Decimal(stats["total_quantity"]) == Decimal("100")
        assert Decimal(stats["stock_value"]) == Decimal("45000")
        assert Decimal(stats["retail_value"]) == Decimal("60000")
        assert stats["low_stock_items"] == 0
        assert stats["out_of_stock_products"] == 1

        by_category = {c["category_name"]: c for c in stats["categories"]}
        assert by_category["Tintas"]["product_count"] == 1
        assert Decimal(by_category["Tintas"]["stock_value"]) == Decimal("0")
        assert Decimal(by_category["Sin categoría"]["quantity"]) == Decimal("100")

        client.post("/api/stock/adjustments", json={
            "product_id": stocked_product["id"],
            "warehouse_id": warehouse["id"],
            "new_quantity": "8"
        }, headers=auth_headers)
        stats = client.get(f"/api/stock/stats?warehouse_id={warehouse['id']}", headers=auth_headers).json()
        assert stats["low_stock_items"] == 1
        assert Decimal(stats["stock_value"]) == Decimal("3600")

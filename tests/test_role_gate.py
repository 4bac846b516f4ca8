"""
tests/test_role_gate.py -- Authorization Gate behavior across the collaborator routes.

Coverage:
  - 401 for every protected route without a token
  - VIEWER: reads admitted, inventory mutations 403, user management 403
  - MANAGER: inventory mutations admitted, DELETE /products/{id} -> 200 and
    exactly one DELETE audit entry for that product; user management 403
  - ADMIN: user management and audit-log reads admitted; last-admin and
    self-delete guards; passwords over 72 UTF-8 bytes are a 400, not a 500
  - role check runs before the handler: a forbidden DELETE leaves the product
"""

import pytest

from audit.store import AuditQuery


@pytest.fixture(scope="module")
def category_id(api_client) -> int:
    resp = api_client.client.post(
        "/api/categories", json={"name": "Gate Tools"}, headers=api_client.headers("MANAGER")
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _create_product(api_client, category_id: int, sku: str) -> int:
    body = {"name": "Gate Hammer", "sku": sku, "categoryId": category_id, "price": 9.99, "quantity": 5}
    resp = api_client.client.post("/api/products", json=body, headers=api_client.headers("ADMIN"))
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/api/products"),
        ("GET", "/api/categories"),
        ("GET", "/api/suppliers"),
        ("GET", "/api/users"),
        ("GET", "/api/audit-logs"),
        ("DELETE", "/api/products/1"),
    ],
)
def test_no_token_is_401(api_client, method, path):
    resp = api_client.client.request(method, path)
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


class TestViewer:
    def test_viewer_can_read_inventory(self, api_client, category_id) -> None:
        for path in ("/api/products", "/api/categories", "/api/suppliers"):
            resp = api_client.client.get(path, headers=api_client.headers("VIEWER"))
            assert resp.status_code == 200, path

    def test_viewer_cannot_create_product(self, api_client, category_id) -> None:
        body = {"name": "Nope", "sku": "NOPE-1", "categoryId": category_id, "price": 1}
        resp = api_client.client.post("/api/products", json=body, headers=api_client.headers("VIEWER"))
        assert resp.status_code == 403
        assert resp.json()["message"] == "User role VIEWER is not authorized to access this route"

    def test_viewer_cannot_create_user(self, api_client) -> None:
        body = {"name": "Sneaky", "email": "sneaky@inventory.test", "password": "secret1", "role": "ADMIN"}
        resp = api_client.client.post("/api/users", json=body, headers=api_client.headers("VIEWER"))
        assert resp.status_code == 403
        assert api_client.user_store.get_by_email("sneaky@inventory.test") is None

    def test_viewer_cannot_read_audit_logs(self, api_client) -> None:
        assert api_client.client.get("/api/audit-logs", headers=api_client.headers("VIEWER")).status_code == 403

    def test_forbidden_delete_does_not_touch_the_product(self, api_client, category_id) -> None:
        pid = _create_product(api_client, category_id, "GATE-VIEW")
        resp = api_client.client.delete(f"/api/products/{pid}", headers=api_client.headers("VIEWER"))
        assert resp.status_code == 403
        assert api_client.inventory_store.get_product(pid) is not None
        entries, _ = api_client.audit_store.list_entries(AuditQuery(action="DELETE", resource="Product"))
        assert all(e.resource_id != str(pid) for e in entries)


class TestManager:
    def test_manager_delete_product_is_audited_once(self, api_client, category_id) -> None:
        pid = _create_product(api_client, category_id, "GATE-DEL")
        before_state = api_client.client.get(f"/api/products/{pid}", headers=api_client.headers("MANAGER")).json()

        resp = api_client.client.delete(f"/api/products/{pid}", headers=api_client.headers("MANAGER"))
        assert resp.status_code == 200, resp.text
        assert api_client.inventory_store.get_product(pid) is None

        entries, _ = api_client.audit_store.list_entries(AuditQuery(action="DELETE", resource="Product"))
        mine = [e for e in entries if e.resource_id == str(pid)]
        assert len(mine) == 1
        assert mine[0].user_id == api_client.ids["MANAGER"]
        assert mine[0].old_data == before_state
        assert mine[0].new_data is None

    def test_delete_missing_product_is_404_and_not_audited(self, api_client) -> None:
        resp = api_client.client.delete("/api/products/999999", headers=api_client.headers("MANAGER"))
        assert resp.status_code == 404
        entries, _ = api_client.audit_store.list_entries(AuditQuery(action="DELETE", resource="Product"))
        assert all(e.resource_id != "999999" for e in entries)

    def test_manager_cannot_list_users(self, api_client) -> None:
        assert api_client.client.get("/api/users", headers=api_client.headers("MANAGER")).status_code == 403

    def test_duplicate_sku_is_409(self, api_client, category_id) -> None:
        _create_product(api_client, category_id, "gate-dup")
        body = {"name": "Again", "sku": "GATE-DUP", "categoryId": category_id, "price": 1}
        resp = api_client.client.post("/api/products", json=body, headers=api_client.headers("MANAGER"))
        assert resp.status_code == 409

    def test_unknown_category_is_400(self, api_client) -> None:
        body = {"name": "Orphan", "sku": "ORPHAN-1", "categoryId": 424242, "price": 1}
        resp = api_client.client.post("/api/products", json=body, headers=api_client.headers("MANAGER"))
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_failed"

    def test_product_response_shape(self, api_client, category_id) -> None:
        pid = _create_product(api_client, category_id, "gate-shape")
        data = api_client.client.get(f"/api/products/{pid}", headers=api_client.headers("VIEWER")).json()
        assert data["sku"] == "GATE-SHAPE"
        assert data["categoryName"] == "Gate Tools"
        assert data["stockStatus"] == "LOW_STOCK"
        assert data["minStockLevel"] == 10


class TestAdmin:
    def test_admin_user_crud(self, api_client) -> None:
        client = api_client.client
        headers = api_client.headers("ADMIN")
        body = {"name": "Temp User", "email": "temp@inventory.test", "password": "secret1"}
        created = client.post("/api/users", json=body, headers=headers)
        assert created.status_code == 201, created.text
        uid = created.json()["id"]
        assert created.json()["role"] == "VIEWER"

        listed = client.get("/api/users", headers=headers)
        assert uid in [u["id"] for u in listed.json()]
        assert "passwordHash" not in listed.text
        assert "mfaSecret" not in listed.text

        updated = client.put(f"/api/users/{uid}", json={"role": "MANAGER"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["role"] == "MANAGER"

        assert client.delete(f"/api/users/{uid}", headers=headers).status_code == 200
        assert client.get(f"/api/users/{uid}", headers=headers).status_code == 404

    def test_admin_cannot_delete_self(self, api_client) -> None:
        uid = api_client.ids["ADMIN"]
        resp = api_client.client.delete(f"/api/users/{uid}", headers=api_client.headers("ADMIN"))
        assert resp.status_code == 409

    def test_last_admin_cannot_be_demoted(self, api_client) -> None:
        uid = api_client.ids["ADMIN"]
        resp = api_client.client.put(f"/api/users/{uid}", json={"role": "VIEWER"}, headers=api_client.headers("ADMIN"))
        assert resp.status_code == 409
        assert api_client.user_store.get_by_id(uid).role == "ADMIN"

    def test_updated_password_is_usable(self, api_client) -> None:
        client = api_client.client
        headers = api_client.headers("ADMIN")
        body = {"name": "Pw User", "email": "pw@inventory.test", "password": "secret1"}
        uid = client.post("/api/users", json=body, headers=headers).json()["id"]
        client.put(f"/api/users/{uid}", json={"password": "secret2"}, headers=headers)
        login = client.post("/api/auth/login", json={"email": "pw@inventory.test", "password": "secret2"})
        client.cookies.clear()
        assert login.status_code == 200

    @pytest.mark.parametrize("password", ["a" * 80, "é" * 40])
    def test_password_over_72_bytes_is_400(self, api_client, password) -> None:
        client = api_client.client
        headers = api_client.headers("ADMIN")
        body = {"name": "Long Pw", "email": "longpw@inventory.test", "password": password}

        for path in ("/api/users", "/api/auth/register"):
            resp = client.post(path, json=body, headers=headers)
            assert resp.status_code == 400, resp.text
            assert resp.json()["code"] == "validation_failed"
        assert api_client.user_store.get_by_email("longpw@inventory.test") is None

        uid = api_client.ids["VIEWER"]
        resp = client.put(f"/api/users/{uid}", json={"password": password}, headers=headers)
        assert resp.status_code == 400, resp.text

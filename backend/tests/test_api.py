"""
Tests degli endpoint HTTP (httpx + ASGITransport).

Le dependency get_db e get_session_directory vengono sostituite:
stesso database SQLite in memoria dei test dei service e una
directory delle sessioni nuova per ogni test.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from service_station.core.database import get_db
from service_station.core.sessions import SessionDirectory, get_session_directory
from service_station.main import app
from service_station.schemas.order import OrderStatus

from conftest import actor_of


@pytest.fixture
def sessions():
    return SessionDirectory(timedelta(minutes=5))


@pytest_asyncio.fixture
async def client(session_factory, sessions):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_directory] = lambda: sessions

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth(sessions):
    """Header Authorization per l'utente indicato."""
    def _headers(user):
        return {"Authorization": f"Bearer {sessions.open(actor_of(user))}"}
    return _headers


# ============================================================
# Sistema ed errori
# ============================================================


class TestSystem:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/orders/")

        assert response.status_code == 401
        body = response.json()
        assert body["error_code"] == "UNAUTHORIZED"
        assert set(body) == {"detail", "error_code", "extra"}

    @pytest.mark.asyncio
    async def test_unknown_token(self, client):
        response = await client.get("/api/v1/orders/", headers={"Authorization": "Bearer sconosciuto"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_role(self, client, station, auth):
        response = await client.post(
            "/api/v1/orders/",
            json={"client_id": station.client.id, "car_id": station.car.id},
            headers=auth(station.worker),
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_not_found(self, client, station, auth):
        response = await client.get("/api/v1/orders/999", headers=auth(station.master))

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"


# ============================================================
# Ordini
# ============================================================


class TestOrdersApi:

    @pytest.mark.asyncio
    async def test_create_order_amounts_are_strings(self, client, station, auth):
        response = await client.post(
            "/api/v1/orders/",
            json={
                "client_id": station.client.id,
                "car_id": station.car.id,
                "complaint": "Spia motore accesa",
                "prepayment": "1234.56",
            },
            headers=auth(station.master),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Diagnostics"
        assert body["prepayment"] == "1234.56"
        assert body["total_amount"] == "0.00"
        assert body["master_id"] == station.master.id

    @pytest.mark.asyncio
    async def test_unknown_status_value(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        response = await client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "Finished"},
            headers=auth(station.master),
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_STATUS"

    @pytest.mark.asyncio
    async def test_direct_in_work_is_conflict(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        response = await client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "In_Work"},
            headers=auth(station.master),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "INVALID_TRANSITION"
        assert body["extra"] == {"from": "Approval", "to": "In_Work"}

        detail = await client.get(f"/api/v1/orders/{order.id}", headers=auth(station.master))
        assert detail.json()["status"] == "Approval"

    @pytest.mark.asyncio
    async def test_role_view(self, client, station, auth, make_order):
        await make_order(OrderStatus.DIAGNOSTICS)
        await make_order(OrderStatus.APPROVAL)

        response = await client.get("/api/v1/orders/", headers=auth(station.diagnostician))

        assert response.status_code == 200
        assert [o["status"] for o in response.json()] == ["Diagnostics"]

    @pytest.mark.asyncio
    async def test_diagnosis_then_assignment(self, client, station, catalog, auth, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        response = await client.post(
            f"/api/v1/orders/{order.id}/diagnosis",
            json={"defect_type_ids": [catalog.pads.id, catalog.noise.id]},
            headers=auth(station.diagnostician),
        )
        assert response.status_code == 201
        result = response.json()
        assert result["defects_recorded"] == 2
        assert [w["price"] for w in result["works"]] == ["500.00", "0.00"]

        first_work = result["works"][0]["id"]
        response = await client.post(
            f"/api/v1/orders/{order.id}/assignments",
            json={
                "assignments": [{"work_id": first_work, "worker_id": station.worker.id}],
                "main_worker_id": station.worker.id,
            },
            headers=auth(station.master),
        )
        assert response.status_code == 200
        detail = response.json()
        assert detail["status"] == "In_Work"
        assert detail["worker_id"] == station.worker.id
        assert detail["works"][0]["worker_id"] == station.worker.id

        # ora l'operaio vede l'ordine
        response = await client.get("/api/v1/orders/", headers=auth(station.worker))
        assert [o["id"] for o in response.json()] == [order.id]

    @pytest.mark.asyncio
    async def test_unknown_defect_type(self, client, station, catalog, auth, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        response = await client.post(
            f"/api/v1/orders/{order.id}/diagnosis",
            json={"defect_type_ids": [catalog.pads.id, 777]},
            headers=auth(station.diagnostician),
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "CATALOG_LOOKUP_FAILED"

        detail = await client.get(f"/api/v1/orders/{order.id}", headers=auth(station.master))
        assert detail.json()["defects"] == []
        assert detail.json()["works"] == []

    @pytest.mark.asyncio
    async def test_cancel_requires_reason(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.PARTS_SELECTION)

        response = await client.post(
            f"/api/v1/orders/{order.id}/cancel",
            json={"reason": " "},
            headers=auth(station.master),
        )
        assert response.status_code == 422

        response = await client.post(
            f"/api/v1/orders/{order.id}/cancel",
            json={"reason": "Preventivo rifiutato"},
            headers=auth(station.master),
        )
        assert response.status_code == 200
        assert response.json()["cancel_reason"] == "Preventivo rifiutato"

    @pytest.mark.asyncio
    async def test_worker_cannot_cancel_through_status(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        response = await client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "Cancelled"},
            headers=auth(station.worker),
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"
        detail = await client.get(f"/api/v1/orders/{order.id}", headers=auth(station.master))
        assert detail.json()["status"] == "Approval"

    @pytest.mark.asyncio
    async def test_cancel_through_status_needs_reason(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.APPROVAL)

        response = await client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "Cancelled"},
            headers=auth(station.master),
        )
        assert response.status_code == 422

        response = await client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "Cancelled", "reason": "Auto ritirata"},
            headers=auth(station.master),
        )
        assert response.status_code == 200
        assert response.json()["cancel_reason"] == "Auto ritirata"

    @pytest.mark.asyncio
    async def test_worker_cannot_read_order_outside_view(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.DIAGNOSTICS)

        response = await client.get(f"/api/v1/orders/{order.id}", headers=auth(station.worker))

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_worker_marks_own_order_ready(self, client, station, auth, make_order):
        order = await make_order(OrderStatus.IN_WORK, worker_id=station.worker.id)

        response = await client.get(f"/api/v1/orders/{order.id}", headers=auth(station.worker))
        assert response.status_code == 200

        response = await client.patch(
            f"/api/v1/orders/{order.id}/status",
            json={"status": "Ready"},
            headers=auth(station.worker),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "Ready"


# ============================================================
# Utenti e login
# ============================================================


class TestAuthApi:

    @pytest.mark.asyncio
    async def test_first_user_becomes_admin_and_logs_in(self, client):
        response = await client.post(
            "/api/v1/users/",
            json={"full_name": "Primo Utente", "role": "Master", "login": "primo", "password": "segreta1"},
        )
        assert response.status_code == 201
        assert response.json()["role"] == "Admin"

        response = await client.post("/api/v1/auth/login", json={"login": "primo", "password": "segreta1"})
        assert response.status_code == 200
        token = response.json()["session_token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = await client.get("/api/v1/auth/me", headers=headers)
        assert me.json()["login"] == "primo"

        logout = await client.post("/api/v1/auth/logout", headers=headers)
        assert logout.status_code == 204

        me = await client.get("/api/v1/auth/me", headers=headers)
        assert me.status_code == 401

    @pytest.mark.asyncio
    async def test_second_user_needs_admin(self, client, station, auth):
        payload = {"full_name": "Nuovo Operaio", "role": "Worker", "pin_code": "4321"}

        response = await client.post("/api/v1/users/", json=payload)
        assert response.status_code == 401

        response = await client.post("/api/v1/users/", json=payload, headers=auth(station.master))
        assert response.status_code == 403

        response = await client.post("/api/v1/users/", json=payload, headers=auth(station.admin))
        assert response.status_code == 201
        assert response.json()["role"] == "Worker"

        response = await client.post("/api/v1/auth/pin-login", json={"pin": "4321"})
        assert response.status_code == 200
        assert response.json()["user"]["full_name"] == "Nuovo Operaio"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client):
        await client.post(
            "/api/v1/users/",
            json={"full_name": "Admin", "role": "Admin", "login": "admin", "password": "giusta123"},
        )

        response = await client.post("/api/v1/auth/login", json={"login": "admin", "password": "sbagliata"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_duplicate_pin_is_conflict(self, client, station, auth):
        payload = {"full_name": "Nuovo Operaio", "role": "Worker", "pin_code": "5555"}

        response = await client.post("/api/v1/users/", json=payload, headers=auth(station.admin))
        assert response.status_code == 201

        payload["full_name"] = "Altro Operaio"
        response = await client.post("/api/v1/users/", json=payload, headers=auth(station.admin))
        assert response.status_code == 409
        assert response.json()["error_code"] == "DUPLICATE_RESOURCE"

    @pytest.mark.asyncio
    async def test_role_change_closes_sessions(self, client, station, auth):
        old_headers = auth(station.storekeeper)

        response = await client.patch(
            f"/api/v1/users/{station.storekeeper.id}",
            json={"role": "Master", "password": "magazzino1"},
            headers=auth(station.admin),
        )
        assert response.status_code == 200
        assert response.json()["role"] == "Master"

        me = await client.get("/api/v1/auth/me", headers=old_headers)
        assert me.status_code == 401

        response = await client.post("/api/v1/auth/login", json={"login": "store", "password": "magazzino1"})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "Master"

    @pytest.mark.asyncio
    async def test_update_user_needs_admin(self, client, station, auth):
        response = await client.patch(
            f"/api/v1/users/{station.worker.id}",
            json={"pin_code": "4444"},
            headers=auth(station.master),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_deactivation_closes_sessions(self, client, station, auth):
        worker_headers = auth(station.worker)

        response = await client.patch(
            f"/api/v1/users/{station.worker.id}/status",
            json={"status": "Inactive"},
            headers=auth(station.admin),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Inactive"

        me = await client.get("/api/v1/auth/me", headers=worker_headers)
        assert me.status_code == 401

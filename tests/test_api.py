import json

import httpx
import pytest

from offramp.infrastructure.database.repositories.intent_repository import SqlDisbursementIntentRepository
from offramp.infrastructure.database.session import session_scope
from offramp.interfaces.http.deps import get_app_settings, get_provider_registry, get_session_factory
from offramp.main import create_app
from offramp.modules.common import ProviderName
from offramp.modules.providers.paycrest import SIGNATURE_HEADER, sign_payload

from .conftest import pretium_envelope

ADMIN = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
async def client(settings, session_factory, providers):
    app = create_app()
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_provider_registry] = lambda: providers
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def order_body(**overrides):
    body = {
        "deposit_amount": "10",
        "local_currency": "KES",
        "rate_quote": "130",
        "fee_fraction": "0.01",
        "payment_method": {"kind": "phone", "number": "0712345678"},
        "deposit_transaction_ref": "0xdep1",
        "wallet_address": "0xabc",
        "account_name": "Jane Doe",
        "provider": "pretium",
    }
    body.update(overrides)
    return body


class TestOrderEndpoints:
    async def test_create_order(self, client, pretium_api):
        pretium_api.on("POST", "/v1/pay/KES", pretium_envelope("PENDING", "TXN-1"))

        response = await client.post("/api/orders", json=order_body())

        assert response.status_code == 201
        data = response.json()
        assert data["provider"] == "pretium"
        assert data["provider_transaction_ref"] == "TXN-1"
        assert (data["total_amount"], data["recipient_amount"], data["platform_fee"]) == (1300, 1287, 13)
        assert data["canonical_status"] == "pending"

    async def test_invalid_amount_is_422(self, client, pretium_api):
        response = await client.post("/api/orders", json=order_body(deposit_amount="0"))

        assert response.status_code == 422
        assert pretium_api.requests == []

    async def test_oversized_amount_is_422(self, client, pretium_api):
        pretium_api.on("POST", "/v1/pay/KES", pretium_envelope("PENDING"))

        for deposit in ("100000000000000000", "1e30"):
            response = await client.post("/api/orders", json=order_body(deposit_amount=deposit))
            assert response.status_code == 422
        assert pretium_api.requests == []

    async def test_unsupported_method_is_400(self, client, paycrest_api):
        response = await client.post(
            "/api/orders",
            json=order_body(provider="paycrest", payment_method={"kind": "till", "till_number": "123456"}),
        )

        assert response.status_code == 400
        assert paycrest_api.requests == []

    async def test_provider_failure_is_502(self, client, pretium_api):
        pretium_api.on("POST", "/v1/pay/KES", httpx.Response(503, text="down"))

        response = await client.post("/api/orders", json=order_body())

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["provider"] == "pretium"
        assert detail["provider_status_code"] == 503

    async def test_submission_in_progress_is_409(self, client, session_factory):
        async with session_scope(session_factory) as session:
            await SqlDisbursementIntentRepository(session).create(
                deposit_transaction_ref="0xdep1",
                provider=ProviderName.PRETIUM,
                local_currency="KES",
                request={},
            )

        response = await client.post("/api/orders", json=order_body())

        assert response.status_code == 409

    async def test_get_order_and_history(self, client, make_order):
        order = await make_order()

        response = await client.get(f"/api/orders/{order.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["display_status"] == "processing"
        assert data["stale"] is False

        history = await client.get(f"/api/orders/{order.id}/history")
        assert history.status_code == 200
        assert history.json() == {"order_id": order.id, "entries": []}

    async def test_missing_order_is_404(self, client):
        assert (await client.get("/api/orders/missing")).status_code == 404
        assert (await client.get("/api/orders/missing/history")).status_code == 404

    async def test_by_reference_with_refresh(self, client, pretium_api, make_order):
        await make_order()
        pretium_api.on("POST", "/v1/status/KES", pretium_envelope("COMPLETE", receipt_number="QK1"))

        response = await client.get("/api/orders/by-reference/pretium/TXN-1", params={"refresh": "true"})

        assert response.status_code == 200
        data = response.json()
        assert data["canonical_status"] == "delivered"
        assert data["display_status"] == "completed"
        assert data["receipt_reference"] == "QK1"


class TestWebhookEndpoints:
    async def test_pretium_webhook_is_applied(self, client, make_order):
        order = await make_order()
        body = {"transaction_code": "TXN-1", "status": "COMPLETE", "receipt_number": "QK5"}

        response = await client.post("/api/webhooks/pretium", json=body)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        status = (await client.get(f"/api/orders/{order.id}")).json()
        assert status["canonical_status"] == "delivered"

    async def test_paycrest_signed_webhook(self, client, make_order):
        order = await make_order(ProviderName.PAYCREST, "pc-order-1")
        event = {"event": "payment_order.settled", "data": {"id": "pc-order-1", "status": "settled"}}
        body = json.dumps(event).encode()

        response = await client.post(
            "/api/webhooks/paycrest",
            content=body,
            headers={SIGNATURE_HEADER: sign_payload(body, "paycrest-secret"), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        status = (await client.get(f"/api/orders/{order.id}")).json()
        assert status["canonical_status"] == "settled"

    async def test_paycrest_bad_signature_is_401(self, client, make_order):
        order = await make_order(ProviderName.PAYCREST, "pc-order-1")
        body = json.dumps({"data": {"id": "pc-order-1", "status": "settled"}}).encode()

        response = await client.post(
            "/api/webhooks/paycrest",
            content=body,
            headers={SIGNATURE_HEADER: "deadbeef", "Content-Type": "application/json"},
        )

        assert response.status_code == 401
        status = (await client.get(f"/api/orders/{order.id}")).json()
        assert status["canonical_status"] == "pending"

    async def test_malformed_payload_is_acknowledged(self, client):
        response = await client.post(
            "/api/webhooks/pretium", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}

    async def test_unknown_order_is_acknowledged_and_logged(self, client):
        response = await client.post(
            "/api/webhooks/pretium", json={"transaction_code": "GHOST", "status": "COMPLETE"}
        )
        assert response.status_code == 200

        signals = await client.get("/api/admin/signals", headers=ADMIN, params={"outcome": "orphan"})
        assert signals.status_code == 200
        data = signals.json()
        assert data["total"] == 1
        assert data["signals"][0]["provider_transaction_ref"] == "GHOST"
        assert data["signals"][0]["order_id"] is None

    async def test_unknown_provider_is_404(self, client):
        response = await client.post("/api/webhooks/acme", json={})
        assert response.status_code == 404


class TestAdminEndpoints:
    async def test_requires_admin_key(self, client):
        assert (await client.get("/api/admin/signals")).status_code == 401
        wrong = await client.post("/api/admin/sweeps/settlements", headers={"X-Admin-Key": "wrong"})
        assert wrong.status_code == 401

    async def test_settlement_sweep(self, client):
        response = await client.post("/api/admin/sweeps/settlements", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == {"scanned": 0, "repaired": 0, "errors": []}

    async def test_intent_sweep(self, client, paycrest_api):
        response = await client.post("/api/admin/sweeps/intents", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["scanned"] == 0
        assert paycrest_api.requests == []

    async def test_signals_list_applied_webhook(self, client, make_order):
        await make_order()
        await client.post("/api/webhooks/pretium", json={"transaction_code": "TXN-1", "status": "PROCESSING"})

        response = await client.get("/api/admin/signals", headers=ADMIN, params={"provider": "pretium"})

        data = response.json()
        assert data["total"] == 1
        assert data["signals"][0]["outcome"] == "applied"
        assert data["signals"][0]["canonical_status"] == "processing"


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert set(data["providers"]) == {"pretium", "paycrest"}

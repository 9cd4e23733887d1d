"""Shared fixtures: a fresh SQLite database per test and fake provider APIs."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Callable, Union

import httpx
import pytest

from offramp.core.config import Settings
from offramp.infrastructure.database.repositories.order_repository import SqlOrderRepository
from offramp.infrastructure.database.session import (
    build_session_factory,
    create_engine_from_url,
    init_db,
    session_scope,
)
from offramp.modules.common import PhoneNumber, ProviderName
from offramp.modules.orders.models import NewOrder, Order
from offramp.modules.orders.service import OrderService
from offramp.modules.providers import PaycrestAdapter, PretiumAdapter, ProviderRegistry

Route = Union[httpx.Response, list, Callable[[httpx.Request], httpx.Response], dict]


class FakeProviderAPI:
    """In-memory stand-in for a provider's HTTP API.

    Routes map ``(method, path)`` to a JSON body, a response, a callable, or a
    list of those consumed one per call (the last one repeats).
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, response: Route) -> None:
        self.routes[(method.upper(), path)] = response

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if callable(route) and not isinstance(route, httpx.Response):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> dict[str, Any]:
        return json.loads(request.content)


def pretium_envelope(status: str, transaction_code: str = "TXN-1", **data: Any) -> dict[str, Any]:
    return {
        "code": 200,
        "message": "ok",
        "data": {"status": status, "transaction_code": transaction_code, **data},
    }


def paycrest_envelope(status: str, order_id: str = "pc-order-1", **data: Any) -> dict[str, Any]:
    return {
        "status": "success",
        "message": "ok",
        "data": {"id": order_id, "status": status, **data},
    }


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'offramp.db'}"},
        security={"admin_api_key": "test-admin-key"},
        polling={"enabled": False, "max_attempts": 5, "base_delay_seconds": 0.01, "max_delay_seconds": 0.02},
        pretium={"api_key": "pretium-key"},
        paycrest={"api_key": "paycrest-key", "webhook_secret": "paycrest-secret"},
    )


@pytest.fixture
async def db_engine(settings):
    engine = create_engine_from_url(settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def pretium_api() -> FakeProviderAPI:
    return FakeProviderAPI()


@pytest.fixture
def paycrest_api() -> FakeProviderAPI:
    return FakeProviderAPI()


@pytest.fixture
async def providers(settings, pretium_api, paycrest_api):
    registry = ProviderRegistry(
        [
            PretiumAdapter.from_settings(settings.pretium, transport=httpx.MockTransport(pretium_api.handler)),
            PaycrestAdapter.from_settings(settings.paycrest, transport=httpx.MockTransport(paycrest_api.handler)),
        ]
    )
    yield registry
    await registry.aclose()


@pytest.fixture
def order_service(session_factory, providers, settings) -> OrderService:
    return OrderService(session_factory=session_factory, providers=providers, settings=settings)


@pytest.fixture
def make_order(session_factory) -> Callable[..., Any]:
    """Insert an order directly, as if a provider had accepted it."""

    async def _make(
        provider: ProviderName = ProviderName.PRETIUM,
        ref: str = "TXN-1",
        *,
        recipient: int = 1287,
        fee: int = 13,
        currency: str = "KES",
        deposit_ref: str | None = None,
    ) -> Order:
        async with session_scope(session_factory) as session:
            return await SqlOrderRepository(session).create(
                NewOrder(
                    provider=provider,
                    provider_transaction_ref=ref,
                    wallet_address="0xabc",
                    deposit_amount=Decimal("10"),
                    local_currency=currency,
                    total_local_amount=recipient + fee,
                    recipient_amount=recipient,
                    platform_fee=fee,
                    rate_used=Decimal("130"),
                    fee_fraction=Decimal("0.01"),
                    payment_method=PhoneNumber(number="0712345678"),
                    deposit_transaction_ref=deposit_ref or f"0xdeposit-{ref}",
                    provider_raw_status="PENDING",
                )
            )

    return _make

import json
from decimal import Decimal

import httpx
import pytest

from offramp.modules.common import (
    BankAccount,
    CanonicalStatus,
    Paybill,
    PhoneNumber,
    ProviderName,
    TillNumber,
)
from offramp.modules.fees import calculate_amounts
from offramp.modules.providers import (
    DisbursementRequest,
    MalformedPayloadError,
    ProviderNotConfiguredError,
    ProviderRegistry,
    ProviderUnavailableError,
    UnsupportedPaymentMethodError,
    WebhookVerificationError,
)
from offramp.modules.providers.paycrest import sign_payload
from offramp.modules.providers.phone import detect_network, normalize_phone

from .conftest import FakeProviderAPI, paycrest_envelope, pretium_envelope


def _request(method, currency="KES", reference="intent-1"):
    return DisbursementRequest(
        reference=reference,
        deposit_transaction_ref="0xdeposit",
        local_currency=currency,
        amounts=calculate_amounts(Decimal("10"), Decimal("130"), Decimal("0.01")),
        payment_method=method,
        account_name="Jane Doe",
        wallet_address="0xwallet",
        callback_url="http://localhost:8000/api/webhooks/pretium",
    )


class TestPhoneHelpers:
    def test_normalizes_local_numbers(self):
        assert normalize_phone("0712 345 678", "KES") == "254712345678"
        assert normalize_phone("+254712345678", "KES") == "254712345678"
        assert normalize_phone("0241234567", "GHS") == "233241234567"

    def test_detects_networks(self):
        assert detect_network("0712345678", "KES") == "Safaricom"
        assert detect_network("0110345678", "KES") == "Safaricom"
        assert detect_network("0733345678", "KES") == "Airtel"
        assert detect_network("0241234567", "GHS") == "MTN"
        assert detect_network("0201234567", "GHS") == "Vodafone"
        assert detect_network("0271234567", "GHS") == "AirtelTigo"
        assert detect_network("08031234567", "NGN") is None


class TestPretiumAdapter:
    async def test_disburse_mobile_sends_total_and_fee(self, providers, pretium_api: FakeProviderAPI):
        pretium_api.on("POST", "/v1/pay/KES", pretium_envelope("PENDING", "TXN-42"))
        adapter = providers.get(ProviderName.PRETIUM)

        result = await adapter.disburse(_request(PhoneNumber(number="0712345678")))

        assert result.provider_transaction_ref == "TXN-42"
        assert result.raw_status == "PENDING"
        [request] = pretium_api.requests
        assert request.headers["x-api-key"] == "pretium-key"
        body = FakeProviderAPI.body(request)
        assert body["type"] == "MOBILE"
        assert body["shortcode"] == "254712345678"
        assert body["mobile_network"] == "Safaricom"
        assert body["amount"] == "1300"
        assert body["fee"] == "13"
        assert body["transaction_hash"] == "0xdeposit"
        assert body["chain"] == "BASE"
        assert body["callback_url"].endswith("/api/webhooks/pretium")

    def test_payload_shapes_per_method(self, providers):
        adapter = providers.get(ProviderName.PRETIUM)

        till = adapter.build_payload(_request(TillNumber(till_number="123456")))
        assert (till["type"], till["shortcode"]) == ("BUY_GOODS", "123456")

        paybill = adapter.build_payload(_request(Paybill(paybill_number="400200", account="ACC-9")))
        assert (paybill["type"], paybill["shortcode"], paybill["account_number"]) == ("PAYBILL", "400200", "ACC-9")

        bank = adapter.build_payload(
            _request(BankAccount(account_number="0123456789", bank_code="058", bank_name="GTBank"), currency="NGN")
        )
        assert bank["type"] == "BANK_TRANSFER"
        assert bank["bank_code"] == "058"
        assert bank["account_number"] == "0123456789"
        assert "shortcode" not in bank

    def test_rejects_blocked_paybill_and_wrong_currency(self, providers):
        adapter = providers.get(ProviderName.PRETIUM)
        with pytest.raises(UnsupportedPaymentMethodError):
            adapter.validate(_request(Paybill(paybill_number="888880", account="1")))
        with pytest.raises(UnsupportedPaymentMethodError):
            adapter.validate(_request(TillNumber(till_number="123456"), currency="GHS"))
        with pytest.raises(UnsupportedPaymentMethodError):
            adapter.validate(_request(BankAccount(account_number="1234", bank_code="01"), currency="KES"))

    async def test_non_success_envelope_is_unavailable(self, providers, pretium_api):
        pretium_api.on("POST", "/v1/pay/KES", {"code": 400, "message": "Insufficient float", "data": None})
        adapter = providers.get(ProviderName.PRETIUM)

        with pytest.raises(ProviderUnavailableError) as excinfo:
            await adapter.disburse(_request(PhoneNumber(number="0712345678")))
        assert excinfo.value.status_code == 400

    async def test_http_error_carries_status_code(self, providers, pretium_api):
        pretium_api.on("POST", "/v1/pay/KES", httpx.Response(503, text="upstream down"))
        adapter = providers.get(ProviderName.PRETIUM)

        with pytest.raises(ProviderUnavailableError) as excinfo:
            await adapter.disburse(_request(PhoneNumber(number="0712345678")))
        assert excinfo.value.status_code == 503
        assert excinfo.value.provider == "pretium"

    async def test_transport_error_is_unavailable(self, providers, pretium_api):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        pretium_api.on("POST", "/v1/pay/KES", boom)
        adapter = providers.get(ProviderName.PRETIUM)

        with pytest.raises(ProviderUnavailableError) as excinfo:
            await adapter.disburse(_request(PhoneNumber(number="0712345678")))
        assert excinfo.value.status_code is None

    async def test_fetch_status(self, providers, pretium_api):
        pretium_api.on("POST", "/v1/status/KES", pretium_envelope("COMPLETE", "TXN-1", receipt_number="QK12ABC"))
        adapter = providers.get(ProviderName.PRETIUM)

        signal = await adapter.fetch_status("TXN-1", "KES")

        assert signal.raw_status == "COMPLETE"
        assert signal.receipt_reference == "QK12ABC"
        assert FakeProviderAPI.body(pretium_api.requests[0]) == {"transaction_code": "TXN-1"}

    def test_parse_webhook(self, providers):
        adapter = providers.get(ProviderName.PRETIUM)
        body = json.dumps(
            {
                "transaction_code": "TXN-1",
                "status": "FAILED",
                "receipt_number": None,
                "message": "Recipient unreachable",
                "is_released": False,
            }
        ).encode()

        signal = adapter.parse_webhook(body, {})

        assert signal.provider_transaction_ref == "TXN-1"
        assert signal.failure_reason == "Recipient unreachable"
        assert adapter.map_status(signal.raw_status) is CanonicalStatus.FAILED

    def test_malformed_webhook(self, providers):
        adapter = providers.get(ProviderName.PRETIUM)
        with pytest.raises(MalformedPayloadError):
            adapter.parse_webhook(b"not json", {})
        with pytest.raises(MalformedPayloadError):
            adapter.parse_webhook(b'{"status": "COMPLETE"}', {})

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("PENDING", CanonicalStatus.PENDING),
            ("PROCESSING", CanonicalStatus.PROCESSING),
            ("COMPLETE", CanonicalStatus.DELIVERED),
            ("complete", CanonicalStatus.DELIVERED),
            ("FAILED", CanonicalStatus.FAILED),
            ("REVERSED", CanonicalStatus.REFUNDED),
            ("REFUNDED", CanonicalStatus.REFUNDED),
            ("EXPIRED", CanonicalStatus.EXPIRED),
            ("SOMETHING_NEW", None),
            (None, None),
        ],
    )
    def test_status_mapping(self, providers, raw, expected):
        assert providers.get(ProviderName.PRETIUM).map_status(raw) is expected


class TestPaycrestAdapter:
    async def test_disburse_creates_sender_order(self, providers, paycrest_api):
        paycrest_api.on(
            "POST",
            "/v1/sender/orders",
            paycrest_envelope("initiated", "pc-1", receiveAddress="0xreceive"),
        )
        adapter = providers.get(ProviderName.PAYCREST)

        result = await adapter.disburse(_request(PhoneNumber(number="0733345678")))

        assert result.provider_transaction_ref == "pc-1"
        [request] = paycrest_api.requests
        assert request.headers["API-Key"] == "paycrest-key"
        body = FakeProviderAPI.body(request)
        assert body["amount"] == "10"
        assert body["rate"] == "130"
        assert body["token"] == "USDC"
        assert body["network"] == "base"
        assert body["reference"] == "intent-1"
        assert body["returnAddress"] == "0xwallet"
        assert body["recipient"] == {
            "institution": "AIRTEL",
            "accountIdentifier": "254733345678",
            "accountName": "Jane Doe",
            "currency": "KES",
            "memo": "USDC off-ramp payout",
        }

    async def test_error_envelope_is_unavailable(self, providers, paycrest_api):
        paycrest_api.on("POST", "/v1/sender/orders", {"status": "error", "message": "rate expired", "data": None})
        adapter = providers.get(ProviderName.PAYCREST)

        with pytest.raises(ProviderUnavailableError, match="rate expired"):
            await adapter.disburse(_request(PhoneNumber(number="0712345678")))

    async def test_till_and_paybill_rejected_without_network_call(self, providers, paycrest_api):
        adapter = providers.get(ProviderName.PAYCREST)

        with pytest.raises(UnsupportedPaymentMethodError):
            await adapter.disburse(_request(TillNumber(till_number="123456")))
        with pytest.raises(UnsupportedPaymentMethodError):
            await adapter.disburse(_request(Paybill(paybill_number="400200", account="A1")))
        assert paycrest_api.requests == []

    def test_webhook_signature(self, providers, settings):
        adapter = providers.get(ProviderName.PAYCREST)
        body = json.dumps(
            {"event": "payment_order.validated", "data": {"id": "pc-1", "status": "validated", "txHash": "0xhash"}}
        ).encode()
        signature = sign_payload(body, settings.paycrest.webhook_secret)

        signal = adapter.parse_webhook(body, {"x-paycrest-signature": signature})

        assert signal.provider_transaction_ref == "pc-1"
        assert signal.receipt_reference == "0xhash"
        assert adapter.map_status(signal.raw_status) is CanonicalStatus.DELIVERED

    def test_webhook_rejects_bad_or_missing_signature(self, providers):
        adapter = providers.get(ProviderName.PAYCREST)
        body = b'{"event": "payment_order.settled", "data": {"id": "pc-1", "status": "settled"}}'

        with pytest.raises(WebhookVerificationError):
            adapter.parse_webhook(body, {"X-Paycrest-Signature": "00" * 32})
        with pytest.raises(WebhookVerificationError):
            adapter.parse_webhook(body, {})

    def test_webhook_status_falls_back_to_event_name(self, providers, settings):
        adapter = providers.get(ProviderName.PAYCREST)
        body = b'{"event": "payment_order.refunded", "data": {"id": "pc-1"}}'
        signature = sign_payload(body, settings.paycrest.webhook_secret)

        signal = adapter.parse_webhook(body, {"X-Paycrest-Signature": signature})

        assert adapter.map_status(signal.raw_status) is CanonicalStatus.REFUNDED
        assert signal.failure_reason is not None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("initiated", CanonicalStatus.PENDING),
            ("pending", CanonicalStatus.PENDING),
            ("processing", CanonicalStatus.PROCESSING),
            ("fulfilled", CanonicalStatus.PROCESSING),
            ("validated", CanonicalStatus.DELIVERED),
            ("payment_order.validated", CanonicalStatus.DELIVERED),
            ("settled", CanonicalStatus.SETTLED),
            ("refunded", CanonicalStatus.REFUNDED),
            ("expired", CanonicalStatus.EXPIRED),
            ("cancelled", CanonicalStatus.FAILED),
            ("unknown", None),
        ],
    )
    def test_status_mapping(self, providers, raw, expected):
        assert providers.get(ProviderName.PAYCREST).map_status(raw) is expected

    async def test_find_by_reference_walks_listing(self, providers, paycrest_api):
        paycrest_api.on(
            "GET",
            "/v1/sender/orders",
            [
                {"status": "success", "data": {"total": 60, "orders": [{"id": "pc-a", "reference": "other"}]}},
                {
                    "status": "success",
                    "data": {"total": 60, "orders": [{"id": "pc-b", "reference": "intent-7", "status": "pending"}]},
                },
            ],
        )
        adapter = providers.get(ProviderName.PAYCREST)

        found = await adapter.find_by_reference("intent-7", "KES")

        assert found is not None
        assert found.provider_transaction_ref == "pc-b"
        assert [r.url.params["page"] for r in paycrest_api.requests] == ["1", "2"]

    async def test_pretium_has_no_listing(self, providers, pretium_api):
        assert await providers.get(ProviderName.PRETIUM).find_by_reference("intent-1", "KES") is None
        assert pretium_api.requests == []


class TestProviderRegistry:
    def test_unknown_provider(self, providers):
        with pytest.raises(ProviderNotConfiguredError):
            providers.get("moonpay")

    async def test_from_settings_respects_enabled_flags(self, settings):
        paycrest_off = settings.paycrest.model_copy(update={"enabled": False})
        registry = ProviderRegistry.from_settings(settings.model_copy(update={"paycrest": paycrest_off}))
        try:
            assert registry.names() == [ProviderName.PRETIUM]
        finally:
            await registry.aclose()

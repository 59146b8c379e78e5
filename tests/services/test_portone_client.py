"""
PortOneClient のテスト

httpx.MockTransport でPortOne APIを模擬し、リクエスト形式とエラー分類を確認する。
"""
import json
from datetime import datetime, timezone

import httpx
import pytest

from app.core.exceptions import (
    ProviderInvalidResponse,
    ProviderNotFound,
    ProviderRejected,
    ProviderUnauthorized,
    ProviderUnavailable,
)
from app.services.portone_client import PortOneClient

pytestmark = pytest.mark.asyncio


def make_client(handler, retry_attempts: int = 1) -> PortOneClient:
    return PortOneClient(
        "secret_abc",
        base_url="https://portone.test",
        retry_attempts=retry_attempts,
        transport=httpx.MockTransport(handler),
    )


async def test_get_payment_sends_auth_header_and_parses_body():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={
            "id": "pay_1",
            "status": "PAID",
            "orderName": "月額プラン",
            "amount": {"total": 9900, "paid": 9900},
            "billingKey": "bk_1",
            "customer": {"id": "cust_1", "name": "テスト"},
            "currency": "KRW",
        })

    info = await make_client(handler).get_payment("pay_1")

    assert captured == {"method": "GET", "path": "/payments/pay_1", "auth": "PortOne secret_abc"}
    assert info.id == "pay_1"
    assert info.amount.total == 9900
    assert info.billing_key == "bk_1"
    assert info.order_name == "月額プラン"
    assert info.customer.id == "cust_1"


@pytest.mark.parametrize(
    "status_code, expected",
    [
        (404, ProviderNotFound),
        (401, ProviderUnauthorized),
        (403, ProviderUnauthorized),
        (400, ProviderRejected),
        (409, ProviderRejected),
        (500, ProviderUnavailable),
        (503, ProviderUnavailable),
    ],
)
async def test_non_success_status_is_classified(status_code, expected):
    def handler(request):
        return httpx.Response(status_code, json={"type": "ERROR", "message": "error"})

    with pytest.raises(expected) as exc_info:
        await make_client(handler).get_payment("pay_1")

    assert exc_info.value.provider_status == status_code
    assert exc_info.value.operation == "get_payment"
    assert exc_info.value.payment_id == "pay_1"


@pytest.mark.parametrize("status_code", [500, 502, 503])
async def test_server_error_forwards_provider_status(status_code):
    def handler(request):
        return httpx.Response(status_code)

    with pytest.raises(ProviderUnavailable) as exc_info:
        await make_client(handler).cancel_payment("pay_1", reason="購読取消")

    assert exc_info.value.status_code == status_code


async def test_rejected_forwards_provider_status():
    def handler(request):
        return httpx.Response(409, json={"type": "ALREADY_PAID"})

    with pytest.raises(ProviderRejected) as exc_info:
        await make_client(handler).charge_billing_key(
            "pay_x", billing_key="bk_1", order_name="プラン", amount=9900, customer_id="cust_1"
        )

    assert exc_info.value.status_code == 409


async def test_network_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable) as exc_info:
        await make_client(handler).get_payment("pay_1")

    assert exc_info.value.status_code == 503


async def test_timeout_is_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderUnavailable):
        await make_client(handler).delete_schedules(["sch_1"])


async def test_lookup_retries_on_unavailable_then_succeeds(monkeypatch):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"id": "pay_1", "amount": {"total": 100}})

    # リトライ待機をなくす
    monkeypatch.setattr(
        "app.services.portone_client.wait_exponential",
        lambda **kwargs: (lambda retry_state: 0)
    )
    info = await make_client(handler, retry_attempts=2).get_payment("pay_1")

    assert len(calls) == 2
    assert info.amount.total == 100
    assert info.billing_key is None


async def test_lookup_does_not_retry_on_not_found():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(404)

    with pytest.raises(ProviderNotFound):
        await make_client(handler, retry_attempts=3).get_payment("pay_1")

    assert len(calls) == 1


async def test_charge_billing_key_body():
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"payment": {"pgTxId": "pg_123", "paidAt": "2024-01-15T03:00:00Z"}})

    acceptance = await make_client(handler).charge_billing_key(
        "pay_new", billing_key="bk_1", order_name="月額プラン", amount=9900, customer_id="cust_1"
    )

    assert captured["path"] == "/payments/pay_new/billing-key"
    assert captured["body"] == {
        "billingKey": "bk_1",
        "orderName": "月額プラン",
        "amount": {"total": 9900},
        "customer": {"id": "cust_1"},
        "currency": "KRW",
    }
    assert acceptance.payment_id == "pay_new"
    assert acceptance.pg_tx_id == "pg_123"
    assert acceptance.paid_at == datetime(2024, 1, 15, 3, 0, 0, tzinfo=timezone.utc)


async def test_create_schedule_body():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"schedule": {"id": "sch_1"}})

    ack = await make_client(handler).create_schedule(
        "next_1",
        billing_key="bk_1",
        order_name="月額プラン",
        customer_id="cust_1",
        amount=9900,
        time_to_pay=datetime(2024, 2, 15, 1, 23, 45, tzinfo=timezone.utc),
    )

    assert captured["method"] == "POST"
    assert captured["path"] == "/payments/next_1/schedule"
    assert captured["body"]["timeToPay"] == "2024-02-15T01:23:45Z"
    assert captured["body"]["payment"] == {
        "billingKey": "bk_1",
        "orderName": "月額プラン",
        "customer": {"id": "cust_1"},
        "amount": {"total": 9900},
        "currency": "KRW",
    }
    assert ack.schedule_id == "sch_1"


async def test_list_schedules_sends_filter():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"items": [
            {"id": "sch_1", "paymentId": "next_1", "status": "SCHEDULED", "timeToPay": "2024-02-15T01:23:45Z"},
            {"id": "sch_2", "paymentId": "other", "status": "SCHEDULED"},
        ]})

    schedules = await make_client(handler).list_schedules(
        "bk_1",
        from_time=datetime(2024, 2, 14, 1, 0, 0, tzinfo=timezone.utc),
        until_time=datetime(2024, 2, 16, 1, 0, 0, tzinfo=timezone.utc),
    )

    assert captured["method"] == "GET"
    assert captured["path"] == "/payment-schedules"
    assert captured["body"] == {"filter": {
        "billingKey": "bk_1",
        "from": "2024-02-14T01:00:00Z",
        "until": "2024-02-16T01:00:00Z",
    }}
    assert [s.id for s in schedules] == ["sch_1", "sch_2"]
    assert schedules[0].payment_id == "next_1"


async def test_delete_schedules_returns_revoked_ids():
    captured = {}

    def handler(request):
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"revokedScheduleIds": ["sch_1"]})

    revoked = await make_client(handler).delete_schedules(["sch_1"])

    assert captured == {"method": "DELETE", "body": {"scheduleIds": ["sch_1"]}}
    assert revoked == ["sch_1"]


async def test_cancel_payment_body():
    captured = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"cancellation": {"status": "SUCCEEDED"}})

    await make_client(handler).cancel_payment("pay_1", reason="購読取消")

    assert captured == {"path": "/payments/pay_1/cancel", "body": {"reason": "購読取消"}}


async def test_success_with_html_body_is_invalid_response():
    """2xxでもJSONでない本文はProviderInvalidResponse（502）"""
    def handler(request):
        return httpx.Response(200, text="<html>OK</html>", headers={"Content-Type": "text/html"})

    with pytest.raises(ProviderInvalidResponse) as exc_info:
        await make_client(handler).create_schedule(
            "next_1",
            billing_key="bk_1",
            order_name="月額プラン",
            customer_id="cust_1",
            amount=9900,
            time_to_pay=datetime(2024, 2, 15, 1, 23, 45, tzinfo=timezone.utc),
        )

    assert exc_info.value.operation == "create_schedule"
    assert exc_info.value.payment_id == "next_1"
    assert exc_info.value.provider_status == 200
    assert exc_info.value.status_code == 502


@pytest.mark.parametrize(
    "body",
    [
        {"schedule": {"status": "SCHEDULED"}},
        {"schedule": None},
    ],
)
async def test_success_with_unexpected_schedule_shape_is_invalid_response(body):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(ProviderInvalidResponse):
        await make_client(handler).create_schedule(
            "next_1",
            billing_key="bk_1",
            order_name="月額プラン",
            customer_id="cust_1",
            amount=9900,
            time_to_pay=datetime(2024, 2, 15, 1, 23, 45, tzinfo=timezone.utc),
        )


async def test_success_with_non_object_body_is_invalid_response():
    def handler(request):
        return httpx.Response(200, json=["pay_1"])

    with pytest.raises(ProviderInvalidResponse):
        await make_client(handler).get_payment("pay_1")


async def test_lookup_with_missing_amount_is_invalid_response():
    def handler(request):
        return httpx.Response(200, json={"id": "pay_1", "status": "PAID"})

    with pytest.raises(ProviderInvalidResponse) as exc_info:
        await make_client(handler).get_payment("pay_1")

    assert exc_info.value.operation == "get_payment"

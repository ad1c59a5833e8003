import base64
import json

import httpx
import pytest
from sqlalchemy import select

from services.order_service.models import OrderStatusEvent
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService
from services.payment_service.models import Payment
from services.payment_service.paymongo import (
    PaymongoClient,
    compute_signature,
    to_centavos,
    verify_webhook_signature,
)
from services.payment_service.repository import PaymentRepository
from services.payment_service.service import (
    AmountMismatch,
    InvalidWebhookPayload,
    PaymentAlreadyCompleted,
    PaymentService,
    SourceNotChargeable,
)
from shared.config import settings
from shared.errors import InvalidSignatureError, PaymentGatewayError, UnauthorizedError

from .conftest import actor_for, place_order


class FakeGateway:
    def __init__(self, source_status="chargeable", payment_status="paid"):
        self.source_status = source_status
        self.payment_status = payment_status
        self.calls = []

    async def create_gcash_source(self, amount, redirect_success, redirect_failed, metadata=None, currency="PHP"):
        self.calls.append(("source", amount, metadata))
        return {
            "id": "src_123",
            "attributes": {"status": "pending", "redirect": {"checkout_url": "https://pay.test/checkout"}},
        }

    async def create_payment(self, source_id, amount, description="Order payment", metadata=None, currency="PHP"):
        self.calls.append(("payment", source_id, amount))
        return {
            "id": "pay_123",
            "attributes": {"status": self.payment_status, "paid_at": 1700000000, "amount": to_centavos(amount)},
        }

    async def get_source(self, source_id):
        return {"id": source_id, "attributes": {"status": self.source_status}}


def webhook_body(event_type, resource_id, order_id) -> bytes:
    metadata = {"orderId": str(order_id)} if order_id else {}
    return json.dumps(
        {
            "data": {
                "type": "event",
                "attributes": {
                    "type": event_type,
                    "data": {"id": resource_id, "attributes": {"status": "paid", "metadata": metadata}},
                },
            }
        }
    ).encode()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def started(db, world, gateway):
    """An 850-peso delivery order with a GCash source already requested."""
    order, _ = await place_order(db, world)
    await PaymentService.create_source(db, gateway, actor_for(world["customer"]), order.id, 850)
    return order


async def _confirmation_events(session_factory, order_id):
    async with session_factory() as session:
        result = await session.execute(
            select(OrderStatusEvent).where(
                OrderStatusEvent.order_id == order_id, OrderStatusEvent.status == "confirmed"
            )
        )
        return result.scalars().all()


async def _order_and_payment(session_factory, order_id):
    async with session_factory() as session:
        return (
            await OrderRepository.get_order(session, order_id),
            await PaymentRepository.latest_for_order(session, order_id),
        )


# --- Source creation ---

async def test_create_source_records_a_processing_payment(db, session_factory, world, gateway):
    order, _ = await place_order(db, world)

    result = await PaymentService.create_source(db, gateway, actor_for(world["customer"]), order.id, 850)

    assert result["source_id"] == "src_123"
    assert result["checkout_url"] == "https://pay.test/checkout"
    _, amount, metadata = gateway.calls[0]
    assert amount == 850
    assert metadata["orderId"] == str(order.id)
    _, payment = await _order_and_payment(session_factory, order.id)
    assert payment.payment_status == "processing"
    assert payment.transaction_id == "src_123"
    assert payment.gateway_response["checkoutUrl"] == "https://pay.test/checkout"


async def test_source_reuses_the_open_payment(db, session_factory, started, world, gateway):
    await PaymentService.create_source(db, gateway, actor_for(world["customer"]), started.id, 850)

    async with session_factory() as session:
        payments = (await session.execute(select(Payment))).scalars().all()
    assert len(payments) == 1


@pytest.mark.parametrize("amount", [849.98, 900])
async def test_amount_must_match_the_order_total(db, world, gateway, amount):
    order, _ = await place_order(db, world)

    with pytest.raises(AmountMismatch):
        await PaymentService.create_source(db, gateway, actor_for(world["customer"]), order.id, amount)


async def test_amount_within_a_centavo_is_accepted(db, world, gateway):
    order, _ = await place_order(db, world)

    result = await PaymentService.create_source(db, gateway, actor_for(world["customer"]), order.id, 850.005)

    assert result["status"] == "pending"


async def test_only_the_ordering_customer_pays(db, seed, world, gateway):
    order, _ = await place_order(db, world)
    stranger = await seed.user("customer")

    with pytest.raises(UnauthorizedError):
        await PaymentService.create_source(db, gateway, actor_for(stranger), order.id, 850)


async def test_no_new_source_after_completion(db, started, world, gateway):
    await PaymentService.handle_webhook(db, gateway, webhook_body("payment.paid", "pay_1", started.id), None)

    with pytest.raises(PaymentAlreadyCompleted):
        await PaymentService.create_source(db, gateway, actor_for(world["customer"]), started.id, 850)


# --- Charging a source ---

async def test_paid_charge_confirms_the_order_once(db, session_factory, started, world, gateway):
    result = await PaymentService.create_payment_from_source(
        db, gateway, actor_for(world["customer"]), "src_123", started.id
    )

    assert result["payment_status"] == "completed"
    assert result["order_status"] == "confirmed"
    order, payment = await _order_and_payment(session_factory, started.id)
    assert order.status == "confirmed"
    assert payment.transaction_id == "pay_123"
    events = await _confirmation_events(session_factory, started.id)
    assert [(e.note, e.created_by) for e in events] == [("Payment confirmed", None)]


async def test_unpaid_charge_stays_processing(db, session_factory, started, world):
    gateway = FakeGateway(payment_status="pending")

    result = await PaymentService.create_payment_from_source(
        db, gateway, actor_for(world["customer"]), "src_123", started.id
    )

    assert result["payment_status"] == "processing"
    assert result["order_status"] == "pending"


async def test_source_must_be_chargeable(db, started, world):
    with pytest.raises(SourceNotChargeable):
        await PaymentService.create_payment_from_source(
            db, FakeGateway(source_status="pending"), actor_for(world["customer"]), "src_123", started.id
        )


# --- Webhooks ---

async def test_duplicate_paid_webhook_is_absorbed(db, session_factory, started, gateway):
    body = webhook_body("payment.paid", "pay_789", started.id)

    assert await PaymentService.handle_webhook(db, gateway, body, None) == {"received": True}
    assert await PaymentService.handle_webhook(db, gateway, body, None) == {"received": True}

    order, payment = await _order_and_payment(session_factory, started.id)
    assert order.status == "confirmed"
    assert payment.payment_status == "completed"
    assert payment.transaction_id == "pay_789"
    assert len(await _confirmation_events(session_factory, started.id)) == 1


async def test_paid_webhook_does_not_move_an_order_past_pending(db, session_factory, started, world, gateway):
    await OrderService.update_status(db, actor_for(world["owner"]), started.id, "preparing")

    await PaymentService.handle_webhook(db, gateway, webhook_body("payment.paid", "pay_1", started.id), None)

    order, _ = await _order_and_payment(session_factory, started.id)
    assert order.status == "preparing"
    assert await _confirmation_events(session_factory, started.id) == []


async def test_failed_webhook_leaves_the_order_pending(db, session_factory, started, gateway):
    await PaymentService.handle_webhook(db, gateway, webhook_body("payment.failed", "pay_1", started.id), None)

    order, payment = await _order_and_payment(session_factory, started.id)
    assert payment.payment_status == "failed"
    assert order.status == "pending"


async def test_late_failure_does_not_undo_a_completed_payment(db, session_factory, started, gateway):
    await PaymentService.handle_webhook(db, gateway, webhook_body("payment.paid", "pay_1", started.id), None)

    result = await PaymentService.handle_webhook(db, gateway, webhook_body("payment.failed", "pay_2", started.id), None)

    assert result == {"received": True}
    order, payment = await _order_and_payment(session_factory, started.id)
    assert order.status == "confirmed"
    assert payment.payment_status == "completed"
    assert payment.transaction_id == "pay_1"


async def test_paid_webhook_without_a_payment_does_not_confirm(db, session_factory, world, gateway):
    order, _ = await place_order(db, world)

    result = await PaymentService.handle_webhook(db, gateway, webhook_body("payment.paid", "pay_1", order.id), None)

    assert result == {"received": True}
    stored, payment = await _order_and_payment(session_factory, order.id)
    assert stored.status == "pending"
    assert payment is None
    assert await _confirmation_events(session_factory, order.id) == []


async def test_chargeable_webhook_creates_the_charge(db, session_factory, started, gateway):
    await PaymentService.handle_webhook(db, gateway, webhook_body("source.chargeable", "src_123", started.id), None)

    assert ("payment", "src_123", 850) in gateway.calls
    order, payment = await _order_and_payment(session_factory, started.id)
    assert payment.payment_status == "completed"
    assert order.status == "confirmed"


async def test_chargeable_webhook_skips_paid_orders(db, started, gateway):
    await PaymentService.handle_webhook(db, gateway, webhook_body("payment.paid", "pay_1", started.id), None)

    await PaymentService.handle_webhook(db, gateway, webhook_body("source.chargeable", "src_123", started.id), None)

    assert [call[0] for call in gateway.calls] == ["source"]


async def test_webhook_payload_must_be_an_event(db, gateway):
    with pytest.raises(InvalidWebhookPayload):
        await PaymentService.handle_webhook(db, gateway, json.dumps({"data": {"type": "source"}}).encode(), None)
    with pytest.raises(InvalidWebhookPayload):
        await PaymentService.handle_webhook(db, gateway, b"not json", None)


async def test_webhook_needs_an_order_id(db, gateway):
    with pytest.raises(InvalidWebhookPayload):
        await PaymentService.handle_webhook(db, gateway, webhook_body("payment.paid", "pay_1", None), None)


async def test_unknown_events_are_acknowledged(db, gateway):
    body = webhook_body("checkout_session.payment.paid", "cs_1", None)

    assert await PaymentService.handle_webhook(db, gateway, body, None) == {"received": True}


async def test_webhook_signature_is_enforced_when_configured(db, monkeypatch, started, gateway):
    monkeypatch.setattr(settings, "PAYMONGO_WEBHOOK_SECRET", "whsec_test")
    body = webhook_body("payment.paid", "pay_1", started.id)

    with pytest.raises(InvalidSignatureError):
        await PaymentService.handle_webhook(db, gateway, body, "t=1700000000,te=deadbeef,li=")
    with pytest.raises(InvalidSignatureError):
        await PaymentService.handle_webhook(db, gateway, body, None)

    signature = compute_signature("1700000000", body, "whsec_test")
    result = await PaymentService.handle_webhook(db, gateway, body, f"t=1700000000,te={signature},li=")
    assert result == {"received": True}


# --- Gateway client ---

def test_live_signature_is_accepted():
    body = b'{"data": {}}'
    signature = compute_signature("42", body, "secret")

    verify_webhook_signature(body, f"t=42,te=,li={signature}", secret="secret")


def test_signature_over_a_different_body_is_rejected():
    signature = compute_signature("42", b"original", "secret")

    with pytest.raises(InvalidSignatureError):
        verify_webhook_signature(b"tampered", f"t=42,te={signature}", secret="secret")


def test_amounts_are_sent_in_centavos():
    assert to_centavos(850) == 85000
    assert to_centavos(19.99) == 1999


async def test_client_creates_sources_with_the_public_key():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"id": "src_1", "attributes": {"status": "pending"}}})

    client = PaymongoClient(
        base_url="https://gateway.test/v1",
        secret_key="sk_test",
        public_key="pk_test",
        transport=httpx.MockTransport(handler),
    )
    source = await client.create_gcash_source(850.5, "https://ok", "https://fail", {"orderId": "o1"})

    assert source["id"] == "src_1"
    assert seen["url"] == "https://gateway.test/v1/sources"
    assert seen["auth"] == "Basic " + base64.b64encode(b"pk_test:").decode()
    attributes = seen["body"]["data"]["attributes"]
    assert attributes["amount"] == 85050
    assert attributes["type"] == "gcash"
    assert attributes["redirect"] == {"success": "https://ok", "failed": "https://fail"}


async def test_client_surfaces_gateway_errors():
    def handler(request: httpx.Request):
        return httpx.Response(400, json={"errors": [{"detail": "amount is too small"}]})

    client = PaymongoClient(secret_key="sk_test", public_key="pk_test", transport=httpx.MockTransport(handler))

    with pytest.raises(PaymentGatewayError) as excinfo:
        await client.create_payment("src_1", 10)
    assert excinfo.value.message == "amount is too small"

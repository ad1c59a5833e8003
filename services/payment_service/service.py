"""
Payment coordinator: GCash source -> charge -> order confirmation.

The gateway is passed in rather than constructed here so the HTTP client can
be replaced per request (and in tests). Gateway calls never run inside an open
database transaction.
"""
import json
import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.catalog_service.repository import CatalogRepository
from services.order_service.models import Order
from services.order_service.repository import OrderRepository
from shared.config import settings
from shared.errors import BadRequestError, NotFoundError, UnauthorizedError
from shared.observability import foodhub_order_status_transitions_total, foodhub_payment_events_total
from shared.security import Actor

from .models import Payment
from .paymongo import PaymongoClient, verify_webhook_signature
from .repository import PaymentRepository

logger = structlog.get_logger(__name__)

AMOUNT_TOLERANCE = 0.01


class AmountMismatch(BadRequestError):
    code = "AMOUNT_MISMATCH"
    message = "Amount does not match order total"


class PaymentAlreadyCompleted(BadRequestError):
    code = "PAYMENT_ALREADY_COMPLETED"
    message = "Payment already completed"


class SourceNotChargeable(BadRequestError):
    code = "SOURCE_NOT_CHARGEABLE"
    message = "Source is not chargeable"


class InvalidWebhookPayload(BadRequestError):
    code = "INVALID_WEBHOOK_PAYLOAD"
    message = "Invalid webhook payload"


def _check_owner(actor: Actor, order: Order, message: str) -> None:
    if not actor.is_admin and not actor.is_user(order.customer_id):
        raise UnauthorizedError(message)


async def _confirm_order(db: AsyncSession, order_id) -> bool:
    """pending -> confirmed with one system history event, only if the guard flips it."""
    confirmed = await OrderRepository.confirm_if_pending(db, order_id)
    if confirmed:
        await OrderRepository.append_event(db, order_id, "confirmed", "Payment confirmed", None)
    return confirmed


class PaymentService:

    @staticmethod
    async def create_source(
        db: AsyncSession,
        gateway: PaymongoClient,
        actor: Actor,
        order_id,
        amount: float,
        redirect_success: Optional[str] = None,
        redirect_failed: Optional[str] = None,
    ) -> dict:
        order = await OrderRepository.get_order(db, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        _check_owner(actor, order, "You can only create payments for your own orders")

        if amount <= 0:
            raise BadRequestError("Amount must be greater than 0")
        if abs(float(order.total_amount) - float(amount)) > AMOUNT_TOLERANCE:
            raise AmountMismatch(details={"order_total": order.total_amount, "amount": amount})

        payment = await PaymentRepository.latest_for_order(db, order.id)
        if payment is not None and payment.payment_status == "completed":
            raise PaymentAlreadyCompleted()

        if payment is None:
            payment = Payment(
                order_id=order.id,
                payment_method="gcash",
                payment_status="pending",
                amount=amount,
                currency="PHP",
                payment_gateway="paymongo",
            )
            try:
                await PaymentRepository.add(db, payment)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        restaurant = await CatalogRepository.get_restaurant(db, order.restaurant_id)
        confirmation_url = f"{settings.APP_BASE_URL}/pages/customers/payment_confirmation.html?orderId={order.id}"
        source = await gateway.create_gcash_source(
            amount=float(amount),
            redirect_success=redirect_success or f"{confirmation_url}&status=success",
            redirect_failed=redirect_failed or f"{confirmation_url}&status=failed",
            metadata={
                "orderId": str(order.id),
                "paymentId": str(payment.id),
                "restaurantId": str(order.restaurant_id),
                "restaurantName": restaurant.name if restaurant else None,
            },
        )

        attributes = source.get("attributes") or {}
        checkout_url = (attributes.get("redirect") or {}).get("checkout_url")
        try:
            await PaymentRepository.update(
                db,
                payment.id,
                transaction_id=source.get("id"),
                payment_status="processing",
                gateway_response={
                    "sourceId": source.get("id"),
                    "checkoutUrl": checkout_url,
                    "status": attributes.get("status"),
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("payment_source_created", order_id=str(order.id), source_id=source.get("id"))
        return {
            "source_id": source.get("id"),
            "checkout_url": checkout_url,
            "status": attributes.get("status"),
            "payment_id": payment.id,
        }

    @staticmethod
    async def _charge(db: AsyncSession, gateway: PaymongoClient, order: Order, payment: Payment, source_id: str):
        charge = await gateway.create_payment(
            source_id=source_id,
            amount=float(order.total_amount),
            description=f"Order {order.id}",
            metadata={"orderId": str(order.id), "paymentId": str(payment.id)},
        )
        attributes = charge.get("attributes") or {}
        payment_status = "completed" if attributes.get("status") == "paid" else "processing"

        try:
            await PaymentRepository.update(
                db,
                payment.id,
                transaction_id=charge.get("id"),
                payment_status=payment_status,
                gateway_response={
                    "paymentId": charge.get("id"),
                    "sourceId": source_id,
                    "status": attributes.get("status"),
                    "paidAt": attributes.get("paid_at"),
                    "amount": attributes.get("amount"),
                },
            )
            confirmed = payment_status == "completed" and await _confirm_order(db, order.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if confirmed:
            foodhub_order_status_transitions_total.labels(status="confirmed").inc()
        logger.info(
            "payment_charged",
            order_id=str(order.id),
            gateway_payment_id=charge.get("id"),
            payment_status=payment_status,
            order_confirmed=confirmed,
        )
        return charge, payment_status

    @staticmethod
    async def create_payment_from_source(
        db: AsyncSession, gateway: PaymongoClient, actor: Actor, source_id: str, order_id
    ) -> dict:
        order = await OrderRepository.get_order(db, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        _check_owner(actor, order, "You can only create payments for your own orders")

        payment = await PaymentRepository.latest_for_order(db, order.id)
        if payment is None:
            raise NotFoundError("No payment has been started for this order")

        source = await gateway.get_source(source_id)
        source_status = (source.get("attributes") or {}).get("status")
        if source_status != "chargeable":
            raise SourceNotChargeable(f"Source is not chargeable. Status: {source_status}")

        charge, payment_status = await PaymentService._charge(db, gateway, order, payment, source.get("id") or source_id)
        order = await OrderRepository.get_order(db, order.id)
        return {
            "payment_id": charge.get("id"),
            "status": (charge.get("attributes") or {}).get("status"),
            "payment_status": payment_status,
            "order_status": order.status,
        }

    @staticmethod
    async def handle_webhook(db: AsyncSession, gateway: PaymongoClient, raw_body: bytes, signature: Optional[str]) -> dict:
        verify_webhook_signature(raw_body, signature)

        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError:
            raise InvalidWebhookPayload()
        event = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(event, dict) or event.get("type") != "event":
            raise InvalidWebhookPayload()

        attributes = event.get("attributes") or {}
        event_type = attributes.get("type")
        data = attributes.get("data") or {}
        metadata = (data.get("attributes") or {}).get("metadata") or {}
        foodhub_payment_events_total.labels(event_type=str(event_type)).inc()
        logger.info("payment_webhook_received", event_type=event_type, resource_id=data.get("id"))

        if event_type not in ("payment.paid", "payment.failed", "source.chargeable"):
            return {"received": True}

        if not metadata.get("orderId"):
            raise InvalidWebhookPayload("Missing orderId")
        try:
            order_id = uuid.UUID(str(metadata["orderId"]))
        except ValueError:
            raise InvalidWebhookPayload("Invalid orderId")

        if event_type == "source.chargeable":
            await PaymentService._handle_chargeable(db, gateway, order_id, data.get("id"))
            return {"received": True}

        paid = event_type == "payment.paid"
        values = {"payment_status": "completed" if paid else "failed", "gateway_response": data}
        if paid:
            values["transaction_id"] = data.get("id")
        # A late failure never overwrites a completed payment.
        status_not_in = () if paid else ("completed",)
        try:
            updated = await PaymentRepository.update_for_order(db, order_id, status_not_in=status_not_in, **values)
            if not updated:
                await db.rollback()
                logger.warning(
                    "paid_webhook_without_payment" if paid else "failed_webhook_without_open_payment",
                    order_id=str(order_id),
                    resource_id=data.get("id"),
                )
                return {"received": True}
            # A failed payment leaves the order where it is.
            confirmed = paid and await _confirm_order(db, order_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if confirmed:
            foodhub_order_status_transitions_total.labels(status="confirmed").inc()
        logger.info("payment_webhook_processed", event_type=event_type, order_id=str(order_id), order_confirmed=confirmed)
        return {"received": True}

    @staticmethod
    async def _handle_chargeable(db: AsyncSession, gateway: PaymongoClient, order_id, source_id: Optional[str]) -> None:
        if not source_id:
            raise InvalidWebhookPayload("Missing source id")
        order = await OrderRepository.get_order(db, order_id)
        payment = await PaymentRepository.latest_for_order(db, order_id)
        if order is None or payment is None:
            logger.warning("chargeable_source_without_payment", order_id=str(order_id), source_id=source_id)
            return
        if payment.payment_status == "completed":
            logger.info("chargeable_source_already_paid", order_id=str(order_id), source_id=source_id)
            return
        await PaymentService._charge(db, gateway, order, payment, source_id)

    @staticmethod
    async def get_status(db: AsyncSession, actor: Actor, order_id) -> dict:
        order = await OrderRepository.get_order(db, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        _check_owner(actor, order, "You can only view payments for your own orders")

        payment = await PaymentRepository.latest_for_order(db, order.id)
        if payment is None:
            raise NotFoundError("Payment not found")
        return {"payment": payment, "order_status": order.status}

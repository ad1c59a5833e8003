"""
Fire-and-forget notification fan-out.

Dispatch runs after the owning transaction has committed (FastAPI background
tasks), and every failure is logged and swallowed: a notification must never
undo or fail the business operation that triggered it.
"""
from typing import Iterable, Optional

import httpx
import structlog

from shared.config import settings

logger = structlog.get_logger(__name__)


async def send_notification(event_type: str, recipient_id, message: str, data: Optional[dict] = None):
    logger.info(
        "notification_dispatched",
        event_type=event_type,
        recipient_id=str(recipient_id),
        notification_message=message,
    )
    if not settings.NOTIFICATION_URL:
        return
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            await client.post(
                settings.NOTIFICATION_URL,
                json={
                    "event_type": event_type,
                    "recipient_id": str(recipient_id),
                    "message": message,
                    "data": data or {},
                },
            )
    except Exception as e:
        logger.warning("notification_failed", event_type=event_type, error=str(e))


async def notify_rider_match(
    accepted_rider_id,
    rejected_rider_ids: Iterable,
    order_id,
    restaurant_name: Optional[str],
):
    """Tell the winning rider where to go and every losing rider that the order is gone."""
    short_ref = str(order_id)[-8:].upper() if order_id else "N/A"
    place = restaurant_name or "the restaurant"
    await send_notification(
        "delivery_request.accepted",
        accepted_rider_id,
        f"Your request has been accepted! Please proceed to {place} to pick up order #{short_ref}.",
        {"order_id": str(order_id)},
    )
    for rider_id in rejected_rider_ids:
        await send_notification(
            "delivery_request.rejected",
            rider_id,
            "The order you requested has been assigned to another rider.",
            {"order_id": str(order_id)},
        )

from .setup import setup_observability, configure_logging
from .metrics import (
    foodhub_orders_created_total,
    foodhub_order_creation_duration_seconds,
    foodhub_order_status_transitions_total,
    foodhub_delivery_assignments_total,
    foodhub_delivery_assignment_conflicts_total,
    foodhub_delivery_requests_total,
    foodhub_payment_events_total
)

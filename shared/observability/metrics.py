from prometheus_client import Counter, Histogram

# Business Metrics
foodhub_orders_created_total = Counter(
    "foodhub_orders_created_total",
    "Total orders placed",
    ["order_type"] # Labels: 'delivery', 'pickup'
)

foodhub_order_creation_duration_seconds = Histogram(
    "foodhub_order_creation_duration_seconds",
    "Order creation duration in seconds"
)

foodhub_order_status_transitions_total = Counter(
    "foodhub_order_status_transitions_total",
    "Order status transitions recorded",
    ["status"]
)

foodhub_delivery_assignments_total = Counter(
    "foodhub_delivery_assignments_total",
    "Riders assigned to deliveries",
    ["path"] # Labels: 'claim', 'request_accept'
)

foodhub_delivery_assignment_conflicts_total = Counter(
    "foodhub_delivery_assignment_conflicts_total",
    "Assignment attempts that lost the race for a delivery",
    ["path"]
)

foodhub_delivery_requests_total = Counter(
    "foodhub_delivery_requests_total",
    "Delivery requests created",
    ["requested_by"] # Labels: 'rider', 'restaurant'
)

foodhub_payment_events_total = Counter(
    "foodhub_payment_events_total",
    "Payment gateway events processed",
    ["event_type"]
)

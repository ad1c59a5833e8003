from .dispatcher import send_notification, notify_rider_match

__all__ = ["send_notification", "notify_rider_match"]

"""Background workers for async processing."""
from .outbox_publisher import dispatch_notification, start_outbox_publisher

__all__ = ["dispatch_notification", "start_outbox_publisher"]

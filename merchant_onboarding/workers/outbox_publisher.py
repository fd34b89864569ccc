"""
Outbox publisher background worker.

Drains one environment's outbox table and dispatches onboarding
notifications (submission, approval, rejection, signature requests).

Usage:
    python -m merchant_onboarding.workers.outbox_publisher [production|development|test]
"""
import asyncio
import signal
import sys
from typing import Any, Dict, Optional

import structlog

from merchant_onboarding.config import get_settings
from merchant_onboarding.core.environment import Environment
from merchant_onboarding.core.outbox import OutboxPublisher
from merchant_onboarding.database.connection import close_db
from merchant_onboarding.monitoring.logging import setup_logging

logger = structlog.get_logger(__name__)


async def dispatch_notification(event_data: Dict[str, Any]) -> None:
    """Hand an onboarding event to the notification channel."""
    payload = event_data.get("payload") or {}
    logger.info(
        "notification_sent",
        environment=event_data.get("environment"),
        event_type=event_data.get("event_type"),
        aggregate_type=event_data.get("aggregate_type"),
        aggregate_id=event_data.get("aggregate_id"),
        recipient=payload.get("owner_email"),
    )


async def start_outbox_publisher(environment: Optional[str] = None) -> None:
    """
    Start the outbox publisher worker.

    Runs continuously until stopped.
    """
    settings = get_settings()
    env = Environment(environment or settings.global_db_env)
    setup_logging(environment=env.value)

    logger.info("outbox_publisher_worker_starting")

    publisher = OutboxPublisher(
        environment=env,
        publisher_func=dispatch_notification,
        batch_size=settings.outbox_batch_size,
        poll_interval_seconds=settings.outbox_poll_interval_seconds,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, publisher.stop)

    try:
        await publisher.start()
    except Exception as e:
        logger.error("outbox_publisher_worker_error", error=str(e))
        raise
    finally:
        await close_db()
        logger.info("outbox_publisher_worker_stopped")


def main() -> None:
    asyncio.run(start_outbox_publisher(sys.argv[1] if len(sys.argv) > 1 else None))


if __name__ == "__main__":
    main()

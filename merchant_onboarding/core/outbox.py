"""
Transactional outbox for onboarding notifications.

Workflow changes write their notification event in the same transaction as
the status change; a background worker publishes them afterwards. Email
delivery (submission/approval notices, signature requests) hangs off the
publisher function.
"""
import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.core.environment import Environment
from merchant_onboarding.database.connection import DatabaseGateway, get_gateway
from merchant_onboarding.database.models import OutboxEvent, utcnow
from merchant_onboarding.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


async def write_outbox_event(
    db: AsyncSession,
    aggregate_type: str,
    aggregate_id: int,
    event_type: str,
    payload: Dict[str, Any],
) -> OutboxEvent:
    """
    Stage an outbox event in the caller's transaction.

    The event is only visible to the publisher once the caller commits.
    """
    event = OutboxEvent(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=event_type,
        payload=payload,
        published=False,
    )
    db.add(event)
    await db.flush()

    logger.debug(
        "outbox_event_written",
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
    )
    return event


class OutboxPublisher:
    """
    Publishes events from one environment's outbox table.

    Implements at-least-once delivery by:
    1. Reading unpublished events from outbox
    2. Handing each to the publisher function
    3. Marking delivered ones as published
    """

    def __init__(
        self,
        environment: Union[Environment, str] = Environment.DEVELOPMENT,
        publisher_func: Optional[Callable[[Dict[str, Any]], Any]] = None,
        batch_size: int = 100,
        poll_interval_seconds: float = 1.0,
        gateway: Optional[DatabaseGateway] = None,
    ):
        """
        Initialize outbox publisher.

        Args:
            environment: Database environment whose outbox is drained
            publisher_func: Coroutine function that delivers one event
            batch_size: Number of events to process per batch
            poll_interval_seconds: Polling interval
            gateway: Optional database gateway (process-wide one if not provided)
        """
        self.environment = Environment(environment)
        self.publisher_func = publisher_func or self._default_publisher
        self.batch_size = batch_size
        self.poll_interval_seconds = poll_interval_seconds
        self._gateway = gateway
        self._running = False

        logger.info(
            "outbox_publisher_initialized",
            environment=self.environment.value,
            batch_size=batch_size,
            poll_interval=poll_interval_seconds,
        )

    @property
    def gateway(self) -> DatabaseGateway:
        return self._gateway or get_gateway()

    async def _default_publisher(self, event_data: Dict[str, Any]) -> None:
        """Log the notification in place of sending an email."""
        logger.info(
            "notification_dispatched",
            event_type=event_data.get("event_type"),
            aggregate_type=event_data.get("aggregate_type"),
            aggregate_id=event_data.get("aggregate_id"),
        )

    async def _fetch_unpublished_events(self, db: AsyncSession) -> List[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.published == False)  # noqa: E712
            .order_by(OutboxEvent.created_at, OutboxEvent.id)
            .limit(self.batch_size)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _publish_event(self, event: OutboxEvent) -> bool:
        """
        Publish a single event.

        Returns:
            bool: True if published successfully, False otherwise
        """
        try:
            event_data = {
                "id": event.id,
                "environment": self.environment.value,
                "aggregate_id": event.aggregate_id,
                "aggregate_type": event.aggregate_type,
                "event_type": event.event_type,
                "payload": event.payload,
                "created_at": event.created_at.isoformat(),
            }

            await self.publisher_func(event_data)

            metrics.record_outbox_event_published(event.event_type)
            logger.info(
                "outbox_event_published",
                event_id=event.id,
                event_type=event.event_type,
                aggregate_id=event.aggregate_id,
            )
            return True

        except Exception as e:
            logger.error(
                "outbox_event_publish_failed",
                event_id=event.id,
                event_type=event.event_type,
                error=str(e),
            )
            return False

    async def _mark_as_published(self, db: AsyncSession, event_ids: List[int]) -> None:
        if not event_ids:
            return

        stmt = (
            update(OutboxEvent)
            .where(OutboxEvent.id.in_(event_ids))
            .values(published=True, published_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)
        await db.commit()

        logger.info("outbox_events_marked_published", count=len(event_ids))

    async def process_batch(self) -> int:
        """
        Process a batch of unpublished events.

        Returns:
            int: Number of events published
        """
        started = time.perf_counter()
        async with self.gateway.session(self.environment) as db:
            try:
                events = await self._fetch_unpublished_events(db)

                if not events:
                    return 0

                logger.info("outbox_batch_processing_started", batch_size=len(events))

                published_ids = []
                for event in events:
                    if await self._publish_event(event):
                        published_ids.append(event.id)

                await self._mark_as_published(db, published_ids)

                logger.info(
                    "outbox_batch_processed",
                    total=len(events),
                    published=len(published_ids),
                    failed=len(events) - len(published_ids),
                )
                return len(published_ids)

            except Exception as e:
                logger.error("outbox_batch_processing_error", error=str(e))
                await db.rollback()
                return 0

            finally:
                metrics.record_outbox_batch(time.perf_counter() - started)

    async def start(self) -> None:
        """Poll for unpublished events until `stop` is called."""
        self._running = True
        logger.info("outbox_publisher_started", environment=self.environment.value)

        try:
            while self._running:
                try:
                    published_count = await self.process_batch()
                    metrics.set_outbox_queue_depth(
                        self.environment.value, await self.get_pending_count()
                    )

                    if published_count == 0:
                        await asyncio.sleep(self.poll_interval_seconds)
                    else:
                        # More may be waiting
                        await asyncio.sleep(0.1)

                except Exception as e:
                    logger.error("outbox_publisher_error", error=str(e))
                    await asyncio.sleep(self.poll_interval_seconds)

        finally:
            logger.info("outbox_publisher_stopped", environment=self.environment.value)

    def stop(self) -> None:
        """Stop the outbox publisher."""
        self._running = False
        logger.info("outbox_publisher_stop_requested")

    async def get_pending_count(self) -> int:
        """Count unpublished events."""
        async with self.gateway.session(self.environment) as db:
            result = await db.execute(
                select(func.count())
                .select_from(OutboxEvent)
                .where(OutboxEvent.published == False)  # noqa: E712
            )
            return int(result.scalar_one())

import asyncio
import json
import random
from datetime import UTC, datetime
from typing import Any

import structlog
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from payout_service.config import settings
from payout_service.domain.models import OutboxEvent
from payout_service.infrastructure.database import Database
from payout_service.infrastructure.metrics import OUTBOX_BACKLOG, OUTBOX_EVENTS_FAILED, OUTBOX_EVENTS_PUBLISHED
from payout_service.infrastructure.repositories.outbox import OutboxRepository


logger = structlog.get_logger()


def topic_for(prefix: str, event_type: str) -> str:
    return f"{prefix}.{event_type.lower()}"


def event_envelope(event: OutboxEvent) -> dict[str, Any]:
    return {
        "event_id": event.id,
        "aggregate_type": event.aggregate_type,
        "aggregate_id": event.aggregate_id,
        "event_type": event.event_type,
        "payload": event.payload,
        "timestamp": event.created_at.isoformat(),
    }


class OutboxProcessor:
    """
    Publishes payout outbox rows (PayoutRequested, PayoutCompleted) to Kafka/Redpanda.

    Rows are written in the same transaction as the payout change, so an event
    exists exactly when the change was committed. Failed sends are retried on
    later polls; rows past ``max_retries`` go to the dead letter topic. The
    processor stops after MAX_CONSECUTIVE_FAILURES failed batches in a row.
    """

    MAX_CONSECUTIVE_FAILURES = 10

    def __init__(
        self,
        database: Database,
        batch_size: int | None = None,
        poll_interval: float | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ) -> None:
        self._database = database
        self._batch_size = batch_size or settings.outbox_batch_size
        self._poll_interval = poll_interval or settings.outbox_poll_interval_seconds
        self._max_retries = max_retries or settings.outbox_max_retries
        self._base_delay = base_delay or settings.outbox_base_delay_seconds
        self._max_delay = max_delay or settings.outbox_max_delay_seconds
        self._producer: AIOKafkaProducer | None = None
        self._running = False
        self._topic_prefix = settings.kafka_topic_prefix
        self._consecutive_failures = 0

    async def start(self) -> None:
        """Start the producer and poll the outbox until stopped."""
        self._producer = AIOKafkaProducer(
            bootstrap_servers=settings.redpanda_brokers,
            value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
            acks="all",
            enable_idempotence=True,
        )
        await self._producer.start()
        self._running = True
        self._consecutive_failures = 0
        logger.info("outbox_processor_started", batch_size=self._batch_size)

        try:
            while self._running:
                try:
                    processed_count = await self._process_batch()
                    self._consecutive_failures = 0
                    if processed_count == 0:
                        await asyncio.sleep(self._poll_interval)
                except Exception as e:
                    self._consecutive_failures += 1
                    logger.error(
                        "outbox_processing_error",
                        error=str(e),
                        consecutive_failures=self._consecutive_failures,
                        exc_info=True,
                    )
                    if self._consecutive_failures >= self.MAX_CONSECUTIVE_FAILURES:
                        logger.critical(
                            "outbox_processor_giving_up",
                            consecutive_failures=self._consecutive_failures,
                        )
                        break
                    await asyncio.sleep(self._calculate_backoff_delay(self._consecutive_failures - 1))
        finally:
            await self.stop()

    async def stop(self) -> None:
        self._running = False
        if self._producer:
            await self._producer.stop()
            self._producer = None
        logger.info("outbox_processor_stopped")

    async def _process_batch(self) -> int:
        """Publish one batch of unpublished rows. Returns the number of rows looked at."""
        async with self._database.session() as session:
            outbox_repo = OutboxRepository(session)
            events = await outbox_repo.get_unpublished(self._batch_size)

            if not events:
                return 0

            published_ids: list[str] = []
            dead_letters: list[OutboxEvent] = []

            for event in events:
                if event.retry_count >= self._max_retries:
                    dead_letters.append(event)
                    continue

                if await self._publish_event(event):
                    published_ids.append(event.id)
                    continue

                attempts = await outbox_repo.increment_retry_count(event.id)
                if attempts >= self._max_retries:
                    logger.warning("event_retries_exhausted", event_id=event.id, attempts=attempts)

            if published_ids:
                await outbox_repo.mark_published(published_ids)
                logger.info("batch_published", count=len(published_ids))

            if dead_letters:
                await self._send_to_dlq(dead_letters, outbox_repo)

            await session.commit()
            OUTBOX_BACKLOG.set(await outbox_repo.count_unpublished())

            return len(events)

    async def _publish_event(self, event: OutboxEvent) -> bool:
        if not self._producer:
            return False

        topic = topic_for(self._topic_prefix, event.event_type)
        try:
            await self._producer.send_and_wait(
                topic=topic,
                key=event.aggregate_id,
                value=event_envelope(event),
            )
        except KafkaError as e:
            OUTBOX_EVENTS_FAILED.labels(event_type=event.event_type).inc()
            logger.warning(
                "event_publish_failed",
                event_id=event.id,
                topic=topic,
                error=str(e),
            )
            return False

        OUTBOX_EVENTS_PUBLISHED.labels(event_type=event.event_type).inc()
        logger.info(
            "event_published",
            event_id=event.id,
            topic=topic,
            aggregate_id=event.aggregate_id,
            event_type=event.event_type,
        )
        return True

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with up to 10% jitter, capped at max_delay."""
        delay: float = min(
            self._base_delay * (2**attempt),
            self._max_delay,
        )
        return delay + random.uniform(0, delay * 0.1)

    async def _send_to_dlq(self, events: list[OutboxEvent], outbox_repo: OutboxRepository) -> None:
        if not self._producer:
            return

        dlq_topic = topic_for(self._topic_prefix, "dlq")
        for event in events:
            try:
                await self._producer.send_and_wait(
                    topic=dlq_topic,
                    key=event.aggregate_id,
                    value={
                        **event_envelope(event),
                        "retry_count": event.retry_count,
                        "failed_at": datetime.now(UTC).isoformat(),
                        "error": "max_retries_exceeded",
                    },
                )
            except KafkaError as e:
                logger.error("dlq_publish_failed", event_id=event.id, error=str(e))
                continue

            await outbox_repo.mark_published([event.id])
            logger.warning(
                "event_sent_to_dlq",
                event_id=event.id,
                aggregate_id=event.aggregate_id,
                retry_count=event.retry_count,
            )

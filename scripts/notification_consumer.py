#!/usr/bin/env python3
"""Seller notification consumer.

Consumes payout events from Kafka/Redpanda and turns them into seller
notifications. Delivery belongs to the marketplace notification service;
this worker builds the notification and logs it.
"""
import asyncio
import json
import signal
from decimal import Decimal
from typing import Any

import structlog
from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from payout_service.config import settings
from payout_service.infrastructure.event_publisher import topic_for
from payout_service.logging import configure_logging


logger = structlog.get_logger()

GROUP_ID = "seller-payout-notifications"

TOPICS = [
    topic_for(settings.kafka_topic_prefix, "PayoutRequested"),
    topic_for(settings.kafka_topic_prefix, "PayoutCompleted"),
    topic_for(settings.kafka_topic_prefix, "dlq"),
]


def _format_amount(payload: dict[str, Any]) -> str:
    amount = Decimal(str(payload.get("amount", "0")))
    return f"{amount:,.2f} {payload.get('currency', settings.default_currency)}"


def build_notification(event: dict[str, Any]) -> dict[str, Any] | None:
    """Map a payout event to the notification row the seller should receive."""
    payload = event.get("payload", {})
    event_type = event.get("event_type")

    if event_type == "PayoutRequested":
        return {
            "user_id": payload.get("seller_user_id"),
            "title": "Payout requested",
            "content": f"Your payout request of {_format_amount(payload)} is awaiting approval.",
            "type": "PAYOUT",
            "reference_id": payload.get("payout_request_id"),
            "is_read": False,
        }
    if event_type == "PayoutCompleted":
        return {
            "seller_id": payload.get("seller_id"),
            "title": "Payout completed",
            "content": f"Your payout of {_format_amount(payload)} has been transferred to your account.",
            "type": "PAYOUT",
            "reference_id": payload.get("payout_request_id"),
            "is_read": False,
        }
    return None


async def process_event(topic: str, event: dict[str, Any]) -> None:
    if topic.endswith(".dlq"):
        logger.warning(
            "dead_letter_event_received",
            event_id=event.get("event_id"),
            event_type=event.get("event_type"),
            aggregate_id=event.get("aggregate_id"),
            retry_count=event.get("retry_count"),
            error=event.get("error"),
        )
        return

    notification = build_notification(event)
    if notification is None:
        logger.info(
            "unknown_event_received",
            event_id=event.get("event_id"),
            event_type=event.get("event_type"),
        )
        return

    logger.info(
        "seller_notification_created",
        event_id=event.get("event_id"),
        reference_id=notification["reference_id"],
        title=notification["title"],
    )


async def consume_events() -> None:
    consumer = AIOKafkaConsumer(
        *TOPICS,
        bootstrap_servers=settings.redpanda_brokers,
        group_id=GROUP_ID,
        auto_offset_reset="earliest",
        enable_auto_commit=True,
        value_deserializer=lambda m: json.loads(m.decode("utf-8")),
    )

    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("shutdown_signal_received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await consumer.start()
        logger.info("consumer_started", topics=TOPICS, group_id=GROUP_ID, brokers=settings.redpanda_brokers)

        while not shutdown_event.is_set():
            try:
                result = await consumer.getmany(timeout_ms=1000, max_records=100)
            except KafkaError as e:
                logger.error("kafka_error", error=str(e))
                await asyncio.sleep(1)
                continue

            for topic_partition, messages in result.items():
                for msg in messages:
                    await process_event(topic_partition.topic, msg.value)
    finally:
        await consumer.stop()
        logger.info("consumer_stopped")


async def main() -> None:
    configure_logging(level=settings.log_level, log_format=settings.log_format)
    await consume_events()


if __name__ == "__main__":
    asyncio.run(main())

"""
Async Kafka producer.

Publishes one event type:
  notifications — emitted when a user likes or comments on someone else's
                  post. Consumed by the push-notification sender, which owns
                  delivery (FCM tokens, preferences, retries).

Publishing is best-effort: the like/comment has already been stored, so a
broker outage is logged and counted, never surfaced to the caller.
"""
import json
import logging
import time
from typing import Optional

from aiokafka import AIOKafkaProducer

from app.config import settings
from app.telemetry import NOTIFICATION_ERRORS_TOTAL

logger = logging.getLogger(__name__)

_producer: Optional[AIOKafkaProducer] = None


async def init_kafka() -> None:
    global _producer
    producer = AIOKafkaProducer(
        bootstrap_servers=settings.kafka_bootstrap_servers,
        value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        acks="all",          # wait for all in-sync replicas
        enable_idempotence=True,
    )
    await producer.start()
    _producer = producer
    logger.info(
        "Kafka producer started → %s", settings.kafka_bootstrap_servers
    )


async def stop_kafka() -> None:
    if _producer:
        await _producer.stop()


def get_producer() -> AIOKafkaProducer:
    if _producer is None:
        raise RuntimeError("Kafka producer not initialised")
    return _producer


async def publish_notification(
    recipient_id: str,
    actor_id: str,
    kind: str,
    post_id: Optional[str] = None,
) -> bool:
    """
    Emit a notification event to the 'notifications' topic.

    Schema:
      { recipient_id, actor_id, type, post_id, timestamp }

    Keyed by recipient so one user's notifications stay ordered.
    Returns False if the event could not be published.
    """
    payload = {
        "recipient_id": recipient_id,
        "actor_id": actor_id,
        "type": kind,
        "post_id": post_id,
        "timestamp": int(time.time() * 1000),
    }
    try:
        producer = get_producer()
        await producer.send_and_wait(
            settings.kafka_topic_notifications,
            payload,
            key=recipient_id.encode("utf-8"),
        )
    except Exception as exc:
        logger.warning(
            "Could not publish %s notification for %s: %s", kind, recipient_id, exc
        )
        NOTIFICATION_ERRORS_TOTAL.inc()
        return False
    logger.debug("Published %s notification for recipient=%s", kind, recipient_id)
    return True

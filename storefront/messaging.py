from __future__ import annotations

import datetime as dt
import json
import logging

import pika
import pika.exceptions

from . import config

logger = logging.getLogger(__name__)


def _connect() -> pika.BlockingConnection:
    params = pika.URLParameters(config.RABBITMQ_URL)
    params.heartbeat = 30
    params.blocked_connection_timeout = 30
    params.socket_timeout = 5
    return pika.BlockingConnection(params)


def _publish(routing_key: str, body: bytes) -> None:
    connection = _connect()
    try:
        ch = connection.channel()
        ch.exchange_declare(exchange=config.EVENTS_EXCHANGE, exchange_type="topic", durable=True)
        ch.basic_publish(
            exchange=config.EVENTS_EXCHANGE,
            routing_key=routing_key,
            body=body,
            properties=pika.BasicProperties(
                content_type="application/json",
                delivery_mode=2,  # persistent
            ),
        )
    finally:
        connection.close()


def publish_event(routing_key: str, payload: dict) -> bool:
    """Publish a domain event after the change it describes has been committed.

    Returns False when events are disabled or the broker could not be reached;
    the committed change stands either way.
    """
    if not config.EVENTS_ENABLED:
        return False

    event = {
        "event": routing_key,
        "occurred_at": dt.datetime.now(dt.timezone.utc).isoformat().replace("+00:00", "Z"),
        **payload,
    }
    body = json.dumps(event, ensure_ascii=False, default=str).encode("utf-8")
    try:
        _publish(routing_key, body)
    except (pika.exceptions.AMQPError, OSError):
        logger.exception("Failed to publish %s", routing_key)
        return False
    return True

from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/mq.py
Purpose: RabbitMQ connectivity and queue topology for the optimizer worker.
Key responsibilities:
- Declare the events exchange and the queue.item_added queue.
- Publish queue.optimized events.
"""

import json
from typing import Any

import aio_pika
from aio_pika import ExchangeType

ITEM_ADDED_KEY = "queue.item_added"
OPTIMIZED_KEY = "queue.optimized"


async def connect(rabbit_url: str) -> aio_pika.RobustConnection:
    """Connect to RabbitMQ with robust reconnect behavior."""
    return await aio_pika.connect_robust(rabbit_url)


async def setup_topology(channel: aio_pika.abc.AbstractRobustChannel, exchange_name: str):
    """Declare exchange/queue and bind the item-added routing key."""
    exchange = await channel.declare_exchange(exchange_name, ExchangeType.TOPIC, durable=True)

    queue_item_added = await channel.declare_queue("queue-optimizer.item_added", durable=True)
    await queue_item_added.bind(exchange, routing_key=ITEM_ADDED_KEY)

    return exchange, queue_item_added


async def publish_event(exchange: aio_pika.abc.AbstractExchange, routing_key: str, payload: dict[str, Any]) -> None:
    """Publish a JSON message to the configured exchange."""
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    msg = aio_pika.Message(
        body=body,
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
    )
    await exchange.publish(msg, routing_key=routing_key)

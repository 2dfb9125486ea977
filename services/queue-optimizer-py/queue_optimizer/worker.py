from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/worker.py
Purpose: RabbitMQ consumer that re-optimizes queues as work accumulates.
Key responsibilities:
- Consume queue.item_added events.
- Apply the pending-count threshold and launch detached GA runs.
- Publish queue.optimized once a detached run finishes.
Key entrypoints:
- OptimizerWorker.run()
Config/env vars:
- RABBITMQ_*, MYSQL_*, REOPTIMIZE_THRESHOLD, GA_*
"""

import asyncio
from datetime import datetime, timezone
import json
import logging
from typing import Any

import aio_pika

from queue_optimizer.db import MySQLAssignmentSink, MySQLDataProvider
from queue_optimizer.mq import OPTIMIZED_KEY, connect, publish_event, setup_topology
from queue_optimizer.orchestrator import AssignmentSink, DataProvider
from queue_optimizer.schemas import MACHINE_TYPES, OptimizationResult
from queue_optimizer.settings import rabbit_url, settings
from queue_optimizer.trigger import schedule_reoptimization

logger = logging.getLogger("queue-optimizer-worker")


def optimized_event(result: OptimizationResult) -> dict[str, Any]:
    """Build the queue.optimized payload for a finished run."""
    return {
        "event_type": OPTIMIZED_KEY,
        "machine_type": result.machine_type,
        "generations": result.generations,
        "execution_time_ms": result.execution_time_ms,
        "fitness": result.fitness.model_dump(),
        "assignments": [a.model_dump() for a in result.assignments],
        "failed_commits": list(result.failed_commits),
        "ts_utc": datetime.now(timezone.utc).isoformat(),
    }


class OptimizerWorker:
    """RabbitMQ worker that turns queue additions into background GA runs."""
    def __init__(self, provider: DataProvider, sink: AssignmentSink) -> None:
        self.provider = provider
        self.sink = sink
        self.exchange: aio_pika.abc.AbstractExchange | None = None

    async def run(self) -> None:
        """Connect to RabbitMQ, declare queues, and start consuming events."""
        connection = await connect(rabbit_url())
        channel = await connection.channel()
        await channel.set_qos(prefetch_count=20)

        exchange, q_item_added = await setup_topology(channel, settings.exchange_name)
        self.exchange = exchange

        await q_item_added.consume(self._on_message)

        logger.info("queue optimizer worker started")
        await asyncio.Future()

    async def _on_message(self, message: aio_pika.IncomingMessage) -> None:
        """Handle queue.item_added with safe ACK behavior."""
        try:
            payload = json.loads(message.body.decode("utf-8"))
        except json.JSONDecodeError:
            logger.warning("dropping invalid JSON message routing_key=%s", message.routing_key)
            await message.ack()
            return

        try:
            await self.handle_item_added(payload)
        except Exception as exc:  # noqa: BLE001
            logger.exception("handler error routing_key=%s err=%s", message.routing_key, exc)
        finally:
            await message.ack()

    async def handle_item_added(self, event: dict[str, Any]) -> asyncio.Task | None:
        """Schedule a detached re-optimization for the event's machine type."""
        machine_type = str(event.get("machine_type", "")).upper()
        if machine_type not in MACHINE_TYPES:
            logger.warning("queue.item_added with unknown machine_type payload=%s", event)
            return None
        return await schedule_reoptimization(machine_type, self.provider, self.sink, on_result=self._publish_result)

    async def _publish_result(self, result: OptimizationResult) -> None:
        """Announce a finished run on the events exchange."""
        if self.exchange is None:
            return
        await publish_event(self.exchange, OPTIMIZED_KEY, optimized_event(result))
        logger.info(
            "queue optimized machine_type=%s assignments=%s failed=%s",
            result.machine_type,
            len(result.assignments),
            len(result.failed_commits),
        )


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s queue-optimizer-worker %(message)s",
    )
    worker = OptimizerWorker(MySQLDataProvider(), MySQLAssignmentSink())
    await worker.run()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()

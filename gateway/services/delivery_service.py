"""Webhook delivery: posts payment outcomes to the caller's callback URL.

Each delivery runs as a detached asyncio task: up to MAX_DELIVERY_ATTEMPTS
POSTs with a per-attempt timeout and a linear backoff between attempts. The
outcome of every attempt is written to the transaction; nothing is raised to
whoever initiated the payment.

In-flight deliveries are tracked per subscription so they can be told to stop
between attempts once the subscription no longer needs them.
"""

import asyncio
import logging
from functools import partial
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gateway.constants import (
    DELIVERED_RESPONSE,
    DELIVERY_BACKOFF_SECONDS,
    DELIVERY_TIMEOUT,
    MAX_DELIVERY_ATTEMPTS,
)
from gateway.db.session import async_session_factory
from gateway.http_client import get_http_client
from gateway.models.transaction import PaymentTransaction

logger = logging.getLogger(__name__)

# subscription id -> {delivery task: its cancellation flag}
_in_flight: dict[str, dict[asyncio.Task, asyncio.Event]] = {}


def _describe(error: httpx.HTTPError) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return str(error) or error.__class__.__name__


async def _record_attempt(db: AsyncSession, transaction: PaymentTransaction, attempt: int, response: str) -> None:
    transaction.attempts = attempt
    transaction.response = response
    await db.commit()


async def _sleep_unless_cancelled(cancelled: asyncio.Event | None, delay: float) -> bool:
    """Wait ``delay`` seconds. Returns True as soon as ``cancelled`` is set."""
    if cancelled is None:
        await asyncio.sleep(delay)
        return False
    if cancelled.is_set():
        return True
    try:
        await asyncio.wait_for(cancelled.wait(), timeout=delay)
    except TimeoutError:
        return cancelled.is_set()
    return True


async def deliver_webhook(
    transaction_id: str,
    payload: dict[str, Any],
    *,
    cancelled: asyncio.Event | None = None,
    client: httpx.AsyncClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    backoff_seconds: float = DELIVERY_BACKOFF_SECONDS,
) -> None:
    """Deliver ``payload`` to the transaction's webhook URL, retrying on failure."""
    session_factory = session_factory or async_session_factory
    client = client or get_http_client()

    async with session_factory() as db:
        transaction = await db.get(PaymentTransaction, transaction_id)
        if not transaction:
            logger.error("Transaction %s not found, skipping webhook delivery", transaction_id)
            return

        for attempt in range(1, MAX_DELIVERY_ATTEMPTS + 1):
            logger.info(
                "Sending webhook attempt %d/%d for transaction %s",
                attempt, MAX_DELIVERY_ATTEMPTS, transaction_id,
            )
            try:
                resp = await client.post(transaction.webhook_url, json=payload, timeout=DELIVERY_TIMEOUT)
                resp.raise_for_status()
            except httpx.HTTPError as e:
                error = _describe(e)
                logger.warning("Webhook attempt %d failed for transaction %s: %s", attempt, transaction_id, error)
                await _record_attempt(db, transaction, attempt, f"Attempt {attempt} failed: {error}")

                if attempt == MAX_DELIVERY_ATTEMPTS:
                    break
                if await _sleep_unless_cancelled(cancelled, attempt * backoff_seconds):
                    await _record_attempt(db, transaction, attempt, f"Delivery cancelled after attempt {attempt}")
                    logger.info("Webhook delivery for transaction %s cancelled after attempt %d", transaction_id, attempt)
                    return
                continue

            await _record_attempt(db, transaction, attempt, DELIVERED_RESPONSE)
            logger.info("Webhook delivered for transaction %s on attempt %d", transaction_id, attempt)
            return

    logger.error(
        "Failed to deliver webhook after %d attempts for transaction %s",
        MAX_DELIVERY_ATTEMPTS, transaction_id,
    )


def _forget(subscription_id: str, task: asyncio.Task) -> None:
    tasks = _in_flight.get(subscription_id)
    if tasks is None:
        return
    tasks.pop(task, None)
    if not tasks:
        _in_flight.pop(subscription_id, None)
    if not task.cancelled() and task.exception() is not None:
        logger.error("Webhook delivery task crashed: %r", task.exception())


def schedule_delivery(transaction_id: str, subscription_id: str, payload: dict[str, Any]) -> asyncio.Task:
    """Start delivery in the background and return immediately."""
    cancelled = asyncio.Event()
    task = asyncio.create_task(
        deliver_webhook(transaction_id, payload, cancelled=cancelled),
        name=f"webhook-{transaction_id}",
    )
    _in_flight.setdefault(subscription_id, {})[task] = cancelled
    task.add_done_callback(partial(_forget, subscription_id))
    return task


def cancel_deliveries(subscription_id: str) -> int:
    """Ask every in-flight delivery of a subscription to stop before its next attempt."""
    count = 0
    for cancelled in _in_flight.get(subscription_id, {}).values():
        if not cancelled.is_set():
            cancelled.set()
            count += 1
    if count:
        logger.info("Cancelling %d webhook deliveries for subscription %s", count, subscription_id)
    return count


def pending_deliveries(subscription_id: str | None = None) -> list[asyncio.Task]:
    if subscription_id is not None:
        return list(_in_flight.get(subscription_id, {}))
    return [task for tasks in _in_flight.values() for task in tasks]


async def shutdown_deliveries() -> None:
    """Cancel outstanding delivery tasks. Call during app shutdown."""
    tasks = pending_deliveries()
    if not tasks:
        return
    logger.warning("Shutting down with %d webhook deliveries in flight", len(tasks))
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)

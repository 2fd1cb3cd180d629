"""
Outbound notification queue (thank-you messages for reviewers).

The core only records intent. Delivery is done by an external worker that
calls claim() / mark_sent() / mark_failed(), or by deliver_pending() with
an injected sender. A claim expires after claim_ttl_s; a message whose
worker died mid-delivery is then claimed again. Failed messages stay
failed until a moderator requeues them; there is no automatic retry policy.

State machine:
    pending --mark_sent--> sent        (terminal)
    pending --mark_failed--> failed --requeue--> pending
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from services.amenities.config import settings
from services.amenities.domain import ContactType, MessageStatus, QueuedMessage
from services.amenities.store.base import Store

logger = logging.getLogger(__name__)

Sender = Callable[[QueuedMessage], Awaitable[None]]


class NotificationQueue:

    def __init__(self, store: Store, claim_ttl_s: Optional[int] = None) -> None:
        self.store = store
        self.claim_ttl_s = claim_ttl_s if claim_ttl_s is not None else settings.message_claim_ttl_s

    async def enqueue(
        self, review_id: int, contact_info: str, contact_type: ContactType, body: str
    ) -> QueuedMessage:
        message = await self.store.enqueue_message(review_id, contact_info, contact_type, body)
        logger.debug("Queued %s message %d for review %d", contact_type.value, message.id, review_id)
        return message

    async def pending(self) -> list[QueuedMessage]:
        return await self.store.pending_messages()

    async def claim(self, limit: int = 10) -> list[QueuedMessage]:
        """
        Claim up to `limit` pending messages for delivery. A claim older than
        claim_ttl_s belongs to a worker that never reported back, so the
        message is handed out again.
        """
        now = datetime.now(timezone.utc)
        return await self.store.claim_messages(limit, now, now - timedelta(seconds=self.claim_ttl_s))

    async def mark_sent(self, message_id: int) -> bool:
        """False if the message is unknown or was already sent."""
        return await self.store.mark_message_sent(message_id, datetime.now(timezone.utc))

    async def mark_failed(self, message_id: int, error_message: str) -> bool:
        ok = await self.store.mark_message_failed(message_id, error_message)
        if ok:
            logger.warning("Message %d failed: %s", message_id, error_message)
        return ok

    async def requeue(self, message_id: int) -> bool:
        """Move a failed message back to pending. False for any other state."""
        return await self.store.requeue_message(message_id)

    async def count_pending(self) -> int:
        return await self.store.count_messages(MessageStatus.pending)


@dataclass
class DeliveryReport:
    sent: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


async def deliver_pending(queue: NotificationQueue, sender: Sender, limit: int = 10) -> DeliveryReport:
    """
    One delivery pass: claim up to `limit` messages, hand each to `sender`,
    and record the outcome. A sender exception marks that message failed
    and the pass continues with the next one.
    """
    report = DeliveryReport()
    for message in await queue.claim(limit):
        try:
            await sender(message)
        except Exception as e:
            await queue.mark_failed(message.id, f"{type(e).__name__}: {e}")
            report.failed.append(message.id)
            continue
        await queue.mark_sent(message.id)
        report.sent.append(message.id)

    if report.sent or report.failed:
        logger.info("Delivery pass: %d sent, %d failed", len(report.sent), len(report.failed))
    return report

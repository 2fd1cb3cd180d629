"""
Moderation ledger -- append-only record of every moderator action.

Entries are never updated or deleted. Ordering is insertion order
(ids increase monotonically per store).
"""

import logging
from typing import Optional

from services.amenities.domain import AdminAction
from services.amenities.errors import LedgerEntryError
from services.amenities.store.base import Store

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 50


class ModerationLedger:
    """
    Append-only ledger of moderator actions.
    Async-compatible; persistence is delegated to the store.
    """

    def __init__(self, store: Store):
        self.store = store

    async def record(
        self,
        moderator_id: str,
        action: str,
        target_type: str,
        target_id: int,
        reason: Optional[str] = None,
    ) -> AdminAction:
        """
        Append a ledger entry.

        Args:
            moderator_id: ID of the moderator performing the action
            action: Action label (e.g. 'moderate_review_approved')
            target_type: Kind of entity affected (e.g. 'review')
            target_id: ID of the affected entity
            reason: Free-text reason, usually the moderation note

        Raises:
            LedgerEntryError: moderator_id, action or target_type is blank
        """
        for name, value in (("moderator_id", moderator_id), ("action", action), ("target_type", target_type)):
            if not value or not str(value).strip():
                raise LedgerEntryError(f"{name} is required")
        if target_id is None:
            raise LedgerEntryError("target_id is required")

        entry = await self.store.append_admin_action(
            moderator_id=moderator_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            reason=reason,
        )
        logger.info("Moderator %s: %s %s#%s", moderator_id, action, target_type, target_id)
        return entry

    async def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[AdminAction]:
        """Most recent entries, newest first."""
        return await self.store.recent_admin_actions(limit)

"""
Invalidation coordinator for writes on persons and groups.

Every successful write awaits one of the hooks below before it returns, so a
read that starts after the write has completed recomputes from the store.

Group writes clear the whole ancestor and subtree key spaces instead of
targeting affected nodes: one structural edit can change the chains and
subtrees of arbitrarily many other groups, and a prefix sweep cannot miss a
key that was derived from the old tree.
"""

import logging
from collections import deque
from datetime import datetime
from enum import Enum
from typing import Deque, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from ..cache.keys import CacheKeyBuilder, CacheKeyPrefix
from ..cache.manager import CacheManager

logger = logging.getLogger(__name__)


class WriteKind(str, Enum):
    """Kinds of write that trigger invalidation."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class InvalidationEventModel(BaseModel):
    """Record of the cache entries cleared after one write."""

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    entity: str = Field(..., description="'person' or 'group'")
    kind: WriteKind
    entity_id: int
    keys: List[str] = Field(default_factory=list, description="Exact keys deleted")
    prefixes: List[str] = Field(default_factory=list, description="Key prefixes swept")
    entries_removed: int = 0
    touched_groups: List[int] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


class InvalidationCoordinator:
    """
    Removes cache entries affected by writes and keeps a history of what was cleared.
    """

    def __init__(self, cache: CacheManager, history_size: int = 100):
        self.cache = cache
        self.history: Deque[InvalidationEventModel] = deque(maxlen=history_size)

    async def _apply(self, event: InvalidationEventModel) -> InvalidationEventModel:
        removed = 0
        for key in event.keys:
            removed += int(await self.cache.invalidate(key))
        for prefix in event.prefixes:
            removed += await self.cache.invalidate_prefix(prefix)
        event.entries_removed = removed

        self.history.append(event)
        logger.info(
            f"Invalidated {removed} cache entries after {event.entity} {event.kind.value} "
            f"(id={event.entity_id})"
        )
        return event

    async def on_person_write(
        self,
        kind: WriteKind,
        person_id: int,
        old_group_id: Optional[int] = None,
        new_group_id: Optional[int] = None,
    ) -> InvalidationEventModel:
        """
        Invalidate after a person was created, updated or deleted.

        Clears all_persons, the person's own entry and every subtree entry
        (subtrees list persons). When an update moved the person to another
        group, the gateway has refreshed updatedAt of both groups, so
        all_groups is cleared as well.
        """
        event = InvalidationEventModel(
            entity="person",
            kind=kind,
            entity_id=person_id,
            keys=[CacheKeyPrefix.ALL_PERSONS.value, CacheKeyBuilder.person_key(person_id)],
            prefixes=[CacheKeyPrefix.GROUPS_BELOW.value],
        )

        if kind == WriteKind.UPDATE and old_group_id != new_group_id:
            event.touched_groups = [gid for gid in (old_group_id, new_group_id) if gid is not None]
            # Group rows in all_groups carry updatedAt
            event.keys.append(CacheKeyPrefix.ALL_GROUPS.value)

        return await self._apply(event)

    async def on_group_write(
        self,
        kind: WriteKind,
        group_id: int,
        old_parent_id: Optional[int] = None,
        new_parent_id: Optional[int] = None,
    ) -> InvalidationEventModel:
        """
        Invalidate after a group was created, updated or deleted.

        Clears all_groups and sweeps the subtree and ancestor key spaces.
        Deleting a group also unassigns its members in the store, so person
        entries are cleared too. A re-parenting update records the old and the
        new parent, whose updatedAt the gateway refreshed.
        """
        event = InvalidationEventModel(
            entity="group",
            kind=kind,
            entity_id=group_id,
            keys=[CacheKeyPrefix.ALL_GROUPS.value],
            prefixes=[CacheKeyPrefix.GROUPS_BELOW.value, CacheKeyPrefix.GROUP_ABOVE.value],
        )

        if kind == WriteKind.DELETE:
            event.keys.append(CacheKeyPrefix.ALL_PERSONS.value)
            event.prefixes.append(CacheKeyPrefix.PERSON_ID.value)

        if kind == WriteKind.UPDATE and old_parent_id != new_parent_id:
            event.touched_groups = [gid for gid in (old_parent_id, new_parent_id) if gid is not None]

        return await self._apply(event)

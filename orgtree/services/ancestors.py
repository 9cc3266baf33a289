"""
Ancestor traversal: the chain of parent groups above a group.

The chain for a group is built by following parentGroupId to the root and is
cached as one unit under ``group_above_<id>``.
"""

import logging
from typing import Any, Dict, FrozenSet, Optional

from ..cache.keys import CacheKeyBuilder
from ..cache.manager import CacheManager
from ..database.gateway import TreeStoreGateway
from ..errors import GroupNotFoundError, HierarchyCycleError, PersonNotFoundError, PersonUnassignedError
from ..models import AncestorNodeModel, GroupModel

logger = logging.getLogger(__name__)


class AncestorTraversal:
    """
    Builds and caches ancestor chains.

    Example result for group 2 whose parent is root group 1:

        {"id": 2, "groupName": "Child",
         "parentGroup": [{"id": 1, "groupName": "Root", "parentGroup": []}]}
    """

    def __init__(self, cache: CacheManager, gateway: TreeStoreGateway):
        self.cache = cache
        self.gateway = gateway

    async def fetch_ancestors(self, group_id: int) -> AncestorNodeModel:
        """
        Get the ancestor chain of a group.

        Raises:
            GroupNotFoundError: the group does not exist (never cached)
            HierarchyCycleError: the stored parent pointers loop
        """
        key = CacheKeyBuilder.ancestors_key(group_id)

        async def compute() -> Dict[str, Any]:
            group = await self.gateway.get_group_by_id(group_id)
            if group is None:
                raise GroupNotFoundError(group_id)
            node = await self._build_chain(group, frozenset())
            return node.model_dump(mode="json")

        data = await self.cache.get_or_compute(key, compute)
        return AncestorNodeModel.model_validate(data)

    async def _build_chain(self, group: GroupModel, seen: FrozenSet[int]) -> AncestorNodeModel:
        if group.id in seen:
            logger.error(f"Parent pointers loop back to group {group.id}")
            raise HierarchyCycleError(group.id)

        node = AncestorNodeModel(id=group.id, groupName=group.groupName)

        parent = await self._load_parent(group)
        if parent is not None:
            node.parentGroup.append(await self._build_chain(parent, seen | {group.id}))

        return node

    async def _load_parent(self, group: GroupModel) -> Optional[GroupModel]:
        # A null or dangling parent pointer ends the chain
        if group.parentGroupId is None:
            return None
        return await self.gateway.get_group_by_id(group.parentGroupId)

    async def fetch_ancestors_of_person(self, person_id: int) -> AncestorNodeModel:
        """
        Get the ancestor chain starting at the group a person belongs to.

        The person lookup itself is not cached.

        Raises:
            PersonNotFoundError: the person does not exist
            PersonUnassignedError: the person has no group
            GroupNotFoundError: the person's group does not exist
        """
        person = await self.gateway.get_person_by_id(person_id)
        if person is None:
            raise PersonNotFoundError(person_id)
        if person.groupId is None:
            raise PersonUnassignedError(person_id)

        return await self.fetch_ancestors(person.groupId)

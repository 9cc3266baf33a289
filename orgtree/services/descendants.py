"""
Descendant traversal: the filtered subtree below a group.

Each node lists the group's own members that match the filters and one child
node per direct child group. The whole subtree for a (group, filters) pair is
cached as one entry under ``groups_below_<id>_<json filters>``; child
subtrees are not cached separately.

Filter order is part of the key. ``[{"jobTitle":"eng"},{"firstName":"Ann"}]``
and the reversed sequence select the same persons but occupy two entries,
unless the traversal is created with ``canonicalize_filters=True``.
"""

import logging
from typing import Any, Dict, FrozenSet, List, Sequence

from ..cache.keys import CacheKeyBuilder, FilterInput
from ..cache.manager import CacheManager
from ..database.gateway import TreeStoreGateway
from ..errors import GroupNotFoundError, HierarchyCycleError
from ..models import FilterCriterion, PersonSummaryModel, SubtreeNodeModel

logger = logging.getLogger(__name__)


class DescendantTraversal:
    """Builds and caches filtered subtrees."""

    def __init__(
        self,
        cache: CacheManager,
        gateway: TreeStoreGateway,
        canonicalize_filters: bool = False,
    ):
        """
        Args:
            cache: Cache-aside engine
            gateway: Tree store gateway
            canonicalize_filters: Sort filter criteria before building the cache key
        """
        self.cache = cache
        self.gateway = gateway
        self.canonicalize_filters = canonicalize_filters

    def cache_key(self, group_id: int, filters: Sequence[FilterInput]) -> str:
        return CacheKeyBuilder.subtree_key(group_id, filters, canonicalize=self.canonicalize_filters)

    async def fetch_subtree(
        self,
        group_id: int,
        filters: Sequence[FilterInput] = (),
    ) -> SubtreeNodeModel:
        """
        Get the subtree rooted at a group with persons filtered at every level.

        Args:
            group_id: Root of the subtree
            filters: Equality criteria a person must all satisfy; empty keeps everyone

        Raises:
            GroupNotFoundError: the group, or a group found while descending,
                does not exist. A partial tree is never returned or cached.
            HierarchyCycleError: the stored parent pointers loop below the group
        """
        criteria = [
            item if isinstance(item, FilterCriterion) else FilterCriterion.model_validate(item)
            for item in filters
        ]
        key = self.cache_key(group_id, criteria)

        async def compute() -> Dict[str, Any]:
            node = await self._build_subtree(group_id, criteria, frozenset())
            return node.model_dump(mode="json")

        data = await self.cache.get_or_compute(key, compute)
        return SubtreeNodeModel.model_validate(data)

    async def _build_subtree(
        self,
        group_id: int,
        filters: List[FilterCriterion],
        seen: FrozenSet[int],
    ) -> SubtreeNodeModel:
        if group_id in seen:
            logger.error(f"Parent pointers loop back to group {group_id}")
            raise HierarchyCycleError(group_id)

        group = await self.gateway.get_group_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)

        members = await self.gateway.get_persons_by_group(group_id, filters)
        node = SubtreeNodeModel(
            id=group.id,
            groupName=group.groupName,
            persons=[
                PersonSummaryModel(
                    id=member.id,
                    firstName=member.firstName,
                    lastName=member.lastName,
                    jobTitle=member.jobTitle,
                )
                for member in members
            ],
        )

        for child in await self.gateway.get_child_groups(group_id):
            # A child that vanished mid-walk aborts the whole subtree
            node.groups.append(await self._build_subtree(child.id, filters, seen | {group_id}))

        logger.debug(
            f"Built subtree node {group_id}: {len(node.persons)} persons, {len(node.groups)} child groups"
        )
        return node

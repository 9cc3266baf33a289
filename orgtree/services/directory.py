"""
Org directory: the operations behind the persons and groups endpoints.

Reads go through the cache-aside engine (aggregate lists, single persons,
ancestor chains, subtrees). Writes go to the store and then await the
invalidation coordinator, so the cache is clean when a write returns.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..cache.keys import CacheKeyBuilder, CacheKeyPrefix, FilterInput
from ..cache.manager import CacheManager
from ..database.gateway import TreeStoreGateway
from ..errors import PersonNotFoundError
from ..models import (
    AncestorNodeModel,
    GroupCreateModel,
    GroupModel,
    GroupUpdateModel,
    PersonCreateModel,
    PersonModel,
    PersonUpdateModel,
    SubtreeNodeModel,
)
from .ancestors import AncestorTraversal
from .descendants import DescendantTraversal
from .invalidation import InvalidationCoordinator, WriteKind

logger = logging.getLogger(__name__)


class OrgDirectory:
    """
    Facade wiring the cache, the store gateway, both traversals and the
    invalidation coordinator together.
    """

    def __init__(
        self,
        cache: CacheManager,
        gateway: TreeStoreGateway,
        canonicalize_filters: bool = False,
    ):
        self.cache = cache
        self.gateway = gateway
        self.ancestors = AncestorTraversal(cache, gateway)
        self.descendants = DescendantTraversal(cache, gateway, canonicalize_filters=canonicalize_filters)
        self.invalidation = InvalidationCoordinator(cache)

    # -- persons ----------------------------------------------------------

    async def list_persons(self) -> List[PersonModel]:
        async def compute() -> List[Dict[str, Any]]:
            persons = await self.gateway.list_persons()
            return [person.model_dump(mode="json") for person in persons]

        data = await self.cache.get_or_compute(CacheKeyPrefix.ALL_PERSONS.value, compute)
        return [PersonModel.model_validate(item) for item in data]

    async def get_person(self, person_id: int) -> PersonModel:
        async def compute() -> Dict[str, Any]:
            person = await self.gateway.get_person_by_id(person_id)
            if person is None:
                raise PersonNotFoundError(person_id)
            return person.model_dump(mode="json")

        data = await self.cache.get_or_compute(CacheKeyBuilder.person_key(person_id), compute)
        return PersonModel.model_validate(data)

    async def create_person(self, data: PersonCreateModel) -> PersonModel:
        person = await self.gateway.create_person(data)
        await self.invalidation.on_person_write(WriteKind.CREATE, person.id, new_group_id=person.groupId)
        return person

    async def update_person(self, person_id: int, data: PersonUpdateModel) -> PersonModel:
        before, after = await self.gateway.update_person(person_id, data)
        await self.invalidation.on_person_write(
            WriteKind.UPDATE,
            person_id,
            old_group_id=before.groupId,
            new_group_id=after.groupId,
        )
        return after

    async def delete_person(self, person_id: int) -> PersonModel:
        person = await self.gateway.delete_person(person_id)
        await self.invalidation.on_person_write(WriteKind.DELETE, person_id, old_group_id=person.groupId)
        return person

    async def get_groups_above_person(self, person_id: int) -> AncestorNodeModel:
        return await self.ancestors.fetch_ancestors_of_person(person_id)

    # -- groups -----------------------------------------------------------

    async def list_groups(self) -> List[GroupModel]:
        async def compute() -> List[Dict[str, Any]]:
            groups = await self.gateway.list_groups()
            return [group.model_dump(mode="json") for group in groups]

        data = await self.cache.get_or_compute(CacheKeyPrefix.ALL_GROUPS.value, compute)
        return [GroupModel.model_validate(item) for item in data]

    async def get_group_subtree(self, group_id: int, filters: Sequence[FilterInput] = ()) -> SubtreeNodeModel:
        return await self.descendants.fetch_subtree(group_id, filters)

    async def get_group_ancestors(self, group_id: int) -> AncestorNodeModel:
        return await self.ancestors.fetch_ancestors(group_id)

    async def create_group(self, data: GroupCreateModel) -> GroupModel:
        group = await self.gateway.create_group(data)
        await self.invalidation.on_group_write(WriteKind.CREATE, group.id, new_parent_id=group.parentGroupId)
        return group

    async def update_group(self, group_id: int, data: GroupUpdateModel) -> GroupModel:
        before, after = await self.gateway.update_group(group_id, data)
        await self.invalidation.on_group_write(
            WriteKind.UPDATE,
            group_id,
            old_parent_id=before.parentGroupId,
            new_parent_id=after.parentGroupId,
        )
        return after

    async def delete_group(self, group_id: int) -> GroupModel:
        group = await self.gateway.delete_group(group_id)
        await self.invalidation.on_group_write(WriteKind.DELETE, group_id, old_parent_id=group.parentGroupId)
        return group

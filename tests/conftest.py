"""
Shared fixtures: an in-memory sqlite store, the in-process cache and a
directory wired to both.
"""

from collections import Counter
from datetime import datetime

import pytest
import pytest_asyncio

from orgtree.cache.manager import CacheManager
from orgtree.database.config import initialize_database
from orgtree.database.gateway import TreeStoreGateway
from orgtree.models import GroupCreateModel, PersonCreateModel
from orgtree.services.directory import OrgDirectory


class CountingGateway(TreeStoreGateway):
    """Gateway that records how often each read is issued."""

    def __init__(self, db_config):
        super().__init__(db_config)
        self.calls = Counter()

    async def get_group_by_id(self, group_id):
        self.calls["get_group_by_id"] += 1
        return await super().get_group_by_id(group_id)

    async def get_child_groups(self, parent_id):
        self.calls["get_child_groups"] += 1
        return await super().get_child_groups(parent_id)

    async def get_persons_by_group(self, group_id, filters=()):
        self.calls["get_persons_by_group"] += 1
        return await super().get_persons_by_group(group_id, filters)

    async def get_person_by_id(self, person_id):
        self.calls["get_person_by_id"] += 1
        return await super().get_person_by_id(person_id)

    @property
    def total_reads(self):
        return sum(self.calls.values())


class FakeClock:
    """Manually advanced time source for expiry tests."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now


@pytest.fixture
def db_config():
    config = initialize_database("sqlite:///:memory:")
    yield config
    config.close()


@pytest.fixture
def gateway(db_config):
    return CountingGateway(db_config)


@pytest.fixture
def cache():
    return CacheManager(client=None)


@pytest.fixture
def directory(cache, gateway):
    return OrgDirectory(cache, gateway)


@pytest_asyncio.fixture
async def org(directory):
    """
    Small tree used by most hierarchy tests:

        Root (Carol, CEO)
        ├── Engineering (Alice, Engineer; Bob, Designer)
        │   └── Platform (Dave, Engineer)
        └── Sales (Erin, Engineer)
    """
    root = await directory.create_group(GroupCreateModel(groupName="Root"))
    engineering = await directory.create_group(GroupCreateModel(groupName="Engineering", parentGroupId=root.id))
    platform = await directory.create_group(GroupCreateModel(groupName="Platform", parentGroupId=engineering.id))
    sales = await directory.create_group(GroupCreateModel(groupName="Sales", parentGroupId=root.id))

    people = {}
    for first, last, title, group in (
        ("Carol", "King", "CEO", root),
        ("Alice", "Smith", "Engineer", engineering),
        ("Bob", "Jones", "Designer", engineering),
        ("Dave", "Brown", "Engineer", platform),
        ("Erin", "White", "Engineer", sales),
    ):
        people[first] = await directory.create_person(
            PersonCreateModel(firstName=first, lastName=last, jobTitle=title, groupId=group.id)
        )

    return {
        "root": root,
        "engineering": engineering,
        "platform": platform,
        "sales": sales,
        "people": people,
    }

"""
Tree store gateway over the relational database.

Exposes the narrow read contract the traversals consume (point lookups,
children by parent, persons by group with filters) and the write operations
used by the directory. Every method runs in its own session; a write and its
precondition checks share one transaction.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from .config import DatabaseConfig
from .models import Group, Person
from ..errors import (
    GroupNotFoundError,
    PersonNotFoundError,
    StructuralConflictError,
    ValidationError,
)
from ..models import (
    FilterCriterion,
    GroupModel,
    GroupCreateModel,
    GroupUpdateModel,
    PersonModel,
    PersonCreateModel,
    PersonUpdateModel,
)

logger = logging.getLogger(__name__)


def find_descendant_ids(session: Session, group_id: int) -> Set[int]:
    """
    Collect the ids of a group and every group below it.

    Runs a recursive query over parentGroupId. UNION (not UNION ALL) keeps the
    query finite even if the stored tree already contains a cycle.

    Args:
        session: Open session; the result reflects that transaction's view
        group_id: Root of the closure

    Returns:
        Set of group ids including group_id itself
    """
    descendants = (
        session.query(Group.id)
        .filter(Group.id == group_id)
        .cte(name="descendants", recursive=True)
    )
    descendants = descendants.union(
        session.query(Group.id).join(descendants, Group.parentGroupId == descendants.c.id)
    )
    return {row.id for row in session.query(descendants.c.id).all()}


def ensure_acyclic_move(session: Session, group_id: int, new_parent_id: Optional[int]) -> None:
    """
    Reject moving group_id under new_parent_id when that would form a cycle.

    Raises:
        StructuralConflictError: new_parent_id is the group itself or one of its descendants
    """
    if new_parent_id is None:
        return

    if new_parent_id == group_id:
        raise StructuralConflictError("A group cannot be its own parent.")

    if new_parent_id in find_descendant_ids(session, group_id):
        logger.info(f"Rejected moving group {group_id} under its descendant {new_parent_id}")
        raise StructuralConflictError()


def touch_groups(session: Session, group_ids: Iterable[Optional[int]]) -> int:
    """
    Refresh updatedAt on the given groups, skipping None and missing ids.

    Runs inside the caller's transaction, so the refresh commits or rolls
    back together with the write that moved a person or a group.

    Returns:
        Number of groups updated
    """
    ids = {group_id for group_id in group_ids if group_id is not None}
    if not ids:
        return 0
    return (
        session.query(Group)
        .filter(Group.id.in_(ids))
        .update({Group.updatedAt: datetime.now()}, synchronize_session=False)
    )


class TreeStoreGateway:
    """
    Read and write access to groups and persons.

    Rows are returned as Pydantic models detached from the session.
    """

    def __init__(self, db_config: DatabaseConfig):
        self.db = db_config

    # -- reads ------------------------------------------------------------

    async def get_group_by_id(self, group_id: int) -> Optional[GroupModel]:
        with self.db.get_session_context() as session:
            group = session.get(Group, group_id)
            return GroupModel.model_validate(group) if group else None

    async def get_child_groups(self, parent_id: int) -> List[GroupModel]:
        with self.db.get_session_context() as session:
            children = (
                session.query(Group)
                .filter(Group.parentGroupId == parent_id)
                .order_by(Group.id)
                .all()
            )
            return [GroupModel.model_validate(child) for child in children]

    async def get_persons_by_group(
        self,
        group_id: int,
        filters: Sequence[FilterCriterion] = (),
    ) -> List[PersonModel]:
        """
        Persons directly assigned to group_id matching every filter criterion.

        An empty filter sequence matches all members.
        """
        with self.db.get_session_context() as session:
            query = session.query(Person).filter(Person.groupId == group_id)
            for criterion in filters:
                for field_name, value in criterion.conditions():
                    query = query.filter(getattr(Person, field_name) == value)
            persons = query.order_by(Person.id).all()
            return [PersonModel.model_validate(person) for person in persons]

    async def get_person_by_id(self, person_id: int) -> Optional[PersonModel]:
        with self.db.get_session_context() as session:
            person = session.get(Person, person_id)
            return PersonModel.model_validate(person) if person else None

    async def list_groups(self) -> List[GroupModel]:
        with self.db.get_session_context() as session:
            return [GroupModel.model_validate(g) for g in session.query(Group).order_by(Group.id).all()]

    async def list_persons(self) -> List[PersonModel]:
        with self.db.get_session_context() as session:
            return [PersonModel.model_validate(p) for p in session.query(Person).order_by(Person.id).all()]

    async def get_descendant_ids(self, group_id: int) -> Set[int]:
        with self.db.get_session_context() as session:
            return find_descendant_ids(session, group_id)

    # -- group writes -----------------------------------------------------

    @staticmethod
    def _require_group(session: Session, group_id: int) -> Group:
        group = session.get(Group, group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def create_group(self, data: GroupCreateModel) -> GroupModel:
        with self.db.get_session_context() as session:
            if data.parentGroupId is not None:
                self._require_group(session, data.parentGroupId)

            now = datetime.now()
            group = Group(
                groupName=data.groupName,
                parentGroupId=data.parentGroupId,
                createdAt=now,
                updatedAt=now,
            )
            session.add(group)
            session.flush()
            created = GroupModel.model_validate(group)

        logger.info(f"Created group {created.id} ({created.groupName})")
        return created

    async def update_group(self, group_id: int, data: GroupUpdateModel) -> Tuple[GroupModel, GroupModel]:
        """
        Apply the provided fields to a group.

        The cycle check and the update run in one transaction, so the check
        sees the tree as it was before the edit. A re-parenting also
        refreshes updatedAt of the old and the new parent in that transaction.

        Returns:
            (group before the update, group after the update)

        Raises:
            GroupNotFoundError: group or new parent does not exist
            StructuralConflictError: the move would create a cycle
            ValidationError: nothing to update
        """
        with self.db.get_session_context() as session:
            group = self._require_group(session, group_id)
            before = GroupModel.model_validate(group)

            if not data.groupName and not data.sets_parent:
                raise ValidationError("No fields to update.")

            if data.sets_parent:
                ensure_acyclic_move(session, group_id, data.parentGroupId)
                if data.parentGroupId is not None:
                    self._require_group(session, data.parentGroupId)
                if data.parentGroupId != before.parentGroupId:
                    touch_groups(session, (before.parentGroupId, data.parentGroupId))
                group.parentGroupId = data.parentGroupId

            if data.groupName:
                group.groupName = data.groupName

            group.updatedAt = datetime.now()
            session.flush()
            after = GroupModel.model_validate(group)

        logger.info(f"Updated group {group_id}")
        return before, after

    async def delete_group(self, group_id: int) -> GroupModel:
        with self.db.get_session_context() as session:
            group = self._require_group(session, group_id)
            deleted = GroupModel.model_validate(group)
            session.delete(group)

        logger.info(f"Deleted group {group_id}")
        return deleted

    # -- person writes ----------------------------------------------------

    async def create_person(self, data: PersonCreateModel) -> PersonModel:
        with self.db.get_session_context() as session:
            if data.groupId is not None:
                self._require_group(session, data.groupId)

            now = datetime.now()
            person = Person(
                firstName=data.firstName,
                lastName=data.lastName,
                jobTitle=data.jobTitle,
                groupId=data.groupId,
                createdAt=now,
                updatedAt=now,
            )
            session.add(person)
            session.flush()
            created = PersonModel.model_validate(person)

        logger.info(f"Created person {created.id}")
        return created

    async def update_person(self, person_id: int, data: PersonUpdateModel) -> Tuple[PersonModel, PersonModel]:
        """
        Apply the provided fields to a person.

        Moving the person to another group refreshes updatedAt of both groups
        in the same transaction.

        Returns:
            (person before the update, person after the update)

        Raises:
            PersonNotFoundError: person does not exist
            GroupNotFoundError: target group does not exist
            ValidationError: nothing to update
        """
        with self.db.get_session_context() as session:
            person = session.get(Person, person_id)
            if person is None:
                raise PersonNotFoundError(person_id)
            before = PersonModel.model_validate(person)

            changes = {
                name: value
                for name, value in (
                    ("firstName", data.firstName),
                    ("lastName", data.lastName),
                    ("jobTitle", data.jobTitle),
                )
                if value
            }
            if data.sets_group:
                if data.groupId is not None:
                    self._require_group(session, data.groupId)
                changes["groupId"] = data.groupId

            if not changes:
                raise ValidationError("No fields to update.")

            if changes.get("groupId", before.groupId) != before.groupId:
                touch_groups(session, (before.groupId, data.groupId))

            for name, value in changes.items():
                setattr(person, name, value)
            person.updatedAt = datetime.now()
            session.flush()
            after = PersonModel.model_validate(person)

        logger.info(f"Updated person {person_id}")
        return before, after

    async def delete_person(self, person_id: int) -> PersonModel:
        with self.db.get_session_context() as session:
            person = session.get(Person, person_id)
            if person is None:
                raise PersonNotFoundError(person_id)
            deleted = PersonModel.model_validate(person)
            session.delete(person)

        logger.info(f"Deleted person {person_id}")
        return deleted

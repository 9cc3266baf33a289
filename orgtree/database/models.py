"""
SQLAlchemy database models for the org tree.

- Group: a node of the organizational tree with an optional parent group
- Person: a member assigned to at most one group

Column names follow the existing schema (camelCase). Deleting a group sets
its children's parentGroupId and its members' groupId to NULL when the
backend enforces foreign keys.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import declarative_base

# Create the declarative base for all models
Base = declarative_base()


class Group(Base):
    """
    Group model representing one node of the organizational tree.

    parentGroupId is NULL for roots. The parent relation is kept acyclic by
    the write path, not by the schema.
    """
    __tablename__ = 'group'

    id = Column(Integer, primary_key=True, autoincrement=True)
    groupName = Column(String(100), nullable=False)
    parentGroupId = Column(
        Integer,
        ForeignKey('group.id', ondelete='SET NULL'),
        nullable=True,
        index=True,
    )

    createdAt = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updatedAt = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    def __repr__(self):
        return f"<Group(id={self.id}, name='{self.groupName}', parent={self.parentGroupId})>"


class Person(Base):
    """
    Person model representing a member of the organization.
    """
    __tablename__ = 'person'

    id = Column(Integer, primary_key=True, autoincrement=True)
    firstName = Column(String(100), nullable=False)
    lastName = Column(String(100), nullable=False)
    jobTitle = Column(String(100), nullable=False)
    groupId = Column(
        Integer,
        ForeignKey('group.id', ondelete='SET NULL'),
        nullable=True,
        index=True,
    )

    createdAt = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updatedAt = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    def __repr__(self):
        return f"<Person(id={self.id}, name='{self.firstName} {self.lastName}', group={self.groupId})>"


# Subtree reads filter members of one group by job title
Index('idx_person_group_job', Person.groupId, Person.jobTitle)


def create_all_tables(engine):
    """
    Create all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.create_all(bind=engine)


__all__ = [
    'Base',
    'Group',
    'Person',
    'create_all_tables',
]

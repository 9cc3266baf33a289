"""
Group Pydantic models: stored rows, write requests and computed hierarchy views.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .person import PersonSummaryModel


class GroupModel(BaseModel):
    """
    Stored group row.

    A group without parentGroupId is a root of the tree.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    groupName: str = Field(..., max_length=100, description="Group name")
    parentGroupId: Optional[int] = Field(None, description="Parent group ID, null for roots")
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class GroupCreateModel(BaseModel):
    """Payload for creating a group."""

    groupName: str = Field(..., min_length=2, max_length=100)
    parentGroupId: Optional[int] = None


class GroupUpdateModel(BaseModel):
    """
    Payload for updating a group.

    Only fields present in the payload are applied. An explicit null (or the
    string "null") for parentGroupId moves the group to the root.
    """

    groupName: Optional[str] = Field(None, min_length=2, max_length=100)
    parentGroupId: Optional[int] = None

    @field_validator("parentGroupId", mode="before")
    @classmethod
    def null_string_to_none(cls, v):
        if v == "null":
            return None
        return v

    @property
    def sets_parent(self) -> bool:
        return "parentGroupId" in self.model_fields_set


class AncestorNodeModel(BaseModel):
    """
    Ancestor chain view of a group.

    parentGroup is empty at the root and otherwise holds exactly one node.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    groupName: str
    parentGroup: List["AncestorNodeModel"] = Field(default_factory=list)


class SubtreeNodeModel(BaseModel):
    """
    Descendant subtree view of a group.

    persons holds the members of this group that match the active filters,
    groups holds one node per direct child group.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    groupName: str
    persons: List[PersonSummaryModel] = Field(default_factory=list)
    groups: List["SubtreeNodeModel"] = Field(default_factory=list)


AncestorNodeModel.model_rebuild()
SubtreeNodeModel.model_rebuild()

"""
Person Pydantic models with validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class PersonSummaryModel(BaseModel):
    """Person as listed inside a subtree node."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    firstName: str
    lastName: str
    jobTitle: str


class PersonModel(PersonSummaryModel):
    """
    Stored person row.

    groupId is null when the person is not assigned to any group.
    """

    groupId: Optional[int] = Field(None, description="Owning group ID")
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class PersonCreateModel(BaseModel):
    """Payload for creating a person."""

    firstName: str = Field(..., min_length=2, max_length=100)
    lastName: str = Field(..., min_length=2, max_length=100)
    jobTitle: str = Field(..., min_length=3, max_length=100)
    groupId: Optional[int] = None


class PersonUpdateModel(BaseModel):
    """
    Payload for updating a person.

    Only fields present in the payload are applied. An explicit null (or the
    string "null") for groupId removes the person from their group.
    """

    firstName: Optional[str] = Field(None, min_length=2, max_length=100)
    lastName: Optional[str] = Field(None, min_length=2, max_length=100)
    jobTitle: Optional[str] = Field(None, min_length=3, max_length=100)
    groupId: Optional[int] = None

    @field_validator("groupId", mode="before")
    @classmethod
    def null_string_to_none(cls, v):
        if v == "null":
            return None
        return v

    @property
    def sets_group(self) -> bool:
        return "groupId" in self.model_fields_set

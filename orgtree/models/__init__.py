"""
Org tree Pydantic models package.

This package contains the Pydantic v2 models used for stored rows, write
payloads, filter criteria and the computed hierarchy views.
"""

from .filters import (
    FilterCriterion,
    build_filters,
)

from .person import (
    PersonSummaryModel,
    PersonModel,
    PersonCreateModel,
    PersonUpdateModel,
)

from .group import (
    GroupModel,
    GroupCreateModel,
    GroupUpdateModel,
    AncestorNodeModel,
    SubtreeNodeModel,
)

__all__ = [
    # Filters
    "FilterCriterion",
    "build_filters",

    # Persons
    "PersonSummaryModel",
    "PersonModel",
    "PersonCreateModel",
    "PersonUpdateModel",

    # Groups
    "GroupModel",
    "GroupCreateModel",
    "GroupUpdateModel",
    "AncestorNodeModel",
    "SubtreeNodeModel",
]

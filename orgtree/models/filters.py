"""
Person filter criteria for subtree reads.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class FilterCriterion(BaseModel):
    """
    One equality predicate over person fields.

    A criterion normally sets a single field; when both are set, both must match.
    """
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    jobTitle: Optional[str] = Field(None, description="Required job title")
    firstName: Optional[str] = Field(None, description="Required first name")

    def conditions(self) -> List[tuple]:
        """(field, value) pairs this criterion requires; empty values are ignored."""
        pairs = []
        if self.jobTitle:
            pairs.append(("jobTitle", self.jobTitle))
        if self.firstName:
            pairs.append(("firstName", self.firstName))
        return pairs


def build_filters(job_title: Optional[str] = None, first_name: Optional[str] = None) -> List[FilterCriterion]:
    """
    Build the filter sequence from query parameters.

    jobTitle comes first, then firstName, one criterion per given parameter.
    """
    filters: List[FilterCriterion] = []
    if job_title:
        filters.append(FilterCriterion(jobTitle=job_title))
    if first_name:
        filters.append(FilterCriterion(firstName=first_name))
    return filters

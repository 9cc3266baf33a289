"""
Cache key naming for org tree entries.

Key shapes are shared with existing cache contents and must stay bit-exact:

    person_id_<id>
    all_persons
    group_above_<id>
    groups_below_<id>_<json-serialized-filters>
    all_groups
"""

import json
from enum import Enum
from typing import Any, Dict, List, Sequence, Union

from ..models.filters import FilterCriterion


class CacheKeyPrefix(str, Enum):
    """Cache key prefixes and aggregate keys."""

    PERSON_ID = "person_id_"
    ALL_PERSONS = "all_persons"
    GROUP_ABOVE = "group_above_"
    GROUPS_BELOW = "groups_below_"
    ALL_GROUPS = "all_groups"


FilterInput = Union[FilterCriterion, Dict[str, Any]]


class CacheKeyBuilder:
    """
    Builds the cache keys for person, ancestor and subtree entries.
    """

    @staticmethod
    def person_key(person_id: int) -> str:
        return f"{CacheKeyPrefix.PERSON_ID.value}{person_id}"

    @staticmethod
    def ancestors_key(group_id: int) -> str:
        return f"{CacheKeyPrefix.GROUP_ABOVE.value}{group_id}"

    @staticmethod
    def serialize_filters(filters: Sequence[FilterInput], canonicalize: bool = False) -> str:
        """
        Serialize a filter sequence the way the key space expects.

        Output is compact JSON with fields in declaration order, e.g.
        ``[{"jobTitle":"eng"}]``. Order of the sequence is preserved, so two
        equal filter sets given in different order serialize differently.
        With ``canonicalize`` the criteria are sorted by their serialized form
        first and such sets share one key.

        Args:
            filters: Filter criteria (models or plain dicts)
            canonicalize: Sort criteria before serializing

        Returns:
            str: JSON text used as the key suffix
        """
        criteria: List[Dict[str, Any]] = []
        for item in filters:
            criterion = item if isinstance(item, FilterCriterion) else FilterCriterion.model_validate(item)
            criteria.append(criterion.model_dump(exclude_none=True))

        if canonicalize:
            criteria.sort(key=lambda c: json.dumps(c, separators=(",", ":"), sort_keys=True))

        return json.dumps(criteria, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def subtree_key(
        cls,
        group_id: int,
        filters: Sequence[FilterInput],
        canonicalize: bool = False,
    ) -> str:
        """
        Build the subtree key for a group and filter sequence.

        Example:
            subtree_key(1, [FilterCriterion(jobTitle="eng")])
            # Returns: 'groups_below_1_[{"jobTitle":"eng"}]'
        """
        serialized = cls.serialize_filters(filters, canonicalize=canonicalize)
        return f"{CacheKeyPrefix.GROUPS_BELOW.value}{group_id}_{serialized}"

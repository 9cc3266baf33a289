"""
Tests for cache key naming.

Key shapes are shared with existing cache contents, so exact strings are asserted.
"""

import pytest

from orgtree.cache import CacheKeyBuilder, CacheKeyPrefix
from orgtree.models import FilterCriterion, build_filters


class TestCacheKeyBuilder:
    """Test cache key construction."""

    def test_person_and_aggregate_keys(self):
        assert CacheKeyBuilder.person_key(42) == "person_id_42"
        assert CacheKeyPrefix.ALL_PERSONS.value == "all_persons"
        assert CacheKeyPrefix.ALL_GROUPS.value == "all_groups"

    def test_ancestors_key_matches_its_prefix(self):
        key = CacheKeyBuilder.ancestors_key(7)
        assert key == "group_above_7"
        assert key.startswith(CacheKeyPrefix.GROUP_ABOVE.value)

    def test_subtree_key_without_filters(self):
        assert CacheKeyBuilder.subtree_key(3, []) == "groups_below_3_[]"

    def test_subtree_key_with_filters(self):
        key = CacheKeyBuilder.subtree_key(1, [FilterCriterion(jobTitle="eng")])
        assert key == 'groups_below_1_[{"jobTitle":"eng"}]'

    def test_plain_dict_filters_match_models(self):
        assert CacheKeyBuilder.subtree_key(1, [{"firstName": "Ann"}]) == CacheKeyBuilder.subtree_key(
            1, [FilterCriterion(firstName="Ann")]
        )

    def test_filter_order_is_part_of_key(self):
        forward = [{"jobTitle": "eng"}, {"firstName": "Ann"}]
        backward = list(reversed(forward))

        assert CacheKeyBuilder.subtree_key(1, forward) != CacheKeyBuilder.subtree_key(1, backward)

    def test_canonicalized_filters_share_key(self):
        forward = [{"jobTitle": "eng"}, {"firstName": "Ann"}]
        backward = list(reversed(forward))

        assert CacheKeyBuilder.subtree_key(1, forward, canonicalize=True) == CacheKeyBuilder.subtree_key(
            1, backward, canonicalize=True
        )

    def test_non_ascii_values_are_kept(self):
        key = CacheKeyBuilder.subtree_key(2, [{"firstName": "José"}])
        assert key == 'groups_below_2_[{"firstName":"José"}]'

    def test_unknown_filter_field_rejected(self):
        with pytest.raises(ValueError):
            CacheKeyBuilder.subtree_key(1, [{"lastName": "Smith"}])


class TestBuildFilters:
    """Query parameter to filter sequence conversion."""

    def test_job_title_comes_first(self):
        filters = build_filters(job_title="eng", first_name="Ann")
        assert [f.model_dump(exclude_none=True) for f in filters] == [{"jobTitle": "eng"}, {"firstName": "Ann"}]

    def test_no_parameters(self):
        assert build_filters() == []

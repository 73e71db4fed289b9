"""
Unit tests for term groups: building, merging, facet expansion and
vision payload flattening.
"""

from search.term_groups import (
    TermGroup,
    build_groups,
    collect_vision_terms,
    groups_for_facets,
    merge_groups,
    term_list,
)


def _as_sets(groups):
    return {g.term: set(g.variants) for g in groups}


class TestTermGroup:

    def test_term_is_first_variant(self):
        group = TermGroup(term="Vintage", variants=("Retro", "vintage", "antique"))
        assert group.term == "vintage"
        assert group.variants == ("vintage", "retro", "antique")

    def test_empty_variants_dropped(self):
        group = TermGroup(term="cozy", variants=("", "!!", "Warm"))
        assert group.variants == ("cozy", "warm")

    def test_single(self):
        assert TermGroup.single("Gift").variants == ("gift",)

    def test_to_dict(self):
        assert TermGroup.single("gift").to_dict() == {"term": "gift", "variants": ["gift"]}


class TestBuildGroups:

    def test_one_group_per_term(self):
        groups = build_groups(["Mug", "ceramic", "", None, "MUG"])
        assert term_list(groups) == ["mug", "ceramic"]
        assert all(len(g.variants) == 1 for g in groups)


class TestMergeGroups:

    def test_union_of_variants(self):
        merged = merge_groups([
            TermGroup("vintage", ("retro",)),
            TermGroup("Vintage", ("antique", "retro")),
        ])
        assert len(merged) == 1
        assert merged[0].variants == ("vintage", "retro", "antique")

    def test_first_seen_order(self):
        merged = merge_groups([TermGroup.single("b"), TermGroup.single("a"), TermGroup.single("b")])
        assert term_list(merged) == ["b", "a"]

    def test_empty(self):
        assert merge_groups([]) == []
        assert merge_groups([TermGroup.single("")]) == []

    def test_associative(self):
        a = [TermGroup("gift", ("present",))]
        b = [TermGroup("gift", ("gifting",)), TermGroup.single("mug")]
        c = [TermGroup("mug", ("cup",))]
        left = merge_groups(merge_groups(a + b) + c)
        right = merge_groups(a + merge_groups(b + c))
        assert _as_sets(left) == _as_sets(right)

    def test_commutative(self):
        a = [TermGroup("gift", ("present",)), TermGroup.single("mug")]
        b = [TermGroup("mug", ("cup",)), TermGroup.single("cozy")]
        assert _as_sets(merge_groups(a + b)) == _as_sets(merge_groups(b + a))


class TestGroupsForFacets:

    def test_expands_through_table(self):
        groups = groups_for_facets(["whimsical", "gift"])
        assert term_list(groups) == ["whimsical", "gift"]
        assert "playful" in groups[0].variants
        assert "present" in groups[1].variants

    def test_unknown_and_blank_facets(self):
        groups = groups_for_facets(["Steampunk", "  "])
        assert term_list(groups) == ["steampunk"]

    def test_duplicate_facets_collapse(self):
        assert len(groups_for_facets(["Gift", "gift "])) == 1


class TestCollectVisionTerms:

    def test_order_and_uniqueness(self):
        payload = {
            "title": "Teapot",
            "category": "Kitchen & Dining",
            "attributes": ["teapot", "floral"],
            "styles": ["vintage"],
            "moods": ["whimsical", "floral"],
            "intents": ["gift"],
        }
        assert collect_vision_terms(payload) == [
            "teapot", "floral", "vintage", "whimsical", "gift", "Kitchen & Dining", "Teapot",
        ]

    def test_missing_fields(self):
        assert collect_vision_terms(None) == []
        assert collect_vision_terms({}) == []
        assert collect_vision_terms({"styles": None, "title": "  "}) == []

    def test_string_field(self):
        assert collect_vision_terms({"moods": "cozy"}) == ["cozy"]

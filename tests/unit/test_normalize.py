"""
Unit tests for term and tag-column normalization.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_normalize.py -v
"""

import pytest

from search.normalize import clean_tag, normalize_tag_column, normalize_term


class TestNormalizeTerm:

    @pytest.mark.parametrize("raw,expected", [
        ("Vintage", "vintage"),
        ("  Mid-Century   Modern!! ", "mid-century modern"),
        ("Party-On", "party-on"),
        ("home/decor", "home decor"),
        ("rock'n'roll", "rock n roll"),
        ("70s", "70s"),
        ("", ""),
        ("   ", ""),
        ("!!!", ""),
        (None, ""),
    ])
    def test_examples(self, raw, expected):
        assert normalize_term(raw) == expected

    @pytest.mark.parametrize("raw", [
        "Whimsical GIFT",
        " mid-century, modern; lamp ",
        "Ünïcode café",
        "a\tb\nc",
        "--edge--",
    ])
    def test_idempotent(self, raw):
        once = normalize_term(raw)
        assert normalize_term(once) == once

    def test_output_alphabet(self):
        out = normalize_term("Tea-pot & Cups (set of 4) — €20")
        assert all(ch.isdigit() or ("a" <= ch <= "z") or ch in " -" for ch in out)
        assert "  " not in out
        assert out == out.strip()


class TestCleanTag:

    def test_strips_edge_artifacts(self):
        assert clean_tag('["Vintage"]') == "Vintage"
        assert clean_tag("{'cozy'}") == "cozy"

    def test_removes_inner_artifacts(self):
        assert clean_tag('Home "Decor"') == "Home Decor"

    def test_spaces_after_commas(self):
        assert clean_tag("Home Decor,collectibles") == "Home Decor, collectibles"

    def test_none(self):
        assert clean_tag(None) == ""


class TestNormalizeTagColumn:

    def test_none_and_empty(self):
        assert normalize_tag_column(None) == []
        assert normalize_tag_column("") == []
        assert normalize_tag_column([]) == []

    def test_array_elements_cleaned(self):
        assert normalize_tag_column(['"Vintage"', " Rustic ", "", None]) == ["Vintage", "Rustic"]

    def test_json_array_string(self):
        assert normalize_tag_column('["Vintage", "Rustic"]') == ["Vintage", "Rustic"]

    def test_broken_json_falls_back_to_comma_split(self):
        assert normalize_tag_column('["Vintage", "Rustic"') == ["Vintage", "Rustic"]

    def test_bracket_prefix_without_json(self):
        assert normalize_tag_column("[1") == ["1"]

    def test_comma_separated_string(self):
        assert normalize_tag_column("home decor, gift,collectible") == ["home decor", "gift", "collectible"]

    def test_scalar(self):
        assert normalize_tag_column(42) == ["42"]

    def test_tuple(self):
        assert normalize_tag_column(("cozy", "warm")) == ["cozy", "warm"]

    def test_never_raises_on_garbage(self):
        for value in ("[[[", '[{"a": 1}]', ",,,", "[]", {"k": "v"}):
            result = normalize_tag_column(value)
            assert isinstance(result, list)
            assert all(isinstance(v, str) and v for v in result)

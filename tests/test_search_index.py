"""Tests for the incremental search index."""
import datetime
from datetime import timezone

import pytest

from notekeeper.storage.search_index import SearchIndex, tokenize


def _t(seconds):
    return datetime.datetime(2024, 1, 1, tzinfo=timezone.utc) + datetime.timedelta(
        seconds=seconds
    )


@pytest.fixture
def index():
    idx = SearchIndex()
    idx.update("groceries", "Groceries", "Milk, eggs and bread.", _t(1))
    idx.update("trip", "Trip to Lisbon", "Remember to buy milk for the flat.", _t(2))
    idx.update("ideas", "Ideas", "A bread-baking robot", _t(3))
    return idx


class TestTokenize:
    def test_lowercases_and_strips_punctuation(self):
        assert tokenize("Hello, World! (again)") == {"hello", "world", "again"}

    def test_inner_punctuation_kept(self):
        assert tokenize("bread-baking e-mail") == {"bread-baking", "e-mail"}


class TestSearchIndex:
    """Tests for matching, ranking and delta updates."""

    def test_title_matches_rank_first(self, index):
        index.update("milk", "Milk prices", "", _t(0))
        # "milk" title match is oldest but still ranks above body matches
        assert index.search("milk") == ["milk", "trip", "groceries"]

    def test_recency_breaks_ties(self, index):
        assert index.search("bread") == ["ideas", "groceries"]

    def test_case_insensitive_substring(self, index):
        assert index.search("LISB") == ["trip"]
        assert index.search("uy mil") == ["trip"]

    def test_keywords_in_any_order(self, index):
        assert index.search("bread milk") == ["groceries"]

    def test_keywords_split_between_title_and_body(self, index):
        assert index.search("lisbon flat") == ["trip"]

    def test_no_match(self, index):
        assert index.search("zebra") == []

    def test_blank_query(self, index):
        assert index.search("   ") == []

    def test_update_replaces_old_tokens(self, index):
        index.update("ideas", "Ideas", "A painting robot", _t(4))
        assert "ideas" not in index.search("bread")
        assert index.search("painting") == ["ideas"]
        assert index.ids_with_token("bread-baking") == set()
        assert index.ids_with_token("robot") == {"ideas"}

    def test_remove(self, index):
        index.remove("trip")
        assert "trip" not in index
        assert index.search("milk") == ["groceries"]
        assert index.ids_with_token("lisbon") == set()
        index.remove("trip")  # unknown ids are ignored
        assert len(index) == 2

    def test_every_substring_matches(self):
        idx = SearchIndex()
        title, body = "Shopping List", "Tea & Coffee, oat milk"
        idx.update("n1", title, body, _t(1))
        idx.update("n2", "Other", "unrelated text", _t(2))
        for text in (title, body):
            for start in range(len(text)):
                for end in range(start + 1, len(text) + 1):
                    query = text[start:end]
                    if query.strip():
                        assert "n1" in idx.search(query), query
                        assert "n1" in idx.search(query.upper()), query

    def test_clear(self, index):
        index.clear()
        assert len(index) == 0
        assert index.search("milk") == []

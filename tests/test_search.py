"""Tests for library listing and merged prefix search."""

from unittest.mock import patch

from notes.errors import StoreError
from notes.models import MatchType
from notes.search import HIGH_SENTINEL, clamp_paging, merge_hits, prefix_range


def _ids(page):
    return [hit.note.id for hit in page.items]


class TestHelpers:
    def test_clamp_paging(self):
        assert clamp_paging(0, 0) == (1, 1)
        assert clamp_paging(-3, 500) == (1, 50)
        assert clamp_paging(2, 20) == (2, 20)

    def test_prefix_range(self):
        assert prefix_range("textLower", "abc") == ("textLower", "abc", "abc" + HIGH_SENTINEL)

    def test_merge_tags_and_orders(self):
        a = {"id": "a", "text": "x", "status": "draft", "timestamp": "2026-01-01T00:01"}
        b = {"id": "b", "text": "y", "status": "draft", "timestamp": "2026-01-01T00:03"}
        c = {"id": "c", "text": "z", "status": "draft", "timestamp": "2026-01-01T00:02"}
        hits = merge_hits([a, b], [b, c])
        assert [(h.note.id, h.matchType) for h in hits] == [
            ("b", MatchType.BOTH),
            ("c", MatchType.ANALYSIS),
            ("a", MatchType.TEXT),
        ]


class TestListing:
    def test_two_pages_of_fifteen(self, search, seed):
        for i in range(15):
            seed(f"note {i}", minute=i)

        first = search.search(page=1, page_size=10, query="")
        assert len(first.items) == 10
        assert first.hasMore is True
        assert [hit.note.text for hit in first.items][:2] == ["note 14", "note 13"]

        second = search.search(page=2, page_size=10, query="")
        assert len(second.items) == 5
        assert second.hasMore is False
        assert not set(_ids(first)) & set(_ids(second))

    def test_exact_page_has_no_more(self, search, seed):
        for i in range(10):
            seed(f"note {i}", minute=i)
        page = search.search(page=1, page_size=10)
        assert len(page.items) == 10
        assert page.hasMore is False

    def test_items_have_no_match_type(self, search, seed):
        seed("hello", minute=1)
        hit = search.search().items[0]
        assert hit.matchType is None
        assert "matchType" not in hit.to_dict()

    def test_clamps_in_result(self, search):
        page = search.search(page=0, page_size=999)
        assert (page.page, page.pageSize) == (1, 50)

    def test_empty_store(self, search):
        page = search.search(page=1, page_size=10)
        assert page.items == []
        assert page.hasMore is False
        assert page.error is None


class TestQuery:
    def test_text_prefix_is_case_insensitive(self, search, seed):
        match = seed("Pricing review for Q3", minute=1)
        seed("Hiring plan", minute=2)
        page = search.search(query="PRICING")
        assert _ids(page) == [match]
        assert page.items[0].matchType is MatchType.TEXT

    def test_prefix_not_substring(self, search, seed):
        seed("the pricing review", minute=1)
        assert search.search(query="pricing").items == []

    def test_match_only_in_analysis(self, search, seed):
        seed("Hiring plan", minute=1)
        target = seed("Weekly sync notes", minute=2, strategy="expand to retail partners")
        page = search.search(query="expand")
        assert _ids(page) == [target]
        assert page.items[0].matchType is MatchType.ANALYSIS

    def test_text_and_analysis_on_different_notes(self, search, seed):
        older = seed("Retail expansion ideas", minute=1)
        newer = seed("Call with supplier", minute=5, strategy="retail margins need work")
        seed("Unrelated", minute=3)

        page = search.search(query="retail")
        assert _ids(page) == [newer, older]
        assert page.items[0].matchType is MatchType.ANALYSIS
        assert page.items[1].matchType is MatchType.TEXT
        assert page.hasMore is False

    def test_match_in_both(self, search, seed):
        both = seed("growth levers", minute=1, strategy="growth through referrals")
        page = search.search(query="growth")
        assert _ids(page) == [both]
        assert page.items[0].matchType is MatchType.BOTH

    def test_capitalized_strategy_is_not_matched(self, search, seed):
        seed("quarterly numbers", 1, strategy="Expand to Porto")
        assert search.search(query="Expand").items == []
        assert search.search(query="expand").items == []

    def test_no_match(self, search, seed):
        seed("alpha", minute=1)
        page = search.search(query="zzz")
        assert page.items == []
        assert page.hasMore is False

    def test_merged_results_truncated_and_estimated(self, search, seed):
        for i in range(3):
            seed(f"lead {i}", minute=i)
        for i in range(3):
            seed(f"other {i}", minute=10 + i, strategy=f"lead gen idea {i}")

        page = search.search(page=1, page_size=3, query="lead")
        assert len(page.items) == 3
        # newest first: the analysis matches were written later
        assert all(hit.matchType is MatchType.ANALYSIS for hit in page.items)
        assert page.hasMore is True

        # Past page 1 the merged mode returns the same window.
        page2 = search.search(page=2, page_size=3, query="lead")
        assert _ids(page2) == _ids(page)
        assert page2.hasMore is False

    def test_whitespace_query_lists_everything(self, search, seed):
        seed("a", minute=1)
        seed("b", minute=2)
        assert len(search.search(query="   ").items) == 2


class TestDegradation:
    def test_store_failure_returns_empty_page(self, search):
        with patch.object(search.notes, "query", side_effect=StoreError("no such index")):
            page = search.search(query="x")
        assert page.items == []
        assert page.hasMore is False
        assert "no such index" in page.error

    def test_closed_store_returns_empty_page(self, search, store):
        store.close()
        page = search.search()
        assert page.items == []
        assert page.error

    def test_invalid_document_is_skipped(self, search, seed, store):
        valid = seed("legacy pricing review", 1)
        store.collection("transcriptions").add({
            "text": "old entry",
            "textLower": "old entry",
            "status": "analyzed",
            "analysis": {"strategy": "legacy plan"},
            "timestamp": "2026-01-01T10:05:00+00:00",
        })

        page = search.search(1, 10, "leg")
        assert page.error is None
        assert [hit.note.id for hit in page.items] == [valid]

        listing = search.search(1, 10)
        assert [hit.note.id for hit in listing.items] == [valid]

"""Unit tests for fuzzy name resolution."""

from unittest.mock import patch

from salio.core.inventory import Snapshot
from salio.core.resolver import FuzzyIndex, Posting, resolve_instance_names, searchable_names
from tests.fakes import make_instance


class TestFuzzyIndex:
    """Tests for FuzzyIndex."""

    def test_substring_matches(self) -> None:
        index = FuzzyIndex(["web.prod.a", "api.prod.a", "db.stage"])

        docs = {p.doc for p in index.query("prod")}

        assert docs == {0, 1}

    def test_subsequence_matches_in_order(self) -> None:
        index = FuzzyIndex(["web.prod.a", "api.prod.a"])

        assert {p.doc for p in index.query("wpa")} == {0}
        assert index.query("apw") == []

    def test_query_is_case_insensitive(self) -> None:
        index = FuzzyIndex(["Web.Prod"])

        assert [p.doc for p in index.query("web.prod")] == [0]
        assert [p.doc for p in index.query("WEB")] == [0]

    def test_repeated_characters_need_distinct_positions(self) -> None:
        index = FuzzyIndex(["ab", "aab"])

        assert [p.doc for p in index.query("aa")] == [1]

    def test_tighter_match_scores_first(self) -> None:
        index = FuzzyIndex(["w-x-e-x-b", "web"])

        postings = index.query("web")

        assert postings == [Posting(doc=1, score=0), Posting(doc=0, score=6)]

    def test_empty_inputs(self) -> None:
        assert FuzzyIndex([]).query("web") == []
        assert FuzzyIndex(["web"]).query("") == []
        assert FuzzyIndex(["web"]).query("xyz") == []


def test_exact_match_short_circuits_fuzzy_search() -> None:
    snapshot = Snapshot(
        [
            make_instance("i-1", "web.prod"),
            make_instance("i-2", "web.prod.a"),
            make_instance("i-3", "web.prod.b"),
        ]
    )

    with patch("salio.core.resolver.FuzzyIndex") as mock_index:
        result = resolve_instance_names("web.prod", snapshot)

    assert result == {"web.prod"}
    mock_index.assert_not_called()


def test_fuzzy_match_collects_distinct_names() -> None:
    snapshot = Snapshot(
        [
            make_instance("i-1", "web.prod.a"),
            make_instance("i-2", "web.prod.a"),
            make_instance("i-3", "web.prod.b"),
            make_instance("i-4", "api.prod.a"),
        ]
    )

    assert resolve_instance_names("web", snapshot) == {"web.prod.a", "web.prod.b"}


def test_no_match_yields_empty_set(web_snapshot: Snapshot) -> None:
    assert resolve_instance_names("zzz", web_snapshot) == set()
    assert resolve_instance_names("web", Snapshot([])) == set()
    assert resolve_instance_names("", web_snapshot) == set()


def test_bastions_are_not_resolvable(web_snapshot: Snapshot) -> None:
    assert "web.prod.nat" not in searchable_names(web_snapshot)
    assert resolve_instance_names("web.prod.nat", web_snapshot) == set()
    assert resolve_instance_names("web", web_snapshot) == {"web.prod.a", "web.prod.b"}


def test_unnamed_instances_are_not_resolvable() -> None:
    snapshot = Snapshot([make_instance("i-1", ""), make_instance("i-2", "web")])

    assert searchable_names(snapshot) == ["web"]


def test_web_cluster_scenario() -> None:
    snapshot = Snapshot(
        [
            make_instance("i-a", "web.prod.a"),
            make_instance("nat1", "web.prod.nat", role="nat"),
        ]
    )

    assert resolve_instance_names("web", snapshot) == {"web.prod.a"}


def test_duplicate_exact_names_warn(caplog) -> None:
    snapshot = Snapshot([make_instance("i-1", "web.a"), make_instance("i-2", "web.a")])

    with caplog.at_level("WARNING", logger="salio.core.resolver"):
        result = resolve_instance_names("web.a", snapshot)

    assert result == {"web.a"}
    assert "2 instances are named web.a" in caplog.text

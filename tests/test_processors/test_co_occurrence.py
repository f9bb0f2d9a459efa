from __future__ import annotations

from processors.co_occurrence import cap_entity_ids, detect_co_occurrence_pairs


def test_pairs_count_shared_articles() -> None:
    relations = detect_co_occurrence_pairs([["b", "a", "a"], ["a", "b", "c"], ["c"]])

    assert [(item.source_id, item.target_id, item.strength) for item in relations] == [
        ("a", "b", 2),
        ("a", "c", 1),
        ("b", "c", 1),
    ]


def test_pair_endpoints_are_sorted() -> None:
    relations = detect_co_occurrence_pairs([["zeta", "alpha"]])
    assert relations[0].source_id == "alpha"
    assert relations[0].target_id == "zeta"


def test_no_pairs_for_single_entity_articles() -> None:
    assert detect_co_occurrence_pairs([["a"], ["a"], []]) == []


def test_cap_entity_ids_keeps_required_id() -> None:
    assert cap_entity_ids(["a", "b", "a", "c", "d"], 3, keep="d") == ["a", "b", "d"]
    assert cap_entity_ids(["a", "b", "c", "d"], 3, keep="b") == ["a", "b", "c"]
    assert cap_entity_ids(["a", "b", "c", "d"], 3) == ["a", "b", "c"]


def test_cap_entity_ids_within_limit_only_deduplicates() -> None:
    assert cap_entity_ids(["a", "a", "b"], 5, keep="b") == ["a", "b"]
    assert cap_entity_ids(["a", "b", "c"], 0) == ["a", "b", "c"]

import itertools

import pytest
from pydantic import ValidationError

from core.models import BulletCandidate, SelectionConstraints, TargetCount
from lexical.bullet_selector import (
    deduplicate_by_similarity,
    group_by_parent,
    select,
    token_overlap,
)


def cand(bullet_id, parent_id, score, content, start_date=None, parent_type="experience"):
    return BulletCandidate(
        bullet_id=bullet_id,
        content=content,
        score=score,
        parent_id=parent_id,
        parent_type=parent_type,
        start_date=start_date,
    )


def constraints(max_per_parent=4, threshold=0.7, lo=0, hi=16):
    return SelectionConstraints(
        max_bullets_per_parent=max_per_parent,
        similarity_threshold=threshold,
        target_count=TargetCount(min=lo, max=hi),
    )


WORDS = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel", "india", "juliet"]


def test_select_empty_returns_empty():
    assert select([], constraints()) == []


def test_near_duplicate_keeps_higher_scored():
    candidates = [
        cand("1", "p1", 10, "Implemented REST API using Node and Express"),
        cand("2", "p1", 8, "Implemented REST API with Node and Express"),
    ]
    out = select(candidates, constraints(threshold=0.7))
    assert [b.bullet_id for b in out] == ["1"]


def test_per_parent_cap_keeps_best_scores_first():
    candidates = [cand(str(i), "p1", 10 - i, f"{WORDS[i]} project") for i in range(10)]
    out = select(candidates, constraints(max_per_parent=2, hi=20))
    assert [b.bullet_id for b in out] == ["0", "1"]
    assert all(b.parent_id == "p1" for b in out)
    assert out[0].score > out[1].score


def test_total_cap_and_per_parent_cap_hold_across_parents():
    candidates = [
        cand(f"{p}-{i}", f"p{p}", float(i), f"{WORDS[i]} {WORDS[p + 5]} work{p}{i}")
        for p in range(5)
        for i in range(4)
    ]
    out = select(candidates, constraints(max_per_parent=3, threshold=0.7, hi=6))
    assert len(out) == 6
    per_parent = {}
    for b in out:
        per_parent[b.parent_id] = per_parent.get(b.parent_id, 0) + 1
    assert max(per_parent.values()) <= 3


def test_selected_pairwise_similarity_within_threshold():
    candidates = [
        cand("a", "p1", 9, "Built payment service in Go"),
        cand("b", "p1", 8, "Built payment service in Go and Rust"),
        cand("c", "p2", 7, "Built the payment service in Go"),
        cand("d", "p2", 6, "Mentored three junior engineers"),
        cand("e", "p3", 5, "Wrote runbooks for on-call rotation"),
    ]
    out = select(candidates, constraints(threshold=0.5))
    for x, y in itertools.combinations(out, 2):
        assert token_overlap(x.content, y.content) <= 0.5


def test_final_order_is_start_date_desc_then_score_desc():
    candidates = [
        cand("old", "p1", 9, "alpha work", start_date="2020-01"),
        cand("new-low", "p2", 1, "bravo work", start_date="2023-05"),
        cand("undated", "p3", 100, "charlie work"),
        cand("new-high", "p4", 5, "delta work", start_date="2023-05"),
    ]
    out = select(candidates, constraints(threshold=0.9))
    assert [b.bullet_id for b in out] == ["new-high", "new-low", "old", "undated"]


def test_min_target_is_not_enforced():
    out = select([cand("1", "p1", 1, "only one")], constraints(lo=12, hi=16))
    assert [b.bullet_id for b in out] == ["1"]


def test_group_by_parent_is_stable():
    bs = [cand("1", "a", 1, "x"), cand("2", "b", 1, "y"), cand("3", "a", 1, "z")]
    groups = group_by_parent(bs)
    assert list(groups) == ["a", "b"]
    assert [b.bullet_id for b in groups["a"]] == ["1", "3"]


def test_deduplicate_is_order_sensitive():
    a = cand("a", "p", 1, "shipped the billing export job")
    b = cand("b", "p", 1, "shipped the billing export jobs")
    assert [x.bullet_id for x in deduplicate_by_similarity([a, b], 0.5)] == ["a"]
    assert [x.bullet_id for x in deduplicate_by_similarity([b, a], 0.5)] == ["b"]


def test_threshold_one_keeps_identical_text():
    a = cand("a", "p", 2, "same words here")
    b = cand("b", "q", 1, "same words here")
    assert len(deduplicate_by_similarity([a, b], 1.0)) == 2
    assert len(deduplicate_by_similarity([a, b], 0.99)) == 1


def test_token_overlap_properties():
    assert token_overlap("Built APIs", "built apis") == 1.0
    assert token_overlap("alpha beta", "gamma delta") == 0.0
    assert token_overlap("", "") == 0.0
    assert token_overlap("", "text") == 0.0
    assert token_overlap("Node.js", "node js") == 1.0
    a, b = "one two three", "two three four five"
    assert token_overlap(a, b) == token_overlap(b, a) == pytest.approx(2 / 5)


def test_constraints_reject_min_above_max():
    with pytest.raises(ValidationError):
        SelectionConstraints(
            max_bullets_per_parent=2,
            similarity_threshold=0.5,
            target_count=TargetCount(min=5, max=1),
        )


def test_constraints_reject_bad_threshold_and_cap():
    with pytest.raises(ValidationError):
        constraints(threshold=1.5)
    with pytest.raises(ValidationError):
        constraints(max_per_parent=0)


def test_candidates_are_immutable():
    c = cand("1", "p", 1.0, "text")
    with pytest.raises(ValidationError):
        c.score = 2.0  # type: ignore[misc]

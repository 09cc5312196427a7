# FILE: tests/test_essay_scorer.py

import pytest
from cbt_engine.services.essay_scorer import (
    EssayScore,
    aggregate_essay_scores,
    keyword_score,
    length_score,
    overlap_score,
    score_essay,
    tokenize,
)


def words(n, *keywords):
    """Submission text of exactly n tokens starting with the given keywords"""
    return " ".join(list(keywords) + ["filler"] * (n - len(keywords)))


def test_tokenize_lowercases_and_strips_punctuation():
    assert tokenize("Mitosis, the CELL-cycle!  Phase 2.") == ["mitosis", "the", "cell", "cycle", "phase", "2"]
    assert tokenize(None) == []
    assert tokenize("   ") == []


def test_keyword_coverage_uses_whole_tokens():
    tokens = tokenize("cells divide by mitosis")

    coverage, hits, total = keyword_score(tokens, "mitosis, Cell ,chromosome")

    assert (hits, total) == (1, 3)
    assert coverage == pytest.approx(1 / 3)


@pytest.mark.parametrize("keywords", [None, "", " , ,"])
def test_no_keywords_is_neutral(keywords):
    assert keyword_score(["anything"], keywords) == (1.0, 0, 0)


def test_length_credit_capped_below_minimum():
    assert length_score(50, 50) == 1.0
    assert length_score(80, 50) == 1.0
    assert length_score(25, 50) == pytest.approx(0.4)
    assert length_score(0, 50) == 0.0
    assert length_score(10, None) == 1.0
    assert length_score(10, 0) == 1.0


def test_overlap_boost_is_capped():
    model = tokenize("plants use light energy")

    assert overlap_score(tokenize("plants use light energy"), model) == 1.0
    assert overlap_score(tokenize("plants"), model) == pytest.approx(0.3)
    assert overlap_score(tokenize("plants use light"), model) == pytest.approx(0.9)
    assert overlap_score(["x"], []) == 0.5


def test_worked_example_two_of_three_keywords():
    """60 words, 2 of 3 rubric keywords, no model answer"""
    answer = words(60, "mitosis", "cell")

    score = score_essay(answer, "mitosis,chromosome,cell", 50)

    assert score.details["keywords_hit"] == 2
    assert score.details["word_count"] == 60
    assert score.details["length_score"] == 1.0
    assert score.details["overlap_score"] == 0.5
    # round(100 * (0.5 * 2/3 + 0.3 * 1.0 + 0.2 * 0.5))
    assert score.percent == 73
    assert score.confidence == 1.0


def test_complete_answer_scores_high():
    model = "Mitosis copies each chromosome so every cell gets a full set"
    answer = words(70, "mitosis", "copies", "each", "chromosome", "so", "every", "cell", "gets", "a", "full", "set")

    score = score_essay(answer, "mitosis,chromosome,cell", 50, model)

    assert score.percent == 100
    assert score.confidence == 1.0


def test_empty_submission_scores_low():
    score = score_essay("", "mitosis,chromosome,cell", 50, "Mitosis divides a cell")

    assert score.percent == 0
    assert score.confidence == 0.6


def test_short_answer_gets_partial_length_credit():
    score = score_essay(words(25, "mitosis"), "mitosis", 50)

    # keyword 1.0, length 0.4, neutral overlap 0.5
    assert score.percent == 72
    assert score.confidence == 0.6


def test_fully_unconfigured_question_is_neutral():
    score = score_essay("some answer", None, None, None)

    assert score.percent == 90
    assert score.confidence == 0.8
    assert score.details["keywords_total"] == 0


@pytest.mark.parametrize("answer,keywords,min_words,model", [
    (None, None, None, None),
    ("", "a,b,c", 100, "a b c"),
    ("!!!???", "x", 5, None),
    (words(500, "a", "b", "c"), "a,b,c,d,e", 10, "a b c d e"),
    ("ünïcödé text", "text", -3, "text"),
])
def test_scores_stay_in_bounds(answer, keywords, min_words, model):
    score = score_essay(answer, keywords, min_words, model)

    assert 0 <= score.percent <= 100
    assert 0.0 <= score.confidence <= 1.0


def test_aggregate_means():
    scores = [EssayScore(percent=80, confidence=0.8), EssayScore(percent=65, confidence=0.6)]

    assert aggregate_essay_scores(scores) == (73, 0.7)
    assert aggregate_essay_scores([]) == (0, 0.0)

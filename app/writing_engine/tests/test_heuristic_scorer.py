import pytest
from flask import Flask

from app.writing_engine.services import heuristic_scorer
from app.writing_engine.services.types import SOURCE_HEURISTIC, WRITING_LEVELS


@pytest.fixture(autouse=True)
def app_context():
    app = Flask(__name__)
    with app.app_context():
        yield


SHORT_ESSAY = (
    "I think technology is very good for education because it helps students learn. "
    "It make learning easier and more fun."
)


def test_intermediate_short_essay_scores():
    result = heuristic_scorer.score(SHORT_ESSAY, "Intermediate (B1)", 180)

    # "because" marks complex sentences; 19 of 20 tokens are distinct.
    assert result.dimension_scores.grammar == 72
    assert result.dimension_scores.vocabulary == 72
    assert result.dimension_scores.coherence == 68
    assert result.dimension_scores.task_response == 63
    assert result.overall_score == 69
    assert result.source == SOURCE_HEURISTIC


def test_test_equivalents_scale_from_overall():
    result = heuristic_scorer.score(SHORT_ESSAY, "Intermediate (B1)", 180)

    equivalents = result.test_equivalents
    assert equivalents.custom == result.overall_score == 69
    assert equivalents.ielts == 6.2
    assert equivalents.toefl == 83
    assert equivalents.pte == 62


def test_catalogue_sizes_follow_length_parity():
    result = heuristic_scorer.score(SHORT_ESSAY, "Intermediate (B1)", 0)

    expected_errors = 2 if len(SHORT_ESSAY) % 2 == 0 else 1
    assert len(result.grammar_errors) == expected_errors
    # 20 words -> even -> two suggestions
    assert len(result.vocabulary_suggestions) == 2
    assert result.recommendations == heuristic_scorer.RECOMMENDATIONS


def test_odd_word_count_gives_single_vocabulary_suggestion():
    text = "Short plain answer with five words today please"  # 8 words
    odd = text + " now"  # 9 words
    assert len(heuristic_scorer.score(text, "Advanced", 0).vocabulary_suggestions) == 2
    assert len(heuristic_scorer.score(odd, "Advanced", 0).vocabulary_suggestions) == 1


def test_long_advanced_essay_gets_length_bonuses():
    text = " ".join(f"idea{i}" for i in range(260)) + ", because"
    result = heuristic_scorer.score(text, "Advanced (C1-C2)", 1200)

    assert result.dimension_scores.grammar == 88
    assert result.dimension_scores.vocabulary == 88
    assert result.dimension_scores.coherence == 83
    assert result.dimension_scores.task_response == 94
    assert result.overall_score == 88


def test_unknown_level_uses_default_multiplier():
    known = heuristic_scorer.score(SHORT_ESSAY, "Intermediate (B1)", 0)
    unknown = heuristic_scorer.score(SHORT_ESSAY, "Expert", 0)
    assert known.dimension_scores == unknown.dimension_scores


def test_short_level_names_are_aliases():
    assert heuristic_scorer.level_multiplier("Beginner") == 0.8
    assert heuristic_scorer.level_multiplier("Upper-Intermediate (B2)") == 1.0


@pytest.mark.parametrize("level", WRITING_LEVELS + ("unknown",))
@pytest.mark.parametrize("text", [
    "Tiny text here.",
    SHORT_ESSAY,
    "word " * 400,
    " ".join(f"w{i}" for i in range(300)) + "; although",
])
def test_scores_stay_within_bounds(level, text):
    result = heuristic_scorer.score(text, level, 60)

    for value in result.dimension_scores.values():
        assert 0 <= value <= 100
    assert 0 <= result.overall_score <= 100
    assert 0 <= result.test_equivalents.ielts <= 9
    assert 0 <= result.test_equivalents.toefl <= 120
    assert 0 <= result.test_equivalents.pte <= 90
    assert len(result.recommendations) == 4


def test_scoring_is_deterministic():
    first = heuristic_scorer.score(SHORT_ESSAY, "Beginner (A1-A2)", 30)
    second = heuristic_scorer.score(SHORT_ESSAY, "Beginner (A1-A2)", 30)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_feedback_covers_each_dimension():
    result = heuristic_scorer.score(SHORT_ESSAY, "Intermediate (B1)", 0)
    assert set(result.feedback) == {"grammar", "vocabulary", "coherence", "taskResponse"}
    assert result.feedback["grammar"].strengths[0] == "Good use of complex sentences"

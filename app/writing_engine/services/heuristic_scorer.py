"""Rule-based writing scorer used when no scoring provider is reachable.

The numbers are a plausible, reproducible estimate drawn from a handful of
surface features, not a judgement of correctness. Same input, same output:
nothing here reads the clock or a random source.
"""
from __future__ import annotations

from typing import Dict, Tuple

from .types import (
    AnalysisResult,
    DimensionFeedback,
    DimensionScores,
    ExamEquivalents,
    GrammarError,
    SOURCE_HEURISTIC,
    VocabularySuggestion,
    canonical_level,
    count_words,
    round_score,
)

BASE_SCORES = {'grammar': 70, 'vocabulary': 65, 'coherence': 75, 'task_response': 70}

LEVEL_MULTIPLIERS: Dict[str, float] = {
    'Beginner (A1-A2)': 0.8,
    'Intermediate (B1)': 0.9,
    'Upper-Intermediate (B2)': 1.0,
    'Advanced (C1-C2)': 1.1,
}
DEFAULT_MULTIPLIER = 0.9

COMPLEXITY_MARKERS = (',', ';', 'because', 'although')
VARIED_VOCABULARY_RATIO = 0.7

GRAMMAR_CATALOGUE: Tuple[GrammarError, ...] = (
    GrammarError(
        category='Subject-Verb Agreement',
        original_span='The people was walking',
        corrected_span='The people were walking',
        explanation="Plural subject 'people' requires plural verb 'were'",
    ),
    GrammarError(
        category='Article Usage',
        original_span='I went to school yesterday',
        corrected_span='I went to the school yesterday',
        explanation="Use definite article 'the' when referring to a specific school",
    ),
)

VOCABULARY_CATALOGUE: Tuple[VocabularySuggestion, ...] = (
    VocabularySuggestion(
        word='good',
        alternatives=('excellent', 'outstanding', 'remarkable'),
        rationale='Consider using more sophisticated vocabulary',
    ),
    VocabularySuggestion(
        word='very',
        alternatives=('extremely', 'exceptionally', 'tremendously'),
        rationale='Avoid overusing basic intensifiers',
    ),
)

RECOMMENDATIONS: Tuple[str, ...] = (
    'Practice using more varied vocabulary',
    'Focus on complex sentence structures',
    'Use linking words to improve coherence',
    'Provide specific examples to support your points',
)


def level_multiplier(level: str) -> float:
    return LEVEL_MULTIPLIERS.get(canonical_level(level), DEFAULT_MULTIPLIER)


def has_complex_sentences(text: str) -> bool:
    return any(marker in text for marker in COMPLEXITY_MARKERS)


def vocabulary_richness(text: str) -> float:
    """Share of distinct lowercase tokens among all tokens."""
    tokens = text.split()
    if not tokens:
        return 0.0
    return len(set(text.lower().split())) / len(tokens)


def _pick(catalogue: tuple, parity_source: int) -> tuple:
    # Even lengths take two entries, odd lengths one.
    size = 2 if parity_source % 2 == 0 else 1
    return catalogue[:size]


def score(text: str, level: str, elapsed_seconds: int = 0) -> AnalysisResult:
    """Score ``text`` from its surface features.

    ``elapsed_seconds`` is accepted for signature parity with the provider
    path; it does not move any score.
    """
    essay = (text or '').strip()
    word_count = count_words(essay)
    complex_sentences = has_complex_sentences(essay)
    varied_vocabulary = vocabulary_richness(essay) > VARIED_VOCABULARY_RATIO

    raw = dict(BASE_SCORES)
    if complex_sentences:
        raw['grammar'] += 10
    if varied_vocabulary:
        raw['vocabulary'] += 15
    if word_count > 150:
        raw['task_response'] += 10
    if word_count > 250:
        raw['task_response'] += 5

    multiplier = level_multiplier(level)
    adjusted = {name: min(100, round_score(value * multiplier)) for name, value in raw.items()}
    dimension_scores = DimensionScores(**adjusted)
    overall = round_score(dimension_scores.mean())

    return AnalysisResult(
        overall_score=overall,
        test_equivalents=ExamEquivalents.from_overall(overall),
        dimension_scores=dimension_scores,
        grammar_errors=_pick(GRAMMAR_CATALOGUE, len(essay)),
        vocabulary_suggestions=_pick(VOCABULARY_CATALOGUE, word_count),
        recommendations=RECOMMENDATIONS,
        feedback=_feedback(word_count, complex_sentences, varied_vocabulary),
        source=SOURCE_HEURISTIC,
    )


def _feedback(word_count: int, complex_sentences: bool, varied_vocabulary: bool) -> Dict[str, DimensionFeedback]:
    developed = word_count > 200
    return {
        'grammar': DimensionFeedback(
            strengths=('Good use of complex sentences', 'Varied sentence structure')
            if complex_sentences else ('Clear simple sentences', 'Basic structure maintained'),
        ),
        'vocabulary': DimensionFeedback(
            strengths=('Good vocabulary range', 'Appropriate word choice')
            if varied_vocabulary else ('Basic vocabulary used correctly', 'Clear expression'),
        ),
        'coherence': DimensionFeedback(
            comment='Good organization and flow. Consider using more linking words for better coherence.'
            if developed else 'Basic organization present. Try to expand ideas and use more connecting words.',
            strengths=('Clear paragraph structure', 'Logical flow'),
            improvements=('Add more transitional phrases', 'Strengthen connections between ideas'),
        ),
        'taskResponse': DimensionFeedback(
            comment='Good response to the question with relevant content.'
            if developed else 'Addresses the question but could be more detailed and comprehensive.',
            strengths=('Relevant content', 'Stays on topic'),
            improvements=('Provide more detailed examples', 'Expand on main points')
            if word_count < 150 else ('Add more specific examples', 'Strengthen conclusion'),
        ),
    }

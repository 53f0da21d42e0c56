"""Value objects shared by the scoring, profile and placement services.

Everything here is immutable once built. ``to_dict()`` renders the camelCase
JSON shape used on the HTTP surface and stored alongside each analysis.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

WRITING_LEVELS: Tuple[str, ...] = (
    'Beginner (A1-A2)',
    'Intermediate (B1)',
    'Upper-Intermediate (B2)',
    'Advanced (C1-C2)',
)

# Short user-facing names map onto the full writing level labels.
LEVEL_ALIASES: Dict[str, str] = {
    'Beginner': 'Beginner (A1-A2)',
    'Intermediate': 'Intermediate (B1)',
    'Upper-Intermediate': 'Upper-Intermediate (B2)',
    'Advanced': 'Advanced (C1-C2)',
}

DIMENSIONS: Tuple[str, ...] = ('grammar', 'vocabulary', 'coherence', 'task_response')
PROFILE_DIMENSIONS: Tuple[str, ...] = ('grammar', 'vocabulary', 'structure', 'creativity', 'clarity')

SOURCE_PROVIDER = 'provider'
SOURCE_HEURISTIC = 'heuristic'


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from zero for non-negative scores (Python's round() is banker's)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_score(value: float) -> int:
    return int(round_half_up(value))


def count_words(text: str) -> int:
    """Count whitespace-delimited tokens."""
    return len(text.split())


def canonical_level(level: Optional[str]) -> Optional[str]:
    """Return the full writing level label for ``level`` or None when unknown."""
    if not isinstance(level, str):
        return None
    candidate = level.strip()
    if candidate in WRITING_LEVELS:
        return candidate
    return LEVEL_ALIASES.get(candidate)


@dataclass(frozen=True)
class ExamEquivalents:
    ielts: float
    toefl: int
    pte: int
    custom: int

    @classmethod
    def from_overall(cls, overall_score: int) -> 'ExamEquivalents':
        """Scale a 0-100 overall score linearly onto each exam's range."""
        ratio = overall_score / 100
        return cls(
            ielts=round_half_up(ratio * 9, 1),
            toefl=round_score(ratio * 120),
            pte=round_score(ratio * 90),
            custom=overall_score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'ielts': self.ielts, 'toefl': self.toefl, 'pte': self.pte, 'custom': self.custom}


@dataclass(frozen=True)
class DimensionScores:
    grammar: int
    vocabulary: int
    coherence: int
    task_response: int

    def values(self) -> Tuple[int, int, int, int]:
        return (self.grammar, self.vocabulary, self.coherence, self.task_response)

    def mean(self) -> float:
        return sum(self.values()) / len(DIMENSIONS)

    def to_dict(self) -> Dict[str, int]:
        return {
            'grammar': self.grammar,
            'vocabulary': self.vocabulary,
            'coherence': self.coherence,
            'taskResponse': self.task_response,
        }


@dataclass(frozen=True)
class GrammarError:
    category: str
    original_span: str
    corrected_span: str
    explanation: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'category': self.category,
            'originalSpan': self.original_span,
            'correctedSpan': self.corrected_span,
            'explanation': self.explanation,
        }


@dataclass(frozen=True)
class VocabularySuggestion:
    word: str
    alternatives: Tuple[str, ...]
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {'word': self.word, 'alternatives': list(self.alternatives), 'rationale': self.rationale}


@dataclass(frozen=True)
class DimensionFeedback:
    """Qualitative notes for one scored dimension."""
    comment: str = ''
    strengths: Tuple[str, ...] = ()
    improvements: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'comment': self.comment,
            'strengths': list(self.strengths),
            'improvements': list(self.improvements),
        }


@dataclass(frozen=True)
class AnalysisResult:
    overall_score: int
    test_equivalents: ExamEquivalents
    dimension_scores: DimensionScores
    grammar_errors: Tuple[GrammarError, ...] = ()
    vocabulary_suggestions: Tuple[VocabularySuggestion, ...] = ()
    recommendations: Tuple[str, ...] = ()
    feedback: Dict[str, DimensionFeedback] = field(default_factory=dict)
    source: str = SOURCE_HEURISTIC

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overallScore': self.overall_score,
            'testEquivalents': self.test_equivalents.to_dict(),
            'dimensionScores': self.dimension_scores.to_dict(),
            'grammarErrors': [error.to_dict() for error in self.grammar_errors],
            'vocabularySuggestions': [item.to_dict() for item in self.vocabulary_suggestions],
            'recommendations': list(self.recommendations),
            'feedback': {name: notes.to_dict() for name, notes in self.feedback.items()},
            'source': self.source,
        }


@dataclass(frozen=True)
class SkillProfile:
    grammar: float = 0.0
    vocabulary: float = 0.0
    structure: float = 0.0
    creativity: float = 0.0
    clarity: float = 0.0
    overall_score: float = 0.0

    def dimensions(self) -> Tuple[float, float, float, float, float]:
        return (self.grammar, self.vocabulary, self.structure, self.creativity, self.clarity)

    def to_dict(self) -> Dict[str, float]:
        return {
            'grammar': self.grammar,
            'vocabulary': self.vocabulary,
            'structure': self.structure,
            'creativity': self.creativity,
            'clarity': self.clarity,
            'overallScore': self.overall_score,
        }


@dataclass(frozen=True)
class PlacementResponse:
    question_id: int
    selected_answer: str
    is_correct: bool = False
    time_spent_seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'questionId': self.question_id,
            'selectedAnswer': self.selected_answer,
            'isCorrect': self.is_correct,
            'timeSpentSeconds': self.time_spent_seconds,
        }


@dataclass(frozen=True)
class SkillBreakdown:
    correct: int
    total: int
    percentage: int

    def to_dict(self) -> Dict[str, int]:
        return {'correct': self.correct, 'total': self.total, 'percentage': self.percentage}


@dataclass(frozen=True)
class PlacementResult:
    total_questions: int
    correct_answers: int
    percentage: int
    level: str
    user_facing_level: str
    skills_breakdown: Dict[str, SkillBreakdown]
    responses: Tuple[PlacementResponse, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            'percentage': self.percentage,
            'level': self.level,
            'userFacingLevel': self.user_facing_level,
            'skillsBreakdown': {name: item.to_dict() for name, item in self.skills_breakdown.items()},
        }

    def responses_to_list(self) -> List[Dict[str, Any]]:
        return [response.to_dict() for response in self.responses]

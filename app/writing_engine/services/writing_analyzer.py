"""
Writing analysis orchestration.

Sends one request to the scoring provider, validates what comes back and
falls back to the heuristic scorer whenever the provider is missing, fails or
answers with something that is not a complete analysis object.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from flask import current_app

from . import heuristic_scorer
from .errors import InvalidInput, ProviderMalformedResponse, ProviderUnavailable
from .gemini_client import get_gemini_client
from .prompt_builder import AnalysisPrompt, build_analysis_prompt
from .types import (
    AnalysisResult,
    DimensionFeedback,
    DimensionScores,
    ExamEquivalents,
    GrammarError,
    SOURCE_PROVIDER,
    VocabularySuggestion,
    round_score,
)

MIN_TEXT_LENGTH = 10
REQUIRED_FIELDS = (
    ('overallScore', 'overall_score'),
    ('testEquivalents', 'test_equivalents'),
    ('dimensionScores', 'dimension_scores'),
)
DIMENSION_KEYS = {
    'grammar': ('grammar',),
    'vocabulary': ('vocabulary',),
    'coherence': ('coherence',),
    'task_response': ('taskResponse', 'task_response'),
}

FAILURE_UNAVAILABLE = 'unavailable'
FAILURE_MALFORMED = 'malformed'


class ScoringProvider(Protocol):
    def generate(self, request: AnalysisPrompt) -> str:
        ...


@dataclass(frozen=True)
class ProviderSuccess:
    raw: str


@dataclass(frozen=True)
class ProviderFailure:
    kind: str
    reason: str


ProviderOutcome = Union[ProviderSuccess, ProviderFailure]


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` block in ``text``, ignoring braces inside strings."""
    if not text:
        return None
    start = text.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


class WritingAnalyzer:
    """Score writing submissions through the provider, or heuristically when it cannot."""

    def __init__(self, provider: Optional[ScoringProvider] = None):
        self.provider = provider

    @property
    def provider_configured(self) -> bool:
        if self.provider is None:
            return False
        return bool(getattr(self.provider, 'is_configured', True))

    def analyze(self, text: str, prompt_question: str, level: str, elapsed_seconds: int = 0) -> AnalysisResult:
        """
        Analyze one submission.

        Returns:
            A complete AnalysisResult, from the provider when it produced a valid
            analysis and from the heuristic scorer otherwise.

        Raises:
            InvalidInput: when the trimmed text is shorter than 10 characters or
                the elapsed time is negative.
        """
        essay = (text or '').strip()
        if len(essay) < MIN_TEXT_LENGTH:
            raise InvalidInput(
                f'Text is too short for analysis. Please write at least {MIN_TEXT_LENGTH} characters.'
            )

        request = build_analysis_prompt(essay, prompt_question, level, elapsed_seconds)

        if not self.provider_configured:
            outcome: ProviderOutcome = ProviderFailure(FAILURE_UNAVAILABLE, 'no scoring provider configured')
        else:
            outcome = self._call_provider(request)

        if isinstance(outcome, ProviderSuccess):
            parsed = self._parse_outcome(outcome)
            if isinstance(parsed, AnalysisResult):
                current_app.logger.info(
                    "Provider analysis accepted (word_count=%s, overall=%s)",
                    request.word_count,
                    parsed.overall_score,
                )
                return parsed
            outcome = parsed

        current_app.logger.warning(
            "Falling back to heuristic scoring (%s): %s", outcome.kind, outcome.reason
        )
        return heuristic_scorer.score(essay, level, elapsed_seconds)

    def _call_provider(self, request: AnalysisPrompt) -> ProviderOutcome:
        """Make the single provider call for this submission."""
        try:
            current_app.logger.info(
                "Calling scoring provider (level=%s, word_count=%s)", request.level, request.word_count
            )
            raw = self.provider.generate(request)
        except ProviderUnavailable as exc:
            return ProviderFailure(FAILURE_UNAVAILABLE, str(exc))
        except Exception as exc:
            current_app.logger.error("Scoring provider raised unexpectedly: %s", exc, exc_info=True)
            return ProviderFailure(FAILURE_UNAVAILABLE, f'{type(exc).__name__}: {exc}')

        if not isinstance(raw, str) or not raw.strip():
            return ProviderFailure(FAILURE_MALFORMED, 'empty provider response')
        return ProviderSuccess(raw)

    def _parse_outcome(self, outcome: ProviderSuccess) -> Union[AnalysisResult, ProviderFailure]:
        try:
            return self._result_from_payload(self._load_payload(outcome.raw))
        except ProviderMalformedResponse as exc:
            return ProviderFailure(FAILURE_MALFORMED, str(exc))

    @staticmethod
    def _load_payload(raw: str) -> Dict[str, Any]:
        candidate = extract_json_object(raw)
        if candidate is None:
            raise ProviderMalformedResponse('no JSON object in provider response')
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ProviderMalformedResponse(f'invalid JSON at position {exc.pos}: {exc.msg}') from exc
        if not isinstance(payload, dict):
            raise ProviderMalformedResponse('provider JSON is not an object')
        return payload

    def _result_from_payload(self, data: Dict[str, Any]) -> AnalysisResult:
        """Validate a provider payload and normalize it into an AnalysisResult."""
        missing = [keys[0] for keys in REQUIRED_FIELDS if _first_present(data, keys) is None]
        if missing:
            raise ProviderMalformedResponse(f"missing fields: {', '.join(missing)}")

        overall_raw = _as_score(_first_present(data, REQUIRED_FIELDS[0]))
        if overall_raw is None:
            raise ProviderMalformedResponse('overallScore is not numeric')
        overall = _clamp_score(overall_raw)

        if not isinstance(_first_present(data, REQUIRED_FIELDS[1]), dict):
            raise ProviderMalformedResponse('testEquivalents is not an object')

        raw_dimensions = _first_present(data, REQUIRED_FIELDS[2])
        if not isinstance(raw_dimensions, dict):
            raise ProviderMalformedResponse('dimensionScores is not an object')
        dimensions: Dict[str, int] = {}
        for name, keys in DIMENSION_KEYS.items():
            value = _as_score(_first_present(raw_dimensions, keys))
            if value is None:
                raise ProviderMalformedResponse(f'dimension score {keys[0]} missing or not numeric')
            dimensions[name] = _clamp_score(value)

        return AnalysisResult(
            overall_score=overall,
            # Exam equivalents are always re-derived so they stay consistent with overall_score.
            test_equivalents=ExamEquivalents.from_overall(overall),
            dimension_scores=DimensionScores(**dimensions),
            grammar_errors=self._normalize_grammar_errors(
                _first_present(data, ('grammarErrors', 'grammar_errors'))
            ),
            vocabulary_suggestions=self._normalize_vocabulary_suggestions(
                _first_present(data, ('vocabularySuggestions', 'vocabulary_suggestions'))
            ),
            recommendations=self._normalize_recommendations(data.get('recommendations')),
            feedback=self._normalize_dimension_feedback(data.get('feedback')),
            source=SOURCE_PROVIDER,
        )

    def _normalize_grammar_errors(self, value: Any) -> Tuple[GrammarError, ...]:
        if not isinstance(value, list):
            return ()

        errors: List[GrammarError] = []
        for raw in value:
            if not isinstance(raw, dict):
                continue
            original = _clean_text(_first_present(raw, ('originalSpan', 'original')), 300)
            corrected = _clean_text(_first_present(raw, ('correctedSpan', 'corrected')), 300)
            if not original or not corrected:
                continue
            errors.append(GrammarError(
                category=_clean_text(_first_present(raw, ('category', 'type')), 60) or 'Grammar',
                original_span=original,
                corrected_span=corrected,
                explanation=_clean_text(raw.get('explanation'), 300),
            ))
        return tuple(errors[:10])

    def _normalize_vocabulary_suggestions(self, value: Any) -> Tuple[VocabularySuggestion, ...]:
        if not isinstance(value, list):
            return ()

        suggestions: List[VocabularySuggestion] = []
        for raw in value:
            if not isinstance(raw, dict):
                continue
            word = _clean_text(raw.get('word'), 60)
            if not word:
                continue
            suggestions.append(VocabularySuggestion(
                word=word,
                alternatives=_clean_list(raw.get('alternatives'), limit=5, max_len=60),
                rationale=_clean_text(_first_present(raw, ('rationale', 'context')), 300),
            ))
        return tuple(suggestions[:10])

    def _normalize_recommendations(self, value: Any) -> Tuple[str, ...]:
        """Keep up to five provider recommendations, topped up to four from the canned list."""
        items = list(_clean_list(value, limit=5, max_len=200))
        for canned in heuristic_scorer.RECOMMENDATIONS:
            if len(items) >= 4:
                break
            if canned not in items:
                items.append(canned)
        return tuple(items)

    def _normalize_dimension_feedback(self, value: Any) -> Dict[str, DimensionFeedback]:
        if not isinstance(value, dict):
            return {}

        feedback: Dict[str, DimensionFeedback] = {}
        for name in ('grammar', 'vocabulary', 'coherence', 'taskResponse'):
            section = value.get(name)
            if not isinstance(section, dict):
                continue
            feedback[name] = DimensionFeedback(
                comment=_clean_text(_first_present(section, ('comment', 'feedback')), 500),
                strengths=_clean_list(section.get('strengths'), limit=4, max_len=120),
                improvements=_clean_list(section.get('improvements'), limit=4, max_len=120),
            )
        return feedback


def _first_present(data: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    """Value of the first key (camelCase, then snake_case) the provider actually filled in."""
    return next((data[key] for key in keys if data.get(key) is not None), None)


def _clamp_score(value: float) -> int:
    return max(0, min(100, round_score(value)))


def _as_score(value: Any) -> Optional[float]:
    """Numeric score or None. Numeric strings count; booleans, NaN and infinities do not."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return None
    return result if math.isfinite(result) else None


def _clean_text(value: Any, max_len: int) -> str:
    # Numbers are rendered; nested objects and lists are dropped.
    if isinstance(value, bool) or value is None:
        return ''
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return ''
    return value.strip()[:max_len]


def _clean_list(value: Any, limit: int, max_len: int) -> Tuple[str, ...]:
    """Accept a JSON array of strings, or one string with entries split on newlines or semicolons."""
    if isinstance(value, str):
        value = re.split(r'[\n;]+', value)
    if not isinstance(value, list):
        return ()
    items = (_clean_text(entry, max_len) for entry in value)
    return tuple(item for item in items if item)[:limit]


# Singleton instance
_analyzer: Optional[WritingAnalyzer] = None


def get_writing_analyzer() -> WritingAnalyzer:
    """Get or create the writing analyzer singleton wired to the Gemini client."""
    global _analyzer
    if _analyzer is None:
        _analyzer = WritingAnalyzer(provider=get_gemini_client())
    return _analyzer

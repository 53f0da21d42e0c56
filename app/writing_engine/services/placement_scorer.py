"""Placement test scoring and CEFR level determination."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidInput
from .types import PlacementResponse, PlacementResult, SkillBreakdown, round_score

CEFR_LEVELS: Tuple[str, ...] = ('A1', 'A2', 'B1', 'B2', 'C1', 'C2')

USER_FACING_LEVELS: Dict[str, str] = {
    'A1': 'Beginner',
    'A2': 'Beginner',
    'B1': 'Intermediate',
    'B2': 'Upper-Intermediate',
    'C1': 'Advanced',
    'C2': 'Advanced',
}

# Writing-level label used by exercises and completion records for each user-facing level.
WRITING_LEVEL_FOR_USER_LEVEL: Dict[str, str] = {
    'Beginner': 'Beginner (A1-A2)',
    'Intermediate': 'Intermediate (B1)',
    'Upper-Intermediate': 'Upper-Intermediate (B2)',
    'Advanced': 'Advanced (C1-C2)',
}


@dataclass(frozen=True)
class PlacementOption:
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class PlacementQuestion:
    id: int
    question: str
    category: str
    difficulty: str
    options: Tuple[PlacementOption, ...]
    explanation: str = ''
    points: int = 1

    def is_correct(self, selected_answer: str) -> bool:
        chosen = (selected_answer or '').strip()
        return any(option.is_correct and option.text.strip() == chosen for option in self.options)

    def to_public_dict(self) -> Dict[str, Any]:
        """Question as shown to the learner, without answer flags or explanation."""
        return {
            'id': self.id,
            'question': self.question,
            'category': self.category,
            'difficulty': self.difficulty,
            'options': [{'text': option.text} for option in self.options],
        }


@dataclass(frozen=True)
class LevelBand:
    level: str
    minimum: int
    maximum: int


@dataclass(frozen=True)
class AnswerKey:
    questions: Tuple[PlacementQuestion, ...]
    bands: Tuple[LevelBand, ...]
    total_points: int

    def __post_init__(self):
        validate_bands(self.bands, self.total_points)

    def question(self, question_id: int) -> Optional[PlacementQuestion]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def categories(self) -> List[str]:
        seen: List[str] = []
        for question in self.questions:
            if question.category not in seen:
                seen.append(question.category)
        return seen

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> 'AnswerKey':
        """Build a key from the stored assessment JSON (questions + scoring section)."""
        questions = tuple(
            PlacementQuestion(
                id=int(raw['id']),
                question=str(raw.get('question', '')),
                category=str(raw.get('category', '')),
                difficulty=str(raw.get('difficulty', '')),
                options=tuple(
                    PlacementOption(text=str(opt.get('text', '')), is_correct=bool(opt.get('isCorrect')))
                    for opt in raw.get('options') or []
                ),
                explanation=str(raw.get('explanation', '')),
                points=int(raw.get('points', 1)),
            )
            for raw in payload.get('questions') or []
        )
        scoring = payload.get('scoring') or {}
        thresholds = scoring.get('levelThresholds') or {}
        bands = tuple(
            LevelBand(level=level, minimum=int(bounds['min']), maximum=int(bounds['max']))
            for level, bounds in thresholds.items()
        )
        total_points = int(scoring.get('totalPoints', len(questions)))
        return cls(questions=questions, bands=bands, total_points=total_points)


def validate_bands(bands: Sequence[LevelBand], total_points: int) -> None:
    """Require the bands to partition [0, total_points] with no gaps or overlaps."""
    if not bands:
        raise InvalidInput('Level threshold table is empty.')
    ordered = sorted(bands, key=lambda band: band.minimum)
    expected_min = 0
    for band in ordered:
        if band.level not in USER_FACING_LEVELS:
            raise InvalidInput(f'Unknown CEFR level in threshold table: {band.level}')
        if band.minimum != expected_min:
            raise InvalidInput(f'Threshold band {band.level} starts at {band.minimum}, expected {expected_min}.')
        if band.maximum < band.minimum:
            raise InvalidInput(f'Threshold band {band.level} ends before it starts.')
        expected_min = band.maximum + 1
    if ordered[-1].maximum != total_points:
        raise InvalidInput(f'Threshold table ends at {ordered[-1].maximum}, expected {total_points}.')


def determine_level(correct_answers: int, bands: Sequence[LevelBand]) -> str:
    """Scan from the highest band down and take the first whose minimum is reached."""
    for band in sorted(bands, key=lambda band: band.minimum, reverse=True):
        if correct_answers >= band.minimum:
            return band.level
    return min(bands, key=lambda band: band.minimum).level


def user_facing_level(level: str) -> str:
    return USER_FACING_LEVELS.get(level, 'Beginner')


def _coerce_response(raw: Any) -> PlacementResponse:
    if isinstance(raw, PlacementResponse):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidInput('Each response must be an object.')

    question_id = raw.get('questionId', raw.get('question_id'))
    if isinstance(question_id, bool) or question_id is None:
        raise InvalidInput('Each response needs a questionId.')
    try:
        question_id = int(question_id)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput(f'Invalid questionId: {question_id!r}')

    selected = raw.get('selectedAnswer', raw.get('selected_answer'))
    if selected is not None and not isinstance(selected, str):
        raise InvalidInput(f'selectedAnswer for question {question_id} must be a string.')

    time_spent = raw.get('timeSpentSeconds', raw.get('timeSpent', 0))
    if isinstance(time_spent, bool):
        raise InvalidInput(f'Invalid time spent for question {question_id}.')
    time_spent = time_spent or 0
    try:
        time_spent = int(time_spent)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInput(f'Invalid time spent for question {question_id}.')
    if time_spent < 0:
        raise InvalidInput(f'Time spent for question {question_id} cannot be negative.')

    return PlacementResponse(question_id=question_id, selected_answer=selected or '', time_spent_seconds=time_spent)


def score(responses: Iterable[Any], answer_key: AnswerKey) -> PlacementResult:
    """Grade a placement attempt against ``answer_key``.

    Responses for question ids the key does not know are ignored and do not
    count towards the total. A second answer to the same question is ignored.
    """
    if responses is None or isinstance(responses, (str, bytes, Mapping)):
        raise InvalidInput('Responses must be a list.')

    graded: List[PlacementResponse] = []
    answered = set()
    breakdown = {category: [0, 0] for category in answer_key.categories()}

    for raw in responses:
        response = _coerce_response(raw)
        question = answer_key.question(response.question_id)
        if question is None or response.question_id in answered:
            continue
        answered.add(response.question_id)

        is_correct = question.is_correct(response.selected_answer)
        graded.append(PlacementResponse(
            question_id=response.question_id,
            selected_answer=response.selected_answer,
            is_correct=is_correct,
            time_spent_seconds=response.time_spent_seconds,
        ))
        counts = breakdown.setdefault(question.category, [0, 0])
        counts[1] += 1
        if is_correct:
            counts[0] += 1

    total = len(graded)
    correct = sum(1 for response in graded if response.is_correct)
    level = determine_level(correct, answer_key.bands)

    return PlacementResult(
        total_questions=total,
        correct_answers=correct,
        percentage=round_score(correct / total * 100) if total else 0,
        level=level,
        user_facing_level=user_facing_level(level),
        skills_breakdown={
            category: SkillBreakdown(
                correct=right,
                total=count,
                percentage=round_score(right / count * 100) if count else 0,
            )
            for category, (right, count) in breakdown.items()
        },
        responses=tuple(graded),
    )

"""Rolling per-learner skill profile.

Each graded submission nudges the profile towards the new scores with an
exponential moving average (80% history, 20% new evidence). Creativity is
only ever set by manual grading, so text analysis leaves it alone.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Mapping

from .types import PlacementResult, SkillProfile, round_score

HISTORY_WEIGHT = 0.8
EVIDENCE_WEIGHT = 0.2

# Analysis dimension -> profile dimension
ANALYSIS_TO_PROFILE = {
    'grammar': 'grammar',
    'vocabulary': 'vocabulary',
    'coherence': 'structure',
    'task_response': 'clarity',
}

# Placement category -> profile dimension
PLACEMENT_TO_PROFILE = {
    'grammar': 'grammar',
    'vocabulary': 'vocabulary',
    'structure': 'structure',
    'comprehension': 'clarity',
}


def empty_profile() -> SkillProfile:
    return SkillProfile()


def blend(old: float, incoming: float) -> int:
    return round_score(old * HISTORY_WEIGHT + incoming * EVIDENCE_WEIGHT)


def compute_overall(profile: SkillProfile) -> int:
    """Mean of the five skill dimensions, rounded."""
    dimensions = profile.dimensions()
    return round_score(sum(dimensions) / len(dimensions))


def with_overall(profile: SkillProfile) -> SkillProfile:
    return replace(profile, overall_score=float(compute_overall(profile)))


def update(profile: SkillProfile, result) -> SkillProfile:
    """Fold one AnalysisResult into ``profile`` and return the new profile."""
    scores = result.dimension_scores
    changes = {
        target: float(blend(getattr(profile, target), getattr(scores, source)))
        for source, target in ANALYSIS_TO_PROFILE.items()
    }
    return with_overall(replace(profile, **changes))


def seed_from_placement(profile: SkillProfile, placement: PlacementResult) -> SkillProfile:
    """Overwrite the skills a placement test measures with its category percentages."""
    changes = {}
    for category, target in PLACEMENT_TO_PROFILE.items():
        breakdown = placement.skills_breakdown.get(category)
        if breakdown is not None:
            changes[target] = float(breakdown.percentage)
    return with_overall(replace(profile, **changes))


def from_mapping(values: Mapping[str, float]) -> SkillProfile:
    """Build a profile from stored columns; overall is recomputed, never trusted."""
    profile = SkillProfile(
        grammar=float(values.get('grammar') or 0),
        vocabulary=float(values.get('vocabulary') or 0),
        structure=float(values.get('structure') or 0),
        creativity=float(values.get('creativity') or 0),
        clarity=float(values.get('clarity') or 0),
    )
    return with_overall(profile)

"""Reviewer assignment for Roulette.

Provides the cognitive load model, candidate scoring, and the selector that
turns a work item into a chosen reviewer.
"""

from roulette.assignment.load import (
    COMPLEXITY_WEIGHTS,
    CognitiveLoad,
    LoadStatus,
    calculate_cognitive_load,
    classify_load,
    fetch_cognitive_load,
)
from roulette.assignment.scorer import (
    SCORE_WEIGHTS,
    Candidate,
    ReviewerProfile,
    ScoreBreakdown,
    WorkItem,
    score_candidate,
)
from roulette.assignment.selector import (
    ReviewerSelector,
    SelectionError,
    SelectionOutcome,
    SelectionResult,
    format_selection_summary,
    pick_reviewer,
)

__all__ = [
    "COMPLEXITY_WEIGHTS",
    "CognitiveLoad",
    "LoadStatus",
    "calculate_cognitive_load",
    "classify_load",
    "fetch_cognitive_load",
    "SCORE_WEIGHTS",
    "Candidate",
    "ReviewerProfile",
    "ScoreBreakdown",
    "WorkItem",
    "score_candidate",
    "ReviewerSelector",
    "SelectionError",
    "SelectionOutcome",
    "SelectionResult",
    "format_selection_summary",
    "pick_reviewer",
]

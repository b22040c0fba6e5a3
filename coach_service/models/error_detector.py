"""
FORMCOACH Coach Service - Error Detector

Secondary form checks that run every frame, independent of the stage.
Raised messages stay pending until the repetition validator closes the cycle.
"""

from dataclasses import dataclass
from typing import List, Mapping

from .analysis_state import AnalysisState
from .exercise_profiles import ExerciseProfile


@dataclass(frozen=True)
class FormError:
    """A newly raised feedback message."""
    code: str
    message: str
    angle: float


class ErrorDetector:
    """Evaluates a profile's error checks against the measured angles."""

    def __init__(self, profile: ExerciseProfile):
        self.profile = profile

    def evaluate(self, state: AnalysisState, angles: Mapping[str, float]) -> List[FormError]:
        """
        Run every measurable check.

        Args:
            state: Analysis state to flag
            angles: Angles measured this frame; unmeasurable ones are absent

        Returns:
            Errors whose message was not already pending
        """
        raised: List[FormError] = []

        for check in self.profile.error_checks:
            if check.requires_ready and not state.ready_form:
                continue
            if not check.condition.holds(angles):
                continue
            if state.add_feedback(check.message):
                raised.append(FormError(
                    code=check.code,
                    message=check.message,
                    angle=angles[check.condition.angle]
                ))

        return raised

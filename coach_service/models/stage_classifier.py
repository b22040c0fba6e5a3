"""
FORMCOACH Coach Service - Stage Classifier

Maps the profile's stage angle to a discrete stage and records transitions.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .analysis_state import AnalysisState
from .exercise_profiles import ExerciseProfile, Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageTransition:
    """A change of stage observed on one frame."""
    previous: Stage
    current: Stage
    angle: float


class StageClassifier:
    """Profile-driven stage state machine."""

    def __init__(self, profile: ExerciseProfile):
        self.profile = profile

    def classify(self, angle: float) -> Optional[Stage]:
        """
        First band containing `angle`, in profile order.

        Returns None inside a dead zone; the caller keeps the previous stage.
        """
        for band in self.profile.stage_bands:
            if band.contains(angle):
                return band.stage
        return None

    def update(self, state: AnalysisState, angle: float) -> Optional[StageTransition]:
        """
        Classify `angle` and apply the resulting transition to `state`.

        S2/S3 entries are appended to the bounded history; the S1 entry is
        left for the repetition validator.
        """
        stage = self.classify(angle)
        if stage is None or stage == state.stage:
            return None

        transition = StageTransition(previous=state.stage, current=stage, angle=angle)
        state.stage = stage
        if stage in (Stage.S2, Stage.S3):
            state.history.append(stage)

        logger.debug(
            f"{self.profile.exercise_type.value}: {transition.previous.value} -> "
            f"{stage.value} at {angle:.1f}°"
        )
        return transition

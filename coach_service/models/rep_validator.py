"""
FORMCOACH Coach Service - Repetition Validator

Closes a repetition when the stage machine returns to S1 after the
canonical S2 -> S3 -> S2 cycle and scores it against the error flag.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .analysis_state import AnalysisState
from .exercise_profiles import Stage
from .stage_classifier import StageTransition

logger = logging.getLogger(__name__)

CANONICAL_CYCLE: Tuple[Stage, ...] = (Stage.S2, Stage.S3, Stage.S2)


class RepOutcome(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    DISCARDED = "discarded"


@dataclass
class RepResult:
    """Outcome of one S1 entry."""
    outcome: RepOutcome
    history: Tuple[Stage, ...]
    cleared_feedback: List[str] = field(default_factory=list)

    @property
    def counted(self) -> bool:
        return self.outcome != RepOutcome.DISCARDED


class RepetitionValidator:
    """At most one repetition per S1 entry; malformed cycles are dropped."""

    def on_transition(self, state: AnalysisState, transition: StageTransition) -> Optional[RepResult]:
        if transition.current != Stage.S1:
            return None

        history = tuple(state.history)
        state.history.clear()

        # Entering S1 without any S2/S3 in between (e.g. the first frame)
        if not history:
            return None

        if history != CANONICAL_CYCLE:
            logger.debug(f"Discarded partial cycle {[s.value for s in history]}")
            return RepResult(outcome=RepOutcome.DISCARDED, history=history)

        if state.error_flagged:
            state.incorrect_count += 1
            outcome = RepOutcome.INCORRECT
        else:
            state.correct_count += 1
            outcome = RepOutcome.CORRECT

        cleared = state.clear_feedback()
        return RepResult(outcome=outcome, history=history, cleared_feedback=cleared)

"""
FORMCOACH Coach Service - Analysis State

Mutable per-session state shared by the stage classifier, repetition
validator and error detector.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List

from .exercise_profiles import Stage

HISTORY_LENGTH = 3


@dataclass
class AnalysisState:
    """Live classification state of one exercise session."""
    stage: Stage = Stage.UNKNOWN
    history: Deque[Stage] = field(default_factory=lambda: deque(maxlen=HISTORY_LENGTH))
    error_flagged: bool = False
    feedback_messages: List[str] = field(default_factory=list)
    correct_count: int = 0
    incorrect_count: int = 0
    ready_form: bool = False

    @property
    def total_count(self) -> int:
        return self.correct_count + self.incorrect_count

    def add_feedback(self, message: str) -> bool:
        """Flag an error and record its message. Returns True if the message is new."""
        self.error_flagged = True
        if message in self.feedback_messages:
            return False
        self.feedback_messages.append(message)
        return True

    def clear_feedback(self) -> List[str]:
        """Clear the error flag and pending messages, returning what was pending."""
        cleared = list(self.feedback_messages)
        self.error_flagged = False
        self.feedback_messages.clear()
        return cleared

    def reset_for_new_set(self):
        """Start tracking a new set; counters carry over."""
        self.stage = Stage.UNKNOWN
        self.history.clear()
        self.ready_form = False
        self.clear_feedback()

    def reset_all(self):
        """Back to the initial state (exercise type switched)."""
        self.reset_for_new_set()
        self.correct_count = 0
        self.incorrect_count = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "history": [s.value for s in self.history],
            "error_flagged": self.error_flagged,
            "feedback": list(self.feedback_messages),
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "total_count": self.total_count,
            "ready_form": self.ready_form,
        }

"""
FORMCOACH Coach Service - Session Events

Everything the engine wants a presentation, speech or storage layer to
know about is emitted as a SessionEvent instead of touching UI state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from shared.utils import get_now_iso


class SessionEventType(str, Enum):
    """Event types published by an exercise session."""
    # Classification
    STAGE_CHANGED = "stage_changed"
    READY_FORM = "ready_form"
    REP_COUNTED = "rep_counted"
    REP_DISCARDED = "rep_discarded"

    # Feedback
    FEEDBACK_RAISED = "feedback_raised"
    FEEDBACK_CLEARED = "feedback_cleared"

    # Scheduling
    REST_STARTED = "rest_started"
    REST_TICK = "rest_tick"
    SET_STARTED = "set_started"
    SESSION_FINISHED = "session_finished"

    # Lifecycle
    EXERCISE_SWITCHED = "exercise_switched"
    SESSION_STOPPED = "session_stopped"


@dataclass
class SessionEvent:
    """Structured session event."""
    type: SessionEventType
    session_id: str
    exercise_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=get_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "exercise_type": self.exercise_type,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }

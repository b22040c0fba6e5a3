"""
FORMCOACH Coach Service Models

Rule-based exercise classification, repetition counting and set scheduling
driven by externally detected pose landmarks.
"""

from .landmarks import (
    Landmark,
    Frame,
    JointType,
    BodySide,
    BodyRole,
    LandmarkSelector,
    SelectedLandmarks
)

from .exercise_profiles import (
    ExerciseType,
    ExerciseProfile,
    Stage,
    StageBand,
    ErrorCheck,
    EXERCISE_PROFILES,
    get_profile
)

from .analysis_state import AnalysisState
from .stage_classifier import StageClassifier, StageTransition
from .rep_validator import RepetitionValidator, RepOutcome, RepResult
from .error_detector import ErrorDetector, FormError
from .set_scheduler import SetScheduler, SetPhase, TickOutcome
from .events import SessionEvent, SessionEventType
from .result_client import ResultSubmissionClient, SessionResult

from .exercise_session import (
    ExerciseSession,
    ExerciseSessionHandler,
    FrameResult,
    SessionConfig,
    SessionConfigError,
    SessionNotFoundError,
    SessionPhase,
    get_session_handler
)

__all__ = [
    # Landmarks
    "Landmark",
    "Frame",
    "JointType",
    "BodySide",
    "BodyRole",
    "LandmarkSelector",
    "SelectedLandmarks",
    # Profiles
    "ExerciseType",
    "ExerciseProfile",
    "Stage",
    "StageBand",
    "ErrorCheck",
    "EXERCISE_PROFILES",
    "get_profile",
    # Engine
    "AnalysisState",
    "StageClassifier",
    "StageTransition",
    "RepetitionValidator",
    "RepOutcome",
    "RepResult",
    "ErrorDetector",
    "FormError",
    "SetScheduler",
    "SetPhase",
    "TickOutcome",
    "SessionEvent",
    "SessionEventType",
    "ResultSubmissionClient",
    "SessionResult",
    # Exercise Session
    "ExerciseSession",
    "ExerciseSessionHandler",
    "FrameResult",
    "SessionConfig",
    "SessionConfigError",
    "SessionNotFoundError",
    "SessionPhase",
    "get_session_handler",
]

"""
FORMCOACH Coach Service - Exercise Session Handler

Runs the per-frame pipeline (side selection, geometry, stage machine,
repetition scoring, form checks, set scheduling) for each live session and
fans the resulting events out to subscribers.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field, ValidationError

from core.config import settings

from .analysis_state import AnalysisState
from .error_detector import ErrorDetector
from .events import SessionEvent, SessionEventType
from .exercise_profiles import ExerciseProfile, ExerciseType, get_profile
from .landmarks import Frame, LandmarkSelector, SelectedLandmarks
from .rep_validator import RepetitionValidator, RepOutcome, RepResult
from .rest_timer import RestTimer
from .result_client import ResultSubmissionClient, SessionResult
from .set_scheduler import SetPhase, SetScheduler, TickOutcome
from .stage_classifier import StageClassifier

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION AND ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

class SessionConfigError(ValueError):
    """Invalid session parameters."""


class SessionNotFoundError(LookupError):
    """No live session with the given id."""


class SessionConfig(BaseModel):
    """Parameters fixed at session start."""
    exercise_type: ExerciseType = ExerciseType.SQUAT
    reps_per_set: int = Field(default_factory=lambda: settings.DEFAULT_REPS_PER_SET, gt=0)
    total_sets: int = Field(default_factory=lambda: settings.DEFAULT_TOTAL_SETS, gt=0)
    min_pose_confidence: float = Field(default_factory=lambda: settings.MIN_POSE_CONFIDENCE, gt=0, le=1)
    min_part_confidence: float = Field(default_factory=lambda: settings.MIN_PART_CONFIDENCE, gt=0, le=1)
    rest_duration_seconds: int = Field(default_factory=lambda: settings.REST_DURATION_SECONDS, gt=0)
    side_switch_margin: float = Field(default_factory=lambda: settings.SIDE_SWITCH_MARGIN, ge=0, le=1)

    @classmethod
    def create(cls, **values: Any) -> "SessionConfig":
        """Validate parameters; omitted or None values fall back to settings."""
        try:
            return cls(**{k: v for k, v in values.items() if v is not None})
        except ValidationError as e:
            raise SessionConfigError(str(e)) from e


class SessionPhase(str, Enum):
    """Exercise session states."""
    ACTIVE = "active"
    RESTING = "rest"
    FINISHED = "completed"
    STOPPED = "stopped"


@dataclass
class FrameResult:
    """What happened while processing one frame."""
    processed: bool
    events: List[SessionEvent] = field(default_factory=list)
    angles: Dict[str, float] = field(default_factory=dict)
    side: Optional[str] = None
    skipped_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "skipped_reason": self.skipped_reason,
            "side": self.side,
            "angles": {name: round(value, 1) for name, value in self.angles.items()},
            "events": [event.to_dict() for event in self.events],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISE SESSION
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseSession:
    """
    One live exercise session.

    Synchronous and clock-free: frames go through process_frame(), the rest
    countdown advances through tick(). Every exercise switch or stop bumps
    `generation`; ticks tagged with an older generation are ignored.
    """

    def __init__(self, session_id: str, user_id: str, config: SessionConfig):
        self.session_id = session_id
        self.user_id = user_id
        self.config = config
        self.created_at = time.time()

        self.state = AnalysisState()
        self.scheduler = SetScheduler(
            reps_per_set=config.reps_per_set,
            total_sets=config.total_sets,
            rest_duration_seconds=config.rest_duration_seconds
        )
        self.selector = LandmarkSelector(switch_margin=config.side_switch_margin)
        self.validator = RepetitionValidator()
        self._load_profile(config.exercise_type)

        self.generation = 0
        self.stopped = False
        self.result: Optional[SessionResult] = None
        self.frames_processed = 0
        self.frames_skipped = 0

    def _load_profile(self, exercise_type: ExerciseType):
        self.profile: ExerciseProfile = get_profile(exercise_type)
        self.classifier = StageClassifier(self.profile)
        self.detector = ErrorDetector(self.profile)

    @property
    def exercise_type(self) -> ExerciseType:
        return self.profile.exercise_type

    @property
    def phase(self) -> SessionPhase:
        if self.stopped:
            return SessionPhase.STOPPED
        scheduler_phase = self.scheduler.phase
        if scheduler_phase == SetPhase.FINISHED:
            return SessionPhase.FINISHED
        if scheduler_phase == SetPhase.RESTING:
            return SessionPhase.RESTING
        return SessionPhase.ACTIVE

    def _event(self, event_type: SessionEventType, **payload: Any) -> SessionEvent:
        return SessionEvent(
            type=event_type,
            session_id=self.session_id,
            exercise_type=self.exercise_type.value,
            payload=payload
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # FRAME PIPELINE
    # ═══════════════════════════════════════════════════════════════════════════

    def measure_angles(self, landmarks: SelectedLandmarks) -> Dict[str, float]:
        """Measure every profile angle whose landmarks are confident enough."""
        angles = {}
        for name, spec in self.profile.angles.items():
            if landmarks.is_confident(self.profile.roles_for(name), self.config.min_part_confidence):
                angles[name] = spec.measure(landmarks)
        return angles

    def process_frame(self, frame: Frame) -> FrameResult:
        """
        Classify one frame.

        Frames are ignored while resting, after the session finished or
        stopped, and when the pose score is below min_pose_confidence.
        """
        phase = self.phase
        if phase != SessionPhase.ACTIVE:
            self.frames_skipped += 1
            return FrameResult(processed=False, skipped_reason=phase.value)

        if frame.pose_confidence < self.config.min_pose_confidence:
            self.frames_skipped += 1
            return FrameResult(processed=False, skipped_reason="low_pose_confidence")

        self.frames_processed += 1
        landmarks = self.selector.select(frame, self.profile.required_roles)
        angles = self.measure_angles(landmarks)
        events: List[SessionEvent] = []

        if self.profile.has_ready_gate and not self.state.ready_form:
            if all(condition.holds(angles) for condition in self.profile.ready_gate):
                self.state.ready_form = True
                events.append(self._event(SessionEventType.READY_FORM))

        stage_angle = angles.get(self.profile.stage_angle)
        tracking = self.state.ready_form or not self.profile.has_ready_gate
        if stage_angle is not None and tracking:
            transition = self.classifier.update(self.state, stage_angle)
            if transition:
                events.append(self._event(
                    SessionEventType.STAGE_CHANGED,
                    previous=transition.previous.value,
                    stage=transition.current.value,
                    angle=round(transition.angle, 1)
                ))
                rep = self.validator.on_transition(self.state, transition)
                if rep:
                    events.extend(self._rep_events(rep))

        for error in self.detector.evaluate(self.state, angles):
            events.append(self._event(
                SessionEventType.FEEDBACK_RAISED,
                code=error.code,
                message=error.message,
                angle=round(error.angle, 1)
            ))

        if self.scheduler.check_set_complete(self.state.total_count):
            events.append(self._event(
                SessionEventType.REST_STARTED,
                set_number=self.scheduler.current_set,
                rest_seconds=self.scheduler.schedule.rest_remaining_seconds
            ))

        return FrameResult(
            processed=True,
            events=events,
            angles=angles,
            side=landmarks.side.value
        )

    def _rep_events(self, rep: RepResult) -> List[SessionEvent]:
        if rep.outcome == RepOutcome.DISCARDED:
            return [self._event(
                SessionEventType.REP_DISCARDED,
                history=[s.value for s in rep.history]
            )]

        events = [self._event(
            SessionEventType.REP_COUNTED,
            correct=rep.outcome == RepOutcome.CORRECT,
            correct_count=self.state.correct_count,
            incorrect_count=self.state.incorrect_count
        )]
        if rep.cleared_feedback:
            events.append(self._event(SessionEventType.FEEDBACK_CLEARED, messages=rep.cleared_feedback))

        logger.debug(
            f"Rep {rep.outcome.value} for {self.session_id} "
            f"({self.state.correct_count} correct / {self.state.incorrect_count} incorrect)"
        )
        return events

    # ═══════════════════════════════════════════════════════════════════════════
    # REST COUNTDOWN
    # ═══════════════════════════════════════════════════════════════════════════

    def tick(self, generation: Optional[int] = None) -> List[SessionEvent]:
        """
        Advance the rest countdown by one second.

        Args:
            generation: Generation the caller was started for; stale values
                are ignored

        Returns:
            Events produced by this tick
        """
        if generation is not None and generation != self.generation:
            logger.debug(f"Ignoring stale tick for {self.session_id} (generation {generation})")
            return []
        if self.stopped:
            return []

        outcome = self.scheduler.tick()
        if outcome == TickOutcome.IGNORED:
            return []

        events = [self._event(
            SessionEventType.REST_TICK,
            remaining_seconds=self.scheduler.schedule.rest_remaining_seconds
        )]

        if outcome == TickOutcome.NEXT_SET:
            cleared = list(self.state.feedback_messages)
            self.state.reset_for_new_set()
            self.selector.reset()
            if cleared:
                events.append(self._event(SessionEventType.FEEDBACK_CLEARED, messages=cleared))
            events.append(self._event(
                SessionEventType.SET_STARTED,
                set_number=self.scheduler.current_set,
                total_sets=self.scheduler.schedule.total_sets
            ))

        elif outcome == TickOutcome.FINISHED:
            self.result = SessionResult(
                exercise_type=self.exercise_type.value,
                correct_count=self.state.correct_count,
                incorrect_count=self.state.incorrect_count
            )
            events.append(self._event(SessionEventType.SESSION_FINISHED, result=self.result.to_dict()))

        return events

    # ═══════════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════════

    def switch_exercise(self, exercise_type: Any) -> List[SessionEvent]:
        """Switch exercise type, re-initializing analysis state and schedule."""
        try:
            new_type = ExerciseType(exercise_type)
        except ValueError as e:
            raise SessionConfigError(
                f"Invalid exercise type. Valid types: {[t.value for t in ExerciseType]}"
            ) from e

        previous = self.exercise_type
        self.config = self.config.model_copy(update={"exercise_type": new_type})
        self._load_profile(new_type)
        self.state.reset_all()
        self.scheduler.reset()
        self.selector.reset()
        self.generation += 1
        self.stopped = False
        self.result = None

        logger.info(f"🔄 Session {self.session_id}: {previous.value} -> {new_type.value}")
        return [self._event(SessionEventType.EXERCISE_SWITCHED, previous=previous.value)]

    def stop(self) -> List[SessionEvent]:
        """Stop analysis; pending rest ticks become stale."""
        if self.stopped:
            return []
        self.stopped = True
        self.generation += 1
        logger.info(f"⏹️ Session {self.session_id} stopped")
        return [self._event(SessionEventType.SESSION_STOPPED)]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "exercise_type": self.exercise_type.value,
            "state": self.phase.value,
            "generation": self.generation,
            "analysis": self.state.to_dict(),
            "schedule": self.scheduler.to_dict(),
            "tracked_side": self.selector.current_side.value if self.selector.current_side else None,
            "frames_processed": self.frames_processed,
            "frames_skipped": self.frames_skipped,
            "result": self.result.to_dict() if self.result else None,
            "config": self.config.model_dump(mode="json"),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION HANDLER
# ═══════════════════════════════════════════════════════════════════════════════

EventListener = Callable[[List[SessionEvent]], Awaitable[None]]


class ExerciseSessionHandler:
    """
    Manages live exercise sessions.

    Features:
    - Session registry with config validation
    - Per-frame analysis and event fan-out to subscribers
    - Rest countdown timers tagged with the session generation
    - Result hand-off when a session finishes
    """

    def __init__(
        self,
        result_client: Optional[ResultSubmissionClient] = None,
        rest_tick_seconds: Optional[float] = None
    ):
        """
        Initialize session handler.

        Args:
            result_client: Result submission client (configured from settings if None)
            rest_tick_seconds: Rest timer interval (settings.REST_TICK_SECONDS if None)
        """
        self.result_client = result_client or ResultSubmissionClient()
        self.rest_tick_seconds = rest_tick_seconds or settings.REST_TICK_SECONDS
        self.active_sessions: Dict[str, ExerciseSession] = {}
        self._listeners: Dict[str, List[EventListener]] = {}
        self._rest_timers: Dict[str, RestTimer] = {}
        self._pending_submissions: Set[asyncio.Task] = set()

    def create_session(self, user_id: str, **config_values: Any) -> ExerciseSession:
        """
        Create a new exercise session.

        Raises:
            SessionConfigError: if any parameter is invalid
        """
        config = SessionConfig.create(**config_values)
        session_id = str(uuid.uuid4())[:8]

        session = ExerciseSession(session_id=session_id, user_id=user_id, config=config)
        self.active_sessions[session_id] = session

        logger.info(
            f"🏋️ Session {session_id} created for {user_id}: {config.exercise_type.value} "
            f"{config.total_sets}x{config.reps_per_set}"
        )
        return session

    def get_session(self, session_id: str) -> Optional[ExerciseSession]:
        """Get session by ID."""
        return self.active_sessions.get(session_id)

    def require_session(self, session_id: str) -> ExerciseSession:
        session = self.active_sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # ========================================
    # Event fan-out
    # ========================================

    def subscribe(self, session_id: str, listener: EventListener):
        self._listeners.setdefault(session_id, []).append(listener)

    def unsubscribe(self, session_id: str, listener: EventListener):
        listeners = self._listeners.get(session_id, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(session_id, None)

    async def publish(self, session_id: str, events: List[SessionEvent]):
        """Deliver events to every subscriber of a session."""
        if not events:
            return
        for listener in list(self._listeners.get(session_id, [])):
            try:
                await listener(events)
            except Exception as e:
                logger.error(f"Event listener failed for {session_id}: {e}")

    # ========================================
    # Frames and ticks
    # ========================================

    async def process_frame(self, session_id: str, frame: Frame) -> FrameResult:
        """Analyse a frame, publish its events and start the rest timer if needed."""
        session = self.require_session(session_id)
        result = session.process_frame(frame)

        if any(e.type == SessionEventType.REST_STARTED for e in result.events):
            self._start_rest_timer(session)

        await self.publish(session_id, result.events)
        return result

    async def tick(self, session_id: str, generation: Optional[int] = None) -> List[SessionEvent]:
        """Advance a session's rest countdown and publish the outcome."""
        session = self.require_session(session_id)
        events = session.tick(generation)

        if any(e.type == SessionEventType.SESSION_FINISHED for e in events):
            # The countdown is over; a later switch or stop must not cancel delivery
            self._rest_timers.pop(session_id, None)
            self._submit_result(session_id, session.result)

        await self.publish(session_id, events)
        return events

    def _submit_result(self, session_id: str, result: SessionResult):
        task = asyncio.create_task(self.result_client.submit(result))
        self._pending_submissions.add(task)

        def on_done(finished: asyncio.Task):
            self._pending_submissions.discard(finished)
            if finished.cancelled():
                logger.error(f"Result submission for {session_id} was cancelled")
            elif finished.exception() is not None:
                logger.error(f"Result submission for {session_id} failed: {finished.exception()}")

        task.add_done_callback(on_done)

    async def _on_rest_tick(self, session_id: str, generation: int) -> bool:
        session = self.active_sessions.get(session_id)
        if session is None:
            return True

        await self.tick(session_id, generation)

        done = session.generation != generation or session.phase != SessionPhase.RESTING
        if done:
            timer = self._rest_timers.get(session_id)
            if timer is not None and timer.generation == generation:
                del self._rest_timers[session_id]
        return done

    def _start_rest_timer(self, session: ExerciseSession):
        self._cancel_rest_timer(session.session_id)
        timer = RestTimer(
            session_id=session.session_id,
            generation=session.generation,
            on_tick=self._on_rest_tick,
            interval=self.rest_tick_seconds
        )
        self._rest_timers[session.session_id] = timer
        timer.start()

    def _cancel_rest_timer(self, session_id: str):
        timer = self._rest_timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()

    def has_rest_timer(self, session_id: str) -> bool:
        timer = self._rest_timers.get(session_id)
        return timer is not None and timer.running

    # ========================================
    # Lifecycle
    # ========================================

    async def switch_exercise(self, session_id: str, exercise_type: Any) -> ExerciseSession:
        """Switch a session to another exercise type, cancelling any rest timer."""
        session = self.require_session(session_id)
        events = session.switch_exercise(exercise_type)
        self._cancel_rest_timer(session_id)
        await self.publish(session_id, events)
        return session

    async def stop_session(self, session_id: str) -> ExerciseSession:
        """Stop analysis immediately."""
        session = self.require_session(session_id)
        events = session.stop()
        self._cancel_rest_timer(session_id)
        await self.publish(session_id, events)
        return session

    async def cleanup_session(self, session_id: str):
        """Stop and remove a session."""
        if session_id not in self.active_sessions:
            return
        await self.stop_session(session_id)
        self._listeners.pop(session_id, None)
        del self.active_sessions[session_id]

    async def shutdown(self):
        """Cancel all timers, drop every session and wait for pending result submissions."""
        for session_id in list(self.active_sessions):
            await self.cleanup_session(session_id)
        if self._pending_submissions:
            await asyncio.gather(*self._pending_submissions, return_exceptions=True)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_sessions": len(self.active_sessions),
            "resting_sessions": sum(1 for t in self._rest_timers.values() if t.running),
            "pending_submissions": len(self._pending_submissions),
            "subscribers": sum(len(v) for v in self._listeners.values()),
            "results": self.result_client.get_stats(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[ExerciseSessionHandler] = None

def get_session_handler() -> ExerciseSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = ExerciseSessionHandler()
    return _handler_instance

"""End-to-end frame pipeline of a single exercise session."""

import pytest

from coach_service.models import (
    BodyRole,
    BodySide,
    ExerciseSession,
    ExerciseType,
    SessionConfig,
    SessionConfigError,
    SessionEventType,
    SessionPhase,
    Stage,
)

SQUAT_REP = (10, 50, 90, 50, 10)
SQUAT_DEEP_REP = (10, 50, 110, 50, 10)
PUSH_UP_REP = (170, 120, 80, 120, 170)
CURL_REP = (160, 90, 40, 90, 160)


def make_session(**config) -> ExerciseSession:
    config.setdefault("rest_duration_seconds", 2)
    return ExerciseSession("sess-1", "user-1", SessionConfig.create(**config))


def feed(session, build, angles, **kwargs):
    events = []
    for angle in angles:
        events.extend(session.process_frame(build(angle, **kwargs)).events)
    return events


def types(events):
    return [e.type for e in events]


def tick_until_active(session):
    events = []
    while session.phase == SessionPhase.RESTING:
        events.extend(session.tick())
    return events


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestSessionConfig:

    def test_defaults_come_from_settings(self):
        config = SessionConfig.create()
        assert config.exercise_type == ExerciseType.SQUAT
        assert config.reps_per_set == 10
        assert config.total_sets == 3
        assert config.rest_duration_seconds == 90
        assert config.min_pose_confidence == 0.2
        assert config.min_part_confidence == 0.6

    def test_none_values_use_defaults(self):
        assert SessionConfig.create(reps_per_set=None).reps_per_set == 10

    @pytest.mark.parametrize("values", [
        {"reps_per_set": 0},
        {"total_sets": -1},
        {"rest_duration_seconds": 0},
        {"min_part_confidence": 1.5},
        {"min_pose_confidence": 0},
        {"exercise_type": "plank"},
    ])
    def test_invalid_values_rejected(self, values):
        with pytest.raises(SessionConfigError):
            SessionConfig.create(**values)


# ═══════════════════════════════════════════════════════════════════════════════
# SQUAT
# ═══════════════════════════════════════════════════════════════════════════════

class TestSquat:

    def test_low_part_confidence_never_changes_stage(self, squat_frame):
        session = make_session()
        session.process_frame(squat_frame(10))
        assert session.state.stage == Stage.S1

        feed(session, squat_frame, (50, 90), confidences={BodyRole.HIP: 0.3})
        assert session.state.stage == Stage.S1

        feed(session, squat_frame, (50, 90), confidences={BodyRole.KNEE: 0.5})
        assert session.state.stage == Stage.S1

    def test_low_pose_score_skips_frame(self, squat_frame):
        session = make_session()
        result = session.process_frame(squat_frame(50, score=0.1))
        assert not result.processed
        assert result.skipped_reason == "low_pose_confidence"
        assert session.state.stage == Stage.UNKNOWN

    def test_canonical_rep_is_correct(self, squat_frame):
        session = make_session()
        events = feed(session, squat_frame, SQUAT_REP)

        assert session.state.correct_count == 1
        assert session.state.incorrect_count == 0
        assert len(session.state.history) == 0
        assert types(events).count(SessionEventType.REP_COUNTED) == 1
        assert types(events).count(SessionEventType.STAGE_CHANGED) == 5

    def test_too_deep_rep_is_incorrect(self, squat_frame):
        session = make_session()
        events = feed(session, squat_frame, SQUAT_DEEP_REP)

        assert session.state.correct_count == 0
        assert session.state.incorrect_count == 1
        assert types(events).count(SessionEventType.FEEDBACK_RAISED) == 1
        assert SessionEventType.FEEDBACK_CLEARED in types(events)
        assert session.state.feedback_messages == []

    def test_feedback_raised_once_per_message(self, squat_frame):
        session = make_session()
        events = feed(session, squat_frame, (10, 50, 110, 112, 115))
        raised = [e for e in events if e.type == SessionEventType.FEEDBACK_RAISED]
        assert len(raised) == 1
        assert raised[0].payload["message"] == "Squatting too deep"

    def test_knee_over_toe(self, squat_frame):
        session = make_session()
        events = feed(session, squat_frame, (10, 50, 90), shin=40)
        raised = [e.payload["code"] for e in events if e.type == SessionEventType.FEEDBACK_RAISED]
        assert raised == ["knee_over_toe"]

    def test_partial_cycle_is_discarded(self, squat_frame):
        session = make_session()
        events = feed(session, squat_frame, (10, 50, 10))

        assert session.state.total_count == 0
        assert SessionEventType.REP_DISCARDED in types(events)
        assert len(session.state.history) == 0

    def test_history_never_exceeds_three(self, squat_frame):
        session = make_session()
        for angle in (10, 50, 90, 50, 90, 50, 90, 50, 90):
            session.process_frame(squat_frame(angle))
            assert len(session.state.history) <= 3

    def test_left_side_is_tracked(self, squat_frame):
        session = make_session()
        result = session.process_frame(squat_frame(50, side=BodySide.LEFT))
        assert result.side == "left"
        assert session.state.stage == Stage.S2


# ═══════════════════════════════════════════════════════════════════════════════
# PUSH-UP AND BICEP CURL
# ═══════════════════════════════════════════════════════════════════════════════

class TestPushUp:

    def test_stage_tracking_waits_for_ready_form(self, push_up_frame):
        session = make_session(exercise_type="push_up")

        feed(session, push_up_frame, (120, 80, 120))
        assert session.state.stage == Stage.UNKNOWN
        assert not session.state.ready_form

        # Sagging plank with straight arms is not a ready pose
        session.process_frame(push_up_frame(170, hip_drop=0.1))
        assert not session.state.ready_form

        events = session.process_frame(push_up_frame(170)).events
        assert types(events)[:2] == [SessionEventType.READY_FORM, SessionEventType.STAGE_CHANGED]
        assert session.state.stage == Stage.S1

    def test_canonical_rep_is_correct(self, push_up_frame):
        session = make_session(exercise_type="push_up")
        feed(session, push_up_frame, PUSH_UP_REP)
        assert session.state.correct_count == 1

    def test_hip_sag_after_ready_marks_rep_incorrect(self, push_up_frame):
        session = make_session(exercise_type="push_up")
        session.process_frame(push_up_frame(170))
        feed(session, push_up_frame, (120, 80, 120), hip_drop=0.1)
        session.process_frame(push_up_frame(170))

        assert session.state.incorrect_count == 1
        assert session.state.correct_count == 0

    def test_missing_knee_blocks_measurement(self, push_up_frame):
        session = make_session(exercise_type="push_up")
        result = session.process_frame(push_up_frame(170, confidences={BodyRole.KNEE: 0.1}))
        assert result.angles == {}
        assert not session.state.ready_form


class TestBicepCurl:

    def test_canonical_rep_is_correct(self, curl_frame):
        session = make_session(exercise_type="bicep_curl")
        feed(session, curl_frame, CURL_REP)
        assert session.state.correct_count == 1

    def test_upper_arm_drift_marks_rep_incorrect(self, curl_frame):
        session = make_session(exercise_type="bicep_curl")
        session.process_frame(curl_frame(160))
        events = feed(session, curl_frame, (90, 40, 90), upper_arm=50)
        session.process_frame(curl_frame(160))

        assert session.state.incorrect_count == 1
        assert "upper_arm_drift" in [
            e.payload["code"] for e in events if e.type == SessionEventType.FEEDBACK_RAISED
        ]

    def test_overlap_angle_is_mid_stage(self, curl_frame):
        session = make_session(exercise_type="bicep_curl")
        session.process_frame(curl_frame(60))
        assert session.state.stage == Stage.S2


# ═══════════════════════════════════════════════════════════════════════════════
# SETS AND REST
# ═══════════════════════════════════════════════════════════════════════════════

class TestSetsAndRest:

    def test_rest_starts_when_set_completes(self, squat_frame):
        session = make_session(reps_per_set=5, total_sets=3)
        events = []
        for _ in range(5):
            events.extend(feed(session, squat_frame, SQUAT_REP))

        assert types(events).count(SessionEventType.REST_STARTED) == 1
        assert session.phase == SessionPhase.RESTING

        result = session.process_frame(squat_frame(50))
        assert not result.processed
        assert result.skipped_reason == SessionPhase.RESTING.value
        assert session.state.total_count == 5

    def test_next_set_after_countdown(self, squat_frame):
        session = make_session(reps_per_set=5, total_sets=3)
        for _ in range(5):
            feed(session, squat_frame, SQUAT_REP)

        first = session.tick()
        assert types(first) == [SessionEventType.REST_TICK]
        assert first[0].payload["remaining_seconds"] == 1

        second = session.tick()
        assert SessionEventType.SET_STARTED in types(second)
        assert session.phase == SessionPhase.ACTIVE
        assert session.scheduler.current_set == 2
        assert session.state.stage == Stage.UNKNOWN
        assert session.state.total_count == 5

        # Counters are cumulative: set 2 ends at ten reps
        for _ in range(4):
            feed(session, squat_frame, SQUAT_REP)
        assert session.phase == SessionPhase.ACTIVE
        feed(session, squat_frame, SQUAT_REP)
        assert session.phase == SessionPhase.RESTING

    def test_single_result_after_last_set(self, squat_frame):
        session = make_session(reps_per_set=2, total_sets=2, rest_duration_seconds=1)
        feed(session, squat_frame, SQUAT_REP)
        feed(session, squat_frame, SQUAT_DEEP_REP)
        tick_until_active(session)
        feed(session, squat_frame, SQUAT_REP)
        feed(session, squat_frame, SQUAT_REP)

        events = tick_until_active(session)
        finished = [e for e in events if e.type == SessionEventType.SESSION_FINISHED]
        assert len(finished) == 1
        assert session.phase == SessionPhase.FINISHED
        assert session.result.correct_count == 3
        assert session.result.incorrect_count == 1
        assert session.result.accuracy == pytest.approx(0.75)
        assert session.result.to_submission() == {
            "exerciseType": "squat",
            "count": 4,
            "accuracy": 0.75,
        }

        assert session.tick() == []
        assert not session.process_frame(squat_frame(50)).processed


# ═══════════════════════════════════════════════════════════════════════════════
# LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════════

class TestLifecycle:

    def test_switch_resets_everything(self, squat_frame):
        session = make_session(reps_per_set=1, total_sets=3)
        feed(session, squat_frame, SQUAT_REP)
        session.tick()
        session.tick()
        assert session.scheduler.current_set == 2

        events = session.switch_exercise("bicep_curl")

        assert types(events) == [SessionEventType.EXERCISE_SWITCHED]
        assert session.exercise_type == ExerciseType.BICEP_CURL
        assert session.state.total_count == 0
        assert session.state.stage == Stage.UNKNOWN
        assert len(session.state.history) == 0
        assert session.scheduler.current_set == 1
        assert session.phase == SessionPhase.ACTIVE

    def test_switch_rejects_unknown_exercise(self):
        session = make_session()
        with pytest.raises(SessionConfigError):
            session.switch_exercise("plank")
        assert session.exercise_type == ExerciseType.SQUAT

    def test_stale_generation_tick_is_ignored(self, squat_frame):
        session = make_session(reps_per_set=1, total_sets=2)
        feed(session, squat_frame, SQUAT_REP)
        generation = session.generation
        session.switch_exercise("squat")
        feed(session, squat_frame, SQUAT_REP)
        assert session.phase == SessionPhase.RESTING

        assert session.tick(generation) == []
        assert session.scheduler.schedule.rest_remaining_seconds == 2
        assert session.tick(session.generation) != []

    def test_stop_suspends_analysis(self, squat_frame):
        session = make_session()
        events = session.stop()
        assert types(events) == [SessionEventType.SESSION_STOPPED]
        assert session.phase == SessionPhase.STOPPED
        assert session.process_frame(squat_frame(50)).skipped_reason == "stopped"
        assert session.stop() == []

    def test_to_dict(self, squat_frame):
        session = make_session()
        feed(session, squat_frame, SQUAT_REP)
        data = session.to_dict()
        assert data["exercise_type"] == "squat"
        assert data["analysis"]["correct_count"] == 1
        assert data["schedule"]["current_set"] == 1
        assert data["config"]["exercise_type"] == "squat"
        assert data["tracked_side"] == "right"

    def test_events_carry_utc_timestamps(self, squat_frame):
        from datetime import datetime, timezone

        session = make_session()
        event = session.process_frame(squat_frame(10)).events[0]
        stamp = datetime.fromisoformat(event.to_dict()["timestamp"])
        assert stamp.tzinfo is not None
        assert stamp.utcoffset() == timezone.utc.utcoffset(None)

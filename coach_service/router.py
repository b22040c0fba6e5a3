"""
FORMCOACH Coach Service Router

Endpoints for live exercise sessions: start, per-frame analysis, exercise
switching and a WebSocket stream that pushes session events back.
Landmarks are produced client-side by the pose model.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from shared.utils import handle_exceptions

from .models import (
    EXERCISE_PROFILES,
    ExerciseSessionHandler,
    Frame,
    SessionEvent,
    get_session_handler
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services() -> ExerciseSessionHandler:
    """Get the session handler instance."""
    return get_session_handler()


# ============= Pydantic Models =============

class LandmarkIn(BaseModel):
    id: int = Field(ge=0, le=32)
    x: float
    y: float
    confidence: float = Field(default=0.0, ge=0, le=1)


class FrameRequest(BaseModel):
    landmarks: List[LandmarkIn]
    score: Optional[float] = None
    timestamp: Optional[float] = None

    def to_frame(self) -> Frame:
        return Frame.from_dicts(
            [lm.model_dump() for lm in self.landmarks],
            score=self.score,
            timestamp=self.timestamp
        )


class StartSessionRequest(BaseModel):
    user_id: str
    exercise_type: str = "squat"
    reps_per_set: Optional[int] = None
    total_sets: Optional[int] = None
    rest_duration_seconds: Optional[int] = None
    min_pose_confidence: Optional[float] = None
    min_part_confidence: Optional[float] = None
    side_switch_margin: Optional[float] = None


class SwitchRequest(BaseModel):
    exercise_type: str


# ============= Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """Get the supported exercises with their thresholds."""
    exercises = [profile.to_dict() for profile in EXERCISE_PROFILES.values()]
    return {
        "exercises": exercises,
        "total": len(exercises)
    }


@router.post("/session/start")
@handle_exceptions
async def start_exercise_session(request: StartSessionRequest):
    """
    Start a new exercise session.

    Returns a session ID for use with the frame endpoint or WebSocket stream.
    """
    session_handler = get_services()

    session = session_handler.create_session(
        user_id=request.user_id,
        **request.model_dump(exclude={"user_id"})
    )

    return {
        "status": "created",
        "session_id": session.session_id,
        "session": session.to_dict(),
        "websocket_url": f"/api/coach/ws/session/{session.session_id}"
    }


@router.get("/session/{session_id}")
@handle_exceptions
async def get_session(session_id: str):
    """Get a session snapshot."""
    session = get_services().require_session(session_id)
    return session.to_dict()


@router.post("/session/{session_id}/frame")
@handle_exceptions
async def process_frame(session_id: str, request: FrameRequest):
    """Analyse one frame of landmarks."""
    session_handler = get_services()

    result = await session_handler.process_frame(session_id, request.to_frame())
    session = session_handler.require_session(session_id)

    return {
        "session_id": session_id,
        "result": result.to_dict(),
        "session": session.to_dict()
    }


@router.post("/session/{session_id}/switch")
@handle_exceptions
async def switch_exercise(session_id: str, request: SwitchRequest):
    """Switch exercise type; counters, set and history start over."""
    session = await get_services().switch_exercise(session_id, request.exercise_type)
    return {
        "status": "switched",
        "session": session.to_dict()
    }


@router.post("/session/{session_id}/stop")
@handle_exceptions
async def stop_session(session_id: str):
    """Stop analysis for a session."""
    session = await get_services().stop_session(session_id)
    return {
        "status": "stopped",
        "session": session.to_dict()
    }


@router.delete("/session/{session_id}")
@handle_exceptions
async def delete_session(session_id: str):
    """Stop and forget a session."""
    session_handler = get_services()
    session_handler.require_session(session_id)
    await session_handler.cleanup_session(session_id)
    return {
        "status": "deleted",
        "session_id": session_id
    }


# ============= WebSocket =============

@router.websocket("/ws/session/{session_id}")
async def exercise_session_stream(websocket: WebSocket, session_id: str):
    """
    Real-time exercise session stream.

    Client -> server: frame payloads ({landmarks, score, timestamp}) or
    control messages ({"action": "switch", "exercise_type": ...} /
    {"action": "stop"}).
    Server -> client: FRAME_RESULT per processed frame and EVENT for every
    session event, including rest countdown ticks.
    """
    await websocket.accept()
    session_handler = get_services()

    session = session_handler.get_session(session_id)
    if not session:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    async def forward_events(events: List[SessionEvent]):
        for event in events:
            await websocket.send_json({"type": "EVENT", "event": event.to_dict()})

    session_handler.subscribe(session_id, forward_events)

    try:
        await websocket.send_json({
            "type": "SESSION_STARTED",
            "session": session.to_dict()
        })

        while True:
            raw = await websocket.receive_text()

            try:
                data: Dict[str, Any] = json.loads(raw)
                if not isinstance(data, dict):
                    raise ValueError("Expected a JSON object")
                action = data.get("action")

                if action == "switch":
                    await session_handler.switch_exercise(session_id, data.get("exercise_type"))
                elif action == "stop":
                    await session_handler.stop_session(session_id)
                elif action is not None:
                    raise ValueError(f"Unknown action: {action}")
                else:
                    frame = FrameRequest.model_validate(data).to_frame()
                    result = await session_handler.process_frame(session_id, frame)
                    await websocket.send_json({
                        "type": "FRAME_RESULT",
                        "processed": result.processed,
                        "skipped_reason": result.skipped_reason,
                        "side": result.side,
                        "angles": {name: round(v, 1) for name, v in result.angles.items()},
                        "analysis": session.state.to_dict(),
                        "schedule": session.scheduler.to_dict()
                    })

            except ValueError as e:
                await websocket.send_json({
                    "type": "ERROR",
                    "message": str(e)
                })
            except LookupError:
                await websocket.send_json({
                    "type": "ERROR",
                    "message": f"Session {session_id} no longer exists"
                })
                break

    except WebSocketDisconnect:
        logger.info(f"Session stream {session_id} disconnected")
    finally:
        session_handler.unsubscribe(session_id, forward_events)

"""
Shared synthetic-frame builders.

Coordinates are image coordinates (y grows downward). Only the landmarks of
the tracked side are emitted; its ear is reported with high confidence and
the opposite ear with low confidence so side selection is deterministic.
"""

import math
from typing import Dict, Optional, Tuple

import pytest

from coach_service.models import BodyRole, BodySide, Frame, Landmark
from coach_service.models.landmarks import SIDE_JOINTS

SEGMENT = 0.2


def build_frame(
    points: Dict[BodyRole, Tuple[float, float]],
    side: BodySide = BodySide.RIGHT,
    confidence: float = 0.9,
    confidences: Optional[Dict[BodyRole, float]] = None,
    score: Optional[float] = 0.9
) -> Frame:
    confidences = confidences or {}
    landmarks = [
        Landmark(SIDE_JOINTS[side][BodyRole.EAR].value, 0.5, 0.1, 0.9),
        Landmark(SIDE_JOINTS[side.opposite][BodyRole.EAR].value, 0.5, 0.1, 0.1),
    ]
    for role, (x, y) in points.items():
        landmarks.append(Landmark(
            SIDE_JOINTS[side][role].value, x, y, confidences.get(role, confidence)
        ))
    return Frame.from_landmarks(landmarks, score=score)


def _offset(origin: Tuple[float, float], direction_deg: float) -> Tuple[float, float]:
    """Point SEGMENT away from `origin`, `direction_deg` clockwise from straight down."""
    rad = math.radians(direction_deg)
    return origin[0] + SEGMENT * math.sin(rad), origin[1] + SEGMENT * math.cos(rad)


def _bent(elbow: Tuple[float, float], shoulder: Tuple[float, float], arm_deg: float) -> Tuple[float, float]:
    """Wrist position giving an elbow angle of `arm_deg`."""
    ux, uy = shoulder[0] - elbow[0], shoulder[1] - elbow[1]
    norm = math.hypot(ux, uy)
    ux, uy = ux / norm, uy / norm
    rad = math.radians(arm_deg)
    return (
        elbow[0] + SEGMENT * (ux * math.cos(rad) - uy * math.sin(rad)),
        elbow[1] + SEGMENT * (ux * math.sin(rad) + uy * math.cos(rad)),
    )


def squat_points(knee: float, shin: float = 0.0) -> Dict[BodyRole, Tuple[float, float]]:
    hip = (0.5, 0.4)
    knee_point = _offset(hip, knee)
    return {
        BodyRole.HIP: hip,
        BodyRole.KNEE: knee_point,
        BodyRole.ANKLE: _offset(knee_point, shin),
    }


def curl_points(arm: float, upper_arm: float = 0.0) -> Dict[BodyRole, Tuple[float, float]]:
    shoulder = (0.5, 0.3)
    elbow = _offset(shoulder, upper_arm)
    return {
        BodyRole.SHOULDER: shoulder,
        BodyRole.ELBOW: elbow,
        BodyRole.WRIST: _bent(elbow, shoulder, arm),
    }


def push_up_points(arm: float, hip_drop: float = 0.0) -> Dict[BodyRole, Tuple[float, float]]:
    shoulder = (0.3, 0.5)
    elbow = (0.3, 0.7)
    return {
        BodyRole.SHOULDER: shoulder,
        BodyRole.ELBOW: elbow,
        BodyRole.WRIST: _bent(elbow, shoulder, arm),
        BodyRole.HIP: (0.5, 0.5 + hip_drop),
        BodyRole.KNEE: (0.7, 0.5),
    }


@pytest.fixture
def squat_frame():
    """squat_frame(knee, shin=0, **frame_kwargs) -> Frame"""
    def build(knee: float, shin: float = 0.0, **kwargs) -> Frame:
        return build_frame(squat_points(knee, shin), **kwargs)
    return build


@pytest.fixture
def curl_frame():
    """curl_frame(arm, upper_arm=0, **frame_kwargs) -> Frame"""
    def build(arm: float, upper_arm: float = 0.0, **kwargs) -> Frame:
        return build_frame(curl_points(arm, upper_arm), **kwargs)
    return build


@pytest.fixture
def push_up_frame():
    """push_up_frame(arm, hip_drop=0, **frame_kwargs) -> Frame"""
    def build(arm: float, hip_drop: float = 0.0, **kwargs) -> Frame:
        return build_frame(push_up_points(arm, hip_drop), **kwargs)
    return build

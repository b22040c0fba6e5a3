"""
FORMCOACH Coach Service - Landmarks

Landmark and frame types produced by the external pose model, plus the
per-frame body side selection used by every exercise.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class JointType(Enum):
    """BlazePose landmark numbering."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class BodySide(str, Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> "BodySide":
        return BodySide.RIGHT if self is BodySide.LEFT else BodySide.LEFT


class BodyRole(str, Enum):
    """Side-independent landmark roles an exercise can ask for."""
    EAR = "ear"
    SHOULDER = "shoulder"
    ELBOW = "elbow"
    WRIST = "wrist"
    HIP = "hip"
    KNEE = "knee"
    ANKLE = "ankle"


SIDE_JOINTS: Dict[BodySide, Dict[BodyRole, JointType]] = {
    BodySide.LEFT: {
        BodyRole.EAR: JointType.LEFT_EAR,
        BodyRole.SHOULDER: JointType.LEFT_SHOULDER,
        BodyRole.ELBOW: JointType.LEFT_ELBOW,
        BodyRole.WRIST: JointType.LEFT_WRIST,
        BodyRole.HIP: JointType.LEFT_HIP,
        BodyRole.KNEE: JointType.LEFT_KNEE,
        BodyRole.ANKLE: JointType.LEFT_ANKLE,
    },
    BodySide.RIGHT: {
        BodyRole.EAR: JointType.RIGHT_EAR,
        BodyRole.SHOULDER: JointType.RIGHT_SHOULDER,
        BodyRole.ELBOW: JointType.RIGHT_ELBOW,
        BodyRole.WRIST: JointType.RIGHT_WRIST,
        BodyRole.HIP: JointType.RIGHT_HIP,
        BodyRole.KNEE: JointType.RIGHT_KNEE,
        BodyRole.ANKLE: JointType.RIGHT_ANKLE,
    },
}


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark in image coordinates with its confidence."""
    id: int
    x: float
    y: float
    confidence: float

    def to_numpy(self) -> np.ndarray:
        return np.array([self.x, self.y])


@dataclass
class Frame:
    """One pose estimation cycle: landmarks indexed by anatomical id."""
    landmarks: Dict[int, Landmark]
    score: Optional[float] = None
    timestamp: Optional[float] = None

    @classmethod
    def from_landmarks(
        cls,
        landmarks: Iterable[Landmark],
        score: Optional[float] = None,
        timestamp: Optional[float] = None
    ) -> "Frame":
        return cls(
            landmarks={lm.id: lm for lm in landmarks},
            score=score,
            timestamp=timestamp
        )

    @classmethod
    def from_dicts(
        cls,
        landmarks: Iterable[Mapping[str, Any]],
        score: Optional[float] = None,
        timestamp: Optional[float] = None
    ) -> "Frame":
        """Build a frame from JSON-style landmark dicts ({id, x, y, confidence})."""
        return cls.from_landmarks(
            (
                Landmark(
                    id=int(item["id"]),
                    x=float(item["x"]),
                    y=float(item["y"]),
                    confidence=float(item.get("confidence", 0.0))
                )
                for item in landmarks
            ),
            score=score,
            timestamp=timestamp
        )

    def get(self, joint: JointType) -> Optional[Landmark]:
        return self.landmarks.get(joint.value)

    def confidence(self, joint: JointType) -> float:
        """Confidence of a landmark, 0 when the model did not report it."""
        landmark = self.get(joint)
        return landmark.confidence if landmark else 0.0

    @property
    def pose_confidence(self) -> float:
        """Overall pose score, or the mean landmark confidence when absent."""
        if self.score is not None:
            return self.score
        if not self.landmarks:
            return 0.0
        return float(np.mean([lm.confidence for lm in self.landmarks.values()]))


@dataclass
class SelectedLandmarks:
    """Landmarks of one body side, keyed by role."""
    side: BodySide
    points: Dict[BodyRole, Landmark] = field(default_factory=dict)

    def is_confident(self, roles: Iterable[BodyRole], min_confidence: float) -> bool:
        """True when every requested role is present with enough confidence."""
        for role in roles:
            landmark = self.points.get(role)
            if landmark is None or landmark.confidence < min_confidence:
                return False
        return True

    def point(self, role: BodyRole) -> np.ndarray:
        return self.points[role].to_numpy()


# ═══════════════════════════════════════════════════════════════════════════════
# SIDE SELECTION
# ═══════════════════════════════════════════════════════════════════════════════

class LandmarkSelector:
    """
    Picks the body side facing the camera and extracts its landmarks.

    The side whose ear is detected with higher confidence wins. With
    `switch_margin` at 0 the choice is recomputed from scratch every frame
    (ties go to `default_side`). A positive margin makes the choice sticky:
    the selector only flips once the other ear beats the current one by more
    than the margin.
    """

    def __init__(self, switch_margin: float = 0.0, default_side: BodySide = BodySide.RIGHT):
        self.switch_margin = switch_margin
        self.default_side = default_side
        self.current_side: Optional[BodySide] = None

    def choose_side(self, frame: Frame) -> BodySide:
        confidences = {
            side: frame.confidence(SIDE_JOINTS[side][BodyRole.EAR])
            for side in BodySide
        }

        if self.switch_margin <= 0 or self.current_side is None:
            left = confidences[BodySide.LEFT]
            right = confidences[BodySide.RIGHT]
            if left == right:
                side = self.default_side
            else:
                side = BodySide.LEFT if left > right else BodySide.RIGHT
        else:
            side = self.current_side
            other = side.opposite
            if confidences[other] > confidences[side] + self.switch_margin:
                side = other

        if side != self.current_side and self.current_side is not None:
            logger.debug(f"Tracked side switched {self.current_side.value} -> {side.value}")
        self.current_side = side
        return side

    def select(self, frame: Frame, roles: Optional[Iterable[BodyRole]] = None) -> SelectedLandmarks:
        """
        Extract the landmarks of the chosen side.

        Args:
            frame: Current frame
            roles: Roles to extract (all roles if None)

        Returns:
            SelectedLandmarks for the chosen side; roles the model did not
            report are left out.
        """
        side = self.choose_side(frame)
        joints = SIDE_JOINTS[side]
        wanted: List[BodyRole] = list(roles) if roles is not None else list(BodyRole)

        points = {}
        for role in wanted:
            landmark = frame.get(joints[role])
            if landmark is not None:
                points[role] = landmark

        return SelectedLandmarks(side=side, points=points)

    def reset(self):
        self.current_side = None

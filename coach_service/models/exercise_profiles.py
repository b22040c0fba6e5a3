"""
FORMCOACH Coach Service - Exercise Profiles

Declarative parameter bundles, one per exercise type. The stage classifier
and error detector read everything exercise-specific from here; adding an
exercise means adding a profile to EXERCISE_PROFILES.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .geometry import angle_between, angle_from_vertical
from .landmarks import BodyRole, SelectedLandmarks


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseType(str, Enum):
    """Supported exercise types."""
    SQUAT = "squat"
    PUSH_UP = "push_up"
    BICEP_CURL = "bicep_curl"


class Stage(str, Enum):
    """Canonical positions of a repetition."""
    UNKNOWN = "unknown"
    S1 = "s1"   # extended / start
    S2 = "s2"   # mid-range
    S3 = "s3"   # deep / peak


class AngleMethod(str, Enum):
    JOINT = "joint"          # angle at roles[0] between roles[1] and roles[2]
    VERTICAL = "vertical"    # deviation of roles[0] -> roles[1] from vertical


class Comparison(str, Enum):
    GREATER = "gt"
    LESS = "lt"


# ═══════════════════════════════════════════════════════════════════════════════
# PROFILE BUILDING BLOCKS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AngleSpec:
    """How to measure one named angle from selected landmarks."""
    method: AngleMethod
    roles: Tuple[BodyRole, ...]

    @classmethod
    def joint(cls, vertex: BodyRole, a: BodyRole, b: BodyRole) -> "AngleSpec":
        return cls(AngleMethod.JOINT, (vertex, a, b))

    @classmethod
    def vertical(cls, start: BodyRole, end: BodyRole) -> "AngleSpec":
        return cls(AngleMethod.VERTICAL, (start, end))

    def measure(self, landmarks: SelectedLandmarks) -> float:
        points = [landmarks.point(role) for role in self.roles]
        if self.method is AngleMethod.JOINT:
            return angle_between(*points)
        return angle_from_vertical(*points)


@dataclass(frozen=True)
class StageBand:
    """Angle interval mapped to a stage. None means unbounded."""
    stage: Stage
    lower: Optional[float] = None
    upper: Optional[float] = None
    lower_inclusive: bool = True
    upper_inclusive: bool = True

    def contains(self, angle: float) -> bool:
        if self.lower is not None:
            if angle < self.lower or (angle == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if angle > self.upper or (angle == self.upper and not self.upper_inclusive):
                return False
        return True

    def describe(self) -> str:
        left = "[" if self.lower_inclusive else "("
        right = "]" if self.upper_inclusive else ")"
        lower = "-inf" if self.lower is None else f"{self.lower:g}"
        upper = "inf" if self.upper is None else f"{self.upper:g}"
        return f"{left}{lower}, {upper}{right}"


@dataclass(frozen=True)
class AngleCondition:
    """Strict comparison of a named angle against a threshold."""
    angle: str
    comparison: Comparison
    threshold: float

    def holds(self, angles: Mapping[str, float]) -> bool:
        value = angles.get(self.angle)
        if value is None:
            return False
        if self.comparison is Comparison.GREATER:
            return value > self.threshold
        return value < self.threshold


@dataclass(frozen=True)
class ErrorCheck:
    """A form check raising a named feedback message."""
    code: str
    message: str
    condition: AngleCondition
    requires_ready: bool = False


@dataclass(frozen=True)
class ExerciseProfile:
    """Everything the engine needs to know about one exercise."""
    exercise_type: ExerciseType
    angles: Mapping[str, AngleSpec]
    stage_angle: str
    stage_bands: Tuple[StageBand, ...]
    error_checks: Tuple[ErrorCheck, ...] = ()
    ready_gate: Tuple[AngleCondition, ...] = ()
    gate_roles: Tuple[BodyRole, ...] = ()

    @property
    def has_ready_gate(self) -> bool:
        return bool(self.ready_gate)

    @property
    def required_roles(self) -> FrozenSet[BodyRole]:
        roles = set(self.gate_roles)
        for spec in self.angles.values():
            roles.update(spec.roles)
        return frozenset(roles)

    def roles_for(self, angle_name: str) -> FrozenSet[BodyRole]:
        """Roles that must be confident before `angle_name` is measured."""
        return frozenset(self.gate_roles) | frozenset(self.angles[angle_name].roles)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "exercise_type": self.exercise_type.value,
            "required_landmarks": sorted(role.value for role in self.required_roles),
            "stage_angle": self.stage_angle,
            "stage_bands": [
                {"stage": band.stage.value, "range": band.describe()}
                for band in self.stage_bands
            ],
            "error_checks": [
                {
                    "code": check.code,
                    "message": check.message,
                    "angle": check.condition.angle,
                    "comparison": check.condition.comparison.value,
                    "threshold": check.condition.threshold,
                }
                for check in self.error_checks
            ],
            "ready_gate": [
                {
                    "angle": cond.angle,
                    "comparison": cond.comparison.value,
                    "threshold": cond.threshold,
                }
                for cond in self.ready_gate
            ],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# PROFILE TABLE
# ═══════════════════════════════════════════════════════════════════════════════

SQUAT_PROFILE = ExerciseProfile(
    exercise_type=ExerciseType.SQUAT,
    angles={
        "knee": AngleSpec.vertical(BodyRole.HIP, BodyRole.KNEE),
        "shin": AngleSpec.vertical(BodyRole.KNEE, BodyRole.ANKLE),
    },
    stage_angle="knee",
    # (32, 35) and (65, 75) are dead zones
    stage_bands=(
        StageBand(Stage.S1, upper=32),
        StageBand(Stage.S2, lower=35, upper=65),
        StageBand(Stage.S3, lower=75),
    ),
    error_checks=(
        ErrorCheck(
            code="squat_too_deep",
            message="Squatting too deep",
            condition=AngleCondition("knee", Comparison.GREATER, 105),
        ),
        ErrorCheck(
            code="knee_over_toe",
            message="Knees are going past your toes",
            condition=AngleCondition("shin", Comparison.GREATER, 30),
        ),
    ),
)

PUSH_UP_PROFILE = ExerciseProfile(
    exercise_type=ExerciseType.PUSH_UP,
    angles={
        "arm": AngleSpec.joint(BodyRole.ELBOW, BodyRole.WRIST, BodyRole.SHOULDER),
        "shoulder": AngleSpec.joint(BodyRole.SHOULDER, BodyRole.ELBOW, BodyRole.HIP),
        "hip": AngleSpec.joint(BodyRole.HIP, BodyRole.SHOULDER, BodyRole.KNEE),
    },
    stage_angle="arm",
    stage_bands=(
        StageBand(Stage.S1, lower=160, lower_inclusive=False),
        StageBand(Stage.S2, lower=100, upper=145, lower_inclusive=False),
        StageBand(Stage.S3, upper=90),
    ),
    error_checks=(
        ErrorCheck(
            code="hip_sag",
            message="Keep your hips in line with your body",
            condition=AngleCondition("hip", Comparison.LESS, 160),
            requires_ready=True,
        ),
    ),
    ready_gate=(
        AngleCondition("arm", Comparison.GREATER, 160),
        AngleCondition("shoulder", Comparison.GREATER, 40),
        AngleCondition("hip", Comparison.GREATER, 165),
    ),
    gate_roles=(BodyRole.WRIST, BodyRole.ELBOW, BodyRole.SHOULDER, BodyRole.HIP, BodyRole.KNEE),
)

BICEP_CURL_PROFILE = ExerciseProfile(
    exercise_type=ExerciseType.BICEP_CURL,
    angles={
        "arm": AngleSpec.joint(BodyRole.ELBOW, BodyRole.WRIST, BodyRole.SHOULDER),
        "upper_arm": AngleSpec.vertical(BodyRole.SHOULDER, BodyRole.ELBOW),
    },
    stage_angle="arm",
    # S2 and S3 overlap on (55, 65); band order makes S2 win there
    stage_bands=(
        StageBand(Stage.S1, lower=140),
        StageBand(Stage.S2, lower=55, upper=130, lower_inclusive=False),
        StageBand(Stage.S3, upper=65, upper_inclusive=False),
    ),
    error_checks=(
        ErrorCheck(
            code="upper_arm_drift",
            message="Keep your upper arm still",
            condition=AngleCondition("upper_arm", Comparison.GREATER, 40),
        ),
    ),
    gate_roles=(BodyRole.WRIST, BodyRole.ELBOW, BodyRole.SHOULDER),
)

EXERCISE_PROFILES: Dict[ExerciseType, ExerciseProfile] = {
    profile.exercise_type: profile
    for profile in (SQUAT_PROFILE, PUSH_UP_PROFILE, BICEP_CURL_PROFILE)
}


def get_profile(exercise_type: ExerciseType) -> ExerciseProfile:
    """Look up the profile for an exercise type."""
    return EXERCISE_PROFILES[ExerciseType(exercise_type)]

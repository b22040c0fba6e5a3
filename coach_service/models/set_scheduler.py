"""
FORMCOACH Coach Service - Set Scheduler

Tracks the current set and the rest countdown between sets. The countdown
is advanced by an external clock calling tick() once per second.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

logger = logging.getLogger(__name__)


class SetPhase(str, Enum):
    ACTIVE = "active"
    RESTING = "resting"
    FINISHED = "finished"


class TickOutcome(str, Enum):
    IGNORED = "ignored"          # not resting
    COUNTING = "counting"        # still resting
    NEXT_SET = "next_set"
    FINISHED = "finished"


@dataclass
class SetSchedule:
    reps_per_set: int
    total_sets: int
    current_set: int = 1
    is_resting: bool = False
    rest_remaining_seconds: int = 0
    finished: bool = False


class SetScheduler:
    """
    Active(set) -> Resting(set, remaining) -> Active(set + 1) | Finished.

    Reps are cumulative over the session, so set N is complete once
    reps_per_set * N repetitions have been counted.
    """

    def __init__(self, reps_per_set: int, total_sets: int, rest_duration_seconds: int):
        self.rest_duration_seconds = rest_duration_seconds
        self.schedule = SetSchedule(reps_per_set=reps_per_set, total_sets=total_sets)

    @property
    def phase(self) -> SetPhase:
        if self.schedule.finished:
            return SetPhase.FINISHED
        if self.schedule.is_resting:
            return SetPhase.RESTING
        return SetPhase.ACTIVE

    @property
    def current_set(self) -> int:
        return self.schedule.current_set

    @property
    def target_reps(self) -> int:
        """Cumulative rep count that completes the current set."""
        return self.schedule.reps_per_set * self.schedule.current_set

    def check_set_complete(self, total_reps: int) -> bool:
        """Enter the rest interval if the current set is done. Returns True on entry."""
        if self.phase != SetPhase.ACTIVE or total_reps < self.target_reps:
            return False

        self.schedule.is_resting = True
        self.schedule.rest_remaining_seconds = self.rest_duration_seconds
        logger.info(
            f"⏸️ Set {self.schedule.current_set}/{self.schedule.total_sets} complete "
            f"({total_reps} reps) - resting {self.rest_duration_seconds}s"
        )
        return True

    def tick(self) -> TickOutcome:
        """Advance the rest countdown by one second."""
        if self.phase != SetPhase.RESTING:
            return TickOutcome.IGNORED

        self.schedule.rest_remaining_seconds = max(0, self.schedule.rest_remaining_seconds - 1)
        if self.schedule.rest_remaining_seconds > 0:
            return TickOutcome.COUNTING

        self.schedule.is_resting = False
        if self.schedule.current_set + 1 <= self.schedule.total_sets:
            self.schedule.current_set += 1
            logger.info(f"▶️ Starting set {self.schedule.current_set}/{self.schedule.total_sets}")
            return TickOutcome.NEXT_SET

        self.schedule.finished = True
        logger.info(f"🏁 All {self.schedule.total_sets} sets complete")
        return TickOutcome.FINISHED

    def reset(self):
        self.schedule = SetSchedule(
            reps_per_set=self.schedule.reps_per_set,
            total_sets=self.schedule.total_sets
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "reps_per_set": self.schedule.reps_per_set,
            "total_sets": self.schedule.total_sets,
            "current_set": self.schedule.current_set,
            "is_resting": self.schedule.is_resting,
            "rest_remaining_seconds": self.schedule.rest_remaining_seconds,
        }

"""
FORMCOACH Coach Service - Result Submission Client

Delivers the terminal SessionResult of a finished workout to an external
HTTP endpoint. Delivery failures are logged and never affect the session.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SessionResult:
    """Summary of a finished workout."""
    exercise_type: str
    correct_count: int
    incorrect_count: int

    @property
    def total_count(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def accuracy(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.correct_count / self.total_count

    def to_submission(self) -> Dict[str, Any]:
        """Payload expected by the result endpoint."""
        return {
            "exerciseType": self.exercise_type,
            "count": self.total_count,
            "accuracy": self.accuracy,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exercise_type": self.exercise_type,
            "total_count": self.total_count,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "accuracy": round(self.accuracy, 4),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SUBMISSION CLIENT
# ═══════════════════════════════════════════════════════════════════════════════

class ResultSubmissionClient:
    """
    POSTs session results as JSON.

    With no endpoint configured the result is only logged.
    """

    def __init__(self, endpoint: Optional[str] = None, timeout: Optional[float] = None):
        self.endpoint = settings.RESULT_SUBMIT_URL if endpoint is None else endpoint
        self.timeout = timeout or settings.RESULT_SUBMIT_TIMEOUT
        self._sent_count = 0
        self._failed_count = 0

    async def submit(self, result: SessionResult) -> bool:
        """
        Submit a session result.

        Returns:
            True if the endpoint accepted the result (or none is configured)
        """
        payload = result.to_submission()

        if not self.endpoint:
            logger.info(f"📝 Session result (not submitted, no endpoint): {payload}")
            return True

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, json=payload) as response:
                    if 200 <= response.status < 300:
                        self._sent_count += 1
                        logger.info(f"📤 Session result submitted: {payload}")
                        return True

                    self._failed_count += 1
                    logger.error(f"Result submission rejected: HTTP {response.status}")
                    return False

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._failed_count += 1
            logger.error(f"Result submission failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint or None,
            "sent": self._sent_count,
            "failed": self._failed_count,
        }

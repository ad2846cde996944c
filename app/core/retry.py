"""
Retry policies for pipeline jobs.

A policy bounds retries twice: by attempt count and by a wall-clock deadline
measured from the first attempt. Whichever is hit first ends the job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    countdown: int = 0
    reason: Optional[str] = None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    backoff: Sequence[int]
    deadline_seconds: Optional[int] = None

    def delay_for(self, attempt: int) -> int:
        """Delay before the retry that follows ``attempt`` (1-based). Capped at the last step."""
        if not self.backoff:
            return 0
        index = min(max(attempt, 1), len(self.backoff)) - 1
        return int(self.backoff[index])

    def decide(
        self, attempt: int, first_attempt_at: float, now: float
    ) -> RetryDecision:
        """Decide what to do after ``attempt`` (1-based) failed."""
        if attempt >= self.max_attempts:
            return RetryDecision(
                retry=False, reason=f"max attempts reached ({self.max_attempts})"
            )
        countdown = self.delay_for(attempt)
        if self.deadline_seconds is not None:
            elapsed = now - first_attempt_at
            if elapsed >= self.deadline_seconds:
                return RetryDecision(
                    retry=False,
                    reason=f"retry deadline exceeded ({self.deadline_seconds}s)",
                )
        return RetryDecision(retry=True, countdown=countdown)


RETRY_DEADLINE_SECONDS = 600

INSTAGRAM_EVENTS_POLICY = RetryPolicy(
    max_attempts=8,
    backoff=(1, 2, 4, 8, 16, 32, 64, 128),
    deadline_seconds=RETRY_DEADLINE_SECONDS,
)
FACEBOOK_EVENTS_POLICY = RetryPolicy(
    max_attempts=8, backoff=(1,), deadline_seconds=RETRY_DEADLINE_SECONDS
)
WHATSAPP_EVENTS_POLICY = RetryPolicy(
    max_attempts=8, backoff=(1,), deadline_seconds=RETRY_DEADLINE_SECONDS
)
SEND_REPLY_POLICY = RetryPolicy(max_attempts=3, backoff=(5, 15, 30))
WEBHOOK_POLICY = RetryPolicy(max_attempts=3, backoff=(5, 15, 30))

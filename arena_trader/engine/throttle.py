"""
DecisionThrottle - per-agent admission control for decision calls.

An agent is blocked while inside a backoff window or while its cooldown since
the last successful decision has not elapsed. Failures are classified by
status code and message text; anything unrecognized gets no backoff.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger("arena_trader.engine.throttle")

RATE_LIMIT_PATTERN = re.compile(r"rate limit", re.IGNORECASE)
DATA_POLICY_PATTERN = re.compile(r"data policy|publication", re.IGNORECASE)
MODERATION_PATTERN = re.compile(r"moderation", re.IGNORECASE)

RATE_LIMIT_BACKOFF_MINUTES = 60
DATA_POLICY_BACKOFF_MINUTES = 30
MODERATION_BACKOFF_MINUTES = 10


def error_status(error: Any) -> Optional[str]:
    """Best-effort HTTP-ish status from an exception, as a string."""
    for attr in ("status", "status_code", "code"):
        value = getattr(error, attr, None)
        if value is not None and not callable(value):
            return str(value)
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if value is not None:
        return str(value)
    return None


def classify_backoff(error: Any) -> int:
    """Minutes of backoff a decision failure earns. 0 means none."""
    status = error_status(error)
    message = str(error)
    if status == "429" or RATE_LIMIT_PATTERN.search(message):
        return RATE_LIMIT_BACKOFF_MINUTES
    if status == "404" and DATA_POLICY_PATTERN.search(message):
        return DATA_POLICY_BACKOFF_MINUTES
    if status == "403" and MODERATION_PATTERN.search(message):
        return MODERATION_BACKOFF_MINUTES
    return 0


@dataclass
class AgentTiming:
    last_call_at: Optional[float] = None
    backoff_until: float = 0.0


class DecisionThrottle:
    """Holds last-call and backoff timestamps (epoch seconds) per agent."""

    def __init__(self, min_call_interval_seconds: float):
        self.min_call_interval_seconds = min_call_interval_seconds
        self._timings: Dict[str, AgentTiming] = {}

    def timing(self, agent_id: str) -> AgentTiming:
        return self._timings.setdefault(agent_id, AgentTiming())

    def check(self, agent_id: str, now: float) -> Tuple[bool, Optional[str]]:
        """(allowed, reason) for calling agent_id at time now."""
        t = self.timing(agent_id)
        if now < t.backoff_until:
            return False, f"backoff for {t.backoff_until - now:.0f}s more"
        if t.last_call_at is not None and now - t.last_call_at < self.min_call_interval_seconds:
            wait = self.min_call_interval_seconds - (now - t.last_call_at)
            return False, f"cooldown for {wait:.0f}s more"
        return True, None

    def record_success(self, agent_id: str, now: float) -> None:
        self.timing(agent_id).last_call_at = now

    def record_failure(self, agent_id: str, error: Any, now: float) -> int:
        """Apply backoff for a failed decision; returns the minutes applied."""
        minutes = classify_backoff(error)
        if minutes > 0:
            self.timing(agent_id).backoff_until = now + minutes * 60
            logger.warning(f"Agent {agent_id} backing off {minutes}m after: {error}")
        return minutes

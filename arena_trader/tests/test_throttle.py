"""
Decision throttle: cooldowns, backoff windows and error classification.
"""
from types import SimpleNamespace

from arena_trader.engine.throttle import DecisionThrottle, classify_backoff, error_status

from conftest import StatusError


class TestClassifyBackoff:
    def test_rate_limit_by_status(self):
        assert classify_backoff(StatusError("Too Many Requests", 429)) == 60

    def test_rate_limit_by_message(self):
        assert classify_backoff(RuntimeError("Rate limit exceeded for model")) == 60

    def test_data_policy_needs_404_and_message(self):
        assert classify_backoff(StatusError("No endpoints found matching your data policy", 404)) == 30
        assert classify_backoff(StatusError("Not found", 404)) == 0

    def test_moderation_needs_403_and_message(self):
        assert classify_backoff(StatusError("Input flagged by moderation", 403)) == 10
        assert classify_backoff(StatusError("Forbidden", 403)) == 0

    def test_unknown_errors_get_no_backoff(self):
        assert classify_backoff(ValueError("boom")) == 0
        assert classify_backoff(StatusError("Internal error", 500)) == 0

    def test_status_from_status_attribute_and_response(self):
        err = RuntimeError("x")
        err.status = 429
        assert error_status(err) == "429"

        err = RuntimeError("y")
        err.response = SimpleNamespace(status_code=403)
        assert error_status(err) == "403"
        assert error_status(RuntimeError("z")) is None


class TestDecisionThrottle:
    def test_first_call_allowed(self):
        throttle = DecisionThrottle(min_call_interval_seconds=300)
        assert throttle.check("a", 1000.0) == (True, None)

    def test_cooldown_after_success(self):
        throttle = DecisionThrottle(min_call_interval_seconds=300)
        throttle.record_success("a", 1000.0)
        allowed, reason = throttle.check("a", 1299.0)
        assert not allowed
        assert "cooldown" in reason
        assert throttle.check("a", 1300.0)[0]

    def test_cooldown_is_per_agent(self):
        throttle = DecisionThrottle(min_call_interval_seconds=300)
        throttle.record_success("a", 1000.0)
        assert throttle.check("b", 1001.0)[0]

    def test_rate_limit_blocks_for_an_hour(self):
        throttle = DecisionThrottle(min_call_interval_seconds=0)
        minutes = throttle.record_failure("a", StatusError("slow down", 429), 1000.0)
        assert minutes == 60
        allowed, reason = throttle.check("a", 1000.0 + 3599)
        assert not allowed and "backoff" in reason
        assert throttle.check("a", 1000.0 + 3600)[0]

    def test_unclassified_failure_leaves_agent_callable(self):
        throttle = DecisionThrottle(min_call_interval_seconds=300)
        assert throttle.record_failure("a", ValueError("bad json"), 1000.0) == 0
        assert throttle.check("a", 1000.0)[0]

    def test_failure_does_not_update_last_call(self):
        throttle = DecisionThrottle(min_call_interval_seconds=300)
        throttle.record_success("a", 1000.0)
        throttle.record_failure("a", ValueError("x"), 1400.0)
        assert throttle.timing("a").last_call_at == 1000.0

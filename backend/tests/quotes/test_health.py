"""Tests for ProviderHealth and the circuit breaker."""

import pytest

from app.quotes.health import CircuitState, ProviderHealth
from app.quotes.settings import CircuitSettings

NOW = 1_000.0


def _health(**circuit):
    defaults = {"window": 10, "min_calls": 4, "failure_threshold": 0.5, "cooldown": 30}
    return ProviderHealth(name="yahoo", circuit=CircuitSettings(**{**defaults, **circuit}))


class TestProviderHealth:
    """Counters and latency tracking."""

    def test_fresh_record(self):
        health = _health()
        assert health.requests == 0
        assert health.failure_ratio == 0.0
        assert health.state(NOW) is CircuitState.CLOSED

    def test_success_resets_consecutive_failures(self):
        health = _health()
        health.record_failure("boom", 10, NOW)
        health.record_failure("boom", 10, NOW)
        health.record_success(10, NOW)
        assert health.consecutive_failures == 0
        assert health.failures == 2
        assert health.successes == 1
        assert health.last_error == "boom"

    def test_not_found_is_healthy(self):
        health = _health()
        health.record_not_found(10, NOW)
        assert health.not_found == 1
        assert health.failure_ratio == 0.0
        assert health.last_success_at == NOW

    def test_latency_moving_average(self):
        health = _health()
        health.record_success(100, NOW)
        assert health.avg_latency_ms == 100
        health.record_success(200, NOW)
        assert health.avg_latency_ms == pytest.approx(120)

    def test_to_dict(self):
        health = _health()
        health.record_failure("HTTP 500", 12.0, NOW)
        data = health.to_dict(NOW)
        assert data["name"] == "yahoo"
        assert data["state"] == "closed"
        assert data["failures"] == 1
        assert data["avg_latency_ms"] == 12.0
        assert data["last_error"] == "HTTP 500"


class TestCircuitBreaker:
    """closed -> open -> half_open -> closed/open transitions."""

    def test_needs_min_calls_before_opening(self):
        health = _health()
        for _ in range(3):
            health.record_failure("boom", 1, NOW)
        assert health.state(NOW) is CircuitState.CLOSED

    def test_opens_above_threshold(self):
        health = _health()
        for _ in range(4):
            health.record_failure("boom", 1, NOW)
        assert health.state(NOW) is CircuitState.OPEN
        assert health.allows_request(NOW + 1) is False

    def test_ratio_at_threshold_stays_closed(self):
        health = _health()
        for _ in range(2):
            health.record_success(1, NOW)
        for _ in range(2):
            health.record_failure("boom", 1, NOW)
        assert health.failure_ratio == 0.5
        assert health.state(NOW) is CircuitState.CLOSED

    def test_half_open_after_cooldown(self):
        health = _health()
        for _ in range(4):
            health.record_failure("boom", 1, NOW)
        assert health.state(NOW + 30) is CircuitState.HALF_OPEN

    def test_trial_call_is_claimed_once(self):
        health = _health()
        for _ in range(4):
            health.record_failure("boom", 1, NOW)
        assert health.allows_request(NOW + 30) is True
        assert health.allows_request(NOW + 30) is False

    def test_successful_trial_call_closes(self):
        health = _health()
        for _ in range(4):
            health.record_failure("boom", 1, NOW)
        health.allows_request(NOW + 30)
        health.record_success(1, NOW + 30)
        assert health.state(NOW + 30) is CircuitState.CLOSED
        assert health.failure_ratio == 0.0

    def test_failed_trial_call_reopens(self):
        health = _health()
        for _ in range(4):
            health.record_failure("boom", 1, NOW)
        health.allows_request(NOW + 30)
        health.record_failure("boom", 1, NOW + 30)
        assert health.state(NOW + 31) is CircuitState.OPEN
        assert health.state(NOW + 60) is CircuitState.HALF_OPEN

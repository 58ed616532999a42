"""Per-provider health records and circuit breaker state."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from .settings import CircuitSettings

logger = logging.getLogger(__name__)

# Weight of the newest sample in the latency moving average
LATENCY_EMA_ALPHA = 0.2


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class ProviderHealth:
    """Running statistics for one provider. Owned by the ProviderManager.

    Every method is a single synchronous step; callers record an outcome
    only after the awaited provider call has returned.

    Circuit:
      - closed:    requests flow. Opens when at least ``min_calls`` of the
                   last ``window`` outcomes are recorded and the failure ratio
                   exceeds ``failure_threshold``.
      - open:      requests are skipped until ``cooldown`` seconds pass.
      - half_open: cooldown elapsed; the next request is let through as a
                   trial call (claiming it restarts the cooldown). A success closes
                   the circuit, a failure reopens it.
    """

    name: str
    circuit: CircuitSettings = field(default_factory=CircuitSettings)
    successes: int = 0
    failures: int = 0
    not_found: int = 0
    consecutive_failures: int = 0
    avg_latency_ms: float | None = None
    last_success_at: float | None = None
    last_failure_at: float | None = None
    last_error: str | None = None
    _outcomes: deque[bool] = field(init=False, repr=False)
    _opened_at: float | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._outcomes = deque(maxlen=self.circuit.window)

    @property
    def requests(self) -> int:
        return self.successes + self.failures + self.not_found

    @property
    def failure_ratio(self) -> float:
        """Failure ratio over the recent outcome window."""
        if not self._outcomes:
            return 0.0
        return self._outcomes.count(False) / len(self._outcomes)

    def state(self, now: float) -> CircuitState:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if now - self._opened_at >= self.circuit.cooldown:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    def allows_request(self, now: float) -> bool:
        """Whether the manager may call this provider now.

        In half_open this claims the trial call, so concurrent callers keep
        skipping the provider until the trial call's outcome is recorded or
        another cooldown passes.
        """
        state = self.state(now)
        if state is CircuitState.CLOSED:
            return True
        if state is CircuitState.HALF_OPEN:
            self._opened_at = now
            logger.info("Provider %s: circuit half-open, probing", self.name)
            return True
        return False

    def record_success(self, latency_ms: float, now: float) -> None:
        self.successes += 1
        self._record_healthy(latency_ms, now)

    def record_not_found(self, latency_ms: float, now: float) -> None:
        """A definitive 'no such symbol' is a healthy answer."""
        self.not_found += 1
        self._record_healthy(latency_ms, now)

    def record_failure(self, error: str, latency_ms: float, now: float) -> None:
        self.failures += 1
        self.consecutive_failures += 1
        self.last_failure_at = now
        self.last_error = error
        self._update_latency(latency_ms)
        self._outcomes.append(False)

        if self._opened_at is not None:
            # Failed trial call: restart the cooldown
            self._opened_at = now
            return
        if (
            len(self._outcomes) >= self.circuit.min_calls
            and self.failure_ratio > self.circuit.failure_threshold
        ):
            self._opened_at = now
            logger.warning(
                "Provider %s: circuit opened (%.0f%% of last %d calls failed)",
                self.name,
                self.failure_ratio * 100,
                len(self._outcomes),
            )

    def _record_healthy(self, latency_ms: float, now: float) -> None:
        self.consecutive_failures = 0
        self.last_success_at = now
        self._update_latency(latency_ms)
        if self._opened_at is not None:
            self._opened_at = None
            self._outcomes.clear()
            logger.info("Provider %s: circuit closed", self.name)
        self._outcomes.append(True)

    def _update_latency(self, latency_ms: float) -> None:
        if self.avg_latency_ms is None:
            self.avg_latency_ms = latency_ms
        else:
            self.avg_latency_ms = (
                LATENCY_EMA_ALPHA * latency_ms + (1 - LATENCY_EMA_ALPHA) * self.avg_latency_ms
            )

    def to_dict(self, now: float) -> dict:
        return {
            "name": self.name,
            "state": self.state(now).value,
            "requests": self.requests,
            "successes": self.successes,
            "failures": self.failures,
            "not_found": self.not_found,
            "consecutive_failures": self.consecutive_failures,
            "failure_ratio": round(self.failure_ratio, 4),
            "avg_latency_ms": round(self.avg_latency_ms, 2) if self.avg_latency_ms is not None else None,
            "last_success_at": self.last_success_at,
            "last_failure_at": self.last_failure_at,
            "last_error": self.last_error,
        }

# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable


class RecoveryLevel(Enum):
    """
    Escalation tier, derived from consecutive failures.

    Never stored: always recomputed from the counter and the thresholds.
    """
    HEALTHY = 0
    DEGRADED = 1
    SOFT = 2
    MEDIUM = 3
    HARD = 4

    @property
    def actionable(self) -> bool:
        return self in (RecoveryLevel.SOFT, RecoveryLevel.MEDIUM, RecoveryLevel.HARD)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Thresholds:
    """
    Consecutive-failure thresholds for modem escalation.

    Invariant: 1 <= soft < medium < hard, fixed at startup.
    """
    soft: int = 3
    medium: int = 6
    hard: int = 10

    def __post_init__(self):
        if not 1 <= self.soft < self.medium < self.hard:
            raise ValueError(
                "Thresholds must satisfy 1 <= soft < medium < hard "
                f"(got soft={self.soft}, medium={self.medium}, hard={self.hard})"
            )

    def level_for(self, failures: int) -> RecoveryLevel:
        if failures <= 0:
            return RecoveryLevel.HEALTHY
        if failures >= self.hard:
            return RecoveryLevel.HARD
        if failures >= self.medium:
            return RecoveryLevel.MEDIUM
        if failures >= self.soft:
            return RecoveryLevel.SOFT
        return RecoveryLevel.DEGRADED

    def summary(self) -> dict[str, int]:
        return {"soft": self.soft, "medium": self.medium, "hard": self.hard}


@dataclass
class ModemFailureRecord:
    consecutive_failures: int = 0
    recovery_attempts: int = 0
    # Hard actions within the current failure episode (drives the cap)
    hard_attempts: int = 0


class ModemFailureTracker:
    """
    Per-modem consecutive-failure state machine.

    Invariants:
      - consecutive_failures increments by exactly 1 per failing check
      - a passing check resets every counter to 0 (from any level)
      - records are created lazily on first failure
      - tracker performs no I/O; it only reasons about results
    """

    def __init__(self, thresholds: Thresholds, max_hard_attempts: int = 2):
        self.thresholds = thresholds
        self.max_hard_attempts = max_hard_attempts
        self._records: dict[str, ModemFailureRecord] = {}
        self._lock = threading.Lock()

    def _record(self, modem_id: str) -> ModemFailureRecord:
        return self._records.setdefault(modem_id, ModemFailureRecord())

    def record_failure(self, modem_id: str) -> RecoveryLevel:
        """Count one failing check and return the resulting level."""
        with self._lock:
            record = self._record(modem_id)
            record.consecutive_failures += 1
            return self.thresholds.level_for(record.consecutive_failures)

    def record_success(self, modem_id: str) -> int:
        """
        Reset a modem to Healthy.

        Returns:
            The failure count before the reset (0 if it was already healthy).
        """
        with self._lock:
            record = self._records.get(modem_id)
            if record is None:
                return 0
            previous = record.consecutive_failures
            record.consecutive_failures = 0
            record.recovery_attempts = 0
            record.hard_attempts = 0
            return previous

    def record_attempt(self, modem_id: str, level: RecoveryLevel) -> int:
        """Count a recovery action before it runs. Returns total attempts."""
        with self._lock:
            record = self._record(modem_id)
            record.recovery_attempts += 1
            if level is RecoveryLevel.HARD:
                record.hard_attempts += 1
            return record.recovery_attempts

    def level(self, modem_id: str) -> RecoveryLevel:
        with self._lock:
            record = self._records.get(modem_id)
            failures = record.consecutive_failures if record else 0
            return self.thresholds.level_for(failures)

    def exhausted(self, modem_id: str) -> bool:
        """Hard level reached and its attempt cap spent."""
        with self._lock:
            record = self._records.get(modem_id)
            if record is None:
                return False
            return (
                self.thresholds.level_for(record.consecutive_failures) is RecoveryLevel.HARD
                and record.hard_attempts >= self.max_hard_attempts
            )

    def get(self, modem_id: str) -> ModemFailureRecord:
        """Copy of one record (zeros for an unknown modem)."""
        with self._lock:
            record = self._records.get(modem_id)
            return ModemFailureRecord(**asdict(record)) if record else ModemFailureRecord()

    def reset(self, modem_id: str) -> bool:
        """Operator reset. Returns False when the modem has no record."""
        with self._lock:
            return self._records.pop(modem_id, None) is not None

    def prune(self, active: Iterable[str]) -> list[str]:
        """Drop records for modems outside `active`. Returns the dropped ids."""
        keep = set(active)
        with self._lock:
            dropped = [m for m in self._records if m not in keep]
            for modem_id in dropped:
                del self._records[modem_id]
            return dropped

    def snapshot(self) -> dict[str, dict[str, int]]:
        with self._lock:
            return {
                modem_id: {
                    "consecutive_failures": record.consecutive_failures,
                    "recovery_attempts": record.recovery_attempts,
                    "hard_attempts": record.hard_attempts,
                    "level": str(self.thresholds.level_for(record.consecutive_failures)),
                }
                for modem_id, record in self._records.items()
            }

# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ModemState(Enum):
    """Channel states reported by chan_quectel that count as usable."""
    FREE = "Free"
    RING = "Ring"
    DIALING = "Dialing"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str) -> "ModemState | str":
        """Map a raw `State:` value to a member, or keep the raw string."""
        value = value.strip()
        for member in cls:
            if member.value == value:
                return member
        return value or cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


USABLE_STATES = frozenset({ModemState.FREE, ModemState.RING, ModemState.DIALING})


class HealthStatus(str, Enum):
    """
    Ordered health verdicts.

    `severity` drives aggregation: the overall verdict is the most severe
    sub-verdict. ERROR is reserved for a cycle that raised.
    """
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def __str__(self) -> str:
        return self.value

_SEVERITY = {
    HealthStatus.OK: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.CRITICAL: 2,
    HealthStatus.ERROR: 3,
}


def worst_status(*statuses: HealthStatus | None) -> HealthStatus:
    """critical if any critical, else warning if any warning, else ok."""
    present = [s for s in statuses if s is not None]
    if not present:
        return HealthStatus.OK
    return max(present, key=lambda s: s.severity)


@dataclass(frozen=True)
class ModemHealth:
    """Fresh per-tick view of one modem, derived from `quectel show device state`."""
    id: str
    state: ModemState | str = ModemState.UNKNOWN
    registered: bool = False
    rssi: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state in USABLE_STATES and self.registered and self.rssi > 0

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "state": str(self.state),
            "registered": self.registered,
            "rssi": self.rssi,
            "ok": self.ok,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AsteriskCheck:
    status: HealthStatus
    running: bool
    recovery_attempted: bool = False
    recovered: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "running": self.running,
            "recovery_attempted": self.recovery_attempted,
            "recovered": self.recovered,
        }


@dataclass(frozen=True)
class ModemsCheck:
    """
    Aggregate modem verdict.

    `status` is None when inspection was skipped (Asterisk down this tick),
    so it does not take part in aggregation.
    """
    status: HealthStatus | None
    modems: tuple[ModemHealth, ...] = ()
    skipped: bool = False

    @property
    def healthy_count(self) -> int:
        return sum(1 for m in self.modems if m.ok)

    @classmethod
    def from_modems(cls, modems: list[ModemHealth]) -> "ModemsCheck":
        healthy = sum(1 for m in modems if m.ok)
        if not modems:
            status = HealthStatus.WARNING
        elif healthy == len(modems):
            status = HealthStatus.OK
        elif healthy == 0:
            status = HealthStatus.CRITICAL
        else:
            status = HealthStatus.WARNING
        return cls(status=status, modems=tuple(modems))

    @classmethod
    def skipped_check(cls) -> "ModemsCheck":
        return cls(status=None, skipped=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "skipped" if self.skipped else str(self.status),
            "total": len(self.modems),
            "healthy": self.healthy_count,
            "modems": [m.to_dict() for m in self.modems],
        }


@dataclass(frozen=True)
class TunnelCheck:
    """
    Tunnel verdict.

    `state` is one of: disabled, not_configured, connected, disconnected,
    interface_missing, unknown (provider error, fail-open).
    """
    status: HealthStatus
    state: str
    healthy: bool
    check_count: int = 0
    reconnect_attempted: bool = False
    interface: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": str(self.status),
            "state": self.state,
            "healthy": self.healthy,
            "check_count": self.check_count,
            "reconnect_attempted": self.reconnect_attempted,
            "interface": self.interface,
        }


@dataclass(frozen=True)
class HealthCheckResult:
    """Immutable outcome of one health-check cycle."""
    overall: HealthStatus
    asterisk: AsteriskCheck | None = None
    modems: ModemsCheck | None = None
    wireguard: TunnelCheck | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.overall is HealthStatus.OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "overall": str(self.overall),
            "asterisk": self.asterisk.to_dict() if self.asterisk else None,
            "modems": self.modems.to_dict() if self.modems else None,
            "wireguard": self.wireguard.to_dict() if self.wireguard else None,
            "error": self.error,
        }

# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

# ─── Third-party imports ───
import requests

# ─── Project imports ───
from .config import Config
from .executor import Executor
from .logger import get_logger
from .models import HealthStatus, TunnelCheck


# Consecutive "not connected" observations before the first reconnect
RECONNECT_AFTER_CHECKS = 3


@dataclass(frozen=True)
class TunnelStatus:
    enabled: bool
    configured: bool
    connected: bool

    @classmethod
    def coerce(cls, value: "TunnelStatus | Mapping[str, Any]") -> "TunnelStatus":
        if isinstance(value, TunnelStatus):
            return value
        return cls(
            enabled=bool(value.get("enabled", value.get("available", False))),
            configured=bool(value.get("configured", False)),
            connected=bool(value.get("connected", False)),
        )


class TunnelProvider(Protocol):
    def get_status(self) -> TunnelStatus | Mapping[str, Any]:
        ...

    def reconnect(self) -> None:
        ...


class TunnelProviderError(Exception):
    """The tunnel provider could not be reached or answered garbage."""


class AdminApiTunnelProvider:
    """
    Tunnel provider backed by the gateway's admin API.

    Endpoints (relative to `base_url`):
        GET  /tunnel-relay/status
        POST /tunnel-relay/disconnect
        POST /tunnel-relay/connect
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = Config.API_TIMEOUT if timeout is None else timeout
        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.logger = get_logger("wireguard")

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}/tunnel-relay/{endpoint}"

    def get_status(self) -> TunnelStatus:
        try:
            resp = requests.get(
                self._url("status"), headers=self.headers, timeout=self.timeout
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise TunnelProviderError(
                f"Tunnel status request failed ({type(exc).__name__}: {exc})"
            ) from exc

        if not isinstance(data, dict):
            raise TunnelProviderError(f"Unexpected tunnel status payload: {data!r}")

        return TunnelStatus.coerce(data)

    def reconnect(self) -> None:
        """Disconnect then connect, the way the admin UI does it."""
        for endpoint in ("disconnect", "connect"):
            try:
                requests.post(
                    self._url(endpoint), headers=self.headers, timeout=self.timeout
                ).raise_for_status()
            except requests.RequestException as exc:
                raise TunnelProviderError(
                    f"Tunnel {endpoint} failed ({type(exc).__name__}: {exc})"
                ) from exc
            self.logger.debug(f"Tunnel {endpoint} accepted")


@dataclass
class TunnelFailureRecord:
    check_count: int = 0
    max_recovery_attempts: int = 3
    # Softer signal: connected per provider, but no local interface
    interface_missing_count: int = 0


class WireGuardSupervisor:
    """
    Tunnel health policy.

    • disabled                    → healthy, no side effects
    • configured, not connected   → unhealthy, counted; reconnect inside the window
    • connected, no interface     → unhealthy (soft signal), main counter untouched
    • connected                   → healthy, counters reset
    • provider raised             → healthy (fail-open), counters untouched
    """

    def __init__(
        self,
        provider: TunnelProvider | None,
        executor: Executor,
        interface: str = "wg-relay",
        max_recovery_attempts: int = 3,
    ):
        self.provider = provider
        self.executor = executor
        self.interface = interface
        self.logger = get_logger("wireguard")
        self._record = TunnelFailureRecord(max_recovery_attempts=max_recovery_attempts)
        self._lock = threading.Lock()

    @property
    def check_count(self) -> int:
        with self._lock:
            return self._record.check_count

    def _reset(self) -> None:
        with self._lock:
            self._record.check_count = 0
            self._record.interface_missing_count = 0

    def _in_reconnect_window(self, count: int) -> bool:
        start = RECONNECT_AFTER_CHECKS
        return start <= count < start + self._record.max_recovery_attempts

    def interface_exists(self) -> bool:
        return self.executor.run(["ip", "link", "show", self.interface]).ok

    def check(self) -> TunnelCheck:
        if self.provider is None:
            return self._healthy("disabled")

        try:
            status = TunnelStatus.coerce(self.provider.get_status())
        except Exception as exc:
            # Our own instrumentation failing must not trigger recovery loops
            self.logger.warning(f"Tunnel status unavailable, assuming healthy: {exc}")
            return TunnelCheck(
                status=HealthStatus.OK,
                state="unknown",
                healthy=True,
                check_count=self.check_count,
                interface=self.interface,
            )

        if not status.enabled:
            self._reset()
            return self._healthy("disabled")

        if not status.configured:
            self._reset()
            return self._healthy("not_configured")

        if not status.connected:
            return self._handle_disconnected()

        if not self.interface_exists():
            with self._lock:
                self._record.interface_missing_count += 1
                missing = self._record.interface_missing_count
                count = self._record.check_count
            self.logger.warning(
                f"WireGuard reports connected but interface {self.interface} "
                f"is missing ({missing} consecutive)"
            )
            return TunnelCheck(
                status=HealthStatus.WARNING,
                state="interface_missing",
                healthy=False,
                check_count=count,
                interface=self.interface,
            )

        with self._lock:
            previous = self._record.check_count
        self._reset()
        if previous > 0:
            self.logger.ok(f"WireGuard tunnel reconnected after {previous} failed checks")
        return self._healthy("connected")

    def _handle_disconnected(self) -> TunnelCheck:
        with self._lock:
            self._record.check_count += 1
            count = self._record.check_count
            limit = RECONNECT_AFTER_CHECKS + self._record.max_recovery_attempts

        self.logger.warning(f"WireGuard configured but not connected (check {count})")

        reconnect = self._in_reconnect_window(count)
        if reconnect:
            attempt = count - RECONNECT_AFTER_CHECKS + 1
            self.logger.info(
                f"Reconnecting WireGuard tunnel "
                f"(attempt {attempt}/{self._record.max_recovery_attempts})"
            )
            try:
                self.provider.reconnect()
            except Exception as exc:
                self.logger.error(f"WireGuard reconnect failed: {exc}")
        elif count >= limit:
            self.logger.error(
                f"WireGuard still down after {self._record.max_recovery_attempts} "
                "reconnect attempts; no further action"
            )

        return TunnelCheck(
            status=HealthStatus.WARNING,
            state="disconnected",
            healthy=False,
            check_count=count,
            reconnect_attempted=reconnect,
            interface=self.interface,
        )

    def _healthy(self, state: str) -> TunnelCheck:
        return TunnelCheck(
            status=HealthStatus.OK,
            state=state,
            healthy=True,
            check_count=self.check_count,
            interface=self.interface,
        )

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "check_count": self._record.check_count,
                "max_recovery_attempts": self._record.max_recovery_attempts,
                "interface_missing_count": self._record.interface_missing_count,
            }

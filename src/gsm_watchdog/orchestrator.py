# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import copy
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

# ─── Project imports ───
from .audio import AudioConfigurator
from .config import WatchdogConfig
from .executor import CommandExecutor, Executor
from .inspectors import AsteriskInspector, ModemInspector
from .logger import attach_log_sink, get_logger
from .models import (
    AsteriskCheck,
    HealthCheckResult,
    HealthStatus,
    ModemHealth,
    ModemsCheck,
    TunnelCheck,
    worst_status,
)
from .recovery import AsteriskRecovery, ModemRecovery
from .scheduling_policy import SchedulingPolicy
from .telemetry import log_health
from .tracker import ModemFailureTracker, RecoveryLevel
from .wireguard import TunnelProvider, WireGuardSupervisor


LISTENER_TOPICS = ("tunnel", "asterisk", "modems", "result")
MAX_ACTION_HISTORY = 100
STATUS_RECENT_ACTIONS = 20


@dataclass(frozen=True)
class RecoveryAction:
    """One executed recovery action, kept in the in-memory history."""
    modem_id: str
    level: RecoveryLevel
    attempt: int
    success: bool
    manual: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "modem_id": self.modem_id,
            "level": str(self.level),
            "attempt": self.attempt,
            "success": self.success,
            "manual": self.manual,
        }


class HealthCheckOrchestrator:
    """
    Self-healing supervisor for the GSM gateway.

    Each cycle runs strictly in order: tunnel, Asterisk, then every modem.
    Failing modems escalate through soft, medium and hard recovery as their
    consecutive-failure count crosses the configured thresholds. Recovery
    actions block the cycle until they finish.

    Concurrency:
        - one loop thread, cycles back to back, never overlapping
        - every cycle (timer or `force_check`) holds the cycle lock
        - a timer tick that finds the lock held is skipped, except the first
          tick of a run, which waits
        - `get_status()` returns the view published by the last completed
          cycle, never a mix of two

    Failure semantics:
        - inspection failures land in trackers, never raise
        - recovery action failures are logged and still counted
        - anything else is caught at the cycle boundary (overall=error)
    """

    def __init__(
        self,
        config: WatchdogConfig,
        executor: Executor | None = None,
        tunnel_provider: TunnelProvider | None = None,
        policy: SchedulingPolicy | None = None,
    ):
        # ─── Dependencies / Configuration ───
        self.config = config
        self.logger = get_logger("orchestrator")
        if config.log_path:
            attach_log_sink(config.log_path)

        self.executor = executor or CommandExecutor(config.command_timeout_s)
        self.policy = policy or SchedulingPolicy(config.check_interval_s)

        # ─── Inspectors ───
        self.asterisk_inspector = AsteriskInspector(self.executor)
        self.modem_inspector = ModemInspector(self.executor, config.modems)

        # ─── Recovery executors ───
        self.audio = AudioConfigurator(self.executor, self.modem_inspector)
        self.modem_recovery = ModemRecovery(
            self.executor, self.modem_inspector, self.audio
        )
        self.asterisk_recovery = AsteriskRecovery(
            self.executor, self.asterisk_inspector
        )
        self.wireguard = WireGuardSupervisor(
            tunnel_provider,
            self.executor,
            interface=config.wg_interface,
            max_recovery_attempts=config.wg_max_recovery_attempts,
        )

        # ─── Runtime State ───
        self.tracker = ModemFailureTracker(
            config.thresholds, max_hard_attempts=config.max_hard_attempts
        )
        self._last_result: HealthCheckResult | None = None
        self._history: deque[RecoveryAction] = deque(maxlen=MAX_ACTION_HISTORY)
        self._listeners: dict[str, list[Callable[[Any], None]]] = {
            topic: [] for topic in LISTENER_TOPICS
        }
        self._skipped_ticks = 0
        # Status view, republished as a whole at the end of every cycle
        self._published_modems: dict[str, dict[str, Any]] = {}
        self._published_wireguard: dict[str, int] = self.wireguard.snapshot()
        self._published_actions: list[RecoveryAction] = []

        # ─── Scheduling ───
        self._running = False
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self._running

    @property
    def last_health_check(self) -> HealthCheckResult | None:
        with self._state_lock:
            return self._last_result

    def start(self) -> None:
        """Run one check now, then one every `check_interval_s`."""
        if not self.config.enabled:
            self.logger.info("Watchdog disabled by config; not starting")
            return

        with self._state_lock:
            if self._running:
                self.logger.warning("Watchdog already running")
                return
            self._running = True
            # Fresh event per run: a still-finishing loop from an earlier
            # run keeps its own (already set) event and exits
            self._stop_event = threading.Event()
            stop_event = self._stop_event

        self.logger.info(
            f"Watchdog service started (interval {self.config.check_interval_s:g}s)"
        )
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(stop_event,),
            name="gsm-watchdog",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Cancel the recurring timer. An in-flight cycle finishes normally."""
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            if self._stop_event is not None:
                self._stop_event.set()

        self.logger.info("Watchdog service stopped")

    def join(self, timeout: float | None = None) -> None:
        """Wait for the loop thread (and any in-flight cycle) to finish."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _run_loop(self, stop_event: threading.Event) -> None:
        # The first tick of a run waits out a cycle left over from a previous run
        first = True
        while not stop_event.is_set():
            started = time.monotonic()
            self._tick(blocking=first)
            first = False
            remaining = self.policy.next_sleep(time.monotonic() - started)
            if stop_event.wait(remaining):
                break

    def _tick(self, blocking: bool = False) -> HealthCheckResult | None:
        if not self._cycle_lock.acquire(blocking=blocking):
            with self._state_lock:
                self._skipped_ticks += 1
            self.logger.warning("Previous health check still running; skipping tick")
            return None
        try:
            return self._run_cycle()
        finally:
            self._cycle_lock.release()

    def force_check(self) -> HealthCheckResult:
        """Run one cycle out-of-band, waiting for any in-flight cycle first."""
        with self._cycle_lock:
            return self._run_cycle()

    # ──────────────────────────────────────────────────────────────
    # Health-check cycle
    # ──────────────────────────────────────────────────────────────

    def _run_cycle(self) -> HealthCheckResult:
        tunnel: TunnelCheck | None = None
        asterisk: AsteriskCheck | None = None
        modems: ModemsCheck | None = None

        try:
            tunnel = self._check_tunnel()
            asterisk = self._check_asterisk()

            if asterisk.running:
                modems = self._check_modems()
            else:
                modems = ModemsCheck.skipped_check()

            result = HealthCheckResult(
                overall=worst_status(tunnel.status, asterisk.status, modems.status),
                asterisk=asterisk,
                modems=modems,
                wireguard=tunnel,
            )

        except Exception as exc:
            self.logger.exception(f"Check error: {exc}")
            result = HealthCheckResult(
                overall=HealthStatus.ERROR,
                asterisk=asterisk,
                modems=modems,
                wireguard=tunnel,
                error=str(exc),
            )

        self._publish(result)
        self._emit(result)
        log_health(self.logger, result)
        return result

    def _publish(self, result: HealthCheckResult | None = None) -> None:
        """
        Swap in a consistent status view. Callers hold the cycle lock, so
        no counter moves between the snapshots taken here.
        """
        modems = self.tracker.snapshot()
        wireguard = self.wireguard.snapshot()
        with self._state_lock:
            if result is not None:
                self._last_result = result
            self._published_modems = modems
            self._published_wireguard = wireguard
            self._published_actions = list(self._history)[:STATUS_RECENT_ACTIONS]

    def _check_tunnel(self) -> TunnelCheck:
        try:
            return self.wireguard.check()
        except Exception as exc:
            self.logger.exception(f"Tunnel check failed: {exc}")
            return TunnelCheck(
                status=HealthStatus.OK,
                state="unknown",
                healthy=True,
                check_count=self.wireguard.check_count,
                interface=self.config.wg_interface,
            )

    def _check_asterisk(self) -> AsteriskCheck:
        if self.asterisk_inspector.check():
            return AsteriskCheck(status=HealthStatus.OK, running=True)

        recovered = self.asterisk_recovery.recover()
        return AsteriskCheck(
            status=HealthStatus.CRITICAL,
            running=False,
            recovery_attempted=True,
            recovered=recovered,
        )

    def _check_modems(self) -> ModemsCheck:
        results: list[ModemHealth] = []
        modem_ids = self.modem_inspector.list_modems()

        for modem_id in modem_ids:
            health = self.modem_inspector.inspect(modem_id)
            results.append(health)

            if health.ok:
                previous = self.tracker.record_success(modem_id)
                if previous > 0:
                    self.logger.ok(f"Modem {modem_id} recovered")
            else:
                self.tracker.record_failure(modem_id)
                self._handle_modem_failure(health)

        for modem_id in self.tracker.prune(modem_ids):
            self.logger.info(f"Modem {modem_id} no longer enumerated; failure record dropped")

        return ModemsCheck.from_modems(results)

    def _handle_modem_failure(self, health: ModemHealth) -> None:
        record = self.tracker.get(health.id)
        level = self.tracker.thresholds.level_for(record.consecutive_failures)

        self.logger.warning(
            f"Modem {health.id} issue: state={health.state}, "
            f"registered={health.registered}, rssi={health.rssi} "
            f"(failures: {record.consecutive_failures})"
        )

        if self.tracker.exhausted(health.id):
            self.logger.error(
                f"Modem {health.id} unrecoverable after "
                f"{record.recovery_attempts} attempts"
            )
            return

        if level.actionable:
            self._execute_action(health.id, level)

    def _execute_action(
        self,
        modem_id: str,
        level: RecoveryLevel,
        manual: bool = False,
    ) -> RecoveryAction:
        # Counted before running, whatever the outcome
        attempt = self.tracker.record_attempt(modem_id, level)
        success = self.modem_recovery.run(level, modem_id)

        action = RecoveryAction(
            modem_id=modem_id,
            level=level,
            attempt=attempt,
            success=success,
            manual=manual,
        )
        with self._state_lock:
            self._history.appendleft(action)

        if success:
            self.logger.info(f"[{level}] Recovery action completed for {modem_id}")
        else:
            self.logger.error(f"[{level}] Recovery action failed for {modem_id}")
        return action

    # ──────────────────────────────────────────────────────────────
    # Observers
    # ──────────────────────────────────────────────────────────────

    def add_listener(self, topic: str, callback: Callable[[Any], None]) -> None:
        """
        Subscribe to one outcome per cycle.

        Topics: `tunnel` (TunnelCheck), `asterisk` (AsteriskCheck),
        `modems` (ModemsCheck), `result` (HealthCheckResult).
        """
        if topic not in self._listeners:
            raise ValueError(
                f"Unknown listener topic {topic!r}; expected one of {LISTENER_TOPICS}"
            )
        with self._state_lock:
            self._listeners[topic].append(callback)

    def remove_listener(self, topic: str, callback: Callable[[Any], None]) -> None:
        with self._state_lock:
            if callback in self._listeners.get(topic, []):
                self._listeners[topic].remove(callback)

    def _emit(self, result: HealthCheckResult) -> None:
        with self._state_lock:
            listeners = {topic: list(cbs) for topic, cbs in self._listeners.items()}

        events = (
            ("tunnel", result.wireguard),
            ("asterisk", result.asterisk),
            ("modems", result.modems),
            ("result", result),
        )
        for topic, payload in events:
            if payload is None:
                continue
            for callback in listeners[topic]:
                try:
                    callback(payload)
                except Exception:
                    self.logger.exception(f"Listener for {topic!r} failed")

    # ──────────────────────────────────────────────────────────────
    # Operator hooks
    # ──────────────────────────────────────────────────────────────

    def reset_escalation(self, modem_id: str) -> bool:
        """Forget a modem's failure history, serialized with health-check cycles."""
        with self._cycle_lock:
            reset = self.tracker.reset(modem_id)
            self._publish()
        if reset:
            self.logger.info(f"Modem {modem_id}: escalation reset manually")
        return reset

    def force_action(self, modem_id: str, level: RecoveryLevel | str) -> RecoveryAction:
        """Run one recovery action now, serialized with health-check cycles."""
        if isinstance(level, str):
            try:
                level = RecoveryLevel[level.upper()]
            except KeyError:
                raise ValueError(f"Invalid recovery level: {level}") from None

        if not level.actionable:
            raise ValueError(f"Invalid recovery level: {level}")

        self.logger.warning(f"Modem {modem_id}: forcing {level} recovery")
        with self._cycle_lock:
            action = self._execute_action(modem_id, level, manual=True)
            self._publish()
        return action

    def recent_actions(self, limit: int = 50) -> list[RecoveryAction]:
        """Most recent first."""
        with self._state_lock:
            return list(self._history)[:limit]

    # ──────────────────────────────────────────────────────────────
    # Status reporting
    # ──────────────────────────────────────────────────────────────

    def get_status(self) -> dict[str, Any]:
        """
        Point-in-time copy as of the last completed cycle (or operator
        hook); mutating it never touches supervisor state.
        """
        with self._state_lock:
            running = self._running
            last = self._last_result
            skipped = self._skipped_ticks
            modems = copy.deepcopy(self._published_modems)
            wireguard = dict(self._published_wireguard)
            actions = list(self._published_actions)

        return {
            "enabled": self.config.enabled,
            "running": running,
            "check_interval": self.config.check_interval_s,
            "modems": modems,
            "thresholds": self.config.thresholds.summary(),
            "max_hard_attempts": self.config.max_hard_attempts,
            "wireguard": wireguard,
            "last_health_check": last.to_dict() if last else None,
            "skipped_ticks": skipped,
            "recent_actions": [a.to_dict() for a in actions],
        }

# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import os
from dataclasses import dataclass, field

# ─── Third-party imports ───
from dotenv import load_dotenv

# ─── Project imports ───
from .tracker import Thresholds


# Load .env once
load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


class Config:
    """Centralized config for supervisor policy and gateway wiring"""

    # --- Scheduling Policy ---
    WATCHDOG_ENABLED = _env_bool("WATCHDOG_ENABLED", True)
    CHECK_INTERVAL_S = _env_float("CHECK_INTERVAL_S", 30.0)

    # --- Recovery Policy ---
    SOFT_THRESHOLD = _env_int("SOFT_THRESHOLD", 3)
    MEDIUM_THRESHOLD = _env_int("MEDIUM_THRESHOLD", 6)
    HARD_THRESHOLD = _env_int("HARD_THRESHOLD", 10)
    MAX_HARD_ATTEMPTS = _env_int("MAX_HARD_ATTEMPTS", 2)

    # --- Command Policy (timeouts in seconds) ---
    COMMAND_TIMEOUT_S = _env_float("COMMAND_TIMEOUT_S", 10.0)
    API_TIMEOUT = _env_float("API_TIMEOUT", 8.0)

    # --- Observability Policy ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_PATH = os.getenv("LOG_PATH", "/var/log/homenichat-watchdog.log")

    # --- Hardware ---
    class Hardware:
        # Comma-separated fallback list, used when Asterisk enumerates nothing
        MODEMS = os.getenv("MODEMS", "")

    # --- Tunnel ---
    class Tunnel:
        WG_INTERFACE = os.getenv("WG_INTERFACE", "wg-relay")
        MAX_RECOVERY_ATTEMPTS = _env_int("WG_MAX_RECOVERY_ATTEMPTS", 3)
        API_URL = os.getenv("TUNNEL_API_URL")
        API_TOKEN = os.getenv("TUNNEL_API_TOKEN")


@dataclass(frozen=True)
class WatchdogConfig:
    """
    Construction-time inputs of the supervisor.

    Frozen: the orchestrator reads these once and they never change while
    it is running.
    """

    enabled: bool = True
    check_interval_s: float = 30.0
    thresholds: Thresholds = field(default_factory=Thresholds)
    max_hard_attempts: int = 2
    modems: tuple[str, ...] = ()
    log_path: str | None = None
    wg_interface: str = "wg-relay"
    wg_max_recovery_attempts: int = 3
    command_timeout_s: float = 10.0

    def __post_init__(self):
        if self.check_interval_s <= 0:
            raise ValueError(
                f"check_interval_s must be positive, got {self.check_interval_s}"
            )
        if self.max_hard_attempts < 1:
            raise ValueError(
                f"max_hard_attempts must be >= 1, got {self.max_hard_attempts}"
            )
        if self.wg_max_recovery_attempts < 0:
            raise ValueError(
                "wg_max_recovery_attempts must be >= 0, "
                f"got {self.wg_max_recovery_attempts}"
            )

    @classmethod
    def from_env(cls) -> "WatchdogConfig":
        modems = tuple(
            m.strip() for m in Config.Hardware.MODEMS.split(",") if m.strip()
        )
        return cls(
            enabled=Config.WATCHDOG_ENABLED,
            check_interval_s=Config.CHECK_INTERVAL_S,
            thresholds=Thresholds(
                soft=Config.SOFT_THRESHOLD,
                medium=Config.MEDIUM_THRESHOLD,
                hard=Config.HARD_THRESHOLD,
            ),
            max_hard_attempts=Config.MAX_HARD_ATTEMPTS,
            modems=modems,
            log_path=Config.LOG_PATH or None,
            wg_interface=Config.Tunnel.WG_INTERFACE,
            wg_max_recovery_attempts=Config.Tunnel.MAX_RECOVERY_ATTEMPTS,
            command_timeout_s=Config.COMMAND_TIMEOUT_S,
        )

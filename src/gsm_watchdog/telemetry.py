# --- Standard library imports ---
import logging

# --- Project imports ---
from .models import HealthCheckResult, HealthStatus


STATUS_EMOJI = {
    HealthStatus.OK: "💚",
    HealthStatus.WARNING: "🟡",
    HealthStatus.CRITICAL: "🔴",
    HealthStatus.ERROR: "🔥",
}


def tlog(
    logger: logging.Logger,
    emoji: str,
    subsystem: str,
    state: str,
    primary: str = "—--",
    meta: str | None = None,
) -> None:
    """
    Emit a standardized telemetry log "tlog" line.

    Format:
        SUBSYSTEM STATE PRIMARY | meta data
    """
    msg = f"{subsystem:<10} {state:<10} {primary:<16}"
    if meta:
        msg += f" | {meta}"

    logger.info(f"{emoji} {msg}", stacklevel=2)


def log_health(logger: logging.Logger, result: HealthCheckResult) -> None:
    """
    One summary line per cycle, e.g.

        💚 HEALTH     OK         modems 2/2       | asterisk=up | wireguard=connected
    """
    modems = result.modems
    if modems is None:
        primary = "modems n/a"
    elif modems.skipped:
        primary = "modems skipped"
    else:
        primary = f"modems {modems.healthy_count}/{len(modems.modems)}"

    asterisk = "up" if result.asterisk and result.asterisk.running else "down"
    tunnel = result.wireguard.state if result.wireguard else "n/a"
    meta = f"asterisk={asterisk} | wireguard={tunnel}"
    if result.error:
        meta += f" | error={result.error}"

    tlog(
        logger,
        STATUS_EMOJI[result.overall],
        "HEALTH",
        str(result.overall).upper(),
        primary=primary,
        meta=meta,
    )

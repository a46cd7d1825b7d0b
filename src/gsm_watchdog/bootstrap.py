# ─── Standard library imports ───
import shutil
from dataclasses import dataclass

# ─── Project imports ───
from .config import WatchdogConfig
from .logger import get_logger
from .recovery import HARD_SETTLE_DELAY_S


logger = get_logger("bootstrap")

REQUIRED_TOOLS = ("asterisk", "systemctl")
OPTIONAL_TOOLS = ("lsusb", "usbreset", "ip")


@dataclass(frozen=True)
class EnvCapabilities:
    """
    Observed runtime capabilities derived at startup.

    These represent what the host can actually do, not what the
    supervisor is configured to do in theory.
    """
    asterisk_cli: bool
    usb_reset: bool
    interface_probe: bool


def bootstrap(config: WatchdogConfig) -> EnvCapabilities:
    """
    Validate runtime configuration and derive startup capabilities.

    Hard invariant violations already raised when the config was built.
    Missing tools are logged; recovery falls back where it can.
    """
    _validate_invariants(config)
    return discover_runtime_capabilities()


def _validate_invariants(config: WatchdogConfig) -> None:
    """
    Thresholds and interval are validated when the config is built; these
    checks only warn about combinations that behave poorly.
    """
    if config.enabled and not config.log_path:
        logger.warning("LOG_PATH is empty; supervisor log sink disabled")

    if config.check_interval_s < HARD_SETTLE_DELAY_S:
        logger.warning(
            f"CHECK_INTERVAL_S={config.check_interval_s:g}s is shorter than the hard "
            f"recovery settle delay ({HARD_SETTLE_DELAY_S}s); recovering cycles will "
            "overrun the interval and later ticks will be coalesced"
        )


def discover_runtime_capabilities() -> EnvCapabilities:
    found = {tool: shutil.which(tool) is not None for tool in REQUIRED_TOOLS + OPTIONAL_TOOLS}

    for tool in REQUIRED_TOOLS:
        if found[tool]:
            logger.info(f"Found {tool}")
        else:
            logger.warning(f"{tool} NOT found on PATH; checks will report failures")

    for tool in OPTIONAL_TOOLS:
        if not found[tool]:
            logger.info(f"{tool} not found on PATH; related recovery step unavailable")

    return EnvCapabilities(
        asterisk_cli=found["asterisk"],
        usb_reset=found["usbreset"] and found["lsusb"],
        interface_probe=found["ip"],
    )

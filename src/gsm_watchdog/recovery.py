# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import re
import time

# ─── Project imports ───
from .audio import USB_VENDOR_FAMILIES, AudioConfigurator
from .executor import CommandResult, Executor
from .inspectors import AsteriskInspector, ModemInspector, asterisk_cli
from .logger import get_logger
from .tracker import RecoveryLevel


# --- Settle delays (seconds) after each corrective action ---
SOFT_SETTLE_DELAY_S = 5
MEDIUM_SETTLE_DELAY_S = 15
HARD_SETTLE_DELAY_S = 20
ASTERISK_SETTLE_DELAY_S = 15

RESTART_ASTERISK = ["systemctl", "restart", "asterisk"]
USB_ID_PATTERN = re.compile(r"\bID\s+([0-9a-fA-F]{4}):([0-9a-fA-F]{4})\b")


def issued(result: CommandResult) -> bool:
    """
    Service restarts are fire-and-forget: the command counts as issued
    unless the timeout fired.
    """
    return not result.timed_out


class ModemRecovery:
    """
    Progressive modem recovery actions.

    Responsibilities:
    • Execute exactly one Soft, Medium or Hard action per call
    • Block for the action's settle delay before reconfiguring audio
    • Report whether the action's commands were issued

    Non-responsibilities:
    • No escalation decisions (the orchestrator owns thresholds)
    • No attempt counting
    • No retries
    """

    def __init__(
        self,
        executor: Executor,
        inspector: ModemInspector,
        audio: AudioConfigurator,
    ):
        self.executor = executor
        self.inspector = inspector
        self.audio = audio
        self.logger = get_logger("recovery")

    def run(self, level: RecoveryLevel, modem_id: str) -> bool:
        match level:
            case RecoveryLevel.SOFT:
                return self.soft(modem_id)
            case RecoveryLevel.MEDIUM:
                return self.medium(modem_id)
            case RecoveryLevel.HARD:
                return self.hard(modem_id)
            case _:
                raise ValueError(f"No recovery action for level {level}")

    def soft(self, modem_id: str) -> bool:
        """Restart a single device through chan_quectel, then reapply audio."""
        self.logger.info(f"[SOFT] Attempting soft recovery for {modem_id}")
        try:
            result = self.executor.run(asterisk_cli(f"quectel restart now {modem_id}"))
            if not issued(result):
                self.logger.error(f"[SOFT] Restart command timed out for {modem_id}")
                return False

            self.logger.info(f"[SOFT] Restart command sent for {modem_id}")
            time.sleep(SOFT_SETTLE_DELAY_S)
            self.audio.configure(modem_id)
            return True

        except Exception as exc:
            self.logger.exception(f"[SOFT] Recovery failed for {modem_id}: {exc}")
            return False

    def medium(self, modem_id: str) -> bool:
        """Restart the whole telephony engine, then reapply audio everywhere."""
        self.logger.info(f"[MEDIUM] Attempting medium recovery for {modem_id}")
        try:
            result = self.restart_asterisk()
            if not issued(result):
                self.logger.error("[MEDIUM] Asterisk restart timed out")
                return False

            self.logger.info("[MEDIUM] Asterisk restarted")
            time.sleep(MEDIUM_SETTLE_DELAY_S)
            self.reconfigure_all()
            return True

        except Exception as exc:
            self.logger.exception(f"[MEDIUM] Recovery failed for {modem_id}: {exc}")
            return False

    def hard(self, modem_id: str) -> bool:
        """USB reset when available, otherwise an engine restart."""
        self.logger.info(f"[HARD] Attempting hard recovery for {modem_id}")
        try:
            if self.try_usb_reset():
                self.logger.info("[HARD] USB reset completed")
            else:
                self.logger.warning(
                    "[HARD] USB reset not available, restarting all modem services"
                )
                result = self.restart_asterisk()
                if not issued(result):
                    self.logger.error("[HARD] Asterisk restart timed out")
                    return False

            time.sleep(HARD_SETTLE_DELAY_S)
            self.reconfigure_all()
            return True

        except Exception as exc:
            self.logger.exception(f"[HARD] Recovery failed for {modem_id}: {exc}")
            return False

    def restart_asterisk(self) -> CommandResult:
        return self.executor.run(RESTART_ASTERISK)

    def reconfigure_all(self) -> None:
        for modem_id in self.inspector.list_modems():
            self.audio.configure(modem_id)

    def try_usb_reset(self) -> bool:
        """
        Best-effort reset of every modem on the USB bus.

        Returns:
            True if at least one modem was reset, False when `usbreset` is
            missing, no known modem is attached, or every reset failed.
        """
        if not self.executor.run(["which", "usbreset"]).ok:
            return False

        lsusb = self.executor.run(["lsusb"])
        if not lsusb.ok:
            return False

        known_vendors = {vendor for vendor, _ in USB_VENDOR_FAMILIES}
        devices = []
        for vendor, product in USB_ID_PATTERN.findall(lsusb.output):
            device = f"{vendor.lower()}:{product.lower()}"
            if vendor.lower() in known_vendors and device not in devices:
                devices.append(device)

        if not devices:
            return False

        self.logger.info(f"USB reset initiated for {', '.join(devices)}")
        reset_any = False
        for device in devices:
            result = self.executor.run(["usbreset", device])
            if result.ok:
                reset_any = True
            else:
                self.logger.error(f"usbreset {device} failed: {result.error}")
        return reset_any


class AsteriskRecovery:
    """
    Unconditional engine restart: no threshold, no backoff.

    Runs at most once per cycle because the orchestrator calls it at most
    once per cycle.
    """

    def __init__(self, executor: Executor, inspector: AsteriskInspector):
        self.executor = executor
        self.inspector = inspector
        self.logger = get_logger("recovery")

    def recover(self) -> bool:
        self.logger.error("Asterisk not responding, attempting recovery")
        try:
            self.executor.run(RESTART_ASTERISK)
            self.logger.info("Asterisk restart initiated")

            time.sleep(ASTERISK_SETTLE_DELAY_S)

            if self.inspector.check():
                self.logger.ok("Asterisk recovered successfully")
                return True

            self.logger.error("Asterisk still not responding after restart")
            return False

        except Exception as exc:
            self.logger.exception(f"Asterisk recovery failed: {exc}")
            return False

# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import re
import time
from dataclasses import dataclass, field
from enum import Enum

# ─── Project imports ───
from .executor import Executor
from .inspectors import ModemInspector
from .logger import get_logger


class ModemFamily(Enum):
    """
    Audio interfacing modes.

    • UAC:     USB Audio Class voice path (Quectel EC25, VoLTE capable)
    • TTY_PCM: PCM over the serial audio port (SIMCom SIM7600)
    """
    UAC = "uac"
    TTY_PCM = "tty-pcm"

    def __str__(self) -> str:
        return self.value


# USB vendor ids, checked in this order
USB_VENDOR_FAMILIES = (
    ("2c7c", ModemFamily.UAC),       # Quectel
    ("1e0e", ModemFamily.TTY_PCM),   # SIMCom
)

# Harmless no-ops on TTY-PCM hardware, so this is the safe guess
DEFAULT_FAMILY = ModemFamily.UAC

UAC_COMMANDS = (
    "AT+QAUDMOD=3",        # USB audio mode
    "AT+QPCMV=1,2",        # voice over UAC
    "AT+QEEC=1,1,1024",    # echo cancellation
)
UAC_READBACK = "AT+QAUDMOD?"
UAC_EXPECTED_MODE = "3"
UAC_MODE_PATTERN = re.compile(r"\+QAUDMOD:\s*(\d+)")
# Back-to-back commands get dropped by the EC25
UAC_INTER_COMMAND_DELAY_S = 1.0

TTY_PCM_COMMANDS = (
    "AT+CPCMFRM=1",        # 16 kHz PCM format
    "AT+CMICGAIN=0",       # mic gain
    "AT+COUTGAIN=5",       # output gain
    "AT+CTXVOL=0x2000",    # TX volume
)


def detect_family(lsusb_output: str) -> ModemFamily | None:
    """Match `lsusb` output against known vendor ids. None if inconclusive."""
    text = lsusb_output.lower()
    for vendor_id, family in USB_VENDOR_FAMILIES:
        if f"{vendor_id}:" in text:
            return family
    return None


@dataclass
class AudioReport:
    modem_id: str
    family: ModemFamily
    applied: list[tuple[str, bool]] = field(default_factory=list)
    # None when the family has no read-back step
    verified: bool | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for _, ok in self.applied if ok)


class AudioConfigurator:
    """
    Re-applies modem audio settings after a recovery action.

    These settings do not survive a modem reboot, so every soft, medium and
    hard recovery ends here. Individual command failures are logged and
    skipped; a partially configured modem beats an unconfigured one.
    """

    def __init__(self, executor: Executor, inspector: ModemInspector):
        self.executor = executor
        self.inspector = inspector
        self.logger = get_logger("audio")
        self._family: ModemFamily | None = None

    @property
    def family(self) -> ModemFamily:
        if self._family is None:
            self._family = self.detect()
        return self._family

    def detect(self) -> ModemFamily:
        """Inspect USB descriptors once; later calls reuse `family`."""
        result = self.executor.run(["lsusb"])
        family = detect_family(result.output) if result.ok else None

        if family is None:
            self.logger.warning(
                f"Modem family detection inconclusive; defaulting to {DEFAULT_FAMILY}"
            )
            return DEFAULT_FAMILY

        self.logger.info(f"Detected modem audio family: {family}")
        return family

    def configure(self, modem_id: str) -> AudioReport:
        family = self.family
        report = AudioReport(modem_id=modem_id, family=family)

        if family is ModemFamily.UAC:
            self._apply(report, UAC_COMMANDS, delay_s=UAC_INTER_COMMAND_DELAY_S)
            report.verified = self._verify_uac(modem_id)
        else:
            self._apply(report, TTY_PCM_COMMANDS, delay_s=0)

        self.logger.info(
            f"Audio configured for {modem_id} ({family}): "
            f"{report.succeeded}/{len(report.applied)} commands succeeded"
        )
        return report

    def _apply(self, report: AudioReport, commands, delay_s: float) -> None:
        for command in commands:
            try:
                result = self.inspector.send_at(report.modem_id, command)
                ok = result.ok and "ERROR" not in result.output
            except Exception as exc:
                self.logger.warning(f"{report.modem_id}: {command} raised {exc!r}")
                ok = False

            if not ok:
                self.logger.warning(f"{report.modem_id}: {command} failed, continuing")
            report.applied.append((command, ok))

            if delay_s:
                time.sleep(delay_s)

    def _verify_uac(self, modem_id: str) -> bool:
        result = self.inspector.send_at(modem_id, UAC_READBACK)
        match = UAC_MODE_PATTERN.search(result.output)
        mode = match.group(1) if match else None

        if mode == UAC_EXPECTED_MODE:
            self.logger.ok(f"{modem_id}: UAC audio mode verified (QAUDMOD={mode})")
            return True

        self.logger.warning(
            f"{modem_id}: UAC audio mode not applied "
            f"(expected QAUDMOD={UAC_EXPECTED_MODE}, got {mode})"
        )
        return False

# ─── Future imports ───
from __future__ import annotations

# ─── Standard library imports ───
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

# ─── Project imports ───
from .logger import get_logger


ERROR_PREFIX = "Error:"

logger = get_logger("executor")


@dataclass(frozen=True)
class CommandResult:
    """
    Captured outcome of one external command.

    `output` is stdout (stripped) on success, or a sentinel string starting
    with `Error:` on failure so text parsers downstream see a response that
    can never look healthy.
    """
    output: str
    error: str | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class Executor(Protocol):
    def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        ...


class CommandExecutor:
    """
    Runs external commands with a timeout and never raises.

    Timeouts, missing binaries and non-zero exit codes are all folded into a
    failed `CommandResult`. Callers decide what a failure means.
    """

    def __init__(self, default_timeout_s: float = 10.0):
        self.default_timeout_s = default_timeout_s

    def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        timeout = self.default_timeout_s if timeout is None else timeout
        argv = list(args)

        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            message = f"Command timed out after {timeout:g}s"
            logger.debug(f"{argv[0]}: {message}")
            return CommandResult(f"{ERROR_PREFIX} {message}", message, timed_out=True)
        except OSError as exc:
            logger.debug(f"{argv[0]}: {exc}")
            return CommandResult(f"{ERROR_PREFIX} {exc}", str(exc))

        if proc.returncode != 0:
            message = proc.stderr.strip() or f"exit status {proc.returncode}"
            return CommandResult(f"{ERROR_PREFIX} {message}", message)

        return CommandResult(proc.stdout.strip())

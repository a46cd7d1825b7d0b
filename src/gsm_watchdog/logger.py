# ─── Standard library imports ───
import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path


ROOT_LOGGER_NAME = "gsm_watchdog"

# --- Custom log levels ---
OK = 25   # Between INFO (20) and WARNING (30)
logging.addLevelName(OK, "OK")

def ok(self, message, *args, **kwargs):
    """Add `ok` method to Logger for recovery confirmations."""
    if self.isEnabledFor(OK):
        self._log(OK, message, args, stacklevel=2, **kwargs)

logging.Logger.ok = ok

# --- Format configuration constants ---
LOG_LEVEL_EMOJIS = {
    logging.DEBUG: "🧱",
    logging.INFO: "🟢",
    OK: "✅",
    logging.WARNING: "⚠️ ",
    logging.ERROR: "❌",
    logging.CRITICAL: "🔥",
}

LEVEL_NAME_MAP = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}

# --- Log sink policy (append-only file, bounded by rotation) ---
SINK_MAX_BYTES = 5 * 1024 * 1024
SINK_BACKUP_COUNT = 2
SINK_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
SINK_DATEFMT = "%Y-%m-%d %H:%M:%S"

# --- Formatters ---
class EmojiFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        """
        Formatter that prepends an emoji per
        log level and shortens log level names.

        The short name goes to `levellabel` so other handlers
        still see the untouched `levelname`.
        """
        record.levelemoji = LOG_LEVEL_EMOJIS.get(record.levelno, "")
        record.levellabel = LEVEL_NAME_MAP.get(record.levelname, record.levelname)
        return super().format(record)

class SinkFormatter(logging.Formatter):
    """`YYYY-MM-DD HH:MM:SS [LEVEL] message`, one line per entry."""

    def __init__(self):
        super().__init__(fmt=SINK_FORMAT, datefmt=SINK_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        # Keep the one-entry-per-line contract for multi-line messages
        return line.replace("\n", " | ")

class SinkHandler(RotatingFileHandler):
    """Marker type so a sink can be found and replaced on re-attach."""

# --- Public logging setup API ---
def setup_logging(level=logging.INFO) -> None:
    """
    Configure global console logging with emoji decorations.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    # Handler level too: the sink may lower the package logger to INFO
    handler.setLevel(level)
    formatter = EmojiFormatter(
        fmt="%(asctime)s %(levelemoji)s %(name)s:%(funcName)s → %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)

def attach_log_sink(path: str | Path) -> logging.Handler | None:
    """
    Attach the append-only supervisor log file to the package logger.

    Re-attaching replaces any sink installed earlier. Returns None when
    the file cannot be opened; the supervisor keeps running on console
    logging alone.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    detach_log_sink()

    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = SinkHandler(
            path,
            maxBytes=SINK_MAX_BYTES,
            backupCount=SINK_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning(f"Could not open log sink {path}: {exc}")
        return None

    handler.setLevel(logging.INFO)
    handler.setFormatter(SinkFormatter())
    logger.addHandler(handler)
    # Sink entries must not depend on the console level
    if logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)
    return handler

def detach_log_sink() -> None:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, SinkHandler):
            logger.removeHandler(handler)
            handler.close()

def get_logger(name: str) -> logging.Logger:
    """
    Return a namespaced logger for any module.
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

# --- Standard library imports ---
import sys
import signal
import logging
import threading

# --- Project imports ---
from .bootstrap import bootstrap
from .config import Config, WatchdogConfig
from .logger import get_logger, setup_logging
from .orchestrator import HealthCheckOrchestrator
from .wireguard import AdminApiTunnelProvider


def build_orchestrator(config: WatchdogConfig) -> HealthCheckOrchestrator:
    """
    Wire the supervisor from environment configuration.

    Tunnel supervision is only enabled when an admin API URL is configured.
    """
    provider = None
    if Config.Tunnel.API_URL:
        provider = AdminApiTunnelProvider(
            Config.Tunnel.API_URL,
            token=Config.Tunnel.API_TOKEN,
        )
    return HealthCheckOrchestrator(config, tunnel_provider=provider)


def main():
    """
    Entry point for the gateway supervisor.

    Configures logging, validates startup invariants, and runs the
    health-check loop until SIGINT/SIGTERM.
    """

    # Setup logging policy
    setup_logging(level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO))
    logger = get_logger("main")
    logger.info("🚀 Starting GSM gateway watchdog")
    logger.debug(f"Python version: {sys.version}")

    try:
        config = WatchdogConfig.from_env()
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        sys.exit(2)

    bootstrap(config)
    watchdog = build_orchestrator(config)

    shutdown = threading.Event()

    def _request_shutdown(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        shutdown.set()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    watchdog.start()
    if not watchdog.running:
        return

    shutdown.wait()
    watchdog.stop()
    # Let an in-flight cycle finish its current step
    watchdog.join(timeout=config.command_timeout_s)

if __name__ == "__main__":
    main()

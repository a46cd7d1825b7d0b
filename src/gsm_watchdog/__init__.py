"""Self-healing supervisor for a GSM telephony gateway."""

__version__ = "0.1.0"

"""SignalForge — technical analysis and signal-fusion engine."""

__version__ = "0.1.0"

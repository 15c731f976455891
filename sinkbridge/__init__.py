"""Serial telemetry to sink bridge."""

__version__ = "1.0.0"

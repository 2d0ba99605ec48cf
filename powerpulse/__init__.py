"""PowerPulse: three-phase power telemetry normaliser and realtime distributor."""

__version__ = "0.1.0"

"""HTTP and WebSocket API for the PowerPulse telemetry service."""

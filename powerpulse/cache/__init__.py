"""Best-effort Redis cache helpers."""

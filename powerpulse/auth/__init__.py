"""Producer authentication for the event ingest route."""

from powerpulse.auth.stream_auth import StreamAuth, StreamCredential, parse_stream_tokens

__all__ = ["StreamAuth", "StreamCredential", "parse_stream_tokens"]

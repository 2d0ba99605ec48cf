"""
Producer authentication for the event ingest route.

Meter gateways send ``Authorization: Bearer <token>``. STREAM_TOKENS maps
each token to the stream name the gateway publishes under::

    STREAM_TOKENS="k3y-a:site-a-grid,k3y-b:site-a-genset"

Only SHA-256 digests of the tokens are kept in memory. A presented token is
hashed and checked against every registered digest with hmac.compare_digest;
the whole table is always scanned, so response time does not reveal which
entry (if any) matched.

CHANGELOG:
- 2026-10-12: Keep token digests only, scan the full table, reject duplicates
- 2026-10-05: Initial creation

TODO:
- None
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

_CHALLENGE = {"WWW-Authenticate": 'Bearer realm="powerpulse-ingest"'}


def _digest(token: str) -> bytes:
    return hashlib.sha256(token.encode("utf-8")).digest()


@dataclass(frozen=True)
class StreamCredential:
    """A registered producer: token digest and the stream it publishes to."""

    digest: bytes
    stream: str


def parse_stream_tokens(raw: str) -> list[StreamCredential]:
    """Parse STREAM_TOKENS (``token:stream,...``) into credentials.

    Entries are split on the first colon, so stream names may contain
    colons. Blank entries are ignored. Entries missing either half, and
    repeats of an already registered token, are skipped with a warning that
    names the entry position but never the token.
    """
    credentials: list[StreamCredential] = []
    seen: set[bytes] = set()

    for position, entry in enumerate(raw.split(","), start=1):
        entry = entry.strip()
        if not entry:
            continue
        token, sep, stream = (part.strip() for part in entry.partition(":"))
        if not sep or not token or not stream:
            logger.warning(
                "STREAM_TOKENS entry %d is not token:stream, skipped", position
            )
            continue
        digest = _digest(token)
        if digest in seen:
            logger.warning(
                "STREAM_TOKENS entry %d repeats an earlier token, skipped", position
            )
            continue
        seen.add(digest)
        credentials.append(StreamCredential(digest=digest, stream=stream))

    return credentials


class StreamAuth:
    """FastAPI dependency resolving a bearer token to its stream name.

    Usage::

        auth = StreamAuth(parse_stream_tokens(settings.stream_tokens))

        @router.post("/v1/events")
        async def ingest(stream: str = Depends(auth)) -> ...
    """

    def __init__(self, credentials: list[StreamCredential]) -> None:
        self._credentials = tuple(credentials)

    @property
    def streams(self) -> list[str]:
        """Registered stream names, in configuration order."""
        return [credential.stream for credential in self._credentials]

    def authenticate(self, token: str) -> str | None:
        """Return the stream for *token*, or None if it is not registered."""
        presented = _digest(token)
        matched: str | None = None
        for credential in self._credentials:
            if hmac.compare_digest(presented, credential.digest):
                matched = credential.stream
        return matched

    async def __call__(self, request: Request) -> str:
        """Authenticate *request* and return its stream name.

        Raises:
            HTTPException: 401 when the header is missing, not a bearer
                credential, or carries an unregistered token.
        """
        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Bearer token required.",
                headers=_CHALLENGE,
            )

        stream = self.authenticate(token)
        if stream is None:
            client = request.client.host if request.client else "unknown"
            logger.warning("Rejected unknown stream token from %s", client)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unknown stream token.",
                headers=_CHALLENGE,
            )
        return stream

"""
Chunk retrieval from the network's distributed chunk store.

``GET /chunk/<pos>`` returns the whole chunk that contains byte ``pos``, so
the answer may begin before the requested position. The fetcher reports the
chunk's true absolute bounds and leaves trimming to the assembler.
"""

import logging
from typing import Any, Iterable, Optional

import requests

from ..constants import DEFAULT_TIMEOUT_SECONDS
from ..errors import NetworkFailure
from ..models import ChunkWindow, b64url_decode
from ..progress import ProgressLog, null_progress
from .offset_resolver import peer_urls


def parse_chunk_response(payload: Any, absolute_position: int, peer: Optional[str] = None) -> ChunkWindow:
    """
    Turn a chunk response body into a ChunkWindow.

    ``offset``, when present, is the chunk's absolute end; without it the
    chunk is assumed to end ``len - 1`` bytes after the requested position.
    Raises ValueError for a malformed body or a chunk that does not cover
    the requested position.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get('chunk'), str):
        raise ValueError("chunk missing")
    data = b64url_decode(payload['chunk'])
    if not data:
        raise ValueError("chunk is empty")

    if payload.get('offset') is not None:
        absolute_end = int(str(payload['offset']).strip())
    else:
        absolute_end = absolute_position + len(data) - 1
    absolute_start = absolute_end - len(data) + 1

    if not absolute_start <= absolute_position <= absolute_end:
        raise ValueError(
            f"chunk [{absolute_start}, {absolute_end}] does not contain position {absolute_position}"
        )
    return ChunkWindow(absolute_start=absolute_start, absolute_end=absolute_end, data=data, peer=peer)


class ChunkFetcher:
    """Fetches the chunk covering an absolute byte position."""

    def __init__(self, session: requests.Session, timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 progress: Optional[ProgressLog] = None):
        self.session = session
        self.timeout = timeout
        self.progress = progress or null_progress()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def fetch_from_peer(self, peer: str, absolute_position: int) -> ChunkWindow:
        """Fetch from a single peer; any problem is raised to the caller."""
        url = f"{peer}/chunk/{absolute_position}"
        self.progress.debug(f"[chunk] GET {url}")
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        return parse_chunk_response(response.json(), absolute_position, peer)

    def fetch_chunk(self, peers: Iterable, absolute_position: int) -> ChunkWindow:
        """
        Try each peer once, in order, for the chunk at ``absolute_position``.

        Raises:
            NetworkFailure: every peer failed; ``causes`` holds each error.
        """
        causes = []
        for peer in peer_urls(peers):
            try:
                return self.fetch_from_peer(peer, absolute_position)
            except (requests.exceptions.RequestException, ValueError) as e:
                self.progress.debug(f"[chunk] {peer} failed: {e}")
                causes.append((peer, e))

        raise NetworkFailure(f"All peers failed for chunk @{absolute_position}", causes)

"""
Offset resolution for Arweave transactions.

Asks peers, in pool order, where a transaction's data ends in the network's
global byte space and how large it is. The first well-formed answer wins.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from ..constants import OFFSET_LOOKUP_PATH, DEFAULT_TIMEOUT_SECONDS
from ..errors import NetworkFailure
from ..models import OffsetRange
from ..progress import ProgressLog, null_progress

# Field names differ between node versions and gateways
OFFSET_FIELDS = ('offset', 'endOffset', 'end_offset')
SIZE_FIELDS = ('size', 'data_size', 'dataSize')


def peer_urls(peers: Iterable) -> List[str]:
    """Accept a PeerPool, PeerEndpoints or plain URL strings."""
    return [getattr(peer, 'url', peer) for peer in peers]


def _first_present(payload: Dict[str, Any], names: Tuple[str, ...]):
    for name in names:
        if payload.get(name) is not None:
            return payload[name]
    return None


def parse_offset_response(payload: Any) -> OffsetRange:
    """
    Parse an offset lookup body into an OffsetRange.

    Values arrive as decimal strings of arbitrary size and are parsed as
    exact integers. Raises ValueError for anything malformed.
    """
    if not isinstance(payload, dict):
        raise ValueError("offset response is not an object")
    offset = _first_present(payload, OFFSET_FIELDS)
    size = _first_present(payload, SIZE_FIELDS)
    if offset is None or size is None:
        raise ValueError("offset response is missing offset or size")
    if isinstance(offset, (bool, float)) or isinstance(size, (bool, float)):
        raise ValueError("offset and size must be integers")
    return OffsetRange(end_offset=int(str(offset).strip()), size=int(str(size).strip()))


class OffsetResolver:
    """Resolves a content id to its absolute byte range."""

    def __init__(self, session: requests.Session, timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 lookup_path: str = OFFSET_LOOKUP_PATH, progress: Optional[ProgressLog] = None):
        self.session = session
        self.timeout = timeout
        self.lookup_path = lookup_path.lstrip('/')
        self.progress = progress or null_progress()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def resolve_offset(self, content_id: str, peers: Iterable) -> OffsetRange:
        """
        Try each peer once, in order, and return the first valid range.

        Raises:
            NetworkFailure: every peer failed; ``causes`` holds each error.
        """
        causes = []
        for peer in peer_urls(peers):
            url = f"{peer}/{self.lookup_path.format(content_id=content_id)}"
            self.progress.debug(f"[offset] {url}")
            try:
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                offset_range = parse_offset_response(response.json())
            except (requests.exceptions.RequestException, ValueError) as e:
                self._logger.debug(f"Offset lookup via {peer} failed: {e}")
                causes.append((peer, e))
                continue

            self._logger.debug(f"Resolved offset for {content_id} via {peer}: {offset_range}")
            return offset_range

        raise NetworkFailure(f"Failed to fetch tx offset for {content_id} from any peer", causes)

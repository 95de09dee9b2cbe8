"""
Peer pool for chunk recovery.

Builds the ordered list of nodes that offset and chunk requests fall back
through. Order matters: earlier peers are always tried first, so the list is
deterministic for a given set of inputs. Peers are never removed on failure;
every call tries them again from the top.
"""

import logging
from collections import deque
from typing import Iterable, Iterator, List, Optional, Sequence
from urllib.parse import urlsplit

import requests

from .constants import BUILTIN_PEERS, KNOWN_CHUNK_PEERS, DEFAULT_MAX_PEERS, DEFAULT_TIMEOUT_SECONDS
from .models import PeerEndpoint
from .progress import ProgressLog, null_progress

logger = logging.getLogger(__name__)


def normalize_peer(peer) -> Optional[str]:
    """
    Normalize a peer address to scheme://host[:port] without a trailing slash.

    Bare host:port entries (as returned by /peers) are assumed to speak plain
    HTTP. Returns None for anything that is not a usable address.
    """
    if not isinstance(peer, str):
        return None
    url = peer.strip()
    if not url:
        return None
    if not url.lower().startswith(('http://', 'https://')):
        url = f"http://{url}"
    url = url.rstrip('/')

    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    host = parts.hostname
    if not host:
        return None
    if ':' in host:
        host = f"[{host}]"

    netloc = f"{host}:{port}" if port is not None else host
    normalized = f"{parts.scheme.lower()}://{netloc}"
    if parts.path and parts.path != '/':
        normalized += parts.path.rstrip('/')
    return normalized


def dedupe_peers(peers: Iterable[str]) -> List[str]:
    """Normalize and de-duplicate, keeping first-seen order."""
    seen = set()
    ordered = []
    for peer in peers:
        norm = normalize_peer(peer)
        if norm and norm not in seen:
            seen.add(norm)
            ordered.append(norm)
    return ordered


def discover_peers(seed_peers: Sequence[str], session: requests.Session,
                   max_peers: int = DEFAULT_MAX_PEERS,
                   timeout: float = DEFAULT_TIMEOUT_SECONDS,
                   progress: Optional[ProgressLog] = None) -> List[str]:
    """
    Breadth-first walk of /peers endpoints starting from the seed list.

    Every visited peer is part of the result, whether or not its own /peers
    call succeeded. The walk stops once max_peers addresses are collected or
    the frontier is empty.
    """
    progress = progress or null_progress()
    frontier = deque()
    queued = set()
    for seed in seed_peers:
        norm = normalize_peer(seed)
        if norm and norm not in queued:
            frontier.append(norm)
            queued.add(norm)

    visited = set()
    result: List[str] = []

    while frontier and len(result) < max_peers:
        peer = frontier.popleft()
        if peer in visited:
            continue
        visited.add(peer)
        result.append(peer)
        progress.debug(f"[peers] visiting {peer}")

        try:
            response = session.get(f"{peer}/peers", timeout=timeout)
            response.raise_for_status()
            candidates = response.json()
            if not isinstance(candidates, list):
                raise ValueError("peer list is not an array")
        except (requests.exceptions.RequestException, ValueError) as e:
            progress.debug(f"[peers] {peer} /peers failed: {e}")
            continue

        for candidate in candidates:
            norm = normalize_peer(candidate)
            if (norm and norm not in visited and norm not in queued
                    and len(result) + len(frontier) < max_peers):
                frontier.append(norm)
                queued.add(norm)

    return result[:max_peers]


class PeerPool:
    """Ordered, de-duplicated set of peers for one logical network."""

    def __init__(self, peers: Iterable[str] = ()):
        self._endpoints = [PeerEndpoint(url=url, position=i) for i, url in enumerate(dedupe_peers(peers))]

    @classmethod
    def build(cls, max_peers: int = DEFAULT_MAX_PEERS, extra_peers: Iterable[str] = (),
              discover: bool = False, session: Optional[requests.Session] = None,
              timeout: float = DEFAULT_TIMEOUT_SECONDS,
              progress: Optional[ProgressLog] = None) -> 'PeerPool':
        """
        Combine built-in seeds, caller-supplied peers and the known chunk
        peers, optionally extended by /peers discovery.
        """
        seeds = dedupe_peers([*BUILTIN_PEERS, *(extra_peers or ()), *KNOWN_CHUNK_PEERS])
        if discover:
            if session is None:
                raise ValueError("Peer discovery requires an HTTP session")
            peers = discover_peers(seeds, session, max_peers=max_peers, timeout=timeout, progress=progress)
        else:
            peers = seeds[:max_peers]
        logger.debug(f"Built peer pool with {len(peers)} peers")
        return cls(peers)

    @property
    def endpoints(self) -> List[PeerEndpoint]:
        return list(self._endpoints)

    @property
    def urls(self) -> List[str]:
        return [endpoint.url for endpoint in self._endpoints]

    def __iter__(self) -> Iterator[PeerEndpoint]:
        return iter(list(self._endpoints))

    def __len__(self):
        return len(self._endpoints)

    def __bool__(self):
        return bool(self._endpoints)

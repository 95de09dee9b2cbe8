"""
Reassembles a transaction's data from the network's chunk store.

Starting at the transaction's absolute start offset, chunks are requested one
after another. Each response is trimmed to the bytes not yet seen and to the
declared size, and the next request starts right after the chunk's true end.
Chunk sizes vary (first and last chunks especially), so positions always
follow what the peer actually returned rather than a fixed stride.
"""

import logging
from typing import Iterable, Optional

from ..errors import IncompleteAssembly, NetworkFailure
from ..models import AssembledPayload
from ..progress import ProgressLog, null_progress
from ..artifact_store import ArtifactStore
from .offset_resolver import OffsetResolver, peer_urls
from .chunk_fetcher import ChunkFetcher


class StreamAssembler:
    """Drives offset resolution and chunk fetching into one exact byte stream."""

    def __init__(self, resolver: OffsetResolver, fetcher: ChunkFetcher,
                 progress: Optional[ProgressLog] = None):
        self.resolver = resolver
        self.fetcher = fetcher
        self.progress = progress or null_progress()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def assemble(self, content_id: str, peers: Iterable) -> AssembledPayload:
        """
        Fetch every byte of ``content_id`` in order.

        Raises:
            NetworkFailure: offset or a chunk could not be fetched from any
                peer, or the chunk sequence stopped advancing.
            IncompleteAssembly: the byte count does not match the size.
        """
        peers = peer_urls(peers)
        offset_range = self.resolver.resolve_offset(content_id, peers)
        size = offset_range.size
        next_pos = offset_range.start_offset
        self.progress.debug(
            f"[tx] size={size} end={offset_range.end_offset} start={next_pos}"
        )

        parts = []
        accumulated = 0
        windows = 0

        while accumulated < size:
            window = self.fetcher.fetch_chunk(peers, next_pos)

            # Drop bytes from a chunk that began before the next unread position
            slice_start = max(0, next_pos - window.absolute_start)
            usable = window.data[slice_start:]
            remaining = size - accumulated
            if len(usable) > remaining:
                usable = usable[:remaining]

            parts.append(usable)
            accumulated += len(usable)
            windows += 1
            self.progress.info(
                f"Fetched chunk {windows} (size: {len(usable)} bytes, total: {accumulated}/{size})"
            )
            if accumulated >= size:
                break

            following = window.absolute_start + len(window.data)
            if following <= next_pos:
                raise NetworkFailure(
                    f"No progress fetching {content_id}: chunk at {next_pos} ended at {window.absolute_end}"
                )
            next_pos = following

        data = b''.join(parts)
        if len(data) != size:
            self.progress.error(
                f"Failed to fetch all chunks for {content_id}: expected {size} bytes, got {len(data)} bytes."
            )
            raise IncompleteAssembly(expected=size, actual=len(data))

        return AssembledPayload(content_id=content_id, offset_range=offset_range, data=data,
                                windows_used=windows)

    def assemble_to_file(self, content_id: str, peers: Iterable, store: ArtifactStore,
                         outfile: Optional[str] = None) -> AssembledPayload:
        """Assemble and persist; nothing is written unless the size matched."""
        payload = self.assemble(content_id, peers)
        payload.path = store.write(content_id, payload.data, path=outfile)
        self.progress.info(f"Successfully fetched and assembled all chunks for {content_id}!")
        self.progress.info(f"Wrote {payload.size} bytes to {payload.path}")
        return payload

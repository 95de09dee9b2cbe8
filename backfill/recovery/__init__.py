"""
Chunk recovery for Arweave Backfill.

Rebuilds a transaction's raw bytes from the network's chunk store by
resolving its absolute offset and walking chunk by chunk across a pool of
fallback peers.

Usage:
    from backfill.recovery import OffsetResolver, ChunkFetcher, StreamAssembler

    assembler = StreamAssembler(OffsetResolver(session), ChunkFetcher(session))
    payload = assembler.assemble(tx_id, peer_pool)
"""

from .offset_resolver import OffsetResolver, parse_offset_response
from .chunk_fetcher import ChunkFetcher, parse_chunk_response
from .stream_assembler import StreamAssembler

__all__ = [
    'OffsetResolver',
    'ChunkFetcher',
    'StreamAssembler',
    'parse_offset_response',
    'parse_chunk_response',
]

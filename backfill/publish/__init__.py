"""
Re-publication of recovered transaction data.

Rebuilds the canonical chunk/proof structure from an assembled payload,
validates every chunk against the committed data root, posts the chunks
back to a gateway and waits for the content to become available.
"""

from .merkle import ChunkRebuilder, MerkleValidator, RebuiltTransaction, compute_data_root
from .transaction import TransactionClient
from .uploader import ChunkUploader, ChunkPostError
from .poller import FinalizationPoller

__all__ = [
    'ChunkRebuilder',
    'MerkleValidator',
    'RebuiltTransaction',
    'compute_data_root',
    'TransactionClient',
    'ChunkUploader',
    'ChunkPostError',
    'FinalizationPoller',
]

"""
Arweave Backfill.

Recovers transactions whose data was bundled by Irys but never became
retrievable from Arweave gateways: the bundle bytes are reassembled from the
network's chunk store, split back into Merkle-authenticated chunks and
re-posted, then the original transaction is polled until it is served again.

Usage:
    from backfill import BackfillPipeline

    result = BackfillPipeline().fix(tx_id)
"""

from .config import BackfillConfig, load_config, validate_config
from .errors import (
    BackfillError,
    UsageError,
    NetworkFailure,
    IncompleteAssembly,
    ValidationFailure,
    ExhaustedRetries,
    PollTimeout,
)
from .peers import PeerPool
from .pipeline import BackfillPipeline
from .progress import ProgressLog

__version__ = "1.0.0"

__all__ = [
    'BackfillConfig',
    'load_config',
    'validate_config',
    'BackfillError',
    'UsageError',
    'NetworkFailure',
    'IncompleteAssembly',
    'ValidationFailure',
    'ExhaustedRetries',
    'PollTimeout',
    'PeerPool',
    'BackfillPipeline',
    'ProgressLog',
]

"""
Data structures shared by the recovery and publication stages.

Offsets and sizes are plain Python ints so values beyond the 32-bit range
(and beyond float precision) are represented exactly.
"""

import base64
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url, the network's wire format."""
    return base64.urlsafe_b64encode(data).rstrip(b'=').decode('ascii')


def b64url_decode(value: str) -> bytes:
    """Decode base64url with or without padding."""
    value = value.strip()
    padding = (-len(value)) % 4
    return base64.urlsafe_b64decode(value + '=' * padding)


@dataclass(frozen=True)
class PeerEndpoint:
    """A normalized peer address and its position in the fallback order."""
    url: str
    position: int

    def __str__(self):
        return self.url


@dataclass(frozen=True)
class OffsetRange:
    """Absolute byte range of a transaction in the network's chunk space."""
    end_offset: int
    size: int

    def __post_init__(self):
        if self.size <= 0:
            raise ValueError(f"Transaction size must be positive, got {self.size}")
        if self.start_offset < 0:
            raise ValueError(
                f"Transaction of {self.size} bytes cannot end at offset {self.end_offset}"
            )

    @property
    def start_offset(self) -> int:
        return self.end_offset - self.size + 1


@dataclass(frozen=True)
class ChunkWindow:
    """One chunk as served by a peer, positioned in absolute byte space."""
    absolute_start: int
    absolute_end: int
    data: bytes
    peer: Optional[str] = None

    def __post_init__(self):
        if self.absolute_end - self.absolute_start + 1 != len(self.data):
            raise ValueError(
                f"Chunk window [{self.absolute_start}, {self.absolute_end}] "
                f"does not match {len(self.data)} bytes"
            )

    def __len__(self):
        return len(self.data)


@dataclass
class AssembledPayload:
    """Reconstructed transaction data plus where it came from."""
    content_id: str
    offset_range: OffsetRange
    data: bytes
    windows_used: int = 0
    path: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class MerkleProof:
    """Inclusion proof for one chunk under a transaction's data root."""
    data_root: bytes
    data_path: bytes
    offset: int       # last byte of the chunk, relative to the transaction
    chunk_size: int


@dataclass(frozen=True)
class RebuiltChunk:
    """A chunk re-derived from local data, ready to post."""
    index: int
    data: bytes
    proof: MerkleProof
    data_size: int

    def to_upload_body(self) -> Dict[str, str]:
        """JSON body accepted by the gateway's chunk endpoint."""
        return {
            'data_root': b64url_encode(self.proof.data_root),
            'data_size': str(self.data_size),
            'data_path': b64url_encode(self.proof.data_path),
            'offset': str(self.proof.offset),
            'chunk': b64url_encode(self.data),
        }


class UploadOutcome(Enum):
    """Outcome of a single chunk post."""
    ACCEPTED = "accepted"
    ALREADY_PRESENT = "already_present"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    INVALID_PROOF = "invalid_proof"


@dataclass(frozen=True)
class UploadAttempt:
    """Record of one post attempt for a chunk."""
    chunk_index: int
    attempt_number: int
    outcome: UploadOutcome
    status_code: Optional[int] = None
    detail: Optional[str] = None


@dataclass
class UploadReport:
    """Result of uploading a batch of chunks."""
    total: int = 0
    succeeded: int = 0
    failed: List[int] = field(default_factory=list)
    attempts: List[UploadAttempt] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.succeeded == self.total and not self.failed

    def retries_for(self, chunk_index: int) -> int:
        """Number of attempts beyond the first made for a chunk."""
        count = sum(1 for a in self.attempts if a.chunk_index == chunk_index)
        return max(0, count - 1)

    def summary(self) -> str:
        """Human-readable summary of the upload."""
        text = f"{self.succeeded}/{self.total} chunks uploaded"
        if self.failed:
            text += f", failed chunks: {self.failed}"
        return text


@dataclass(frozen=True)
class TransactionMetadata:
    """The committed shape of a transaction's data."""
    tx_id: str
    data_root: bytes
    data_size: int

    @classmethod
    def from_json(cls, tx_id: str, payload: Dict[str, Any]) -> 'TransactionMetadata':
        return cls(
            tx_id=tx_id,
            data_root=b64url_decode(payload['data_root']),
            data_size=int(payload['data_size']),
        )


class BundleSource(Enum):
    """Where a transaction's bundle was found."""
    ARWEAVE = "arweave"
    IRYS = "irys"
    NONE = "none"


@dataclass(frozen=True)
class BundleStatus:
    """Result of a bundle status lookup."""
    tx_id: str
    bundle_id: Optional[str] = None
    source: BundleSource = BundleSource.NONE
    seeds: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'tx_id': self.tx_id,
            'bundle_id': self.bundle_id,
            'source': self.source.value,
        }
        if self.seeds:
            result['seeds'] = list(self.seeds)
        return result

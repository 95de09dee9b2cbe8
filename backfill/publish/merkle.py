"""
Arweave chunk Merkle trees.

Re-derives the chunk split, data root and per-chunk inclusion proofs for a
transaction's data exactly as the network's canonical construction does, and
validates proofs against a committed data root.

Chunking rule: chunks are at most MAX_CHUNK_SIZE bytes. While a full-size
chunk can still be cut, if the bytes left over after it would be non-empty but
smaller than MIN_CHUNK_SIZE, the remaining bytes are split in half (rounding
the first half up) instead. A trailing empty chunk is dropped.

Hashing: leaves are ``H(H(data_hash) || H(note(max)))``; branches are
``H(H(left.id) || H(right.id) || H(note(left.max)))``; an unpaired node is
promoted to the next layer unchanged. ``note(n)`` is ``n`` as a 32-byte
big-endian integer and ``H`` is SHA-256.
"""

import hmac
import hashlib
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional

from ..constants import MAX_CHUNK_SIZE, MIN_CHUNK_SIZE, NOTE_SIZE, HASH_SIZE
from ..errors import ValidationFailure
from ..models import MerkleProof, RebuiltChunk, TransactionMetadata

logger = logging.getLogger(__name__)


def sha256(*parts: bytes) -> bytes:
    return hashlib.sha256(b''.join(parts)).digest()


def int_to_note(value: int) -> bytes:
    """Encode an offset as a fixed 32-byte big-endian note."""
    return value.to_bytes(NOTE_SIZE, 'big')


def note_to_int(note: bytes) -> int:
    return int.from_bytes(note, 'big')


@dataclass(frozen=True)
class Chunk:
    """Byte range of one chunk within the transaction data."""
    data_hash: bytes
    min_byte_range: int
    max_byte_range: int

    @property
    def size(self) -> int:
        return self.max_byte_range - self.min_byte_range


@dataclass
class MerkleNode:
    id: bytes
    max_byte_range: int
    byte_range: Optional[int] = None  # branch boundary: left child's max_byte_range
    left: Optional['MerkleNode'] = None
    right: Optional['MerkleNode'] = None
    data_hash: Optional[bytes] = None

    @property
    def is_leaf(self) -> bool:
        return self.data_hash is not None


@dataclass(frozen=True)
class ProofEntry:
    offset: int
    proof: bytes


def chunk_data(data: bytes) -> List[Chunk]:
    """Split data into chunk ranges using the canonical rebalancing rule."""
    chunks = []
    total = len(data)
    cursor = 0

    while total - cursor >= MAX_CHUNK_SIZE:
        rest = total - cursor
        chunk_size = MAX_CHUNK_SIZE
        next_chunk_size = rest - MAX_CHUNK_SIZE
        if 0 < next_chunk_size < MIN_CHUNK_SIZE:
            chunk_size = (rest + 1) // 2

        chunks.append(Chunk(
            data_hash=sha256(data[cursor:cursor + chunk_size]),
            min_byte_range=cursor,
            max_byte_range=cursor + chunk_size,
        ))
        cursor += chunk_size

    chunks.append(Chunk(data_hash=sha256(data[cursor:]), min_byte_range=cursor, max_byte_range=total))
    return chunks


def generate_leaves(chunks: List[Chunk]) -> List[MerkleNode]:
    return [
        MerkleNode(
            id=sha256(sha256(chunk.data_hash), sha256(int_to_note(chunk.max_byte_range))),
            max_byte_range=chunk.max_byte_range,
            data_hash=chunk.data_hash,
        )
        for chunk in chunks
    ]


def hash_branch(left: MerkleNode, right: Optional[MerkleNode]) -> MerkleNode:
    if right is None:
        return left
    return MerkleNode(
        id=sha256(sha256(left.id), sha256(right.id), sha256(int_to_note(left.max_byte_range))),
        max_byte_range=right.max_byte_range,
        byte_range=left.max_byte_range,
        left=left,
        right=right,
    )


def build_layers(nodes: List[MerkleNode]) -> MerkleNode:
    """Pair nodes layer by layer until a single root remains."""
    if not nodes:
        raise ValueError("Cannot build a Merkle tree without leaves")
    while len(nodes) > 1:
        nodes = [
            hash_branch(nodes[i], nodes[i + 1] if i + 1 < len(nodes) else None)
            for i in range(0, len(nodes), 2)
        ]
    return nodes[0]


def generate_proofs(root: MerkleNode) -> List[ProofEntry]:
    """Collect one inclusion proof per leaf, left to right."""
    proofs = []
    stack = [(root, b'')]
    while stack:
        node, proof = stack.pop()
        if node.is_leaf:
            proofs.append(ProofEntry(
                offset=node.max_byte_range - 1,
                proof=proof + node.data_hash + int_to_note(node.max_byte_range),
            ))
            continue
        partial = proof + node.left.id + node.right.id + int_to_note(node.byte_range)
        # Right first so the left subtree is emitted first
        stack.append((node.right, partial))
        stack.append((node.left, partial))
    return proofs


@dataclass
class TransactionChunks:
    data_root: bytes
    chunks: List[Chunk]
    proofs: List[ProofEntry]


def generate_transaction_chunks(data: bytes) -> TransactionChunks:
    """Chunk ranges, data root and proofs for a transaction's data."""
    if not data:
        return TransactionChunks(data_root=b'', chunks=[], proofs=[])

    chunks = chunk_data(data)
    root = build_layers(generate_leaves(chunks))
    proofs = generate_proofs(root)

    # Drop a trailing zero-length chunk and its proof
    if chunks[-1].size == 0:
        chunks.pop()
        proofs.pop()

    return TransactionChunks(data_root=root.id, chunks=chunks, proofs=proofs)


def compute_data_root(data: bytes) -> bytes:
    return generate_transaction_chunks(data).data_root


@dataclass(frozen=True)
class PathMatch:
    """Leaf reached by a valid inclusion path."""
    data_hash: bytes
    offset: int
    left_bound: int
    right_bound: int

    @property
    def chunk_size(self) -> int:
        return self.right_bound - self.left_bound


def validate_path(root_id: bytes, dest: int, left_bound: int, right_bound: int,
                  path: bytes) -> Optional[PathMatch]:
    """
    Walk an inclusion path from ``root_id`` towards byte ``dest``.

    Returns the leaf the path authenticates, or None if any hash along the
    way does not match or ``dest`` lies outside ``[0, right_bound)``.
    """
    if right_bound <= 0 or dest < 0 or dest >= right_bound:
        return None

    node_id = root_id
    while True:
        if len(path) == HASH_SIZE + NOTE_SIZE:
            data_hash = path[:HASH_SIZE]
            end_note = path[HASH_SIZE:HASH_SIZE + NOTE_SIZE]
            if not hmac.compare_digest(node_id, sha256(sha256(data_hash), sha256(end_note))):
                return None
            return PathMatch(data_hash=data_hash, offset=right_bound - 1,
                             left_bound=left_bound, right_bound=right_bound)

        if len(path) < 2 * HASH_SIZE + NOTE_SIZE:
            return None

        left = path[:HASH_SIZE]
        right = path[HASH_SIZE:2 * HASH_SIZE]
        boundary_note = path[2 * HASH_SIZE:2 * HASH_SIZE + NOTE_SIZE]
        if not hmac.compare_digest(node_id, sha256(sha256(left), sha256(right), sha256(boundary_note))):
            return None

        boundary = note_to_int(boundary_note)
        if dest < boundary:
            node_id = left
            right_bound = min(right_bound, boundary)
        else:
            node_id = right
            left_bound = max(left_bound, boundary)
        path = path[2 * HASH_SIZE + NOTE_SIZE:]


class RebuiltTransaction:
    """
    Rebuilt chunks for one transaction, produced per index on demand.

    The tree is computed once; chunk bodies are sliced from the payload only
    when requested.
    """

    def __init__(self, payload: bytes, metadata: TransactionMetadata):
        self.payload = payload
        self.metadata = metadata
        self._tree = generate_transaction_chunks(payload)

    @property
    def data_root(self) -> bytes:
        return self._tree.data_root

    @property
    def matches_committed_root(self) -> bool:
        return hmac.compare_digest(self._tree.data_root, self.metadata.data_root)

    def __len__(self):
        return len(self._tree.chunks)

    def chunk(self, index: int) -> RebuiltChunk:
        span = self._tree.chunks[index]
        entry = self._tree.proofs[index]
        return RebuiltChunk(
            index=index,
            data=self.payload[span.min_byte_range:span.max_byte_range],
            proof=MerkleProof(
                data_root=self._tree.data_root,
                data_path=entry.proof,
                offset=entry.offset,
                chunk_size=span.size,
            ),
            data_size=self.metadata.data_size,
        )

    def __iter__(self) -> Iterator[RebuiltChunk]:
        for index in range(len(self)):
            yield self.chunk(index)


class ChunkRebuilder:
    """Regenerates the chunk and proof structure from assembled bytes."""

    def __init__(self):
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def rebuild(self, payload: bytes, metadata: TransactionMetadata) -> RebuiltTransaction:
        rebuilt = RebuiltTransaction(payload, metadata)
        if len(payload) != metadata.data_size:
            self._logger.warning(
                f"Payload for {metadata.tx_id} is {len(payload)} bytes but the transaction declares "
                f"{metadata.data_size}"
            )
        if not rebuilt.matches_committed_root:
            self._logger.warning(
                f"Rebuilt data root for {metadata.tx_id} does not match the committed root; "
                f"every chunk will fail validation"
            )
        return rebuilt


class MerkleValidator:
    """Checks rebuilt chunks against a transaction's committed data root."""

    def __init__(self, data_root: bytes, data_size: int):
        self.data_root = data_root
        self.data_size = data_size

    @classmethod
    def for_transaction(cls, metadata: TransactionMetadata) -> 'MerkleValidator':
        return cls(metadata.data_root, metadata.data_size)

    def validate(self, proof: MerkleProof, chunk_bytes: bytes) -> bool:
        """
        True when ``chunk_bytes`` is exactly the leaf that ``proof.data_path``
        authenticates under the committed root at ``proof.offset``.
        """
        try:
            self.check(RebuiltChunk(index=-1, data=chunk_bytes, proof=proof, data_size=self.data_size))
        except ValidationFailure:
            return False
        return True

    def check(self, chunk: RebuiltChunk) -> None:
        """Raise ValidationFailure naming why ``chunk`` does not authenticate."""
        proof = chunk.proof
        match = validate_path(self.data_root, proof.offset, 0, self.data_size, proof.data_path)
        if match is None:
            raise ValidationFailure(chunk.index, "data path does not lead to the committed root")
        if match.chunk_size != proof.chunk_size or match.chunk_size != len(chunk.data):
            raise ValidationFailure(
                chunk.index, f"chunk is {len(chunk.data)} bytes but the proof covers {match.chunk_size}"
            )
        if not hmac.compare_digest(match.data_hash, sha256(chunk.data)):
            raise ValidationFailure(chunk.index, "chunk hash does not match the proven leaf")

"""
Error taxonomy for Arweave Backfill.

Each failure mode of the pipeline has its own exception so callers can tell
a retryable network outage from a corrupted payload or a partial upload.
"""

from typing import List, Optional, Sequence, Tuple


class BackfillError(Exception):
    """Base exception for backfill errors."""
    pass


class UsageError(BackfillError):
    """Raised for missing or invalid identifiers and missing local artifacts."""
    pass


class NetworkFailure(BackfillError):
    """
    Raised when every peer failed for one resolution or fetch call.

    Carries each peer's underlying error so the whole causal chain can be
    reported. Retryable by re-invoking the operation.
    """

    def __init__(self, message: str, causes: Optional[Sequence[Tuple[str, Exception]]] = None):
        self.message = message
        self.causes: List[Tuple[str, Exception]] = list(causes or [])
        super().__init__(self.message)

    def __str__(self):
        if not self.causes:
            return self.message
        return f"{self.message} ({len(self.causes)} errors)"

    def describe_causes(self) -> List[str]:
        """One line per peer failure, in the order the peers were tried."""
        return [f"{peer}: {error}" for peer, error in self.causes]


class IncompleteAssembly(BackfillError):
    """Raised when the assembled byte count does not match the declared size."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Incomplete: expected {expected} bytes but assembled {actual}")


class ValidationFailure(BackfillError):
    """Raised when a rebuilt chunk's Merkle proof does not authenticate."""

    def __init__(self, chunk_index: int, reason: str = "proof did not validate"):
        self.chunk_index = chunk_index
        self.reason = reason
        super().__init__(f"Unable to validate chunk {chunk_index}: {reason}")


class ExhaustedRetries(BackfillError):
    """Raised when one or more chunks could not be uploaded within the allowed attempts."""

    def __init__(self, failed_indices: Sequence[int], report=None):
        self.failed_indices = sorted(failed_indices)
        self.report = report
        super().__init__(f"Failed to upload chunks: {self.failed_indices}")


class PollTimeout(BackfillError):
    """Raised when availability was not observed within the allowed attempts."""

    def __init__(self, content_id: str, attempts: int):
        self.content_id = content_id
        self.attempts = attempts
        super().__init__(f"Gave up after {attempts} attempts waiting for {content_id}")

"""
Chunk re-publication with bounded retry.

Chunks are posted one at a time in ascending index order. A chunk whose
proof does not validate locally is failed at once; a rejected post or a
transport error is retried with a delay of ``attempt * base_delay`` until the
attempts run out. One chunk's failure never stops the batch.
"""

import time
import logging
from typing import Callable, Iterable, Optional

import requests
from tenacity import Retrying, RetryCallState, stop_after_attempt, wait_incrementing, retry_if_exception_type

from ..constants import (
    DEFAULT_DESTINATION, DEFAULT_TIMEOUT_SECONDS, MAX_UPLOAD_ATTEMPTS,
    UPLOAD_RETRY_DELAY_SECONDS, UPLOAD_SUCCESS_STATUSES
)
from ..errors import ExhaustedRetries, ValidationFailure
from ..models import RebuiltChunk, UploadAttempt, UploadOutcome, UploadReport
from ..progress import ProgressLog, null_progress
from .merkle import MerkleValidator, RebuiltTransaction


class ChunkPostError(Exception):
    """A single post that was not accepted; always retryable."""

    def __init__(self, chunk_index: int, message: str, status_code: Optional[int] = None):
        self.chunk_index = chunk_index
        self.status_code = status_code
        super().__init__(message)


class ChunkUploader:
    """Posts rebuilt chunks to the destination gateway."""

    def __init__(self, session: requests.Session, validator: MerkleValidator,
                 destination: str = DEFAULT_DESTINATION,
                 max_attempts: int = MAX_UPLOAD_ATTEMPTS,
                 base_delay: float = UPLOAD_RETRY_DELAY_SECONDS,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 sleep: Callable[[float], None] = time.sleep,
                 progress: Optional[ProgressLog] = None):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.session = session
        self.validator = validator
        self.destination = destination.rstrip('/')
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep
        self.progress = progress or null_progress()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def post_chunk(self, chunk: RebuiltChunk) -> int:
        """POST one chunk; returns the status code or raises ChunkPostError."""
        try:
            response = self.session.post(
                f"{self.destination}/chunk", json=chunk.to_upload_body(), timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.progress.error(f"Network error posting chunk {chunk.index}: {e}")
            raise ChunkPostError(chunk.index, f"Network error: {e}") from e

        if response.status_code not in UPLOAD_SUCCESS_STATUSES:
            raise ChunkPostError(
                chunk.index,
                f"Chunk {chunk.index} upload failed (status {response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.status_code

    def upload_all(self, chunks: Iterable[RebuiltChunk], label: str = "") -> UploadReport:
        """
        Upload every chunk and report exactly which ones failed.

        Raises:
            ExhaustedRetries: at least one chunk failed validation or ran out
                of attempts; ``report`` still lists every success.
        """
        if not isinstance(chunks, RebuiltTransaction):
            chunks = sorted(chunks, key=lambda c: c.index)
        report = UploadReport(total=len(chunks))
        suffix = f" for {label}" if label else ""

        self.progress.info(f"Uploading {report.total} chunk(s){suffix}...")
        for chunk in chunks:
            if self._upload_chunk(chunk, report):
                report.succeeded += 1
            else:
                report.failed.append(chunk.index)

        if report.is_complete:
            self.progress.info(f"All {report.total} chunks uploaded successfully{suffix}!")
            return report

        self.progress.error(
            f"Only {report.succeeded}/{report.total} chunks uploaded{suffix}. Failed chunks: {report.failed}"
        )
        raise ExhaustedRetries(report.failed, report)

    def _upload_chunk(self, chunk: RebuiltChunk, report: UploadReport) -> bool:
        try:
            self.validator.check(chunk)
        except ValidationFailure as e:
            report.attempts.append(UploadAttempt(chunk.index, 1, UploadOutcome.INVALID_PROOF, detail=e.reason))
            self.progress.error(f"{e}; not uploading it")
            return False

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.base_delay, increment=self.base_delay),
            retry=retry_if_exception_type(ChunkPostError),
            sleep=self._sleep,
            before_sleep=self._announce_retry,
            reraise=True,
        )
        try:
            status = retrying(self._attempt, chunk, report)
        except ChunkPostError as e:
            self.progress.error(f"Giving up on chunk {chunk.index} after {self.max_attempts} attempts: {e}")
            return False

        self.progress.info(f"Chunk {chunk.index + 1}/{report.total} uploaded. (status {status})")
        return True

    def _attempt(self, chunk: RebuiltChunk, report: UploadReport) -> int:
        attempt_number = sum(1 for a in report.attempts if a.chunk_index == chunk.index) + 1
        try:
            status = self.post_chunk(chunk)
        except ChunkPostError as e:
            outcome = UploadOutcome.REJECTED if e.status_code is not None else UploadOutcome.TRANSPORT_ERROR
            report.attempts.append(UploadAttempt(chunk.index, attempt_number, outcome,
                                                 status_code=e.status_code, detail=str(e)))
            raise

        outcome = UploadOutcome.ALREADY_PRESENT if status == 208 else UploadOutcome.ACCEPTED
        report.attempts.append(UploadAttempt(chunk.index, attempt_number, outcome, status_code=status))
        return status

    def _announce_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        index = getattr(error, 'chunk_index', '?')
        self.progress.info(
            f"Retry {retry_state.attempt_number}/{self.max_attempts - 1} for chunk {index} "
            f"in {delay:.2f}s... ({error})"
        )

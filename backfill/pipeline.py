"""
End-to-end backfill of one transaction.

Checks where the transaction's bundle lives, rebuilds the bundle bytes from
Arweave's chunk store, re-posts every chunk and waits for the original
transaction to be served again. Each stage runs only after the previous one
has finished, and every stage can be re-run safely.
"""

import time
import logging
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from .artifact_store import ArtifactStore, validate_content_id
from .bundle_status import BundleStatusService
from .config import BackfillConfig, load_config
from .constants import PEER_CONNECT_RETRIES, PIPELINE_FETCH_TIMEOUT_SECONDS
from .http_session import build_session
from .models import AssembledPayload, BundleSource, BundleStatus, UploadReport
from .peers import PeerPool
from .progress import ProgressLog, null_progress
from .publish import ChunkRebuilder, ChunkUploader, FinalizationPoller, MerkleValidator, TransactionClient
from .recovery import ChunkFetcher, OffsetResolver, StreamAssembler


class BackfillPipeline:
    """
    Orchestrates check, fetch, reupload and poll for a transaction.

    One instance serves one run's output sink; separate runs (for different
    ids) should each build their own pipeline.
    """

    def __init__(self, config: Optional[BackfillConfig] = None,
                 progress: Optional[ProgressLog] = None,
                 peer_session: Optional[requests.Session] = None,
                 gateway_session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or load_config()
        self.progress = progress or null_progress()
        self.peer_session = peer_session or build_session(self.config.user_agent, PEER_CONNECT_RETRIES)
        self.gateway_session = gateway_session or build_session(self.config.user_agent)
        self.store = ArtifactStore(self.config.artifact_dir)
        self._sleep = sleep
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # Stages

    def check(self, tx_id: str) -> BundleStatus:
        service = BundleStatusService(
            self.gateway_session,
            destination=self.config.destination,
            graphql_endpoint=self.config.graphql_endpoint,
            irys_node_url=self.config.irys_node_url,
            timeout=self.config.bundle_status_timeout,
        )
        return service.check(validate_content_id(tx_id))

    def build_peer_pool(self, extra_peers: Iterable[str] = (), discover: Optional[bool] = None,
                        timeout: Optional[float] = None) -> PeerPool:
        pool = PeerPool.build(
            max_peers=self.config.max_peers,
            extra_peers=[*(extra_peers or ()), *self.config.extra_peers],
            discover=self.config.discover_peers if discover is None else discover,
            session=self.peer_session,
            timeout=timeout or self.config.fetch_timeout,
            progress=self.progress,
        )
        self.progress.info(f"Using peers for chunk fetch: [{', '.join(pool.urls)}]")
        return pool

    def fetch(self, tx_id: str, extra_peers: Iterable[str] = (), outfile: Optional[str] = None,
              timeout: Optional[float] = None, discover: Optional[bool] = None) -> AssembledPayload:
        """Assemble the transaction's data from the chunk store and persist it."""
        tx_id = validate_content_id(tx_id)
        timeout = timeout or self.config.fetch_timeout
        pool = self.build_peer_pool(extra_peers, discover=discover, timeout=timeout)
        assembler = StreamAssembler(
            OffsetResolver(self.peer_session, timeout=timeout,
                           lookup_path=self.config.offset_lookup_path, progress=self.progress),
            ChunkFetcher(self.peer_session, timeout=timeout, progress=self.progress),
            progress=self.progress,
        )
        return assembler.assemble_to_file(tx_id, pool, self.store, outfile=outfile)

    def reupload(self, tx_id: str, artifact_path: Optional[str] = None) -> UploadReport:
        """Rebuild chunks from the local artifact and post them to the gateway."""
        tx_id = validate_content_id(tx_id)
        data = self.store.read(tx_id, path=artifact_path)

        metadata = TransactionClient(
            self.gateway_session, self.config.destination, self.config.upload_timeout
        ).get_metadata(tx_id)
        rebuilt = ChunkRebuilder().rebuild(data, metadata)

        uploader = ChunkUploader(
            self.gateway_session,
            MerkleValidator.for_transaction(metadata),
            destination=self.config.destination,
            max_attempts=self.config.max_upload_attempts,
            base_delay=self.config.upload_retry_delay,
            timeout=self.config.upload_timeout,
            sleep=self._sleep,
            progress=self.progress,
        )
        return uploader.upload_all(rebuilt, label=tx_id)

    def poll(self, tx_id: str, interval: Optional[float] = None, max_attempts: Optional[int] = None) -> bool:
        poller = FinalizationPoller(
            self.gateway_session, self.config.destination,
            sleep=self._sleep, progress=self.progress,
        )
        return poller.poll_until_available(
            validate_content_id(tx_id),
            interval=self.config.poll_interval if interval is None else interval,
            max_attempts=max_attempts or self.config.poll_max_attempts,
        )

    # Whole run

    def fix(self, tx_id: str) -> Dict[str, Any]:
        """
        Recover ``tx_id`` if it is stuck in an Irys bundle.

        Returns ``{"status": ...}``: ``already_on_arweave``,
        ``not_found_on_irys`` or ``fixed``. Any stage failure is reported
        through the progress sink and re-raised.
        """
        tx_id = validate_content_id(tx_id)

        self.progress.info(f"Checking Arweave for {tx_id}")
        try:
            status = self.check(tx_id)
        except Exception as e:
            self.progress.error(f"Failed to check bundle status: {e}")
            raise

        if status.source == BundleSource.ARWEAVE:
            self.progress.info("Found on Arweave. No action needed.")
            return {'status': 'already_on_arweave'}
        if status.source != BundleSource.IRYS:
            self.progress.info("Not found. No bundle available on Irys. Exiting.")
            return {'status': 'not_found_on_irys'}

        bundle_id = status.bundle_id
        self.progress.info(f"Bundle id from Irys: {bundle_id}")

        try:
            if status.seeds:
                self.progress.info(
                    f"Fetching chunks for bundle id {bundle_id} with discovered peers: [{', '.join(status.seeds)}]"
                )
            else:
                self.progress.info(f"Fetching chunks for bundle id {bundle_id} with default peers.")
            self.fetch(bundle_id, extra_peers=status.seeds or (),
                       timeout=max(self.config.fetch_timeout, PIPELINE_FETCH_TIMEOUT_SECONDS))
        except Exception as e:
            self.progress.error(f"Failed to fetch chunks: {e}")
            raise

        try:
            self.progress.info(f"Reuploading chunks for bundle id {bundle_id}...")
            self.reupload(bundle_id)
        except Exception as e:
            self.progress.error(f"Failed to reupload chunks: {e}")
            raise

        try:
            self.progress.info(f"Polling Arweave for tx {tx_id}...")
            self.poll(tx_id)
        except Exception as e:
            self.progress.error(f"Polling failed: {e}")
            raise

        return {'status': 'fixed', 'bundle_id': bundle_id}

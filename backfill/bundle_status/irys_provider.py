"""
Irys provider for bundle status.

Irys reports the Arweave bundle a finalized upload was placed in, even when
that bundle never became available on Arweave itself.
"""

import logging
from typing import List, Optional, Tuple

import requests

from ..constants import IRYS_NODE_URL, BUNDLE_STATUS_TIMEOUT_SECONDS


class IrysStatusProvider:
    """Reads ``GET {node}/tx/{id}/status`` from an Irys node."""

    def __init__(self, session: requests.Session, node_url: str = IRYS_NODE_URL,
                 timeout: float = BUNDLE_STATUS_TIMEOUT_SECONDS):
        self.session = session
        self.node_url = node_url.rstrip('/')
        self.timeout = timeout
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def lookup(self, tx_id: str) -> Optional[Tuple[str, List[str]]]:
        """
        Return ``(bundle_id, seeded_to)`` for a FINALIZED upload, or None.

        ``seeded_to`` lists the nodes Irys pushed the bundle to; they are the
        most likely peers to still hold its chunks.
        """
        try:
            response = self.session.get(f"{self.node_url}/tx/{tx_id}/status", timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            self._logger.debug(f"Irys status lookup failed for {tx_id}: {e}")
            return None

        if not isinstance(data, dict) or data.get('status') != 'FINALIZED' or not data.get('bundleTxId'):
            return None

        seeded_to = data.get('seededTo')
        seeds = [str(s) for s in seeded_to if s] if isinstance(seeded_to, list) else []
        return data['bundleTxId'], seeds

    def find_bundle(self, tx_id: str) -> Optional[str]:
        found = self.lookup(tx_id)
        return found[0] if found else None

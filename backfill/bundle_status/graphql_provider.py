"""
Arweave GraphQL provider for bundle status.

Asks the network's GraphQL index whether a transaction is already part of a
bundle that Arweave knows about. A hit means the data is on Arweave and
nothing needs to be fixed.
"""

import logging
from typing import Optional

import requests

from ..constants import GRAPHQL_ENDPOINT, BUNDLE_STATUS_TIMEOUT_SECONDS

BUNDLED_IN_QUERY = """query {
  transaction(id: "%s") {
    id
    data { size }
    bundledIn { id }
  }
}"""


class ArweaveGraphQLProvider:
    """Looks up ``bundledIn`` for a transaction on an Arweave GraphQL index."""

    def __init__(self, session: requests.Session, endpoint: str = GRAPHQL_ENDPOINT,
                 timeout: float = BUNDLE_STATUS_TIMEOUT_SECONDS):
        self.session = session
        self.endpoint = endpoint
        self.timeout = timeout
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def find_bundle(self, tx_id: str) -> Optional[str]:
        """Return the id of the bundle containing ``tx_id``, or None."""
        try:
            response = self.session.post(
                self.endpoint, json={'query': BUNDLED_IN_QUERY % tx_id}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            self._logger.debug(f"GraphQL bundle lookup failed for {tx_id}: {e}")
            return None

        transaction = ((data or {}).get('data') or {}).get('transaction') or {}
        bundled_in = transaction.get('bundledIn') or {}
        if transaction.get('id') == tx_id and bundled_in.get('id'):
            return bundled_in['id']
        return None

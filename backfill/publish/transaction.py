"""
Transaction metadata lookup on the destination gateway.
"""

import logging

import requests

from ..constants import DEFAULT_DESTINATION, DEFAULT_TIMEOUT_SECONDS
from ..errors import NetworkFailure
from ..models import TransactionMetadata


class TransactionClient:
    """Fetches a transaction header to learn its committed data root and size."""

    def __init__(self, session: requests.Session, destination: str = DEFAULT_DESTINATION,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.session = session
        self.destination = destination.rstrip('/')
        self.timeout = timeout
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def get_metadata(self, tx_id: str) -> TransactionMetadata:
        url = f"{self.destination}/tx/{tx_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            metadata = TransactionMetadata.from_json(tx_id, response.json())
        except (requests.exceptions.RequestException, ValueError, KeyError, TypeError) as e:
            raise NetworkFailure(f"Failed to fetch transaction {tx_id}", [(self.destination, e)]) from e

        self._logger.debug(f"Transaction {tx_id}: data_size={metadata.data_size}")
        return metadata

"""
Bundle status cascade.

A transaction counts as on Arweave only when the gateway actually serves it;
Arweave's GraphQL index then names the bundle for information. Irys is asked
when the gateway has nothing.
"""

import logging
from typing import Optional

import requests

from ..constants import DEFAULT_DESTINATION, GRAPHQL_ENDPOINT, IRYS_NODE_URL, BUNDLE_STATUS_TIMEOUT_SECONDS
from ..models import BundleSource, BundleStatus
from ..publish.poller import FinalizationPoller
from .graphql_provider import ArweaveGraphQLProvider
from .irys_provider import IrysStatusProvider


class BundleStatusService:
    """Resolves a transaction id to the bundle holding its data."""

    def __init__(self, session: requests.Session, destination: str = DEFAULT_DESTINATION,
                 graphql_endpoint: str = GRAPHQL_ENDPOINT,
                 irys_node_url: str = IRYS_NODE_URL,
                 timeout: float = BUNDLE_STATUS_TIMEOUT_SECONDS,
                 availability: Optional[FinalizationPoller] = None,
                 arweave_provider: Optional[ArweaveGraphQLProvider] = None,
                 irys_provider: Optional[IrysStatusProvider] = None):
        self.availability = availability or FinalizationPoller(session, destination, timeout)
        self.arweave_provider = arweave_provider or ArweaveGraphQLProvider(session, graphql_endpoint, timeout)
        self.irys_provider = irys_provider or IrysStatusProvider(session, irys_node_url, timeout)
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def check(self, tx_id: str) -> BundleStatus:
        if self.availability.is_available(tx_id):
            bundle_id = self.arweave_provider.find_bundle(tx_id)
            self._logger.debug(f"{tx_id} is served by the gateway (bundle {bundle_id or 'unknown'})")
            return BundleStatus(tx_id=tx_id, bundle_id=bundle_id, source=BundleSource.ARWEAVE)

        found = self.irys_provider.lookup(tx_id)
        if found:
            bundle_id, seeds = found
            self._logger.debug(f"{tx_id} is bundled by Irys in {bundle_id}")
            return BundleStatus(tx_id=tx_id, bundle_id=bundle_id, source=BundleSource.IRYS,
                                seeds=seeds or None)

        return BundleStatus(tx_id=tx_id, source=BundleSource.NONE)

"""
Bundle status lookup for Arweave Backfill.

Decides whether a transaction needs fixing: already served by Arweave,
bundled by Irys only (the case this tool repairs), or unknown to both.

Usage:
    from backfill.bundle_status import BundleStatusService

    status = BundleStatusService(session).check(tx_id)
"""

from .graphql_provider import ArweaveGraphQLProvider
from .irys_provider import IrysStatusProvider
from .status_service import BundleStatusService

__all__ = [
    'ArweaveGraphQLProvider',
    'IrysStatusProvider',
    'BundleStatusService',
]

"""
Finalization polling.

After chunks are re-published the gateway still needs time to notice. This
probes the gateway until the original content is served again.
"""

import time
import logging
from typing import Callable, Optional

import requests

from ..constants import DEFAULT_DESTINATION, DEFAULT_TIMEOUT_SECONDS, POLL_INTERVAL_SECONDS, POLL_MAX_ATTEMPTS
from ..errors import PollTimeout
from ..progress import ProgressLog, null_progress


class FinalizationPoller:
    """Sends ``HEAD {destination}/{id}`` on a fixed interval."""

    def __init__(self, session: requests.Session, destination: str = DEFAULT_DESTINATION,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 sleep: Callable[[float], None] = time.sleep,
                 progress: Optional[ProgressLog] = None):
        self.session = session
        self.destination = destination.rstrip('/')
        self.timeout = timeout
        self._sleep = sleep
        self.progress = progress or null_progress()
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def is_available(self, content_id: str) -> bool:
        """One HEAD request: a 2xx answer with a positive Content-Length."""
        try:
            response = self.session.head(f"{self.destination}/{content_id}", timeout=self.timeout,
                                         allow_redirects=True)
        except requests.exceptions.RequestException as e:
            self._logger.debug(f"HEAD {content_id} failed: {e}")
            return False

        if not 200 <= response.status_code < 300:
            return False
        try:
            content_length = int(response.headers.get('Content-Length', '0'))
        except ValueError:
            return False
        return content_length > 0

    def poll_until_available(self, content_id: str, interval: float = POLL_INTERVAL_SECONDS,
                             max_attempts: int = POLL_MAX_ATTEMPTS) -> bool:
        """
        Return True as soon as the content is available.

        Raises:
            PollTimeout: not observed within ``max_attempts`` probes. This does
                not mean the chunks were rejected.
        """
        for attempt in range(1, max_attempts + 1):
            if self.is_available(content_id):
                self.progress.info(f"Tx {content_id} is now available on Arweave!")
                return True
            if attempt < max_attempts:
                self.progress.info(".")
                self._sleep(interval)

        raise PollTimeout(content_id, max_attempts)

"""
HTTP session setup shared by peer clients, the uploader and status lookups.
"""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import (
    DEFAULT_USER_AGENT, HTTP_POOL_CONNECTIONS, HTTP_POOL_MAXSIZE, RETRY_BACKOFF_FACTOR
)


def build_session(user_agent: str = DEFAULT_USER_AGENT, connect_retries: int = 0) -> requests.Session:
    """
    Create a pooled JSON session.

    Only connection establishment is retried at the transport level; status
    codes and read errors are left to the caller's own fallback or retry
    policy so attempts stay countable.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=connect_retries,
        connect=connect_retries,
        read=0,
        status=0,
        backoff_factor=RETRY_BACKOFF_FACTOR,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        'User-Agent': user_agent,
        'Accept': 'application/json',
    })
    return session

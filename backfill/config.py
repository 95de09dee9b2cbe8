"""
Configuration loading for Arweave Backfill.

Reads settings.ini from the repository root (environment variables override)
and returns a BackfillConfig with defaults for anything left unset.
"""

import os
import logging
import configparser
from dataclasses import dataclass, field
from typing import Optional, List

from . import constants

_INVALID = (None, "", "None")

logger = logging.getLogger(__name__)


@dataclass
class BackfillConfig:
    """All backfill-related configuration."""
    # Peers
    extra_peers: List[str] = field(default_factory=list)
    max_peers: int = constants.DEFAULT_MAX_PEERS
    discover_peers: bool = False
    offset_lookup_path: str = constants.OFFSET_LOOKUP_PATH
    # Fetch
    fetch_timeout: float = constants.DEFAULT_TIMEOUT_SECONDS
    artifact_dir: str = constants.DEFAULT_ARTIFACT_DIR
    # Upload
    destination: str = constants.DEFAULT_DESTINATION
    max_upload_attempts: int = constants.MAX_UPLOAD_ATTEMPTS
    upload_retry_delay: float = constants.UPLOAD_RETRY_DELAY_SECONDS
    upload_timeout: float = constants.DEFAULT_TIMEOUT_SECONDS
    # Polling
    poll_interval: float = constants.POLL_INTERVAL_SECONDS
    poll_max_attempts: int = constants.POLL_MAX_ATTEMPTS
    # Bundle status
    graphql_endpoint: str = constants.GRAPHQL_ENDPOINT
    irys_node_url: str = constants.IRYS_NODE_URL
    bundle_status_timeout: float = constants.BUNDLE_STATUS_TIMEOUT_SECONDS
    # Settings
    log_level: str = constants.DEFAULT_LOG_LEVEL
    user_agent: str = constants.DEFAULT_USER_AGENT


def default_config_path() -> str:
    """Path to settings.ini in the repository root."""
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_dir, 'settings.ini')


def _split_list(value: Optional[str]) -> List[str]:
    if not value or value in _INVALID:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def load_config(config_path: Optional[str] = None) -> BackfillConfig:
    """Load backfill configuration from settings.ini with env var overrides."""
    parser = configparser.ConfigParser()
    parser.read(config_path or default_config_path())
    config = BackfillConfig()

    def _get(section: str, key: str, env: str, fallback):
        """Env var > settings.ini > fallback, converted to the fallback's type."""
        raw = os.getenv(env)
        if raw in _INVALID:
            raw = parser.get(section, key, fallback=None)
        if raw in _INVALID:
            return fallback
        try:
            if isinstance(fallback, bool):
                return raw.strip().lower() in ('1', 'true', 'yes', 'on')
            if isinstance(fallback, int):
                return int(raw)
            if isinstance(fallback, float):
                return float(raw)
        except ValueError:
            logger.warning(f"Invalid value {raw!r} for [{section}] {key}, using default {fallback!r}")
            return fallback
        return raw.strip()

    config.extra_peers = _split_list(os.getenv('BACKFILL_PEERS') or parser.get('Peers', 'extra_peers', fallback=None))
    config.max_peers = _get('Peers', 'max_peers', 'BACKFILL_MAX_PEERS', config.max_peers)
    config.discover_peers = _get('Peers', 'discover', 'BACKFILL_DISCOVER_PEERS', config.discover_peers)
    config.offset_lookup_path = _get('Peers', 'offset_lookup_path', 'BACKFILL_OFFSET_LOOKUP_PATH',
                                     config.offset_lookup_path)

    config.fetch_timeout = _get('Fetch', 'timeout_seconds', 'BACKFILL_FETCH_TIMEOUT', config.fetch_timeout)
    config.artifact_dir = _get('Fetch', 'artifact_dir', 'BACKFILL_ARTIFACT_DIR', config.artifact_dir)

    config.destination = _get('Upload', 'destination', 'BACKFILL_DESTINATION', config.destination).rstrip('/')
    config.max_upload_attempts = _get('Upload', 'max_attempts', 'BACKFILL_MAX_UPLOAD_ATTEMPTS',
                                      config.max_upload_attempts)
    config.upload_retry_delay = _get('Upload', 'retry_delay_seconds', 'BACKFILL_UPLOAD_RETRY_DELAY',
                                     config.upload_retry_delay)
    config.upload_timeout = _get('Upload', 'timeout_seconds', 'BACKFILL_UPLOAD_TIMEOUT', config.upload_timeout)

    config.poll_interval = _get('Polling', 'interval_seconds', 'BACKFILL_POLL_INTERVAL', config.poll_interval)
    config.poll_max_attempts = _get('Polling', 'max_attempts', 'BACKFILL_POLL_MAX_ATTEMPTS',
                                    config.poll_max_attempts)

    config.graphql_endpoint = _get('BundleStatus', 'graphql_endpoint', 'BACKFILL_GRAPHQL_ENDPOINT',
                                   config.graphql_endpoint)
    config.irys_node_url = _get('BundleStatus', 'irys_node_url', 'BACKFILL_IRYS_NODE_URL',
                                config.irys_node_url).rstrip('/')
    config.bundle_status_timeout = _get('BundleStatus', 'timeout_seconds', 'BACKFILL_BUNDLE_STATUS_TIMEOUT',
                                        config.bundle_status_timeout)

    config.log_level = _get('Settings', 'log_level', 'BACKFILL_LOG_LEVEL', config.log_level).upper()
    config.user_agent = _get('Settings', 'user_agent', 'BACKFILL_USER_AGENT', config.user_agent)

    return config


def validate_config(config: BackfillConfig) -> List[str]:
    """Return a list of configuration problems; empty when the config is usable."""
    errors = []

    if config.max_peers <= 0:
        errors.append("max_peers must be greater than 0")
    if '{content_id}' not in config.offset_lookup_path:
        errors.append("offset_lookup_path must contain the {content_id} placeholder")
    if config.fetch_timeout <= 0:
        errors.append("Fetch timeout_seconds must be greater than 0")
    if not config.destination.startswith(('http://', 'https://')):
        errors.append(f"Upload destination must be an http(s) URL, got '{config.destination}'")
    if config.max_upload_attempts <= 0:
        errors.append("Upload max_attempts must be greater than 0")
    if config.upload_retry_delay < 0:
        errors.append("Upload retry_delay_seconds cannot be negative")
    if config.poll_interval < 0:
        errors.append("Polling interval_seconds cannot be negative")
    if config.poll_max_attempts <= 0:
        errors.append("Polling max_attempts must be greater than 0")
    if config.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        errors.append(f"Invalid log_level '{config.log_level}'")

    return errors

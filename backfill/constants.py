"""
Centralized constants for Arweave Backfill.

Protocol values that must match the network exactly live next to the tunable
defaults so the two are never confused.
"""

# Arweave chunking protocol (must match the network's canonical Merkle construction)
MAX_CHUNK_SIZE = 256 * 1024
MIN_CHUNK_SIZE = 32 * 1024
NOTE_SIZE = 32
HASH_SIZE = 32

# Peer Configuration
BUILTIN_PEERS = (
    'https://arweave.net',
    'http://38.29.227.39:1984',
    'http://38.29.227.41:1984',
    'http://165.254.143.21:1984',
)

# Nodes observed to keep serving chunk data for bundles
KNOWN_CHUNK_PEERS = (
    '38.29.227.39:1984',
    '38.29.227.41:1984',
    '38.29.227.85:1984',
    '165.254.143.21:1984',
    '168.119.211.20:1984',
    '38.29.227.87:1984',
    '38.29.227.43:1984',
    '38.29.227.89:1984',
    '49.12.135.160:1984',
    '108.238.244.144:2012',
    '38.29.227.93:1984',
    '165.254.143.17:1984',
    '165.254.143.25:1984',
    '112.120.10.191:1986',
    '165.254.143.31:1984',
    '38.29.227.91:1984',
    '165.254.143.27:1984',
    '165.254.143.23:1984',
    '38.29.227.95:1984',
    '112.120.10.191:1984',
    '47.205.134.63:1985',
    '74.82.0.180:1995',
    '165.254.143.33:1984',
    '165.254.143.29:1984',
    '138.201.218.229:1984',
    '112.120.10.191:1985',
    '168.119.211.60:1984',
    '165.254.143.19:1984',
    '154.201.1.130:11099',
    '74.82.0.180:1986',
    '3.34.96.164:1984',
    '74.82.0.180:1988',
)

DEFAULT_MAX_PEERS = 500
OFFSET_LOOKUP_PATH = 'tx/{content_id}/offset'

# Request Configuration
DEFAULT_TIMEOUT_SECONDS = 15
PIPELINE_FETCH_TIMEOUT_SECONDS = 120
DEFAULT_USER_AGENT = "Arweave Backfill/1.0 (Chunk Recovery Tool)"

# Connection Pooling
HTTP_POOL_CONNECTIONS = 10
HTTP_POOL_MAXSIZE = 20
PEER_CONNECT_RETRIES = 1
RETRY_BACKOFF_FACTOR = 0.3

# Destination gateway
DEFAULT_DESTINATION = 'https://arweave.net'

# Upload Retry Configuration
MAX_UPLOAD_ATTEMPTS = 5
UPLOAD_RETRY_DELAY_SECONDS = 0.75
UPLOAD_SUCCESS_STATUSES = frozenset({200, 208})  # 208: chunk already present

# Finalization Polling
POLL_INTERVAL_SECONDS = 10
POLL_MAX_ATTEMPTS = 100

# Bundle Status Services
GRAPHQL_ENDPOINT = 'https://arweave-search.goldsky.com/graphql'
IRYS_NODE_URL = 'https://node1.irys.xyz'
BUNDLE_STATUS_TIMEOUT_SECONDS = 10

# Artifacts
ARTIFACT_SUFFIX = '.bin'
DEFAULT_ARTIFACT_DIR = '.'

# Logging
DEFAULT_LOG_LEVEL = "INFO"

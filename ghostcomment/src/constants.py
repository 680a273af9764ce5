"""
Shared constants for GhostComment.

Centralizes limits, timings and defaults used across multiple modules.
"""

from .errors import ErrorKind

# Default marker that flags a line as a ghost comment
DEFAULT_PREFIX = "//_gc_"

DEFAULT_INCLUDE = [
    "**/*.{js,ts,tsx,jsx}",       # JavaScript/TypeScript
    "**/*.{py}",                  # Python
    "**/*.{go}",                  # Go
    "**/*.{rs}",                  # Rust
    "**/*.{java,kt}",             # Java/Kotlin
    "**/*.{swift}",               # Swift
    "**/*.{rb}",                  # Ruby
    "**/*.{php}",                 # PHP
    "**/*.{c,cpp,cc,cxx,h,hpp}",  # C/C++
    "**/*.{cs}",                  # C#
]

DEFAULT_EXCLUDE = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.git/**",
    "**/coverage/**",
    "**/*.min.js",
    "**/*.bundle.js",
    "**/vendor/**",
    "**/target/**",
    "**/bin/**",
    "**/obj/**",
    "**/__pycache__/**",
    "**/*.pyc",
    "**/venv/**",
    "**/env/**",
]

# Configuration limits
MAX_PREFIX_LENGTH = 20
MAX_INCLUDE_PATTERNS = 50
MAX_EXCLUDE_PATTERNS = 100
MAX_COMMENT_LENGTH = 1000

# File limits for scanning
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_FILES = 10000
SCAN_CONCURRENCY = 10

# Rate limiting (seconds)
GITHUB_REQUEST_DELAY = 0.1
GITLAB_REQUEST_DELAY = 0.1
MAX_RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
REQUEST_TIMEOUT = 30

TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})

GITHUB_API_URL = "https://api.github.com"
GITLAB_URL = "https://gitlab.com"
USER_AGENT = "GhostComment/1.0.0"

# Visual marker wrapped around every posted comment body
COMMENT_TEMPLATE = "🧩 _{content}_"

BACKUP_SUFFIX = "ghostcomment-backup"

CONFIG_FILE_NAME = ".ghostcomment.yaml"

# Process exit codes used by the command-line layer
EXIT_CODES = {
    ErrorKind.CONFIG_ERROR: 1,
    ErrorKind.FILE_ERROR: 2,
    ErrorKind.GIT_ERROR: 3,
    ErrorKind.GITHUB_API_ERROR: 4,
    ErrorKind.GITLAB_API_ERROR: 5,
    ErrorKind.AUTH_ERROR: 6,
    ErrorKind.RATE_LIMIT_ERROR: 7,
    ErrorKind.NETWORK_ERROR: 8,
}
EXIT_UNKNOWN = 99

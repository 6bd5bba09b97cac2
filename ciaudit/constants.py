from datetime import datetime, timezone

# Entrius 2025
# =============================================================================
# General
# =============================================================================
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600

# =============================================================================
# GitHub API
# =============================================================================
BASE_GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_PER_PAGE = 100
GITHUB_REQUEST_TIMEOUT = 30  # seconds
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
GITHUB_TOKEN_HINT = "https://github.com/settings/tokens"
USER_AGENT = "ciaudit/1.0"

# Rate limit cooperation: the only retry policy in the project
DEFAULT_MAX_RETRIES = 2
RATE_LIMIT_BUFFER_SECONDS = 5  # Extra buffer time when waiting for rate limit reset
RATE_LIMIT_MIN_REMAINING = 10  # Remaining requests below which a warning is logged
RATE_LIMIT_MAX_WAIT_SECONDS = 900  # Maximum time to wait for rate limit reset (15 min)
SECONDARY_RATE_LIMIT_DEFAULT_WAIT = 60

# =============================================================================
# Audited repository
# =============================================================================
DEFAULT_REPOSITORY = "web-platform-tests/wpt"
DEFAULT_BASE_BRANCHES = ["master", "main"]

# =============================================================================
# Manifest releases
# =============================================================================
# merge_pr_* tags should exist since July 2017.
TAGS_SINCE = datetime(2017, 7, 1, 0, 0, tzinfo=timezone.utc)
MERGE_TAG_PREFIX = "merge_pr_"

MANIFEST_FORMATS = ["gz", "bz2", "zst"]
REQUIRED_MANIFEST_FORMATS = ["gz"]
MIN_MANIFEST_SIZE = 1_600_000  # bytes, compressed
UPLOADED_ASSET_STATE = "uploaded"

GRACE_WINDOW_MINUTES = 60  # skip PRs updated this recently, artifacts may still be uploading
RELEASE_CACHE_DAYS = 14  # bulk release scan stops at releases older than this

# PRs that are known to have no usable release; keyed by PR number
IGNORED_PULL_REQUESTS: tuple = ()

# =============================================================================
# CI checks and statuses
# =============================================================================
# Time of https://github.com/web-platform-tests/wpt/issues/13818#issuecomment-436330922
AZURE_PIPELINES_SINCE = datetime(2018, 11, 6, 17, 7, 56, tzinfo=timezone.utc)
AZURE_PIPELINES_CHECK_NAME = "Azure Pipelines"
TASKCLUSTER_PR_CONTEXT = "Taskcluster (pull_request)"
TASKCLUSTER_PUSH_CONTEXT = "Taskcluster (push)"

PENDING_CHECK_MAX_AGE = 6 * SECONDS_PER_HOUR
PENDING_STATUS_MAX_AGE = 2 * SECONDS_PER_HOUR
CHECKS_LOOKBACK_DAYS = 7

PASSING_CHECK_CONCLUSIONS = ["success", "neutral"]
FINISHED_STATUS_STATES = ["success", "failure"]

# =============================================================================
# Local snapshot
# =============================================================================
DEFAULT_DATA_DIR = "data"

"""Default values shared across capflow modules."""

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 1.5
DEFAULT_BACKOFF_JITTER = 0.5

DEFAULT_CACHE_DIR = ".capflow/plans"
DEFAULT_WORKFLOWS_DIR = "workflows"
CACHE_KEY_PREFIX = "plan_"

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-2.0-flash"
GEMINI_TIMEOUT = 60.0
GEMINI_TEMPERATURE = 0.1

"""Centralized constants"""

# Redis TTLs
REDIS_KEY_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days

# Workflow wire format
WORKFLOW_DOCUMENT_VERSION = "1.0"
ACTION_TYPES = ("prompt", "script", "hybrid")
REQUIRED_WORKFLOW_FIELDS = ("id", "name", "nodes")

# Internal tool used by actions to write into the shared variable bag
WRITE_CONTEXT_TOOL_NAME = "write_context"

# LLM defaults
DEFAULT_LLM_PROVIDER = "openai"
DEFAULT_MODEL_NAME = "gpt-4o"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_ACTION_MAX_TOKENS = 1000
DEFAULT_LLM_TIMEOUT_SECONDS = 300  # 5 minutes

# Streaming protocol
STREAM_DATA_PREFIX = "data: "
STREAM_DONE_SENTINEL = "[DONE]"

# Task queue
WORKER_QUEUE = "worker"
EXECUTE_WORKFLOW_TASK = "worker.execute_workflow"
WORKFLOW_SOFT_TIME_LIMIT_SECONDS = 30 * 60
WORKFLOW_HARD_TIME_LIMIT_GRACE_SECONDS = 60

# Execution limits
MAX_TOOL_ITERATIONS = 10
MAX_NODES_PER_WORKFLOW = 1000

# Retry Configuration
MAX_RETRY_ATTEMPTS = 3
INITIAL_RETRY_DELAY_SECONDS = 1
MAX_RETRY_DELAY_SECONDS = 60

# Retryable HTTP Status Codes
RETRYABLE_HTTP_STATUS_CODES = {500, 502, 503, 504, 408, 429}

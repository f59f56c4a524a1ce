# Constants
DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_PORT = 8080
DEFAULT_MAX_BODY_SIZE: int = 1048576  # 1 MiB
DEFAULT_CONNECTION_TIMEOUT_MS: int = 5000
DEFAULT_COMMAND_TIMEOUT_MS: int = 30000

DEFAULT_POOL_MIN = 2
DEFAULT_POOL_MAX = 10

DEFAULT_REDIS_PORT = 6379
DEFAULT_CLUSTER_HOST = "localhost"

# Connect retry policy: delay = min(attempt * step, cap), give up after max attempts
CONNECT_MAX_ATTEMPTS = 3
CONNECT_RETRY_STEP_SECONDS: float = 0.2
CONNECT_RETRY_MAX_DELAY_SECONDS: float = 2.0

MEMORY_STORE_SCHEME = "memory"
REDIS_STORE_SCHEMES = ("redis", "rediss", "unix")

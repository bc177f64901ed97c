import os
import sys

# ====================================================================================
# ENVIRONMENT CONFIGURATION: PROD / STAGE / LOCAL isolation via prefixes
# ====================================================================================
# Every variable is read with the environment prefix:
#   - PROD: PROD_BOT_TOKEN, PROD_DATABASE_URL, PROD_GROUP_CHAT_ID
#   - STAGE: STAGE_BOT_TOKEN, STAGE_DATABASE_URL, STAGE_GROUP_CHAT_ID
#   - LOCAL: LOCAL_BOT_TOKEN, LOCAL_DATABASE_URL, LOCAL_GROUP_CHAT_ID
#
# A STAGE bot can never pick up PROD_BOT_TOKEN, even if it is set by accident.
# ====================================================================================

APP_ENV = os.getenv("APP_ENV", "prod").lower()
if APP_ENV not in ("prod", "stage", "local"):
    print(f"ERROR: Invalid APP_ENV={APP_ENV}. Must be one of: prod, stage, local", file=sys.stderr)
    sys.exit(1)

IS_PROD = APP_ENV == "prod"


def env(key: str, default: str = "") -> str:
    """
    Read an environment variable with the environment prefix.

    Example:
        env("BOT_TOKEN") -> value of STAGE_BOT_TOKEN (when APP_ENV=stage)
        env("BROADCAST_BATCH_SIZE", default="20") -> "20" if unset
    """
    env_key = f"{APP_ENV.upper()}_{key}"
    return os.getenv(env_key, default)


def _env_int(key: str, default: int) -> int:
    raw = env(key, default=str(default))
    try:
        return int(raw)
    except ValueError:
        print(f"ERROR: {APP_ENV.upper()}_{key} must be a number, got: {raw}", file=sys.stderr)
        sys.exit(1)


def _env_float(key: str, default: float) -> float:
    raw = env(key, default=str(default))
    try:
        return float(raw)
    except ValueError:
        print(f"ERROR: {APP_ENV.upper()}_{key} must be a number, got: {raw}", file=sys.stderr)
        sys.exit(1)


# Unprefixed secrets are refused so PROD/STAGE values cannot be mixed up
_direct_usage_vars = ["BOT_TOKEN", "DATABASE_URL", "GROUP_CHAT_ID", "ADMIN_API_TOKEN"]
for var in _direct_usage_vars:
    if os.getenv(var):
        print(f"ERROR: Direct usage of {var} is FORBIDDEN!", file=sys.stderr)
        print(f"ERROR: Use {APP_ENV.upper()}_{var} instead (via env('{var}'))", file=sys.stderr)
        sys.exit(1)

print(f"INFO: Config loaded for environment: {APP_ENV.upper()}", flush=True)

# ====================================================================================
# SECRETS: validated at startup, never logged
# Required: BOT_TOKEN, GROUP_CHAT_ID, BOT_USERNAME (DATABASE_URL is checked in database.py)
# ====================================================================================

BOT_TOKEN = env("BOT_TOKEN")
if not BOT_TOKEN:
    print(f"ERROR: {APP_ENV.upper()}_BOT_TOKEN environment variable is not set!", file=sys.stderr)
    sys.exit(1)

# Numeric id of the contest group (supergroups are negative, e.g. -1001234567890)
GROUP_CHAT_ID_STR = env("GROUP_CHAT_ID")
if not GROUP_CHAT_ID_STR:
    print(f"ERROR: {APP_ENV.upper()}_GROUP_CHAT_ID environment variable is not set!", file=sys.stderr)
    sys.exit(1)

try:
    GROUP_CHAT_ID = int(GROUP_CHAT_ID_STR)
except ValueError:
    print(f"ERROR: GROUP_CHAT_ID must be a number, got: {GROUP_CHAT_ID_STR}", file=sys.stderr)
    sys.exit(1)

# Bot username without '@', used to build referral links
BOT_USERNAME = env("BOT_USERNAME").lstrip("@")
if not BOT_USERNAME:
    print(f"ERROR: {APP_ENV.upper()}_BOT_USERNAME environment variable is not set!", file=sys.stderr)
    sys.exit(1)

TELEGRAM_BASE_URL = env("TELEGRAM_BASE_URL", default="https://t.me").rstrip("/")

# Admin broadcast endpoint token. Empty -> endpoint answers 503.
ADMIN_API_TOKEN = env("ADMIN_API_TOKEN")
if not ADMIN_API_TOKEN:
    print(f"WARNING: {APP_ENV.upper()}_ADMIN_API_TOKEN is not set - broadcast endpoint disabled", file=sys.stderr)

# ====================================================================================
# CONTEST TUNABLES
# ====================================================================================

# Broadcast pauses after every BROADCAST_BATCH_SIZE sends (Telegram flood limits)
BROADCAST_BATCH_SIZE = _env_int("BROADCAST_BATCH_SIZE", 20)
BROADCAST_PAUSE_SECONDS = _env_float("BROADCAST_PAUSE_SECONDS", 1.0)
if BROADCAST_BATCH_SIZE < 1:
    print("ERROR: BROADCAST_BATCH_SIZE must be >= 1", file=sys.stderr)
    sys.exit(1)

LEADERBOARD_LIMIT = _env_int("LEADERBOARD_LIMIT", 10)

# Updates processed at once (each one may hold a pooled connection)
MAX_CONCURRENT_UPDATES = _env_int("MAX_CONCURRENT_UPDATES", 20)

# ====================================================================================
# TRANSPORT: webhook when WEBHOOK_URL is set, long polling otherwise
# ====================================================================================

WEBHOOK_URL = env("WEBHOOK_URL")
WEBHOOK_SECRET = env("WEBHOOK_SECRET")
if WEBHOOK_URL and not WEBHOOK_SECRET:
    print(f"ERROR: {APP_ENV.upper()}_WEBHOOK_SECRET is REQUIRED when WEBHOOK_URL is set!", file=sys.stderr)
    sys.exit(1)
WEBHOOK_PORT = int(os.getenv("PORT") or env("WEBHOOK_PORT") or "8080")
HTTP_HOST = env("HTTP_HOST", default="0.0.0.0")

if WEBHOOK_URL:
    print(f"INFO: Using WEBHOOK_URL from {APP_ENV.upper()}_WEBHOOK_URL", flush=True)
else:
    print("INFO: WEBHOOK_URL not set - bot will use long polling", flush=True)

LOG_LEVEL = env("LOG_LEVEL", default="INFO").upper()

import asyncpg
import asyncio
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any, List, AsyncIterator
import logging
import config
from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

# ====================================================================================
# SAFE STARTUP GUARD: global database readiness flag
# ====================================================================================
# Reflects whether the schema is initialized and the pool is usable.
# While False the bot runs in degraded mode (handlers reply "try again later").
# ====================================================================================
DB_READY: bool = False


# ====================================================================================
# SAFE DATA HELPERS
# ====================================================================================

def safe_int(value: Any) -> int:
    """
    Безопасное преобразование значения в int с обработкой None

    Returns:
        int: Преобразованное значение или 0 если None
    """
    if value is None:
        return 0
    try:
        return int(value)
    except (ValueError, TypeError):
        return 0


def _affected_rows(status: str) -> int:
    """asyncpg execute() returns a status tag like "UPDATE 1" or "DELETE 0"."""
    try:
        return int(status.split()[-1])
    except (AttributeError, ValueError, IndexError):
        return 0


# DATABASE_URL is read with the environment prefix (STAGE_DATABASE_URL / PROD_DATABASE_URL)
DATABASE_URL = config.env("DATABASE_URL")

# ====================================================================================
# DB POOL CONFIG - ENV-overridable, single source of truth
# ====================================================================================
def _get_pool_config() -> dict:
    """Build asyncpg.create_pool kwargs. Single source of truth for all pool creation."""
    return {
        "min_size": int(os.getenv("DB_POOL_MIN_SIZE", "2")),
        "max_size": int(os.getenv("DB_POOL_MAX_SIZE", "10")),
        "max_inactive_connection_lifetime": 300,
        "timeout": int(os.getenv("DB_POOL_ACQUIRE_TIMEOUT", "10")),
        "command_timeout": int(os.getenv("DB_POOL_COMMAND_TIMEOUT", "30")),
    }


if not DATABASE_URL:
    # В PROD DATABASE_URL обязателен
    if config.IS_PROD:
        print(f"ERROR: {config.APP_ENV.upper()}_DATABASE_URL is REQUIRED in PROD!", file=sys.stderr)
        sys.exit(1)
    else:
        # В STAGE/LOCAL допустим degraded mode
        logger.warning(f"{config.APP_ENV.upper()}_DATABASE_URL is not set - running in degraded mode")

# Глобальный пул соединений
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """
    Получить пул соединений, создав его при необходимости

    - DB unavailable -> RuntimeError / asyncpg error raised
    - Transient asyncpg.PostgresError -> retried once with backoff
    """
    global _pool
    if not DATABASE_URL:
        raise RuntimeError(f"{config.APP_ENV.upper()}_DATABASE_URL is not configured")
    if _pool is None:
        pool_config = _get_pool_config()
        _pool = await retry_async(
            lambda: asyncpg.create_pool(DATABASE_URL, **pool_config),
            retries=1,
            base_delay=0.5,
            max_delay=5.0,
            retry_on=(asyncpg.PostgresError,)
        )
        logger.info(
            "DB_POOL_CONFIG min=%s max=%s acquire_timeout=%s command_timeout=%s",
            pool_config["min_size"], pool_config["max_size"],
            pool_config["timeout"], pool_config["command_timeout"],
        )
    return _pool


async def close_pool():
    """Закрыть пул соединений"""
    global _pool, DB_READY
    if _pool:
        await _pool.close()
        _pool = None
        DB_READY = False
        logger.info("Database connection pool closed")


def ensure_db_ready() -> bool:
    """
    Проверка готовности базы данных перед выполнением операций

    Usage:
        if not ensure_db_ready():
            return  # Операция отменена
    """
    if not DB_READY:
        logger.warning("Database not ready - operation rejected (degraded mode)")
        return False
    return True


@asynccontextmanager
async def transaction(
    isolation: str = "read_committed",
    readonly: bool = False,
) -> AsyncIterator[asyncpg.Connection]:
    """
    Acquire a connection for one logical operation and run it in a transaction.

    The connection is released on every exit path. Any exception raised inside
    the block rolls the whole transaction back before it propagates.

    Usage:
        async with database.transaction() as conn:
            result = await referral_service.on_member_joined(conn, event)
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction(isolation=isolation, readonly=readonly):
            yield conn


# ====================================================================================
# SCHEMA
# ====================================================================================

async def _create_tables(conn: asyncpg.Connection) -> None:
    """Idempotent DDL for users and referrals."""
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            telegram_id BIGINT PRIMARY KEY,
            username TEXT,
            first_name TEXT,
            referral_count INTEGER NOT NULL DEFAULT 0 CHECK (referral_count >= 0),
            created_at TIMESTAMP NOT NULL DEFAULT (NOW() AT TIME ZONE 'UTC')
        )
    """)
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS referrals (
            referred_id BIGINT PRIMARY KEY REFERENCES users (telegram_id) ON DELETE CASCADE,
            referrer_id BIGINT NOT NULL REFERENCES users (telegram_id) ON DELETE CASCADE,
            is_active BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP NOT NULL DEFAULT (NOW() AT TIME ZONE 'UTC'),
            updated_at TIMESTAMP NOT NULL DEFAULT (NOW() AT TIME ZONE 'UTC'),
            CONSTRAINT referrals_no_self_referral CHECK (referrer_id <> referred_id)
        )
    """)
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_referrals_referrer_active ON referrals (referrer_id) WHERE is_active"
    )
    await conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_users_referral_count ON users (referral_count DESC, telegram_id)"
    )


async def init_db() -> bool:
    """
    Инициализация базы данных и создание таблиц

    Idempotent: safe to call N times (retry loop in main.py).

    Returns:
        True если инициализация успешна, False если произошла ошибка
    """
    global DB_READY, _pool

    if DB_READY:
        logger.info("Database already initialized (DB_READY=True), skipping init")
        return True

    if not DATABASE_URL:
        logger.error("DATABASE_URL not configured")
        return False

    # 1. Explicit connectivity probe
    try:
        conn = await asyncpg.connect(DATABASE_URL)
        await conn.execute("SELECT 1")
        await conn.close()
        logger.info("DB connectivity probe successful")
    except Exception as e:
        logger.error(f"DB connectivity probe failed: {e}")
        return False

    # 2. Pool
    try:
        pool = await get_pool()
    except Exception as e:
        logger.error(f"Failed to create database pool: {e}")
        return False

    # Let the loop breathe between pool creation and DDL
    await asyncio.sleep(0)

    # 3. Schema
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                await _create_tables(conn)
    except Exception as e:
        logger.exception(f"Schema initialization failed: {e}")
        return False

    DB_READY = True
    logger.info("DB_READY=True (schema ok)")
    return True


# ====================================================================================
# USERS
# ====================================================================================

async def get_user(conn: asyncpg.Connection, telegram_id: int) -> Optional[Dict[str, Any]]:
    """Получить пользователя по Telegram ID"""
    row = await conn.fetchrow(
        "SELECT * FROM users WHERE telegram_id = $1", telegram_id
    )
    return dict(row) if row else None


async def get_or_create_user(
    conn: asyncpg.Connection,
    telegram_id: int,
    username: Optional[str],
    first_name: Optional[str],
) -> Dict[str, Any]:
    """
    Idempotent upsert: returns the user row, creating it with referral_count = 0.

    Username and first name are refreshed on every contact; referral_count is
    never touched here.
    """
    row = await conn.fetchrow(
        """INSERT INTO users (telegram_id, username, first_name)
           VALUES ($1, $2, $3)
           ON CONFLICT (telegram_id) DO UPDATE
           SET username = EXCLUDED.username,
               first_name = COALESCE(EXCLUDED.first_name, users.first_name)
           RETURNING *, (xmax = 0) AS inserted""",
        telegram_id, username, first_name
    )
    user = dict(row)
    if user.pop("inserted", False):
        logger.info(f"USER_CREATED [telegram_id={telegram_id}]")
    return user


async def increment_referral_count(conn: asyncpg.Connection, telegram_id: int) -> int:
    """Atomic +1. Returns the new count (0 if the user row is missing)."""
    value = await conn.fetchval(
        """UPDATE users SET referral_count = referral_count + 1
           WHERE telegram_id = $1
           RETURNING referral_count""",
        telegram_id
    )
    return safe_int(value)


async def decrement_referral_count(conn: asyncpg.Connection, telegram_id: int) -> int:
    """Atomic -1 floored at zero. Returns the new count."""
    value = await conn.fetchval(
        """UPDATE users SET referral_count = GREATEST(0, referral_count - 1)
           WHERE telegram_id = $1
           RETURNING referral_count""",
        telegram_id
    )
    return safe_int(value)


async def get_all_users_telegram_ids() -> List[int]:
    """Получить список всех Telegram ID пользователей (стабильный порядок)"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch("SELECT telegram_id FROM users ORDER BY telegram_id")
        return [row["telegram_id"] for row in rows]


async def delete_user(telegram_id: int) -> bool:
    """
    Permanently delete a user (broadcast cleanup for blocked recipients).

    Referrals where the user is referrer or referred are removed by ON DELETE
    CASCADE. All of them are locked first, whatever their state, so a join
    or leave committing concurrently is waited for and re-read. If the user's
    own referral is active after that, the referrer's count is decremented in
    the same transaction so it keeps matching the active rows.

    Returns:
        True if a row was deleted
    """
    async with transaction() as conn:
        rows = await conn.fetch(
            """SELECT referrer_id, referred_id, is_active FROM referrals
               WHERE referred_id = $1 OR referrer_id = $1
               ORDER BY referred_id
               FOR UPDATE""",
            telegram_id
        )
        own = next((row for row in rows if row["referred_id"] == telegram_id), None)
        uncounted_referrer = own["referrer_id"] if own is not None and own["is_active"] else None
        if uncounted_referrer is not None:
            await decrement_referral_count(conn, uncounted_referrer)
        status = await conn.execute(
            "DELETE FROM users WHERE telegram_id = $1", telegram_id
        )
    deleted = _affected_rows(status) > 0
    if deleted:
        logger.info(
            f"USER_DELETED [telegram_id={telegram_id}, uncounted_referrer={uncounted_referrer}, "
            f"cascaded_referrals={len(rows)}]"
        )
    return deleted


# ====================================================================================
# REFERRALS
# ====================================================================================
# Every read below that precedes a write takes a row lock (FOR UPDATE) so that
# concurrent join/leave/start handlers for the same referred user serialize on
# the referral row. Callers must run them inside database.transaction().
#
# Lock order: referral rows first, then users rows. Transitions touch only the
# referral row and the referrer's count; profile upserts run in their own
# transaction (app.services.referrals.refresh_profile).
# ====================================================================================

async def lock_referral(conn: asyncpg.Connection, referred_id: int) -> Optional[Dict[str, Any]]:
    """Read and lock the referral row of a referred user, whatever its state."""
    row = await conn.fetchrow(
        """SELECT referrer_id, referred_id, is_active FROM referrals
           WHERE referred_id = $1
           FOR UPDATE""",
        referred_id
    )
    return dict(row) if row else None


async def lock_referral_in_state(
    conn: asyncpg.Connection,
    referred_id: int,
    is_active: bool,
) -> Optional[Dict[str, Any]]:
    """
    Read and lock the referral row only if it is in the given state.

    Under READ COMMITTED a waiter re-evaluates the WHERE clause after the lock
    holder commits, so a second concurrent join sees is_active = TRUE and gets
    no row.
    """
    row = await conn.fetchrow(
        """SELECT referrer_id, referred_id, is_active FROM referrals
           WHERE referred_id = $1 AND is_active = $2
           FOR UPDATE""",
        referred_id, is_active
    )
    return dict(row) if row else None


async def insert_referral(conn: asyncpg.Connection, referrer_id: int, referred_id: int) -> bool:
    """
    Create a pending referral.

    Returns:
        True if inserted, False if a concurrent transaction created the row first
    """
    inserted = await conn.fetchval(
        """INSERT INTO referrals (referrer_id, referred_id, is_active)
           VALUES ($1, $2, FALSE)
           ON CONFLICT (referred_id) DO NOTHING
           RETURNING referred_id""",
        referrer_id, referred_id
    )
    return inserted is not None


async def reassign_referral(conn: asyncpg.Connection, referred_id: int, referrer_id: int) -> bool:
    """Overwrite the referrer of an inactive referral."""
    status = await conn.execute(
        """UPDATE referrals
           SET referrer_id = $1, updated_at = (NOW() AT TIME ZONE 'UTC')
           WHERE referred_id = $2 AND is_active = FALSE""",
        referrer_id, referred_id
    )
    return _affected_rows(status) == 1


async def set_referral_active(conn: asyncpg.Connection, referred_id: int, is_active: bool) -> bool:
    """Flip is_active. Returns True only if the row actually changed state."""
    status = await conn.execute(
        """UPDATE referrals
           SET is_active = $1, updated_at = (NOW() AT TIME ZONE 'UTC')
           WHERE referred_id = $2 AND is_active = $3""",
        is_active, referred_id, not is_active
    )
    return _affected_rows(status) == 1


# ====================================================================================
# RANK / LEADERBOARD (read-only)
# ====================================================================================

async def get_user_rank(conn: asyncpg.Connection, telegram_id: int) -> Optional[Dict[str, Any]]:
    """
    Competition rank: 1 + number of users with a strictly greater count.

    Returns:
        {"referral_count": int, "position": int} or None for an unknown user
    """
    row = await conn.fetchrow(
        """SELECT u.referral_count,
                  1 + (SELECT COUNT(*) FROM users o WHERE o.referral_count > u.referral_count) AS position
           FROM users u
           WHERE u.telegram_id = $1""",
        telegram_id
    )
    if not row:
        return None
    return {"referral_count": safe_int(row["referral_count"]), "position": safe_int(row["position"])}


async def get_leaderboard(conn: asyncpg.Connection, limit: int) -> List[Dict[str, Any]]:
    """Top users with at least one referral; ties ordered by telegram_id."""
    rows = await conn.fetch(
        """SELECT telegram_id, username, first_name, referral_count
           FROM users
           WHERE referral_count > 0
           ORDER BY referral_count DESC, telegram_id ASC
           LIMIT $1""",
        limit
    )
    return [dict(row) for row in rows]

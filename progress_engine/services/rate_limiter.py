"""Redis-backed leaky-bucket throttle for attempt autosaves.

Algorithm
---------
Each attempt has a bucket key holding the number of *tokens* (remaining
saves) and the timestamp of the last refill. Tokens leak back at
``AUTOSAVE_RATE_LIMIT_RPM / 60`` per second up to ``AUTOSAVE_RATE_LIMIT_BURST``.
A save is accepted only when at least one token is available.

Autosave is best-effort, so a throttled save is simply dropped and reported
in the receipt; nothing here raises. If Redis is unreachable every save is
allowed (fail-open).
"""

import logging
import time
import uuid

import redis

from progress_engine.config import settings

logger = logging.getLogger(__name__)

_pool: redis.ConnectionPool | None = None

# Lua script executed atomically inside Redis.
# KEYS[1] = bucket key
# ARGV[1] = max tokens (burst)
# ARGV[2] = refill rate (tokens per second)
# ARGV[3] = current timestamp (float seconds)
# Returns  1 if the save is allowed, 0 if dropped.
_LUA_SCRIPT = """
local key         = KEYS[1]
local max_tokens  = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now         = tonumber(ARGV[3])

local bucket = redis.call('HMGET', key, 'tokens', 'last_refill')
local tokens      = tonumber(bucket[1])
local last_refill = tonumber(bucket[2])

if tokens == nil then
    tokens = max_tokens
    last_refill = now
end

local elapsed = math.max(0, now - last_refill)
tokens = math.min(max_tokens, tokens + elapsed * refill_rate)

local allowed = 0
if tokens >= 1 then
    tokens = tokens - 1
    allowed = 1
end

redis.call('HMSET', key, 'tokens', tokens, 'last_refill', now)
redis.call('EXPIRE', key, 600)
return allowed
"""


def _get_redis() -> redis.Redis:
    global _pool
    if _pool is None:
        _pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=10,
            socket_connect_timeout=0.5,
        )
    return redis.Redis(connection_pool=_pool)


def _bucket_key(attempt_id: uuid.UUID) -> str:
    return f"rl:autosave:{attempt_id}"


def allow_autosave(attempt_id: uuid.UUID) -> bool:
    """Return True if this attempt may persist another autosave now."""
    rpm = settings.AUTOSAVE_RATE_LIMIT_RPM
    burst = settings.AUTOSAVE_RATE_LIMIT_BURST
    if rpm <= 0:
        return True  # throttling disabled

    refill_rate = rpm / 60.0
    try:
        r = _get_redis()
        allowed = r.eval(_LUA_SCRIPT, 1, _bucket_key(attempt_id), burst, refill_rate, time.time())
        return bool(allowed)
    except redis.RedisError as e:
        logger.warning("Autosave throttle Redis error (allowing save): %s", e)
        return True

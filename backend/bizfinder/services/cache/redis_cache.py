"""
Redis-backed result cache with connection pooling and circuit breaker.

Same keys and semantics as the in-process cache, shared across processes:
- TTL through SETEX (Redis expires entries itself, no sweeper needed)
- flush deletes `tool:*` keys through SCAN
- any Redis failure or open circuit is treated as a miss, never an error
"""
import json
from typing import Any, Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from bizfinder.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState
from bizfinder.core.logging import get_logger
from bizfinder.core.metrics import record_cache_hit, record_cache_miss

from .result_cache import (
    DEFAULT_TTL_SECONDS,
    KEY_PREFIX,
    ResultCache,
    make_cache_key,
    serialize_result,
)

logger = get_logger(__name__)


class RedisResultCache(ResultCache):
    """Result cache stored in Redis."""

    backend = "redis"

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        circuit_breaker: Optional[CircuitBreaker] = None,
        client: Optional[aioredis.Redis] = None,
    ):
        super().__init__(ttl_seconds)
        self.redis_url = redis_url
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="redis_cache",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
        )
        self._client = client

    async def start(self) -> None:
        if self._client is not None:
            return
        logger.info("redis_initializing", url=self.redis_url)
        client = aioredis.from_url(
            self.redis_url,
            max_connections=20,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            decode_responses=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            # The cache is advisory: run without it rather than fail startup.
            logger.error(
                "redis_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            await client.aclose()
            return
        self._client = client
        logger.info("redis_initialized")

    async def stop(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
            logger.info("redis_closed")
        except (RedisError, OSError) as e:
            logger.error("redis_close_failed", error=str(e))
        finally:
            self._client = None

    def _available(self) -> bool:
        if self._client is None:
            return False
        if self.circuit_breaker.state == CircuitState.OPEN:
            logger.debug("cache_circuit_breaker_open")
            return False
        return True

    async def get(self, operation: str, params: Optional[Dict[str, Any]]) -> Optional[Any]:
        key = make_cache_key(operation, params)
        value = None
        if self._available():
            try:
                value = await self.circuit_breaker.call_async(self._client.get, key)
            except CircuitBreakerOpenError:
                logger.debug("cache_circuit_breaker_open", key=key)
            except (RedisError, OSError) as e:
                logger.warning(
                    "cache_get_error",
                    key=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if value is None:
            record_cache_miss(operation)
            logger.debug("cache_miss", operation=operation, key=key)
            return None

        try:
            result = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("cache_payload_invalid", key=key)
            record_cache_miss(operation)
            return None
        record_cache_hit(operation)
        logger.debug("cache_hit", operation=operation, key=key)
        return result

    async def put(self, operation: str, params: Optional[Dict[str, Any]], result: Any) -> bool:
        if result is None or not self._available():
            return False
        key = make_cache_key(operation, params)
        try:
            payload = serialize_result(result)
            await self.circuit_breaker.call_async(
                self._client.setex, key, self.ttl_seconds, payload
            )
        except (TypeError, ValueError) as e:
            logger.warning("cache_serialize_failed", operation=operation, error=str(e))
            return False
        except CircuitBreakerOpenError:
            logger.debug("cache_circuit_breaker_open", key=key)
            return False
        except (RedisError, OSError) as e:
            logger.warning(
                "cache_set_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        logger.debug("cache_set", operation=operation, key=key)
        return True

    async def flush(self) -> int:
        if not self._available():
            return 0
        deleted = 0
        try:
            async for key in self._client.scan_iter(match=f"{KEY_PREFIX}*"):
                deleted += await self.circuit_breaker.call_async(self._client.delete, key)
        except CircuitBreakerOpenError:
            logger.debug("cache_circuit_breaker_open", pattern=f"{KEY_PREFIX}*")
        except (RedisError, OSError) as e:
            logger.warning(
                "cache_delete_error",
                pattern=f"{KEY_PREFIX}*",
                error=str(e),
                error_type=type(e).__name__,
            )
        logger.info("cache_flushed", backend=self.backend, removed=deleted)
        return deleted

    async def stats(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "connected": self._client is not None,
            "ttl_seconds": self.ttl_seconds,
            "circuit_breaker": self.circuit_breaker.get_metrics(),
        }

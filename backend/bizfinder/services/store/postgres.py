"""
PostgreSQL record store using an asyncpg connection pool.

Table `businesses` (see scripts/init_db.py). Filters are compiled into
parameterized SQL; substring matches use ILIKE with escaped wildcards and
tag matches go through unnest(tags). Every query is bounded by the configured
timeout; timeouts and connection failures raise BackendUnavailableError.
"""
import asyncio
from typing import Any, List, Optional, Tuple

import asyncpg

from bizfinder.core.errors import BackendUnavailableError
from bizfinder.core.logging import get_logger
from bizfinder.core.tracing import get_tracer
from bizfinder.models.business import ACTIVE_STATUS, BusinessRecord

from .base import RecordFilter, RecordSort, RecordStore

logger = get_logger(__name__)

TABLE = "businesses"

COLUMNS = (
    "id", "slug", "name", "description", "address", "city", "lat", "lng",
    "phone", "whatsapp", "email", "facebook", "instagram", "website",
    "tiktok", "youtube", "opening", "closing", "verified", "featured",
    "status", "is_new_arrival", "is_not_available", "tags", "brand",
    "price", "sale_price", "discount", "net_price", "views", "like_count",
    "rating_count", "rating_avg", "featured_image", "images", "created_at",
    "updated_at",
)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _substring(value: str) -> str:
    return f"%{escape_like(value)}%"


class _Params:
    """Collects positional asyncpg arguments ($1, $2, ...)."""

    def __init__(self):
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _tag_ilike(placeholder: str) -> str:
    return f"EXISTS (SELECT 1 FROM unnest(tags) AS t WHERE t ILIKE {placeholder})"


def build_where(record_filter: RecordFilter, params: _Params) -> str:
    f = record_filter
    clauses: List[str] = []

    if f.active_only:
        clauses.append(f"status = {params.add(ACTIVE_STATUS)}")
    if f.id is not None:
        clauses.append(f"id = {params.add(f.id)}")
    if f.slug is not None:
        clauses.append(f"slug = {params.add(f.slug)}")
    if f.verified is not None:
        clauses.append(f"verified = {params.add(f.verified)}")
    if f.featured is not None:
        clauses.append(f"featured = {params.add(f.featured)}")

    if f.text_terms:
        alternatives: List[str] = []
        for term in f.text_terms:
            placeholder = params.add(_substring(term))
            for field in f.text_fields:
                if field == "tags":
                    alternatives.append(_tag_ilike(placeholder))
                else:
                    alternatives.append(f"{field} ILIKE {placeholder}")
        clauses.append("(" + " OR ".join(alternatives) + ")")

    if f.tag_contains:
        clauses.append(_tag_ilike(params.add(_substring(f.tag_contains))))
    if f.city:
        placeholder = params.add(_substring(f.city))
        clauses.append(f"(city ILIKE {placeholder} OR address ILIKE {placeholder})")
    if f.address:
        clauses.append(f"address ILIKE {params.add(_substring(f.address))}")

    return " AND ".join(clauses) if clauses else "TRUE"


def build_select(
    record_filter: RecordFilter,
    sort: RecordSort = RecordSort.STORE_ORDER,
    skip: int = 0,
    limit: Optional[int] = None,
) -> Tuple[str, List[Any]]:
    """Compile a find query. Returns (sql, args)."""
    params = _Params()
    where = build_where(record_filter, params)
    order = "views DESC, seq ASC" if sort == RecordSort.VIEWS_DESC else "seq ASC"
    sql = f"SELECT {', '.join(COLUMNS)} FROM {TABLE} WHERE {where} ORDER BY {order}"
    if limit is not None:
        sql += f" LIMIT {params.add(limit)}"
    if skip:
        sql += f" OFFSET {params.add(skip)}"
    return sql, params.values


def build_tag_counts(record_filter: RecordFilter, limit: int) -> Tuple[str, List[Any]]:
    """Compile the tag frequency aggregation. Returns (sql, args)."""
    params = _Params()
    where = build_where(record_filter, params)
    sql = (
        f"SELECT tag, COUNT(*) AS count "
        f"FROM {TABLE} CROSS JOIN LATERAL unnest(tags) AS tag "
        f"WHERE {where} "
        f"GROUP BY tag ORDER BY count DESC, tag ASC "
        f"LIMIT {params.add(limit)}"
    )
    return sql, params.values


def row_to_record(row: Any) -> BusinessRecord:
    data = dict(row)
    data["tags"] = list(data.get("tags") or [])
    data["images"] = list(data.get("images") or [])
    return BusinessRecord.model_validate(data)


class PostgresRecordStore(RecordStore):
    """Record store backed by PostgreSQL through an asyncpg pool."""

    name = "postgres"

    def __init__(
        self,
        database_url: str,
        query_timeout_seconds: float = 5.0,
        min_size: int = 2,
        max_size: int = 10,
    ):
        self.database_url = database_url
        self.query_timeout_seconds = query_timeout_seconds
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        logger.info("db_pool_initializing", url_prefix=self.database_url[:30])
        try:
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_size,
                max_size=self.max_size,
                max_inactive_connection_lifetime=3600,
                command_timeout=self.query_timeout_seconds,
            )
        except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as e:
            logger.error(
                "db_pool_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise BackendUnavailableError(
                "Record store unavailable", backend="store"
            ) from e
        logger.info("db_pool_initialized", min_size=self.min_size, max_size=self.max_size)

    async def close(self) -> None:
        if self._pool is None:
            return
        try:
            await self._pool.close()
            logger.info("db_pool_closed")
        except Exception as e:
            logger.error("db_pool_close_failed", error=str(e))
        finally:
            self._pool = None

    async def fetch(self, operation: str, sql: str, args: List[Any]) -> List[Any]:
        """Run one query under the store timeout (also used by the review store)."""
        if self._pool is None:
            raise BackendUnavailableError("Record store not connected", backend="store")

        tracer = get_tracer()
        with tracer.start_as_current_span(f"store.{operation}") as span:
            span.set_attribute("db.system", "postgresql")
            span.set_attribute("db.operation", operation)
            try:
                return await self._pool.fetch(
                    sql, *args, timeout=self.query_timeout_seconds
                )
            except asyncio.TimeoutError as e:
                logger.warning(
                    "store_query_timeout",
                    operation=operation,
                    timeout_seconds=self.query_timeout_seconds,
                )
                raise BackendUnavailableError(
                    f"Record store query timed out ({operation})", backend="store"
                ) from e
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
                logger.error(
                    "store_query_failed",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise BackendUnavailableError(
                    f"Record store query failed ({operation})", backend="store"
                ) from e

    async def ping(self) -> bool:
        try:
            await self.fetch("ping", "SELECT 1", [])
        except BackendUnavailableError:
            return False
        return True

    async def find_one(self, record_filter: RecordFilter) -> Optional[BusinessRecord]:
        sql, args = build_select(record_filter, limit=1)
        rows = await self.fetch("find_one", sql, args)
        return row_to_record(rows[0]) if rows else None

    async def find_many(
        self,
        record_filter: RecordFilter,
        sort: RecordSort = RecordSort.STORE_ORDER,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[BusinessRecord]:
        sql, args = build_select(record_filter, sort=sort, skip=skip, limit=limit)
        rows = await self.fetch("find_many", sql, args)
        return [row_to_record(row) for row in rows]

    async def aggregate_tag_counts(
        self,
        record_filter: RecordFilter,
        limit: int,
    ) -> List[Tuple[str, int]]:
        sql, args = build_tag_counts(record_filter, limit)
        rows = await self.fetch("aggregate_tag_counts", sql, args)
        return [(row["tag"], int(row["count"])) for row in rows]

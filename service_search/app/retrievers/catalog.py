"""Relational catalog lookups.

Targets the marketplace catalog schema: ``resources`` keyed by UUID, with
``categories`` and ``resource_types`` as foreign keys and frameworks and tags
attached through the ``resource_frameworks`` and ``resource_tags`` join
tables. Rows are returned as plain dicts with ``id`` rendered as text.
"""

import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import asyncpg
import structlog
from asyncpg import Pool

logger = structlog.get_logger("search_service.catalog")

RESOURCE_SELECT = """
    SELECT r.id::text AS id,
           r.name,
           r.slug,
           r.description,
           r.long_description,
           r.demo_url,
           r.github_url,
           r.npm_package,
           r.license,
           r.author,
           r.is_typescript AS has_typescript,
           r.is_featured,
           r.created_at,
           r.updated_at,
           c.name AS category,
           rt.name AS resource_type,
           ARRAY(
               SELECT f.name
               FROM resource_frameworks rf
               JOIN frameworks f ON f.id = rf.framework_id
               WHERE rf.resource_id = r.id
               ORDER BY f.name
           ) AS frameworks,
           ARRAY(
               SELECT t.name
               FROM resource_tags rtag
               JOIN tags t ON t.id = rtag.tag_id
               WHERE rtag.resource_id = r.id
               ORDER BY t.name
           ) AS tags
    FROM resources r
    LEFT JOIN categories c ON c.id = r.category_id
    LEFT JOIN resource_types rt ON rt.id = r.resource_type_id
"""

FETCH_RESOURCES_SQL = RESOURCE_SELECT + "    WHERE r.id = ANY($1::uuid[])\n"

# Keyset pagination over live resources; $1 is the last id seen (or NULL).
ITER_RESOURCES_SQL = RESOURCE_SELECT + """    WHERE NOT r.is_deprecated
      AND ($1::uuid IS NULL OR r.id > $1::uuid)
    ORDER BY r.id
    LIMIT $2
"""


def parse_resource_ids(resource_ids: Sequence[str]) -> List[uuid.UUID]:
    """Unique UUIDs in input order; ids that are not UUIDs are skipped."""
    parsed: List[uuid.UUID] = []
    seen = set()
    for resource_id in resource_ids:
        try:
            value = uuid.UUID(str(resource_id))
        except ValueError:
            logger.debug("Skipping non-UUID resource id", resource_id=resource_id)
            continue
        if value not in seen:
            seen.add(value)
            parsed.append(value)
    return parsed


def _record(row: Any) -> Dict[str, Any]:
    record = dict(row)
    record["id"] = str(record["id"])
    record["frameworks"] = list(record.get("frameworks") or [])
    record["tags"] = list(record.get("tags") or [])
    return record


class CatalogRepository:
    """Batched reads of marketplace resources with their relations."""

    def __init__(self, dsn: str, pool_size: int = 10, pool: Optional[Pool] = None):
        self.dsn = dsn
        self.pool_size = pool_size
        self._pool: Optional[Pool] = pool
        self._owns_pool = pool is None

    async def _get_pool(self) -> Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(self.dsn, min_size=1, max_size=self.pool_size)
            logger.info("Created catalog connection pool", pool_size=self.pool_size)
        return self._pool

    async def fetch_resources(self, resource_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """Fetch rows for ``resource_ids`` in one query, keyed by id.

        Ids without a row, including ids that are not UUIDs, are simply absent
        from the result.
        """
        ids = parse_resource_ids(resource_ids)
        if not ids:
            return {}

        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(FETCH_RESOURCES_SQL, ids)

        resources = {}
        for row in rows:
            record = _record(row)
            resources[record["id"]] = record

        logger.debug("Catalog rows fetched", requested=len(resource_ids), found=len(resources))
        return resources

    async def iter_resources(self, batch_size: int = 100) -> AsyncIterator[List[Dict[str, Any]]]:
        """Yield every non-deprecated resource in id order, ``batch_size`` at a time."""
        pool = await self._get_pool()
        last_id: Optional[uuid.UUID] = None
        while True:
            async with pool.acquire() as conn:
                rows = await conn.fetch(ITER_RESOURCES_SQL, last_id, batch_size)
            if not rows:
                return

            batch = [_record(row) for row in rows]
            yield batch

            if len(batch) < batch_size:
                return
            last_id = uuid.UUID(batch[-1]["id"])

    async def health_check(self) -> bool:
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("Catalog health check failed", error=str(e))
            return False

    async def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None


def resource_ids(matches: List[Any]) -> List[str]:
    """Unique ids in match order."""
    seen = set()
    ids = []
    for match in matches:
        if match.entity_id not in seen:
            seen.add(match.entity_id)
            ids.append(match.entity_id)
    return ids

"""PgVector implementation of vector store.

Embeddings of catalog resources live in PostgreSQL using the pgvector
extension. Cosine distance is computed with the ``<=>`` operator and converted
to a ``similarity`` score (``1 - distance``) so larger means closer.

Connection management
- A shared asyncpg pool is created on demand and reused across calls
- Queries are funneled through ``_execute_query`` for uniform error handling
"""

import json
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import asyncpg
import numpy as np
import structlog
from asyncpg import Connection, Pool
from pgvector.asyncpg import register_vector

from libs.filters import FilterExpr
from libs.filters.pgvector import to_pgvector_clause
from .base import (
    VectorMatch,
    VectorStore,
    VectorStoreConnectionError,
    VectorStoreQueryError,
)

logger = structlog.get_logger("vector_store.pgvector")

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PgVectorStore(VectorStore):
    """PgVector implementation of vector store.

    Expects a table shaped like::

        entity_id TEXT PRIMARY KEY, vector VECTOR(n), meta JSONB
    """

    def __init__(
        self,
        dsn: str,
        table: str = "resource_embeddings",
        pool_size: int = 10,
        command_timeout: int = 60,
        vector_dimension: Optional[int] = None,
        pool: Optional[Pool] = None,
    ):
        """Configure a PgVector-backed vector store.

        Parameters
        - dsn: PostgreSQL DSN including database and credentials
        - table: Embeddings table name
        - pool_size: Max size of asyncpg connection pool
        - command_timeout: Seconds to allow per DB command
        - vector_dimension: Expected dimensionality of query vectors
        - pool: Pre-built pool (shared with the catalog, or a test double)
        """
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid embeddings table name: {table!r}")
        self.dsn = dsn
        self.table = table
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self.vector_dimension = vector_dimension
        self._pool: Optional[Pool] = pool
        self._owns_pool = pool is None

    @staticmethod
    async def _init_connection(conn: Connection) -> None:
        """Register pgvector and JSONB codecs for asyncpg connections."""
        await register_vector(conn)
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )

    async def _get_pool(self) -> Pool:
        """Get or create connection pool.

        Lazily initializes an asyncpg pool so callers don't pay startup cost
        unless/until they make a call that requires the database.
        """
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.command_timeout,
                    init=self._init_connection,
                )
                logger.info("Created PgVector connection pool", pool_size=self.pool_size)
            except Exception as e:
                logger.error("Failed to create PgVector connection pool", error=str(e))
                raise VectorStoreConnectionError(f"Failed to create connection pool: {e}") from e

        return self._pool

    async def _execute_query(
        self,
        query: str,
        *args: Any,
        fetch_one: bool = False
    ) -> Any:
        """Run a read query; failures are wrapped in ``VectorStoreQueryError``."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                if fetch_one:
                    return await conn.fetchrow(query, *args)
                return await conn.fetch(query, *args)
        except Exception as e:
            logger.error("Query execution failed", query=query, error=str(e))
            raise VectorStoreQueryError(f"Query failed: {e}") from e

    def _as_vector(self, vector: Sequence[float]) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float32)
        if self.vector_dimension and array.shape != (self.vector_dimension,):
            raise ValueError(
                f"Vector dimension mismatch: expected {self.vector_dimension}, got {array.shape}"
            )
        return array

    def build_similarity_query(self, filters: Optional[FilterExpr]) -> tuple:
        """Return ``(sql, filter_params)``; ``$1`` is the vector, ``$2`` the limit."""
        where, params = to_pgvector_clause(filters, column="meta", start_index=3)
        sql = (
            f"SELECT entity_id, 1 - (vector <=> $1) AS similarity, "
            f"COALESCE(meta, '{{}}'::jsonb) AS meta "
            f"FROM {self.table}"
        )
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY vector <=> $1 LIMIT $2"
        return sql, params

    async def search_similar(
        self,
        query_vector: Sequence[float],
        limit: int = 10,
        filters: Optional[FilterExpr] = None
    ) -> List[VectorMatch]:
        """Search for similar vectors using cosine distance."""
        sql, params = self.build_similarity_query(filters)
        rows = await self._execute_query(sql, self._as_vector(query_vector), limit, *params)

        results = [
            VectorMatch(
                entity_id=str(row["entity_id"]),
                score=float(row["similarity"]),
                metadata=row["meta"] or {},
            )
            for row in rows
        ]

        logger.info("PgVector similarity search completed", results_count=len(results))
        return results

    async def get_embedding(self, entity_id: str) -> Optional[np.ndarray]:
        """Get the stored vector of one entity."""
        row = await self._execute_query(
            f"SELECT vector FROM {self.table} WHERE entity_id = $1",
            entity_id,
            fetch_one=True,
        )
        if row is None:
            return None
        return np.asarray(row["vector"], dtype=np.float32)

    async def upsert_embeddings(
        self,
        items: Sequence[Tuple[str, Sequence[float], Dict[str, Any]]]
    ) -> int:
        """Store a batch of embeddings, replacing existing rows for the same id."""
        if not items:
            return 0

        batch_data = [
            (str(entity_id), self._as_vector(vector), metadata or {})
            for entity_id, vector, metadata in items
        ]
        query = f"""
            INSERT INTO {self.table} (entity_id, vector, meta)
            VALUES ($1, $2, $3)
            ON CONFLICT (entity_id)
            DO UPDATE SET
                vector = EXCLUDED.vector,
                meta = EXCLUDED.meta
        """

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.executemany(query, batch_data)
        except Exception as e:
            logger.error("Batch embedding upsert failed", count=len(batch_data), error=str(e))
            raise VectorStoreQueryError(f"Upsert failed: {e}") from e

        logger.info("Batch stored embeddings", count=len(batch_data))
        return len(batch_data)

    async def count_embeddings(self) -> int:
        row = await self._execute_query(f"SELECT COUNT(*) AS count FROM {self.table}", fetch_one=True)
        return int(row["count"]) if row else 0

    async def health_check(self) -> bool:
        """Check if the vector store is healthy."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error("PgVector health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the pool if this store created it."""
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None

"""Neo4j client for graph database operations."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession
from neo4j.exceptions import DriverError, Neo4jError, ServiceUnavailable

from loreweave.config import settings
from loreweave.errors import PersistenceError
from loreweave.storage.schema import get_all_schema_queries

logger = logging.getLogger(__name__)


class Neo4jClient:
    """Async Neo4j client shared by the graph and suggestion stores."""

    def __init__(
        self,
        uri: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
    ) -> None:
        self.uri = uri or settings.neo4j_uri
        self.user = user or settings.neo4j_user
        self.password = password or settings.neo4j_password
        self.database = database or settings.neo4j_database
        self._driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """Establish connection to Neo4j."""
        if self._driver is None:
            self._driver = AsyncGraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
            )
            try:
                await self._driver.verify_connectivity()
                logger.info(f"Connected to Neo4j at {self.uri}")
            except ServiceUnavailable as e:
                logger.error(f"Failed to connect to Neo4j: {e}")
                raise

    async def close(self) -> None:
        """Close the database connection."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            logger.info("Disconnected from Neo4j")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        if self._driver is None:
            await self.connect()
        assert self._driver is not None
        async with self._driver.session(database=self.database) as session:
            yield session

    async def setup_schema(self) -> None:
        """Create all constraints and indexes."""
        queries = get_all_schema_queries()
        async with self.session() as session:
            for query in queries:
                try:
                    await session.run(query)
                    logger.debug(f"Executed schema query: {query[:50]}...")
                except Neo4jError as e:
                    # Some indexes might already exist, that's ok
                    logger.warning(f"Schema query warning: {e}")
        logger.info("Schema setup completed")

    async def execute_query(self, query: str, **params: Any) -> list[dict[str, Any]]:
        """Execute a parameterized Cypher query and collect the records."""
        results: list[dict[str, Any]] = []
        try:
            async with self.session() as session:
                result = await session.run(query, **params)
                async for record in result:
                    results.append(dict(record))
        except (Neo4jError, DriverError) as e:
            raise PersistenceError(f"Neo4j query failed: {e}") from e
        return results

    async def execute_write(self, query: str, **params: Any) -> list[dict[str, Any]]:
        """Execute a query inside a managed write transaction (retried on transient errors)."""

        async def _work(tx: Any) -> list[dict[str, Any]]:
            result = await tx.run(query, **params)
            return [dict(record) async for record in result]

        try:
            async with self.session() as session:
                return await session.execute_write(_work)
        except (Neo4jError, DriverError) as e:
            raise PersistenceError(f"Neo4j write failed: {e}") from e

    async def execute_scalar(self, query: str, default: Any = 0, **params: Any) -> Any:
        """Execute a query returning a single value in its first column."""
        rows = await self.execute_query(query, **params)
        if not rows:
            return default
        value = next(iter(rows[0].values()))
        return default if value is None else value


# Global client instance
_client: Neo4jClient | None = None


async def get_client() -> Neo4jClient:
    """Get or create the global Neo4j client."""
    global _client
    if _client is None:
        _client = Neo4jClient()
        await _client.connect()
    return _client


async def close_client() -> None:
    """Close the global Neo4j client."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None

"""Storage layer for Loreweave."""

from loreweave.storage.base import EphemeralCache, GraphStore, SuggestionStore
from loreweave.storage.cache import MemoryCache, RedisCache, create_cache
from loreweave.storage.graph_store import Neo4jGraphStore
from loreweave.storage.neo4j_client import Neo4jClient, close_client, get_client
from loreweave.storage.schema import get_all_schema_queries
from loreweave.storage.suggestion_store import Neo4jSuggestionStore

__all__ = [
    "GraphStore",
    "SuggestionStore",
    "EphemeralCache",
    "MemoryCache",
    "RedisCache",
    "create_cache",
    "Neo4jClient",
    "Neo4jGraphStore",
    "Neo4jSuggestionStore",
    "get_client",
    "close_client",
    "get_all_schema_queries",
]

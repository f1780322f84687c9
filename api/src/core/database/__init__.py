"""Cassandra session lifecycle."""

from src.core.database.async_cassandra import (
    AsyncCassandraConnection,
    create_schema,
    init_async_cassandra,
    keyspace_cql,
    shutdown_async_cassandra,
)


__all__ = [
    "AsyncCassandraConnection",
    "create_schema",
    "init_async_cassandra",
    "keyspace_cql",
    "shutdown_async_cassandra",
]

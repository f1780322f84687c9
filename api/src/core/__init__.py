"""Cross-cutting infrastructure: request context, logging, Cassandra and Redis."""

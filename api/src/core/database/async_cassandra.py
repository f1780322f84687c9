"""Async Cassandra session for the comment store and vote ledger.

Uses cassandra-asyncio-driver, which adds ``session.aexecute()`` to the
standard cassandra-driver session.

Every statement runs under one execution profile: plain reads and writes at
``cassandra_consistency``, and the Paxos phase of lightweight transactions
(the vote ledger's compare-and-swap) at ``cassandra_serial_consistency``.
"""

import structlog
from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, ExecutionProfile
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from src.comments.models import COMMENTS_TABLES_CQL
from src.config.settings import Settings, get_settings


logger = structlog.get_logger(__name__)


def build_execution_profile(settings: Settings) -> ExecutionProfile:
    """Routing, timeout and consistency shared by every comment query."""
    return ExecutionProfile(
        load_balancing_policy=TokenAwarePolicy(
            DCAwareRoundRobinPolicy(local_dc=settings.cassandra_local_dc)
        ),
        consistency_level=ConsistencyLevel.name_to_value[settings.cassandra_consistency],
        serial_consistency_level=ConsistencyLevel.name_to_value[
            settings.cassandra_serial_consistency
        ],
        request_timeout=settings.cassandra_request_timeout,
    )


def keyspace_cql(settings: Settings) -> str:
    """CREATE KEYSPACE statement for the configured topology.

    With a local datacenter the keyspace is replicated per datacenter so
    LOCAL_SERIAL transactions stay inside it.
    """
    factor = settings.cassandra_replication_factor
    if settings.cassandra_local_dc:
        replication = (
            f"'class': 'NetworkTopologyStrategy', '{settings.cassandra_local_dc}': {factor}"
        )
    else:
        replication = f"'class': 'SimpleStrategy', 'replication_factor': {factor}"

    return (
        f"CREATE KEYSPACE IF NOT EXISTS {settings.cassandra_keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )


class AsyncCassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls, settings: Settings | None = None):
        """Connect once and return the shared session.

        Raises:
            ConnectionError: no contact point could be reached
        """
        if cls._session is not None:
            return cls._session

        settings = settings or get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            connect_timeout=settings.cassandra_connect_timeout,
            execution_profiles={EXEC_PROFILE_DEFAULT: build_execution_profile(settings)},
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            local_dc=settings.cassandra_local_dc,
            consistency=settings.cassandra_consistency,
            serial_consistency=settings.cassandra_serial_consistency,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


async def create_schema(session, settings: Settings) -> None:
    """Create the keyspace and the comment tables if missing."""
    await session.aexecute(keyspace_cql(settings))
    for template in COMMENTS_TABLES_CQL:
        await session.aexecute(template.format(keyspace=settings.cassandra_keyspace))
    logger.info(
        "cassandra_schema_ready",
        keyspace=settings.cassandra_keyspace,
        tables=len(COMMENTS_TABLES_CQL),
    )


async def init_async_cassandra():
    """Connect and, unless disabled, create the schema.

    Returns:
        Session with aexecute() bound to the comments keyspace
    """
    settings = get_settings()
    session = AsyncCassandraConnection.connect(settings)

    if settings.cassandra_create_schema:
        await create_schema(session, settings)
    session.set_keyspace(settings.cassandra_keyspace)

    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()

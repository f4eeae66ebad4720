# tests/conftest.py
import logging
import os
import shutil
import uuid

import aiosqlite
import asyncpg
import pytest
import pytest_asyncio

from async_sql_store import PostgresExecutor, SqliteExecutor, SqlStore

# --- Constants ---
USERS_TABLE_NAME = "users"
POSTGRES_USER = os.getenv("TEST_POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("TEST_POSTGRES_PASSWORD", "postgres")

USERS_COLUMNS = [
    '"id" TEXT PRIMARY KEY NOT NULL',
    '"user_name" TEXT NOT NULL',
    '"email" TEXT',
    '"age" INTEGER',
    '"status" TEXT',
    '"owner_id" TEXT',
    # Unique constraints follow the '<table>:unique:<columns>' convention.
    'CONSTRAINT "users:unique:email" UNIQUE ("email")',
]


# --- Availability Checks ---
def is_postgres_available():
    return shutil.which("psql") is not None and shutil.which("pg_ctl") is not None


AVAILABLE_BACKENDS = ["sqlite"]
if is_postgres_available():
    AVAILABLE_BACKENDS.append("postgresql")


def users_table_sql(table_name: str = USERS_TABLE_NAME) -> str:
    columns = ",\n        ".join(USERS_COLUMNS)
    return f'CREATE TABLE "{table_name}" (\n        {columns}\n    )'


# --- Connection Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def sqlite_memory_db_conn():
    """Provides an in-memory aiosqlite database with the users table."""
    conn = None
    try:
        conn = await aiosqlite.connect(":memory:")
        conn.row_factory = aiosqlite.Row
        await conn.execute(users_table_sql())
        await conn.commit()
        yield conn
    finally:
        if conn:
            await conn.close()


@pytest_asyncio.fixture
async def postgres_pool(postgresql_proc):
    """
    Creates a PostgreSQL connection pool with a unique temporary database for each test.
    """
    temp_db_name = f"test_db_{uuid.uuid4().hex}"
    credentials = f"{POSTGRES_USER}:{POSTGRES_PASSWORD}"
    server = f"{postgresql_proc.host}:{postgresql_proc.port}"

    admin_conn = await asyncpg.connect(f"postgresql://{credentials}@{server}/postgres")
    try:
        await admin_conn.execute(f'CREATE DATABASE "{temp_db_name}"')
        pool = await asyncpg.create_pool(f"postgresql://{credentials}@{server}/{temp_db_name}")
        async with pool.acquire() as conn:
            await conn.execute(users_table_sql())

        yield pool

        await pool.close()
        await admin_conn.execute(f'DROP DATABASE "{temp_db_name}"')
    finally:
        await admin_conn.close()


# --- Executor and Store Factories ---


@pytest.fixture(params=AVAILABLE_BACKENDS)
def executor(request):
    """Parametrized fixture yielding an executor for every available backend."""
    if request.param == "sqlite":
        yield SqliteExecutor(request.getfixturevalue("sqlite_memory_db_conn"))
    elif request.param == "postgresql":
        yield PostgresExecutor(request.getfixturevalue("postgres_pool"))
    else:
        raise ValueError(f"Unknown backend key: {request.param}")


@pytest.fixture
def store_factory(executor):
    """Factory for stores over the users table; keyword arguments override the config."""

    def _create(**overrides) -> SqlStore:
        config = {
            "table": USERS_TABLE_NAME,
            "searchable_properties": ["userName", "email", "age", "status"],
        }
        config.update(overrides)
        return SqlStore(executor, config)

    return _create


@pytest_asyncio.fixture
async def seeded_store(store_factory):
    """A store without pagination holding five users."""
    store = store_factory()
    for row in SEED_USERS:
        await store.create(store.serialize(row))
    return store


SEED_USERS = [
    {"id": "u1", "userName": "alice", "email": "alice@example.com", "age": 31, "status": "active", "ownerId": "o1"},
    {"id": "u2", "userName": "bob", "email": "bob@example.com", "age": 25, "status": "inactive", "ownerId": "o1"},
    {"id": "u3", "userName": "carol", "email": "carol@example.com", "age": 42, "status": "active", "ownerId": "o2"},
    {"id": "u4", "userName": "dave", "email": None, "age": 19, "status": "active", "ownerId": "o2"},
    {"id": "u5", "userName": "Alfred", "email": "alfred@example.com", "age": 67, "status": "retired", "ownerId": "o1"},
]


@pytest.fixture
def seed_users():
    return [dict(row) for row in SEED_USERS]


# --- Logger Fixture ---


@pytest.fixture(scope="session")
def logger():
    """Create a test logger."""
    _logger = logging.getLogger("test_store_logger")
    if not _logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.setLevel(logging.DEBUG)
        _logger.addHandler(handler)
        _logger.setLevel(logging.DEBUG)
        _logger.propagate = False
    return logging.LoggerAdapter(_logger, {})

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2 import sql
from psycopg2.pool import ThreadedConnectionPool

from blog_api.store import Order, Record, RecordStore, Relation, UniqueViolation, Where, sort_direction

logger = logging.getLogger(__name__)

Query = Union[str, sql.Composable]


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{name}'. "
            "Set it in the environment or in the .env file."
        )
    return value


def _build_dsn() -> str:
    """
    Build DSN from the standardized database env vars.

    Uses:
      - POSTGRES_URL (optional full DSN; if provided, it wins)
      - POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DB, POSTGRES_PORT, POSTGRES_HOST
    """
    url = os.getenv("POSTGRES_URL")
    if url:
        return url

    user = _required_env("POSTGRES_USER")
    password = _required_env("POSTGRES_PASSWORD")
    db = _required_env("POSTGRES_DB")
    port = os.getenv("POSTGRES_PORT", "5432")
    host = os.getenv("POSTGRES_HOST", "localhost")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


_POOL: Optional[ThreadedConnectionPool] = None


# PUBLIC_INTERFACE
def init_db_pool() -> None:
    """Initialize the global PostgreSQL connection pool."""
    global _POOL
    if _POOL is not None:
        return

    _POOL = ThreadedConnectionPool(
        minconn=int(os.getenv("DB_POOL_MIN", "1")),
        maxconn=int(os.getenv("DB_POOL_MAX", "10")),
        dsn=_build_dsn(),
    )
    logger.info("PostgreSQL connection pool ready")


# PUBLIC_INTERFACE
def close_db_pool() -> None:
    """Close every pooled connection."""
    global _POOL
    if _POOL is None:
        return
    _POOL.closeall()
    _POOL = None


@contextmanager
def _get_conn():
    if _POOL is None:
        init_db_pool()
    assert _POOL is not None
    conn = _POOL.getconn()
    try:
        yield conn
    finally:
        _POOL.putconn(conn)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# PUBLIC_INTERFACE
def fetch_one(query: Query, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict, or None."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            return dict(row) if row else None


# PUBLIC_INTERFACE
def fetch_all(query: Query, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """Fetch all rows as dicts."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            return [dict(r) for r in cur.fetchall()]


# PUBLIC_INTERFACE
def execute(query: Query, params: Optional[Sequence[Any]] = None) -> int:
    """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
    with _get_conn() as conn:
        try:
            with conn.cursor() as cur:
                cur.execute(query, params or [])
                affected = cur.rowcount
            conn.commit()
        except psycopg2.Error:
            conn.rollback()
            raise
        return affected


# PUBLIC_INTERFACE
def execute_returning_one(query: Query, params: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
    """Execute a statement with RETURNING and return the first row as dict."""
    with _get_conn() as conn:
        try:
            with _dict_cursor(conn) as cur:
                cur.execute(query, params or [])
                row = cur.fetchone()
        except psycopg2.Error:
            conn.rollback()
            raise
        if not row:
            conn.rollback()
            raise RuntimeError("Expected one row returned, got none.")
        conn.commit()
        return dict(row)


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS posts (
    id SERIAL PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    author_id INTEGER NOT NULL REFERENCES users(id),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_posts_author_id ON posts(author_id);
CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at DESC);
"""


# PUBLIC_INTERFACE
def init_schema() -> None:
    """Create the users and posts tables if they do not exist."""
    execute(SCHEMA)
    logger.info("Database schema is up to date")


class PostgresRecordStore(RecordStore):
    """Record store over one PostgreSQL table.

    Column names are checked against ``columns`` and quoted as
    identifiers; values are always passed as query parameters.
    """

    def __init__(self, table: str, columns: Iterable[str], relations: Optional[Iterable[Relation]] = None) -> None:
        super().__init__(table, relations)
        self.columns = frozenset(columns) | {"id", "created_at", "updated_at"}

    def _column(self, name: str) -> sql.Identifier:
        if name not in self.columns:
            raise ValueError(f"Unknown column '{name}' for {self.table}")
        return sql.Identifier(name)

    def _where(self, where: Optional[Where]) -> Tuple[sql.Composable, List[Any]]:
        if not where:
            return sql.SQL(""), []
        clauses = [sql.SQL("{} = %s").format(self._column(k)) for k in where]
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), list(where.values())

    def _order(self, order: Order) -> sql.Composable:
        if not order:
            return sql.SQL("")
        parts = [
            sql.SQL("{} {}").format(self._column(field), sql.SQL(sort_direction(direction).upper()))
            for field, direction in order
        ]
        return sql.SQL(" ORDER BY ") + sql.SQL(", ").join(parts)

    @staticmethod
    def _unique_field(exc: psycopg2.errors.UniqueViolation) -> str:
        constraint = getattr(exc.diag, "constraint_name", None) or ""
        # Postgres names implicit unique constraints "<table>_<column>_key".
        return constraint.rsplit("_", 1)[0].split("_", 1)[-1] if constraint.endswith("_key") else constraint

    def create(self, fields: Mapping[str, Any]) -> Record:
        names = [k for k in fields if k not in ("id", "created_at", "updated_at")]
        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING *").format(
            table=sql.Identifier(self.table),
            cols=sql.SQL(", ").join([self._column(n) for n in names]),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(names)),
        )
        try:
            return execute_returning_one(query, [fields[n] for n in names])
        except psycopg2.errors.UniqueViolation as exc:
            raise UniqueViolation(self.table, self._unique_field(exc)) from exc

    def find_one(self, where: Where, include: Sequence[str] = ()) -> Optional[Record]:
        where_sql, params = self._where(where)
        query = sql.SQL("SELECT * FROM {table}").format(table=sql.Identifier(self.table)) + where_sql + sql.SQL(
            " LIMIT 1"
        )
        row = fetch_one(query, params)
        if row is None:
            return None
        return self._attach([row], include)[0]

    def find(self, where: Optional[Where] = None, include: Sequence[str] = (), order: Order = ()) -> List[Record]:
        where_sql, params = self._where(where)
        query = (
            sql.SQL("SELECT * FROM {table}").format(table=sql.Identifier(self.table))
            + where_sql
            + self._order(order)
        )
        return self._attach(fetch_all(query, params), include)

    def update(self, record_id: int, fields: Mapping[str, Any]) -> None:
        names = [k for k in fields if k not in ("id", "created_at", "updated_at")]
        if not names:
            return
        assignments = [sql.SQL("{} = %s").format(self._column(n)) for n in names]
        query = sql.SQL("UPDATE {table} SET {sets}, updated_at = NOW() WHERE id = %s").format(
            table=sql.Identifier(self.table),
            sets=sql.SQL(", ").join(assignments),
        )
        try:
            execute(query, [fields[n] for n in names] + [record_id])
        except psycopg2.errors.UniqueViolation as exc:
            raise UniqueViolation(self.table, self._unique_field(exc)) from exc

    def delete(self, record_id: int) -> None:
        execute(sql.SQL("DELETE FROM {table} WHERE id = %s").format(table=sql.Identifier(self.table)), [record_id])


# PUBLIC_INTERFACE
def create_postgres_stores(public_user_fields: Sequence[str]) -> Tuple[RecordStore, RecordStore]:
    """Build the users and posts stores backed by PostgreSQL."""
    users = PostgresRecordStore("users", ("username", "email", "password"))
    posts = PostgresRecordStore(
        "posts",
        ("title", "content", "author_id"),
        relations=[Relation("author", users, "author_id", tuple(public_user_fields))],
    )
    return users, posts

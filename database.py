import logging

import psycopg2
from psycopg2.extras import DictCursor
from flask import g, current_app

from config import DATABASE_URL, IS_PRODUCTION
from utils.redaction import redact_database_url

logger = logging.getLogger(__name__)


def connect(db_url=None):
    """Open a PostgresDB outside of a request (scripts, CLI commands)."""
    db_url = db_url or DATABASE_URL
    if not db_url:
        raise RuntimeError("DATABASE_URL is required for Postgres connection.")

    try:
        conn = psycopg2.connect(db_url, cursor_factory=DictCursor)
    except psycopg2.Error as e:
        logger.error(
            "[DB] Connection Failed (%s) while connecting to %s",
            type(e).__name__,
            redact_database_url(db_url),
        )
        raise
    return PostgresDB(conn)


def get_db():
    """
    Request-scoped connection stored on flask.g.

    DB_CONNECTION_FACTORY in app.config replaces the Postgres connection
    (used by the test suite).
    """
    if 'db' not in g:
        factory = current_app.config.get('DB_CONNECTION_FACTORY')
        g.db = factory() if factory is not None else connect()
    return g.db


def close_connection(exception=None):
    db = g.pop('db', None)
    if db is not None:
        db.close()


class PostgresDB:
    """
    Strict Postgres wrapper.
    Passes SQL through to psycopg2 without modification.
    Expects %s placeholders.
    """
    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=None):
        cur = self._conn.cursor()
        try:
            cur.execute(sql, params)
            return cur
        except psycopg2.Error as e:
            # In PROD, do NOT log raw SQL (PII Risk)
            logger.error(f"[DB] Query Failed: {e}")
            if not IS_PRODUCTION:
                logger.error(f"[DB] SQL: {sql}")
            raise

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()

    def cursor(self):
        return self._conn.cursor()

    # Intentionally omitted: lastrowid (Use RETURNING id + fetchone)

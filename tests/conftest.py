"""
Shared fixtures: an in-memory sqlite3 database wrapped in the same
`Database` seam production code uses with psycopg2.
"""

import sqlite3

import pytest

from coreorm import Database, Repository

SCHEMA_SQL = """
CREATE TABLE users (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    referrer_id INTEGER REFERENCES users(id),
    active      BOOLEAN NOT NULL DEFAULT 1,
    role        INTEGER NOT NULL,
    name        TEXT NOT NULL,
    created_at  DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at  DATETIME
);

CREATE TABLE posts (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    author_id   INTEGER NOT NULL REFERENCES users(id),
    editor_id   INTEGER REFERENCES users(id),
    content     TEXT NOT NULL,
    tags        TEXT,
    created_at  DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at  DATETIME
);
"""


class CountingDatabase(Database):
    """Database that records every statement it sends."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.statements = []

    def _execute(self, cur, sql, params):
        self.statements.append((sql, list(params)))
        super()._execute(cur, sql, params)


@pytest.fixture
def connection():
    conn = sqlite3.connect(":memory:")
    conn.executescript(SCHEMA_SQL)
    yield conn
    conn.close()


@pytest.fixture
def database(connection):
    return CountingDatabase(lambda: connection, placeholder="?")


@pytest.fixture
def repo(database):
    return Repository(database)

import os
import sqlite3
import tempfile
from contextlib import closing

# Mirrors the provisioned legacy tables; creating them is not the
# repositories' job.
LOGIN_SCHEMA = """
CREATE TABLE web_users (
    pid INTEGER NOT NULL UNIQUE,
    username TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    email TEXT NOT NULL,
    game_country TEXT NOT NULL DEFAULT ''
);
"""

STATS_SCHEMA = """
CREATE TABLE player (
    pid INTEGER PRIMARY KEY,
    name TEXT NOT NULL
);
"""

MASTER_SCHEMA = """
CREATE TABLE web_servers (
    ip TEXT NOT NULL,
    queryport INTEGER NOT NULL,
    updated INTEGER NOT NULL DEFAULT 0,
    online INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (ip, queryport)
);
"""


class TempDatabases:
    """Sqlite files in a throwaway directory, one per logical database."""

    def __init__(self):
        self._tmp = tempfile.TemporaryDirectory()

    def path(self, name: str) -> str:
        return os.path.join(self._tmp.name, name)

    def create(self, name: str, schema: str) -> str:
        path = self.path(name)
        with closing(sqlite3.connect(path)) as conn:
            conn.executescript(schema)
            conn.commit()
        return path

    def run(self, name: str, sql: str, params=()):
        with closing(sqlite3.connect(self.path(name))) as conn:
            rows = conn.execute(sql, params).fetchall()
            conn.commit()
            return rows

    def cleanup(self):
        self._tmp.cleanup()

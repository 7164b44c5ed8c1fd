from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from domain.repositories import Store

SUPPORTED_ENGINES = ("sqlite", "postgresql")


@dataclass(frozen=True)
class DatabaseSettings:
    """
    Connection settings for the login, stats and master databases.

    Built once at startup (normally from environment variables populated by
    `load_dotenv()`) and handed to whatever needs a store. For the sqlite
    engine the database names are file paths.
    """

    engine: str = "sqlite"
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    login_database: str = "login.db"
    stats_database: Optional[str] = None
    master_database: str = "master.db"
    timeout: float = 30.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DatabaseSettings":
        env = os.environ if environ is None else environ

        engine = env.get("DB_ENGINE", "sqlite").strip().lower()
        if engine not in SUPPORTED_ENGINES:
            raise ValueError(f"Unsupported DB_ENGINE {engine!r}; expected one of {SUPPORTED_ENGINES}")

        port = env.get("DB_PORT")
        timeout = env.get("DB_TIMEOUT")
        try:
            parsed_port = int(port) if port else None
            parsed_timeout = float(timeout) if timeout else 30.0
        except ValueError as exc:
            raise ValueError(f"Invalid DB_PORT/DB_TIMEOUT setting: {exc}") from exc

        return cls(
            engine=engine,
            host=env.get("DB_HOST") or None,
            port=parsed_port,
            user=env.get("DB_USER") or None,
            password=env.get("DB_PASSWORD") or None,
            login_database=env.get("DB_LOGIN_DATABASE", "login.db"),
            stats_database=env.get("DB_STATS_DATABASE") or None,
            master_database=env.get("DB_MASTER_DATABASE", "master.db"),
            timeout=parsed_timeout,
        )

    def postgres_params(self, database: str) -> dict:
        """Keyword arguments for `psycopg2.connect`."""

        params = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "dbname": database,
            "connect_timeout": max(1, int(self.timeout)),
        }
        return {key: value for key, value in params.items() if value is not None}

    def open_store(self, database: str) -> Store:
        if self.engine == "postgresql":
            from infrastructure.db.store_postgres import PostgresStore

            return PostgresStore(self.postgres_params(database))

        from infrastructure.db.store_sqlite import SqliteStore

        return SqliteStore(database, timeout=self.timeout)

    def login_store(self) -> Store:
        return self.open_store(self.login_database)

    def stats_store(self) -> Store:
        # The stats `player` table lives next to `web_users` unless configured.
        return self.open_store(self.stats_database or self.login_database)

    def master_store(self) -> Store:
        return self.open_store(self.master_database)

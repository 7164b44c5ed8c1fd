from __future__ import annotations

import threading
from typing import ContextManager, Optional

from infrastructure.config import DatabaseSettings
from infrastructure.db.account_repository import SqlAccountRepository
from infrastructure.db.server_registry import SqlServerRegistry
from infrastructure.db.stats_identity_probe import StatsIdentityProbe
from infrastructure.hashing import Md5PasswordHasher

# Must be identical on every login server sharing the account database.
ACCOUNT_CREATION_LOCK_KEY = 0x47534C4B  # "GSLK"


class RepositoryFactory:
    """
    Builds repositories from one `DatabaseSettings` instance.

    Request handlers may ask for a fresh repository per request; all account
    repositories built by the same factory share one creation lock.
    """

    def __init__(self, settings: DatabaseSettings, creation_lock: Optional[ContextManager] = None) -> None:
        self.settings = settings
        self._hasher = Md5PasswordHasher()
        self._creation_lock = creation_lock if creation_lock is not None else self._default_lock()

    def _default_lock(self) -> ContextManager:
        if self.settings.engine == "postgresql":
            from infrastructure.db.store_postgres import PostgresAdvisoryLock

            return PostgresAdvisoryLock(
                self.settings.postgres_params(self.settings.login_database),
                ACCOUNT_CREATION_LOCK_KEY,
            )
        return threading.Lock()

    def accounts(self) -> SqlAccountRepository:
        return SqlAccountRepository(
            self.settings.login_store(),
            StatsIdentityProbe(self.settings.stats_store()),
            self._hasher,
            creation_lock=self._creation_lock,
        )

    def servers(self) -> SqlServerRegistry:
        return SqlServerRegistry(self.settings.master_store())

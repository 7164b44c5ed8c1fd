from __future__ import annotations

import logging
import threading
from typing import ContextManager, List, Optional, Union

from domain.errors import StoreConflictError
from domain.models import PLAYER_ID_FLOOR, Account, SetPlayerIdStatus
from domain.repositories import AccountRepository, PasswordHasher, Row, Store
from infrastructure.db.stats_identity_probe import StatsIdentityProbe

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = "pid, username, password, email, game_country"


class SqlAccountRepository(AccountRepository):
    """
    `AccountRepository` over the legacy `web_users` table.

    Works with any `Store` implementation. Account creation is serialized by
    `creation_lock`; every repository instance writing the same table must be
    given the same lock object (a `threading.Lock` within one process, a
    `PostgresAdvisoryLock` across processes).
    """

    def __init__(
        self,
        store: Store,
        stats_probe: StatsIdentityProbe,
        hasher: PasswordHasher,
        creation_lock: Optional[ContextManager] = None,
    ) -> None:
        self._store = store
        self._stats_probe = stats_probe
        self._hasher = hasher
        self._creation_lock = creation_lock if creation_lock is not None else threading.Lock()

    @staticmethod
    def _to_domain(row: Row) -> Account:
        return Account(
            player_id=int(row["pid"]),
            username=row["username"],
            password_hash=row["password"],
            email=row["email"] or "",
            country=row["game_country"] or "",
        )

    def get_user(self, nick: str) -> Optional[Account]:
        rows = self._store.query(
            f"SELECT {_ACCOUNT_COLUMNS} FROM web_users WHERE username = ?",
            (nick,),
        )
        if not rows:
            return None
        return self._to_domain(rows[0])

    def get_users_by_credential(self, email: str, raw_password: str) -> List[Account]:
        rows = self._store.query(
            f"SELECT {_ACCOUNT_COLUMNS} FROM web_users WHERE LOWER(email) = ? AND password = ?",
            (email.lower(), self._hasher.hash(raw_password)),
        )
        return [self._to_domain(row) for row in rows]

    def user_exists(self, nick: str) -> bool:
        return bool(self._store.query("SELECT pid FROM web_users WHERE username = ?", (nick,)))

    def player_id_exists(self, player_id: int) -> bool:
        return bool(self._store.query("SELECT username FROM web_users WHERE pid = ?", (player_id,)))

    def create_user(self, nick: str, raw_password: str, email: str, country: str) -> int:
        with self._creation_lock:
            player_id = self._stats_probe.lookup(nick)
            if player_id is None:
                player_id = self._generate_player_id()
            else:
                logger.info("Reusing stats player id %d for new account %r", player_id, nick)

            try:
                rows = self._store.execute(
                    "INSERT INTO web_users (pid, username, password, email, game_country) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (player_id, nick, self._hasher.hash(raw_password), email.lower(), country),
                )
            except StoreConflictError as exc:
                logger.warning("Account %r not created, pid %d or name already taken: %s", nick, player_id, exc)
                return 0

        if rows == 0:
            return 0
        logger.info("Created account %r with pid %d", nick, player_id)
        return player_id

    def _generate_player_id(self) -> int:
        # MAX + 1, clamped up to the floor; needs the creation lock held.
        current = self._store.execute_scalar("SELECT MAX(pid) FROM web_users", default=0)
        return max(int(current) + 1, PLAYER_ID_FLOOR)

    def update_country(self, nick: str, country: str) -> int:
        return self._store.execute(
            "UPDATE web_users SET game_country = ? WHERE username = ?",
            (country, nick),
        )

    def relink_user(
        self,
        player_id: int,
        new_player_id: int,
        new_nick: str,
        new_raw_password: str,
        new_email: str,
    ) -> int:
        rows = self._store.execute(
            "UPDATE web_users SET pid = ?, username = ?, password = ?, email = ? WHERE pid = ?",
            (new_player_id, new_nick, self._hasher.hash(new_raw_password), new_email.lower(), player_id),
        )
        if rows:
            logger.info("Re-linked account pid %d to pid %d (%r)", player_id, new_player_id, new_nick)
        return rows

    def delete_user(self, nick: str) -> int:
        rows = self._store.execute("DELETE FROM web_users WHERE username = ?", (nick,))
        if rows:
            logger.info("Deleted account %r", nick)
        return rows

    def delete_player(self, player_id: int) -> int:
        rows = self._store.execute("DELETE FROM web_users WHERE pid = ?", (player_id,))
        if rows:
            logger.info("Deleted account with pid %d", player_id)
        return rows

    def get_player_id(self, nick: str) -> int:
        rows = self._store.query("SELECT pid FROM web_users WHERE username = ?", (nick,))
        return int(rows[0]["pid"]) if rows else 0

    def set_player_id(self, nick: str, new_player_id: int) -> Union[int, SetPlayerIdStatus]:
        """
        Move `nick` to `new_player_id`.

        Unlike creation this reassigns an existing identity, so uniqueness is
        checked before writing. Returns a `SetPlayerIdStatus` on failure,
        otherwise the number of rows updated.
        """

        if not self.user_exists(nick):
            return SetPlayerIdStatus.NOT_FOUND
        if self.get_player_id(nick) != new_player_id and self.player_id_exists(new_player_id):
            return SetPlayerIdStatus.CONFLICT

        try:
            return self._store.execute(
                "UPDATE web_users SET pid = ? WHERE username = ?",
                (new_player_id, nick),
            )
        except StoreConflictError:
            # Lost a race against another writer claiming the same pid.
            return SetPlayerIdStatus.CONFLICT

    def count_users(self) -> int:
        return int(self._store.execute_scalar("SELECT COUNT(pid) FROM web_users", default=0))

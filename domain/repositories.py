from __future__ import annotations

from typing import Any, Dict, List, MutableMapping, Optional, Protocol, Sequence, Union

from .models import Account, ServerRecord, SetPlayerIdStatus

Row = Dict[str, Any]


class Store(Protocol):
    """
    Opaque execute/query capability against a relational database.

    Statements use positional `?` placeholders and every value is bound
    through `params`. Implementations translate driver exceptions into
    `domain.errors.StoreError` subclasses and release their connection on
    every exit path.
    """

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        """Run a SELECT and return each row as a column-name mapping."""

        ...

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement, commit it, and return the affected row count."""

        ...

    def execute_scalar(self, sql: str, params: Sequence[Any] = (), default: Any = None) -> Any:
        """Return the first column of the first row, or `default` when empty."""

        ...


class PasswordHasher(Protocol):
    """One-way credential hash. Never reversed by this codebase."""

    def hash(self, raw_password: str, legacy: bool = False) -> str:
        ...


class AccountRepository(Protocol):
    """
    Persistence abstraction for login accounts and their player identities.
    """

    def get_user(self, nick: str) -> Optional[Account]:
        ...

    def get_users_by_credential(self, email: str, raw_password: str) -> List[Account]:
        ...

    def user_exists(self, nick: str) -> bool:
        ...

    def player_id_exists(self, player_id: int) -> bool:
        ...

    def create_user(self, nick: str, raw_password: str, email: str, country: str) -> int:
        """
        Create an account and return its player id, or 0 if nothing was inserted.
        """

        ...

    def update_country(self, nick: str, country: str) -> int:
        ...

    def relink_user(
        self,
        player_id: int,
        new_player_id: int,
        new_nick: str,
        new_raw_password: str,
        new_email: str,
    ) -> int:
        ...

    def delete_user(self, nick: str) -> int:
        ...

    def delete_player(self, player_id: int) -> int:
        ...

    def get_player_id(self, nick: str) -> int:
        ...

    def set_player_id(self, nick: str, new_player_id: int) -> Union[int, SetPlayerIdStatus]:
        ...

    def count_users(self) -> int:
        ...


class ServerRegistry(Protocol):
    """
    Mirrors advertised game servers between the store and a caller-owned map.

    The registry never removes entries from the map and never deletes rows.
    """

    def load_online_servers(self, servers: MutableMapping[str, ServerRecord]) -> int:
        ...

    def get_server(self, address: str, query_port: int) -> Optional[ServerRecord]:
        ...

    def upsert_server(self, server: ServerRecord) -> None:
        ...

    def mark_server_offline(self, server: ServerRecord) -> bool:
        ...

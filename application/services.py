from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, MutableMapping, Optional

from domain.models import Account, ServerRecord, SetPlayerIdStatus
from domain.repositories import AccountRepository, ServerRegistry


@dataclass
class CreateAccountRequest:
    """
    Fields of a login-server "create account" request.

    The application layer never depends on wire-protocol types; listeners
    translate their packets into this small object.
    """

    nick: str
    password: str
    email: str
    country: str = ""


@dataclass
class OperationResult:
    """Generic result type for simple operations."""

    success: bool
    error_message: Optional[str] = None
    player_id: int = 0
    accounts: List[Account] = field(default_factory=list)


def _validate_create_request(request: CreateAccountRequest) -> Optional[str]:
    if not request.nick.strip():
        return "Nick must not be empty."
    if not request.password:
        return "Password must not be empty."
    if "@" not in request.email:
        return "Email address is invalid."
    return None


def register_account(
    request: CreateAccountRequest,
    accounts: AccountRepository,
) -> OperationResult:
    """
    Handle an account creation request.

    - Reject malformed requests and nicks that are already taken.
    - Otherwise create the account; a zero player id means the insert failed.
    """

    error = _validate_create_request(request)
    if error:
        return OperationResult(success=False, error_message=error)

    if accounts.user_exists(request.nick):
        return OperationResult(success=False, error_message="Nick is already in use.")

    player_id = accounts.create_user(request.nick, request.password, request.email, request.country)
    if player_id == 0:
        return OperationResult(success=False, error_message="Account could not be created.")

    return OperationResult(success=True, player_id=player_id)


def login_by_credentials(
    email: str,
    raw_password: str,
    accounts: AccountRepository,
) -> OperationResult:
    """Return every account registered with this email and password."""

    matches = accounts.get_users_by_credential(email, raw_password)
    if not matches:
        return OperationResult(success=False, error_message="Invalid email or password.")
    return OperationResult(success=True, accounts=matches)


def change_player_id(
    nick: str,
    new_player_id: int,
    accounts: AccountRepository,
) -> OperationResult:
    result = accounts.set_player_id(nick, new_player_id)
    if result == SetPlayerIdStatus.NOT_FOUND:
        return OperationResult(success=False, error_message=f"No account named {nick}.")
    if result == SetPlayerIdStatus.CONFLICT:
        return OperationResult(
            success=False,
            error_message=f"Player id {new_player_id} belongs to another account.",
        )
    if result == 0:
        return OperationResult(success=False, error_message="Player id was not changed.")
    return OperationResult(success=True, player_id=new_player_id)


def record_heartbeat(
    server: ServerRecord,
    registry: ServerRegistry,
    servers: MutableMapping[str, ServerRecord],
) -> ServerRecord:
    """
    Persist a heartbeat and make sure the server is in the in-memory list.

    Returns the map entry for the server, which may be an older object if
    the server was already listed.
    """

    registry.upsert_server(server)
    entry = servers.setdefault(server.endpoint_key, server)
    entry.online = True
    entry.last_refreshed = server.last_refreshed
    return entry


def retire_server(
    server: ServerRecord,
    registry: ServerRegistry,
    servers: MutableMapping[str, ServerRecord],
) -> OperationResult:
    """
    Record that a server stopped heartbeating.

    The listed entry for the endpoint, which need not be `server` itself,
    is flagged offline but stays in the map.
    """

    if not registry.mark_server_offline(server):
        return OperationResult(success=False, error_message=f"Unknown server {server.endpoint_key}.")
    entry = servers.get(server.endpoint_key)
    if entry is not None:
        entry.online = False
        entry.last_refreshed = server.last_refreshed
    return OperationResult(success=True)

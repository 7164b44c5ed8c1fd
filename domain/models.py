from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Union

from .errors import InvalidEndpointError

# Identities below this value are reserved for other systems.
PLAYER_ID_FLOOR = 500_000_000


@dataclass
class Account:
    """
    A login account and the player identity it is linked to.

    `password_hash` is always the output of the configured one-way hasher;
    raw passwords never reach this model.
    """

    player_id: int
    username: str
    password_hash: str
    email: str
    country: str


class SetPlayerIdStatus(IntEnum):
    """Negative status codes returned by `set_player_id`."""

    NOT_FOUND = -1
    CONFLICT = -2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ServerRecord:
    """
    A game server advertised through heartbeats.

    The endpoint (`address`, `query_port`) is the unique key. `last_refreshed`
    is persisted as whole seconds since the epoch.
    """

    address: str
    query_port: int
    online: bool = True
    last_refreshed: datetime = field(default_factory=_utcnow)

    def ip(self) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address]:
        """Parse the address, raising `InvalidEndpointError` when malformed."""

        try:
            return ipaddress.ip_address(str(self.address).strip())
        except ValueError as exc:
            raise InvalidEndpointError(f"Invalid server address: {self.address!r}") from exc

    def port(self) -> int:
        try:
            port = int(self.query_port)
        except (TypeError, ValueError) as exc:
            raise InvalidEndpointError(f"Invalid query port: {self.query_port!r}") from exc
        if not 0 < port < 65536:
            raise InvalidEndpointError(f"Query port out of range: {port}")
        return port

    @property
    def endpoint_key(self) -> str:
        """Canonical `ip:port` form used to key the shared server map."""

        ip = self.ip()
        if ip.version == 6:
            return f"[{ip}]:{self.port()}"
        return f"{ip}:{self.port()}"

    @property
    def refreshed_timestamp(self) -> int:
        refreshed = self.last_refreshed
        if refreshed.tzinfo is None:
            refreshed = refreshed.replace(tzinfo=timezone.utc)
        return int(refreshed.timestamp())

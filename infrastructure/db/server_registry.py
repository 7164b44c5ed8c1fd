from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import MutableMapping, Optional

from domain.errors import InvalidEndpointError, StoreConflictError
from domain.models import ServerRecord
from domain.repositories import Row, ServerRegistry, Store

logger = logging.getLogger(__name__)


class SqlServerRegistry(ServerRegistry):
    """
    `ServerRegistry` over the master server's `web_servers` table.

    The registry only records what heartbeats tell it: a server goes offline
    when the caller says so, never because it has gone quiet.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    @staticmethod
    def _to_domain(row: Row) -> ServerRecord:
        updated = row.get("updated")
        return ServerRecord(
            address=str(row["ip"]).strip(),
            query_port=int(row["queryport"]),
            online=bool(row.get("online", 1)),
            last_refreshed=datetime.fromtimestamp(int(updated or 0), tz=timezone.utc),
        )

    def load_online_servers(self, servers: MutableMapping[str, ServerRecord]) -> int:
        """
        Seed `servers` with every server the store has marked online.

        Keys already present are left untouched and malformed rows are
        skipped, so this is safe to run against a map that is in use.
        Returns the number of entries added.
        """

        added = 0
        for row in self._store.query("SELECT ip, queryport, updated, online FROM web_servers WHERE online = 1"):
            try:
                record = self._to_domain(row)
                key = record.endpoint_key
            except (InvalidEndpointError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed server row %r: %s", row, exc)
                continue

            if servers.setdefault(key, record) is record:
                added += 1

        logger.info("Loaded %d online servers into the server list", added)
        return added

    def get_server(self, address: str, query_port: int) -> Optional[ServerRecord]:
        probe = ServerRecord(address=address, query_port=query_port)
        rows = self._store.query(
            "SELECT ip, queryport, updated, online FROM web_servers WHERE ip = ? AND queryport = ?",
            (str(probe.ip()), probe.port()),
        )
        if not rows:
            return None
        return self._to_domain(rows[0])

    def _exists(self, address: str, port: int) -> bool:
        count = self._store.execute_scalar(
            "SELECT COUNT(*) FROM web_servers WHERE ip = ? AND queryport = ?",
            (address, port),
            default=0,
        )
        return int(count) > 0

    def _set_state(self, address: str, port: int, online: bool, updated: int) -> int:
        return self._store.execute(
            "UPDATE web_servers SET online = ?, updated = ? WHERE ip = ? AND queryport = ?",
            (1 if online else 0, updated, address, port),
        )

    def upsert_server(self, server: ServerRecord) -> None:
        address, port = str(server.ip()), server.port()
        updated = server.refreshed_timestamp

        if self._exists(address, port):
            self._set_state(address, port, True, updated)
            logger.debug("Refreshed server %s", server.endpoint_key)
            return

        try:
            self._store.execute(
                "INSERT INTO web_servers (ip, queryport, updated, online) VALUES (?, ?, ?, 1)",
                (address, port, updated),
            )
        except StoreConflictError:
            # Another heartbeat for the same endpoint inserted first.
            self._set_state(address, port, True, updated)
            return
        logger.info("Registered new server %s", server.endpoint_key)

    def mark_server_offline(self, server: ServerRecord) -> bool:
        address, port = str(server.ip()), server.port()
        if not self._exists(address, port):
            return False

        self._set_state(address, port, False, server.refreshed_timestamp)
        logger.info("Server %s marked offline", server.endpoint_key)
        return True

from __future__ import annotations

import logging
from typing import Optional

from domain.errors import StoreError
from domain.repositories import Store

logger = logging.getLogger(__name__)


class StatsIdentityProbe:
    """
    Looks up a player id already known to the stats database.

    Names of players registered online are stored in the stats `player`
    table with a single leading space, so the lookup prefixes one before a
    case-insensitive match. The probe is read-only and fallible: any store
    failure or unparsable id is reported as "no match" (None).
    """

    def __init__(self, stats_store: Store) -> None:
        self._store = stats_store

    @staticmethod
    def stats_name(nick: str) -> str:
        return f" {nick}"

    def lookup(self, nick: str) -> Optional[int]:
        try:
            rows = self._store.query(
                "SELECT pid FROM player WHERE UPPER(name) = UPPER(?)",
                (self.stats_name(nick),),
            )
        except StoreError as exc:
            logger.warning("Stats identity lookup for %r failed, allocating a new id: %s", nick, exc)
            return None

        if not rows:
            return None

        try:
            return int(str(rows[0]["pid"]).strip())
        except (KeyError, TypeError, ValueError):
            logger.warning("Unparsable stats pid %r for %r, allocating a new id", rows[0].get("pid"), nick)
            return None

from __future__ import annotations

import hashlib

from domain.repositories import PasswordHasher


class Md5PasswordHasher(PasswordHasher):
    """
    Hex MD5 of the UTF-8 encoded password.

    This is the credential format the legacy GameSpy clients and the
    existing `web_users` rows use, so it cannot be swapped for a salted
    hash without migrating every account. `legacy=True` produces the
    upper-case digest some older rows were written with.
    """

    def hash(self, raw_password: str, legacy: bool = False) -> str:
        digest = hashlib.md5(raw_password.encode("utf-8")).hexdigest()
        return digest.upper() if legacy else digest

from __future__ import annotations


class StoreError(Exception):
    """A store call failed. Driver exceptions never escape as-is."""


class StoreUnavailableError(StoreError):
    """The store could not be reached, timed out, or is not usable."""


class StoreConflictError(StoreError):
    """A uniqueness or integrity constraint rejected the statement."""


class InvalidEndpointError(ValueError):
    """A server address or query port could not be parsed."""

# Overview: Service-layer operations for destructive maintenance (factory reset).

from __future__ import annotations

import logging

from ..store import TransactionError

logger = logging.getLogger(__name__)


class ResetError(TransactionError):
    """Factory reset failed; no table was cleared."""


def factory_reset(store, *, reseed: bool = False) -> dict:
    """
    Delete every row from every table, children before parents, in one unit.

    Re-seeding (default location and admin) is left to the next
    store.initialize() unless reseed=True.
    """
    try:
        with store.transaction():
            store.clear_all_tables()
    except Exception as exc:
        logger.error("Factory reset failed: %s", exc)
        raise ResetError(f"Factory reset failed: {exc}") from exc

    logger.warning("Factory reset completed; all tables cleared")
    result = {"cleared": True, "reseeded": False}
    if reseed:
        store.initialize()
        result["reseeded"] = True
    return result

"""Ledger store and user directory collaborators."""

from qscore.store.contracts import ChangeEvent, LedgerStore, StoreResult, StoreState, UserDirectory
from qscore.store.realtime import ChangeFeed
from qscore.store.sql_store import SQLLedgerStore, SQLUserDirectory

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "LedgerStore",
    "SQLLedgerStore",
    "SQLUserDirectory",
    "StoreResult",
    "StoreState",
    "UserDirectory",
]

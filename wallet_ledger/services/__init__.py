"""Services package."""

from wallet_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsMirror,
    JSONFileSlotStore,
    LedgerStorage,
    LocalLedgerStorage,
    MemorySlotStore,
    MirroredLedgerStorage,
    RemoteMirror,
    RemoteSyncError,
    SlotStore,
    StorageError,
    select_storage,
)

__all__ = [
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsMirror",
    "JSONFileSlotStore",
    "LedgerStorage",
    "LocalLedgerStorage",
    "MemorySlotStore",
    "MirroredLedgerStorage",
    "RemoteMirror",
    "RemoteSyncError",
    "SlotStore",
    "StorageError",
    "select_storage",
]

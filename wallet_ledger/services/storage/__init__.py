"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Local slots are JSON files; the remote mirror is Google Sheets.
"""

from wallet_ledger.services.storage.interface import (
    ConnectionError,
    LedgerStorage,
    RemoteMirror,
    RemoteSyncError,
    SlotStore,
    StorageError,
)
from wallet_ledger.services.storage.local import (
    JSONFileSlotStore,
    LocalLedgerStorage,
    MemorySlotStore,
)
from wallet_ledger.services.storage.mirrored import (
    MirroredLedgerStorage,
    select_storage,
)
from wallet_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsMirror,
)

__all__ = [
    # Interfaces
    "LedgerStorage",
    "RemoteMirror",
    "SlotStore",
    # Exceptions
    "ConnectionError",
    "RemoteSyncError",
    "StorageError",
    # Local store
    "JSONFileSlotStore",
    "LocalLedgerStorage",
    "MemorySlotStore",
    # Mirrored store
    "MirroredLedgerStorage",
    "select_storage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsMirror",
]

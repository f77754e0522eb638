"""Export/import package."""

from wallet_ledger.backup.archive import (
    ImportPayloadError,
    backup_filename,
    build_export,
    parse_import,
    read_backup,
    write_backup,
)

__all__ = [
    "ImportPayloadError",
    "backup_filename",
    "build_export",
    "parse_import",
    "read_backup",
    "write_backup",
]

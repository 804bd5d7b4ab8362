"""Transaction CSV export and full JSON backups."""

from allowance_tracker.exports.backup import (
    backup_filename,
    export_full_backup,
    import_full_backup,
)
from allowance_tracker.exports.csv_export import (
    CSV_COLUMNS,
    export_transactions,
    transactions_filename,
)

__all__ = [
    "CSV_COLUMNS",
    "backup_filename",
    "export_full_backup",
    "export_transactions",
    "import_full_backup",
    "transactions_filename",
]

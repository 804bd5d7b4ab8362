"""
Full JSON backup of the ledger state.

A backup is the same document the state store persists, indented for
people to read. Importing validates it exactly as a load does.
"""

from datetime import date
from typing import Union

from allowance_tracker.models.ledger import AppState
from allowance_tracker.services.storage.serialization import parse_state, serialize_state


def export_full_backup(state: AppState) -> bytes:
    return serialize_state(state, indent=2).encode("utf-8")


def import_full_backup(data: Union[bytes, str]) -> AppState:
    """
    Parse a backup produced by ``export_full_backup``.

    Raises:
        StructuralIntegrityError: If the document is not a complete, valid state
    """
    return parse_state(data)


def backup_filename(today: date) -> str:
    return f"save-spend-share-backup-{today.isoformat()}.json"

"""
Snapshot serialization.

Snapshots are JSON: balances as numbers, birthdays as ISO dates,
timestamps as ISO-8601 instants. Parsing validates the full structure
and refuses partially valid data.
"""

import json
from typing import Optional, Union

from pydantic import ValidationError

from allowance_tracker.models.ledger import AppState
from allowance_tracker.services.storage.interface import StructuralIntegrityError


def serialize_state(state: AppState, indent: Optional[int] = None) -> str:
    """Serialize a state snapshot to JSON text."""
    return state.model_dump_json(indent=indent)


def parse_state(raw: Union[str, bytes]) -> AppState:
    """
    Parse and validate a JSON snapshot.

    Raises:
        StructuralIntegrityError: On malformed JSON or any schema violation
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise StructuralIntegrityError(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise StructuralIntegrityError(
            f"Snapshot must be a JSON object, got {type(data).__name__}"
        )

    for section in ("kids", "settings", "transactions"):
        if section not in data:
            raise StructuralIntegrityError(f"Snapshot is missing '{section}'")

    try:
        return AppState.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise StructuralIntegrityError(f"Snapshot failed validation: {problems}") from e

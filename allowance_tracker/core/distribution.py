"""
Bucket Distribution

Splits a whole-unit allowance across Save, Spend and Share. Every
bucket gets ``amount // 3``; the 0-2 leftover units go to consecutive
buckets starting at the one selected by the rotation week, wrapping
around. The rotation week advances with every weekly distribution so
remainders are shared out fairly over time.

``distribute`` is a pure function of ``(amount, rotation_week)``.
Previews, live distributions and undo all recompute it from those two
values alone.
"""

from allowance_tracker.models.ledger import BUCKET_ORDER, Distribution


ROTATION_LENGTH = len(BUCKET_ORDER)


def validate_rotation_week(rotation_week: int) -> int:
    if isinstance(rotation_week, bool) or not isinstance(rotation_week, int):
        raise ValueError(f"Rotation week must be an integer, got {rotation_week!r}")
    if not 1 <= rotation_week <= ROTATION_LENGTH:
        raise ValueError(
            f"Rotation week must be between 1 and {ROTATION_LENGTH}, got {rotation_week}"
        )
    return rotation_week


def distribute(amount: int, rotation_week: int) -> Distribution:
    """
    Split ``amount`` whole units across the three buckets.

    Examples:
        distribute(10, 1) -> save=4, spend=3, share=3
        distribute(10, 2) -> save=3, spend=4, share=3
        distribute(11, 3) -> save=4, spend=3, share=4
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Allowance amount must be a whole number, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Allowance amount cannot be negative, got {amount}")
    validate_rotation_week(rotation_week)

    base, remainder = divmod(amount, ROTATION_LENGTH)
    shares = {bucket.value: base for bucket in BUCKET_ORDER}

    start = (rotation_week - 1) % ROTATION_LENGTH
    for offset in range(remainder):
        bucket = BUCKET_ORDER[(start + offset) % ROTATION_LENGTH]
        shares[bucket.value] += 1

    return Distribution(**shares)


def advance_rotation(rotation_week: int, steps: int = 1) -> int:
    """Move the 1-based rotation week ``steps`` places, wrapping 3 -> 1."""
    validate_rotation_week(rotation_week)
    return (rotation_week - 1 + steps) % ROTATION_LENGTH + 1


def previous_rotation(rotation_week: int) -> int:
    """Rotation week that was active before the last advance (1 -> 3)."""
    return advance_rotation(rotation_week, -1)

"""
Selection of a single current operational status.

The operational status register is a bitmask, so several statuses can be set
at once. Consumers want one current status (one-hot), so the running set is
reduced with a fixed priority order. The order mirrors what the Thermia web
app shows and is not a documented API contract.
"""

from __future__ import annotations

from collections.abc import Sequence

STATUS_NO_DEMAND = "STATUS_NO_DEMAND"

STATUS_PRIORITY = (
    "STATUS_LEGIONELLA",
    "STATUS_HOTWATER",
    "STATUS_HEAT",
    "STATUS_COOL",
    "STATUS_PASSIVE_COOL",
    "STATUS_POOL",
    "STATUS_STANDBY",
    STATUS_NO_DEMAND,
    "OPERATION_MODE_OFF",
)


def pick_current_status(running: Sequence[str], available: Sequence[str]) -> str:
    """
    Return the one status to report as current.

    NO_DEMAND is dropped when anything else is running. Among the rest the
    first label in STATUS_PRIORITY wins (case-insensitive), then the first
    running label. With nothing running, the first available label is used,
    or "" if there is none.
    """
    filtered = [s for s in running if s.upper() != STATUS_NO_DEMAND]
    if not filtered:
        filtered = list(running)

    by_upper: dict[str, str] = {}
    for label in filtered:
        by_upper.setdefault(label.upper(), label)
    for wanted in STATUS_PRIORITY:
        if wanted in by_upper:
            return by_upper[wanted]

    if filtered:
        return filtered[0]
    if available:
        return available[0]
    return ""


def one_hot(available: Sequence[str], current: str) -> dict[str, int]:
    """Map each available label to 1 if it is the current one, else 0."""
    wanted = current.upper()
    return {label: 1 if current and label.upper() == wanted else 0 for label in available}


def multi_hot(available: Sequence[str], running: Sequence[str]) -> dict[str, int]:
    """Map each available label to 1 if it is running, else 0."""
    active = set(running)
    return {label: 1 if label in active else 0 for label in available}


__all__ = ["STATUS_NO_DEMAND", "STATUS_PRIORITY", "multi_hot", "one_hot", "pick_current_status"]

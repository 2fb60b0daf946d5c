"""
Active vs archived alerts.

The events endpoint is queried twice: active alarms only, and the full history.
Events carry no identifier that is stable across the two queries, so alerts
are matched by their trimmed title. Two different historical alerts with the
same title count as one.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import Event


def unique_titles(events: Iterable[Event]) -> list[str]:
    """Trimmed, non-empty titles in first-seen order, without duplicates."""
    seen: set[str] = set()
    titles: list[str] = []
    for event in events:
        title = (event.title or "").strip()
        if not title or title in seen:
            continue
        seen.add(title)
        titles.append(title)
    return titles


def reconcile_alerts(
    active_events: Iterable[Event],
    all_events: Iterable[Event],
) -> tuple[list[str], list[str]]:
    """
    Return (active, archived) alert titles.

    archived is every title from the full history that is not active.
    """
    active = unique_titles(active_events)
    active_set = set(active)
    archived = [t for t in unique_titles(all_events) if t not in active_set]
    return active, archived


__all__ = ["reconcile_alerts", "unique_titles"]

#!/usr/bin/env python3
"""
Reading set assembly.

Combines the register decoder, status arbitration and alert reconciliation into
one ReadingSet per scrape, and projects a HeatpumpSummary to a JSON-friendly dict.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Optional

from .api_client import (
    REG_GROUP_HOT_WATER,
    REG_GROUP_OPERATIONAL_OPERATION,
    REG_GROUP_OPERATIONAL_STATUS,
    REG_GROUP_OPERATIONAL_TIME,
    REG_GROUP_TEMPERATURES,
)
from .alerts import reconcile_alerts
from .models import Event, HeatpumpSummary, InstallationStatus, ReadingSet, RegisterItem
from .register_decoder import (
    OPERATIONAL_STATUS_CANDIDATES,
    POWER_STATUS_CANDIDATES,
    decode_bitmask,
    decode_hot_water_switches,
    decode_operation_mode,
    decode_operational_time,
    decode_temperatures,
)
from .status_arbitration import multi_hot, one_hot, pick_current_status


def decode_registers(
    groups: Mapping[str, Sequence[RegisterItem]],
    status: Optional[InstallationStatus] = None,
    *,
    active_events: Optional[Iterable[Event]] = None,
    all_events: Optional[Iterable[Event]] = None,
) -> ReadingSet:
    """
    Decode one scrape's register groups into a ReadingSet.

    Missing groups or registers only leave the matching readings out; this
    never raises for absent data. Alerts are filled in when event lists are given.
    """
    temps = groups.get(REG_GROUP_TEMPERATURES) or ()
    status_items = groups.get(REG_GROUP_OPERATIONAL_STATUS) or ()
    switch, boost = decode_hot_water_switches(groups.get(REG_GROUP_HOT_WATER) or ())
    operational = decode_bitmask(status_items, OPERATIONAL_STATUS_CANDIDATES)
    active, archived = reconcile_alerts(active_events or (), all_events or ())

    return ReadingSet(
        temperatures=decode_temperatures(temps, status),
        operation_mode=decode_operation_mode(groups.get(REG_GROUP_OPERATIONAL_OPERATION) or ()),
        operational_status=operational,
        current_operational_status=pick_current_status(operational.running, operational.available),
        power_status=decode_bitmask(status_items, POWER_STATUS_CANDIDATES),
        hot_water_switch=switch,
        hot_water_boost=boost,
        operational_time_hours=decode_operational_time(groups.get(REG_GROUP_OPERATIONAL_TIME) or ()),
        active_alerts=tuple(active),
        archived_alerts=tuple(archived),
    )


def readings_to_dict(readings: ReadingSet) -> dict[str, Any]:
    mode = readings.operation_mode
    operational = readings.operational_status
    power = readings.power_status
    return {
        "temperatures": dict(readings.temperatures),
        "operation_mode": {
            "current": mode.current,
            "available": list(mode.available),
            "read_only": mode.read_only,
            "state": one_hot(mode.available, mode.current),
        },
        "operational_status": {
            "current": readings.current_operational_status,
            "available": list(operational.available),
            "running": list(operational.running),
            "state": one_hot(operational.available, readings.current_operational_status),
        },
        "power_status": {
            "available": list(power.available),
            "running": list(power.running),
            "state": multi_hot(power.available, power.running),
        },
        "hot_water": {"switch": readings.hot_water_switch, "boost": readings.hot_water_boost},
        "operational_time_hours": dict(readings.operational_time_hours),
        "alerts": {
            "active": list(readings.active_alerts),
            "archived": list(readings.archived_alerts),
            "active_count": len(readings.active_alerts),
            "archived_count": len(readings.archived_alerts),
        },
    }


def summary_to_dict(summary: HeatpumpSummary) -> dict[str, Any]:
    """JSON-serializable view of a scrape result."""
    return {
        "heatpump_id": summary.heatpump_id,
        "heatpump_name": summary.heatpump_name,
        "heatpump_model": summary.heatpump_model,
        "online": summary.online,
        "last_online": summary.last_online,
        "last_online_unix": summary.last_online_unix,
        "readings": readings_to_dict(summary.readings),
        "errors": [{"source": e.source, "error": str(e.cause)} for e in summary.errors],
    }


__all__ = ["decode_registers", "readings_to_dict", "summary_to_dict"]

"""
Data models for Thermia API payloads and decoded readings.

The `from_api` constructors accept the camelCase JSON the Thermia REST API
returns and are lenient: unknown keys are ignored and wrong types become None.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import PartialDataError


def _opt_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        result = float(value)
    except (ValueError, OverflowError):
        return None
    # "NaN", "Infinity" and the bare JSON NaN literal have no integer form.
    return result if math.isfinite(result) else None


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _opt_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    return None


@dataclass(frozen=True)
class ValueName:
    """One entry of a register's enumeration/bitmask table."""

    name: str
    value: int
    visible: bool = True

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ValueName":
        raw = data.get("value")
        try:
            code = int(raw) if raw is not None else 0
        except (TypeError, ValueError, OverflowError):
            code = 0
        return cls(
            name=str(data.get("name") or ""),
            value=code,
            visible=bool(data.get("visible", False)),
        )


@dataclass(frozen=True)
class RegisterItem:
    """
    A generic register record from a register group.

    Attributes:
        name: Stable machine identifier, e.g. "REG_OUTDOOR_TEMPERATURE"
        value: Numeric value, None when the heat pump did not report one
        read_only: Whether the register can be written
        value_names: Code/label table for enumerations and bitmasks
        unit: Unit string as reported
        string_value: Textual value for string registers
    """

    name: str
    value: Optional[float] = None
    read_only: bool = False
    value_names: tuple[ValueName, ...] = ()
    unit: str = ""
    string_value: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RegisterItem":
        names = data.get("valueNames") or []
        return cls(
            name=str(data.get("registerName") or ""),
            value=_opt_float(data.get("registerValue")),
            read_only=bool(data.get("isReadOnly", False)),
            value_names=tuple(ValueName.from_api(v) for v in names if isinstance(v, dict)),
            unit=str(data.get("unit") or ""),
            string_value=_opt_str(data.get("stringRegisterValue")),
        )


@dataclass(frozen=True)
class Event:
    """An alarm/event as returned by the events endpoint."""

    title: str
    severity: str = ""
    occurred_when: str = ""
    cleared_when: Optional[str] = None
    is_active: Optional[bool] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Event":
        return cls(
            title=str(data.get("eventTitle") or ""),
            severity=str(data.get("severity") or ""),
            occurred_when=str(data.get("occurredWhen") or ""),
            cleared_when=_opt_str(data.get("clearedWhen")),
            is_active=_opt_bool(data.get("isActive")),
        )


@dataclass(frozen=True)
class Installation:
    id: int
    name: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Installation":
        try:
            ident = int(data.get("id"))
        except (TypeError, ValueError, OverflowError):
            ident = 0
        return cls(id=ident, name=str(data.get("name") or ""))


@dataclass(frozen=True)
class InstallationInfo:
    name: str = ""
    model: str = ""
    profile_name: str = ""
    is_online: bool = False
    last_online: str = ""
    created_when: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InstallationInfo":
        profile = data.get("profile") if isinstance(data.get("profile"), dict) else {}
        return cls(
            name=str(data.get("name") or ""),
            model=str(data.get("model") or ""),
            profile_name=str(profile.get("name") or ""),
            is_online=bool(data.get("isOnline", False)),
            last_online=str(data.get("lastOnline") or ""),
            created_when=str(data.get("createdWhen") or ""),
        )


# Status summary JSON key -> InstallationStatus attribute
STATUS_FIELDS = {
    "indoorTemperature": "indoor_temperature",
    "hotWaterTemperature": "hot_water_temperature",
    "supplyLineTemperature": "supply_line_temperature",
    "desiredSupplyLineTemperature": "desired_supply_line_temperature",
    "bufferTankTemperature": "buffer_tank_temperature",
    "returnLineTemperature": "return_line_temperature",
    "brineOutTemperature": "brine_out_temperature",
    "brineInTemperature": "brine_in_temperature",
    "poolTemperature": "pool_temperature",
    "coolingTankTemperature": "cooling_tank_temperature",
    "coolingSupplyLineTemperature": "cooling_supply_line_temperature",
}


@dataclass(frozen=True)
class InstallationStatus:
    """The heat pump's own status summary. Every temperature may be missing."""

    indoor_temperature: Optional[float] = None
    hot_water_temperature: Optional[float] = None
    supply_line_temperature: Optional[float] = None
    desired_supply_line_temperature: Optional[float] = None
    buffer_tank_temperature: Optional[float] = None
    return_line_temperature: Optional[float] = None
    brine_out_temperature: Optional[float] = None
    brine_in_temperature: Optional[float] = None
    pool_temperature: Optional[float] = None
    cooling_tank_temperature: Optional[float] = None
    cooling_supply_line_temperature: Optional[float] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "InstallationStatus":
        return cls(**{attr: _opt_float(data.get(key)) for key, attr in STATUS_FIELDS.items()})


@dataclass(frozen=True)
class OperationMode:
    current: str = ""
    available: tuple[str, ...] = ()
    read_only: bool = False


@dataclass(frozen=True)
class StatusSet:
    """Decoded bitmask register: every visible label, and the ones whose bit is set."""

    available: tuple[str, ...] = ()
    running: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReadingSet:
    """
    Flat, immutable result of decoding one scrape's registers.

    Absent data is expressed by omission: missing temperatures/counters are not
    in the dicts, unknown switches are None, and empty tuples mean the status
    register was not reported.
    """

    temperatures: dict[str, float] = field(default_factory=dict)
    operation_mode: OperationMode = field(default_factory=OperationMode)
    operational_status: StatusSet = field(default_factory=StatusSet)
    current_operational_status: str = ""
    power_status: StatusSet = field(default_factory=StatusSet)
    hot_water_switch: Optional[bool] = None
    hot_water_boost: Optional[bool] = None
    operational_time_hours: dict[str, int] = field(default_factory=dict)
    active_alerts: tuple[str, ...] = ()
    archived_alerts: tuple[str, ...] = ()


@dataclass(frozen=True)
class HeatpumpSummary:
    """Everything one scrape produced for one installation."""

    heatpump_id: int
    heatpump_name: str
    heatpump_model: str
    online: bool
    last_online: str
    last_online_unix: int
    readings: ReadingSet
    errors: tuple[PartialDataError, ...] = ()


__all__ = [
    "Event",
    "HeatpumpSummary",
    "Installation",
    "InstallationInfo",
    "InstallationStatus",
    "OperationMode",
    "ReadingSet",
    "RegisterItem",
    "STATUS_FIELDS",
    "StatusSet",
    "ValueName",
]

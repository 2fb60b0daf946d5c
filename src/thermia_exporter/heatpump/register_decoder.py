#!/usr/bin/env python3
"""
Decoding layer for Thermia register groups.

Registers are generic records (name, optional numeric value, value-name table).
Different registers need different readings: scalar temperatures, enumerations
(operation mode), bitmasks (status flags), hour counters and on/off switches.
Register names differ between heat pump models, so most readings try a list of
candidate registers and take the first one that is present.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .models import InstallationStatus, OperationMode, RegisterItem, StatusSet

# Added before truncating so values like 4.99999 become 5.
TRUNCATE_EPSILON = 0.00001

# Indoor readings at or above this are sensor faults.
INDOOR_TEMPERATURE_LIMIT = 100.0

REG_OUTDOOR_TEMPERATURE = "REG_OUTDOOR_TEMPERATURE"
REG_OPER_DATA_OUTDOOR_TEMP_MA_SA = "REG_OPER_DATA_OUTDOOR_TEMP_MA_SA"
REG_INDOOR_TEMPERATURE = "REG_INDOOR_TEMPERATURE"
REG_SUPPLY_LINE = "REG_SUPPLY_LINE"
REG_DESIRED_SUPPLY_LINE_TEMP = "REG_DESIRED_SUPPLY_LINE_TEMP"
REG_DESIRED_SUPPLY_LINE = "REG_DESIRED_SUPPLY_LINE"
REG_DESIRED_SYS_SUPPLY_LINE_TEMP = "REG_DESIRED_SYS_SUPPLY_LINE_TEMP"
REG_RETURN_LINE = "REG_RETURN_LINE"
REG_OPER_DATA_RETURN = "REG_OPER_DATA_RETURN"
REG_OPER_DATA_BUFFER_TANK = "REG_OPER_DATA_BUFFER_TANK"
REG_BRINE_OUT = "REG_BRINE_OUT"
REG_BRINE_IN = "REG_BRINE_IN"
REG_ACTUAL_POOL_TEMP = "REG_ACTUAL_POOL_TEMP"
REG_COOL_SENSOR_TANK = "REG_COOL_SENSOR_TANK"
REG_COOL_SENSOR_SUPPLY = "REG_COOL_SENSOR_SUPPLY"

REG_OPERATIONMODE = "REG_OPERATIONMODE"
MODE_PREFIX = "REG_VALUE_OPERATION_MODE_"
VALUE_PREFIX = "REG_VALUE_"
COMP_VALUE_PREFIX = "COMP_VALUE_"

OPERATIONAL_STATUS_CANDIDATES = (
    "REG_OPERATIONAL_STATUS_PRIORITY_BITMASK",
    "COMP_STATUS",
    "COMP_STATUS_ATEC",
    "COMP_STATUS_ITEC",
)
POWER_STATUS_CANDIDATES = ("COMP_POWER_STATUS",)

REG_OPER_TIME_COMPRESSOR = "REG_OPER_TIME_COMPRESSOR"
REG_OPER_TIME_HEATING = "REG_OPER_TIME_HEATING"
REG_OPER_TIME_HOT_WATER = "REG_OPER_TIME_HOT_WATER"
REG_OPER_TIME_IMM1 = "REG_OPER_TIME_IMM1"
REG_OPER_TIME_IMM2 = "REG_OPER_TIME_IMM2"
REG_OPER_TIME_IMM3 = "REG_OPER_TIME_IMM3"

OPERATIONAL_TIME_REGISTERS = (
    REG_OPER_TIME_COMPRESSOR,
    REG_OPER_TIME_HEATING,
    REG_OPER_TIME_HOT_WATER,
    REG_OPER_TIME_IMM1,
    REG_OPER_TIME_IMM2,
    REG_OPER_TIME_IMM3,
)

REG_HOT_WATER_STATUS = "REG_HOT_WATER_STATUS"
# The double underscore is how the API spells it.
REG_HOT_WATER_BOOST = "REG__HOT_WATER_BOOST"


@dataclass(frozen=True)
class TemperatureSource:
    """
    Where one temperature reading comes from.

    Attributes:
        reading: Key in the decoded temperatures dict
        status_field: InstallationStatus attribute tried first, if any
        registers: Register names tried in order after the status field
    """

    reading: str
    status_field: Optional[str]
    registers: tuple[str, ...] = ()


TEMPERATURE_SOURCES: tuple[TemperatureSource, ...] = (
    TemperatureSource("indoor", "indoor_temperature", (REG_INDOOR_TEMPERATURE,)),
    TemperatureSource("outdoor", None, (REG_OUTDOOR_TEMPERATURE, REG_OPER_DATA_OUTDOOR_TEMP_MA_SA)),
    TemperatureSource("supply_line", "supply_line_temperature", (REG_SUPPLY_LINE,)),
    TemperatureSource(
        "desired_supply_line",
        "desired_supply_line_temperature",
        (REG_DESIRED_SUPPLY_LINE_TEMP, REG_DESIRED_SUPPLY_LINE, REG_DESIRED_SYS_SUPPLY_LINE_TEMP),
    ),
    TemperatureSource("return_line", "return_line_temperature", (REG_RETURN_LINE, REG_OPER_DATA_RETURN)),
    TemperatureSource("buffer_tank", "buffer_tank_temperature", (REG_OPER_DATA_BUFFER_TANK,)),
    TemperatureSource("hot_water", "hot_water_temperature"),
    TemperatureSource("brine_out", "brine_out_temperature", (REG_BRINE_OUT,)),
    TemperatureSource("brine_in", "brine_in_temperature", (REG_BRINE_IN,)),
    TemperatureSource("pool", "pool_temperature", (REG_ACTUAL_POOL_TEMP,)),
    TemperatureSource("cooling_tank", "cooling_tank_temperature", (REG_COOL_SENSOR_TANK,)),
    TemperatureSource("cooling_supply", "cooling_supply_line_temperature", (REG_COOL_SENSOR_SUPPLY,)),
)


def truncate(value: float) -> int:
    """Convert a register value to int: add a small epsilon, then truncate toward zero."""
    return int(value + TRUNCATE_EPSILON)


def round1(value: float) -> float:
    """
    Round to one decimal as `int(x * 10 + 0.5) / 10`.

    Half-up for positive values. For negative values the int() truncates toward
    zero after the offset, so -2.34 becomes -2.2. Values too large to scale
    are returned unchanged.
    """
    scaled = value * 10 + 0.5
    if math.isinf(scaled):
        return value
    return int(scaled) / 10


def find_value(items: Iterable[RegisterItem], register_name: str) -> Optional[float]:
    """Return the value of the first register with this name that has one."""
    for item in items:
        if item.name == register_name and item.value is not None:
            return item.value
    return None


def _first_register(items: Sequence[RegisterItem], candidates: Iterable[str]) -> Optional[RegisterItem]:
    for name in candidates:
        for item in items:
            if item.name == name:
                return item
    return None


def decode_temperatures(
    items: Sequence[RegisterItem],
    status: Optional[InstallationStatus] = None,
) -> dict[str, float]:
    """
    Build the temperatures dict from the status summary and the temperature registers.

    Each reading takes the first non-missing source from TEMPERATURE_SOURCES and
    is rounded to one decimal. Readings with no source are omitted, and so is
    an indoor reading at or above 100.
    """
    result: dict[str, float] = {}
    for source in TEMPERATURE_SOURCES:
        value: Optional[float] = None
        if status is not None and source.status_field is not None:
            value = getattr(status, source.status_field)
        for register_name in source.registers:
            if value is not None:
                break
            value = find_value(items, register_name)
        if value is None:
            continue
        if source.reading == "indoor" and value >= INDOOR_TEMPERATURE_LIMIT:
            continue
        result[source.reading] = round1(value)
    return result


def trim_mode(name: str) -> str:
    if name.startswith(MODE_PREFIX):
        name = name[len(MODE_PREFIX):]
    if name.startswith(VALUE_PREFIX):
        name = name[len(VALUE_PREFIX):]
    return name


def trim_status(name: str) -> str:
    for prefix in (VALUE_PREFIX, COMP_VALUE_PREFIX):
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def decode_operation_mode(items: Sequence[RegisterItem]) -> OperationMode:
    """
    Decode the REG_OPERATIONMODE enumeration.

    `available` lists the visible labels; `current` is the label whose code
    equals the truncated register value, or "" when there is none.
    """
    item = _first_register(items, (REG_OPERATIONMODE,))
    if item is None:
        return OperationMode()
    available = tuple(trim_mode(vn.name) for vn in item.value_names if vn.visible)
    current = ""
    if item.value is not None:
        code = truncate(item.value)
        for vn in item.value_names:
            if vn.value == code:
                current = trim_mode(vn.name)
                break
    return OperationMode(current=current, available=available, read_only=item.read_only)


def decode_bitmask(items: Sequence[RegisterItem], candidates: Iterable[str]) -> StatusSet:
    """
    Decode the first present candidate register as a bitmask.

    A visible label is running when its code shares a bit with the truncated
    register value. A register without a value still reports its labels.
    """
    item = _first_register(items, candidates)
    if item is None:
        return StatusSet()
    visible = [vn for vn in item.value_names if vn.visible]
    available = tuple(trim_status(vn.name) for vn in visible)
    if item.value is None:
        return StatusSet(available=available)
    bits = truncate(item.value)
    running = tuple(trim_status(vn.name) for vn in visible if bits & vn.value)
    return StatusSet(available=available, running=running)


def decode_operational_time(items: Sequence[RegisterItem]) -> dict[str, int]:
    """Hour counters keyed by register name; registers without a value are left out."""
    result: dict[str, int] = {}
    for name in OPERATIONAL_TIME_REGISTERS:
        value = find_value(items, name)
        if value is not None:
            result[name] = truncate(value)
    return result


def decode_hot_water_switches(items: Sequence[RegisterItem]) -> tuple[Optional[bool], Optional[bool]]:
    """Return (switch, boost); each is None when its register is missing or empty."""
    switch = find_value(items, REG_HOT_WATER_STATUS)
    boost = find_value(items, REG_HOT_WATER_BOOST)
    return (
        truncate(switch) != 0 if switch is not None else None,
        truncate(boost) != 0 if boost is not None else None,
    )


_TIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
)


def parse_time_to_unix(value: Optional[str]) -> int:
    """
    Convert an API timestamp to Unix seconds.

    Accepts ISO-8601 with or without fractional seconds (zone "Z" or an offset)
    and "YYYY-MM-DD HH:MM:SS", read as UTC. Returns 0 if nothing parses.
    """
    if not value:
        return 0
    for fmt in _TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp())
    return 0


def safe(value: Optional[str], fallback: str) -> str:
    """Return `value` stripped, or `fallback` when it is blank."""
    stripped = (value or "").strip()
    return stripped if stripped else fallback


__all__ = [
    "INDOOR_TEMPERATURE_LIMIT",
    "OPERATIONAL_STATUS_CANDIDATES",
    "OPERATIONAL_TIME_REGISTERS",
    "POWER_STATUS_CANDIDATES",
    "TEMPERATURE_SOURCES",
    "TemperatureSource",
    "decode_bitmask",
    "decode_hot_water_switches",
    "decode_operation_mode",
    "decode_operational_time",
    "decode_temperatures",
    "find_value",
    "parse_time_to_unix",
    "round1",
    "safe",
    "trim_mode",
    "trim_status",
    "truncate",
]

"""
imeiwatch/parsers/battery_parser.py
Battery telemetry from the tracker's "Self Check Param" diagnostic string.

Example input:
  "ver:V1.2.3;csq:24;vBat=3775mV(40%);gps:ok"

extract_battery() never derives a percentage. When the device did not
report one, callers use resolve_percentage(), which applies the voltage
table below.
"""

import re
from typing import Any, List, Mapping, Optional, Tuple

from imeiwatch.models.record import BatteryInfo

VBAT_PATTERN = re.compile(r'vBat=(\d+)mV(?:\((\d+)%\))?')

# Coarse Li-ion discharge curve. Descending, inclusive, first match wins.
VOLTAGE_TABLE: List[Tuple[float, int]] = [
    (4.2, 100),
    (4.0, 80),
    (3.8, 60),
    (3.6, 40),
    (3.4, 20),
]

SELF_CHECK_KEYS = ('selfCheckParam', 'SelfCheckParam', 'Self Check Param')
BATTERY_KEYS    = ('bat', 'battery')


def extract_battery(text: Any) -> Optional[BatteryInfo]:
    """Return voltage (V) and reported percentage, or None if vBat is absent."""
    if not isinstance(text, str):
        return None
    match = VBAT_PATTERN.search(text)
    if not match:
        return None
    voltage = int(match.group(1)) / 1000
    percentage = int(match.group(2)) if match.group(2) else None
    return BatteryInfo(voltage_volts=voltage, percentage=percentage)


def percentage_from_voltage(voltage: float) -> int:
    for floor, pct in VOLTAGE_TABLE:
        if voltage >= floor:
            return pct
    return 0


def resolve_percentage(info: BatteryInfo) -> Optional[int]:
    """Reported percentage if present, else derived from voltage."""
    if info.percentage is not None:
        return info.percentage
    if info.voltage_volts is None:
        return None
    return percentage_from_voltage(info.voltage_volts)


def battery_level_color(percentage: int) -> str:
    if percentage >= 80:
        return 'green'
    if percentage >= 40:
        return 'amber'
    return 'red'


def split_self_check(text: Any) -> List[Tuple[str, str]]:
    """
    Split a self-check string into (label, value) pairs.
    Items are ';'-separated; each splits at its first ':' only, so values
    may contain ':' themselves (timestamps, MACs).
    """
    if not isinstance(text, str):
        return []
    items: List[Tuple[str, str]] = []
    for item in text.split(';'):
        if not item.strip():
            continue
        label, _, value = item.partition(':')
        items.append((label.strip(), value.strip()))
    return items


def find_self_check(details: Mapping[str, Any]) -> Optional[str]:
    for key in SELF_CHECK_KEYS:
        value = details.get(key)
        if value:
            return value
    return None


def battery_for_details(details: Mapping[str, Any]) -> Optional[BatteryInfo]:
    """
    Battery for a device detail payload.
    Prefers vBat from the self-check string; falls back to a numeric
    bat/battery field read as volts with no percentage.
    """
    if not details:
        return None
    info = extract_battery(find_self_check(details))
    if info:
        return info
    for key in BATTERY_KEYS:
        value = details.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return BatteryInfo(voltage_volts=float(value))
    return None

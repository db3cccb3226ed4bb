"""
imeiwatch/models/record.py
Shared dataclass schema. Parsers, classifier, aggregators and exporters
all use these types. Do not add logic here — data only.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


class DisplayBucket(str, Enum):
    """Bucket a device is displayed in."""
    ONLINE      = 'Online'
    OBSERVATION = 'Em Observação'
    OFFLINE     = 'Offline'


# Report sheet labels, in workbook order
SHEET_ONLINE      = 'Online'
SHEET_OBSERVATION = 'Em Observação'
SHEET_OFFLINE     = 'Offline'
SHEET_MOVED       = 'Movido para Observação'
SHEET_NOT_FOUND   = 'Não Encontrados'

STATUS_NOT_FOUND  = 'Não encontrado'


@dataclass(frozen=True)
class DeviceRecord:
    """One IMEI resolved by the lookup service."""
    imei:                 str
    last_time:            Optional[str]         # raw UTC timestamp from the service
    days_offline:         Optional[int]         # None when the service omitted it
    moved_to_observation: bool                  = False   # one-way latch, set by reclassify()
    raw_details:          Mapping[str, Any]     = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class BatchResult:
    """Snapshot of one submitted batch at a given threshold."""
    devices:          Tuple[DeviceRecord, ...]
    not_found:        Tuple[str, ...]
    threshold:        int
    max_days_offline: int
    requested:        Tuple[str, ...]           = ()


@dataclass
class BatteryInfo:
    """Battery telemetry parsed from a self-check string."""
    voltage_volts: Optional[float]
    percentage:    Optional[int]                = None    # None → derive from voltage


@dataclass
class ExportRow:
    """Flat export row, one per device per sheet."""
    imei:          str
    original_time: str                          = ''
    local_time:    str                          = ''
    days_offline:  Optional[int]                = None
    status:        str                          = ''

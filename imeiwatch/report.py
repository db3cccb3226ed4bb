"""
imeiwatch/report.py
Structured report for one batch: dashboard statistics plus the
per-sheet export rows.

SHEETS (mutually exclusive, workbook order):
  Online                  days_offline == 0
  Em Observação           days_offline 1-2, regardless of threshold
  Offline                 2 < days_offline <= threshold, not latched
  Movido para Observação  latch set (days_offline > 2)
  Não Encontrados         IMEIs the lookup service did not return
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from imeiwatch.aggregators.status_aggregator import AggregateSummary, aggregate
from imeiwatch.errors import MissingDaysOffline
from imeiwatch.models.record import (
    BatchResult,
    DeviceRecord,
    ExportRow,
    SHEET_MOVED,
    SHEET_NOT_FOUND,
    SHEET_OBSERVATION,
    SHEET_OFFLINE,
    SHEET_ONLINE,
    STATUS_NOT_FOUND,
)
from imeiwatch.timefmt import to_brasilia

SHEET_ORDER = [SHEET_ONLINE, SHEET_OBSERVATION, SHEET_OFFLINE, SHEET_MOVED, SHEET_NOT_FOUND]

DEVICE_COLUMNS = ['IMEI', 'Horário Original', 'Horário Brasília', 'Dias Offline', 'Status']
NOT_FOUND_COLUMNS = ['IMEI', 'Status']


@dataclass
class Report:
    summary:      AggregateSummary
    sheets:       Dict[str, List[ExportRow]]
    generated_at: str
    version:      str
    requested:    List[str]             = field(default_factory=list)


def sheet_for(device: DeviceRecord, threshold: int) -> str:
    """Sheet a resolved device is exported on. Exactly one per device."""
    days = device.days_offline
    if days is None:
        raise MissingDaysOffline(device.imei)
    if days == 0:
        return SHEET_ONLINE
    if days <= 2:
        return SHEET_OBSERVATION
    if device.moved_to_observation or days > threshold:
        return SHEET_MOVED
    return SHEET_OFFLINE


def to_row(device: DeviceRecord, sheet: str) -> ExportRow:
    return ExportRow(
        imei          = device.imei,
        original_time = device.last_time or '',
        local_time    = to_brasilia(device.last_time),
        days_offline  = device.days_offline,
        status        = sheet,
    )


def project(batch: BatchResult) -> Dict[str, List[ExportRow]]:
    """Partition the batch into export sheets, keeping batch order in each."""
    sheets: Dict[str, List[ExportRow]] = {name: [] for name in SHEET_ORDER}
    for device in batch.devices:
        sheet = sheet_for(device, batch.threshold)
        sheets[sheet].append(to_row(device, sheet))
    for imei in batch.not_found:
        sheets[SHEET_NOT_FOUND].append(ExportRow(imei=imei, status=STATUS_NOT_FOUND))
    return sheets


def sheet_rows(name: str, rows: List[ExportRow]) -> List[Dict[str, Any]]:
    """Rows keyed by the workbook's column headers."""
    if name == SHEET_NOT_FOUND:
        return [{'IMEI': r.imei, 'Status': r.status} for r in rows]
    return [
        {
            'IMEI':             r.imei,
            'Horário Original': r.original_time,
            'Horário Brasília': r.local_time,
            'Dias Offline':     r.days_offline,
            'Status':           r.status,
        }
        for r in rows
    ]


def build_report(batch: BatchResult, version: str) -> Report:
    return Report(
        summary      = aggregate(batch),
        sheets       = project(batch),
        generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        version      = version,
        requested    = list(batch.requested),
    )


def report_to_dict(report: Report) -> Dict:
    """Convert Report to a JSON-serializable dict (for export)."""
    def _dataclass_to_dict(obj):
        if hasattr(obj, "__dataclass_fields__"):
            return {k: _dataclass_to_dict(getattr(obj, k)) for k in obj.__dataclass_fields__}
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, dict):
            return {k: _dataclass_to_dict(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple)):
            return [_dataclass_to_dict(x) for x in obj]
        return obj

    data = _dataclass_to_dict(report)
    data["sheets"] = {name: sheet_rows(name, rows) for name, rows in report.sheets.items()}
    return data

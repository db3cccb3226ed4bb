"""
imeiwatch/report_export.py
Workbook export for a batch report.

Output: JSON (primary) — metadata, statistics, one row list per sheet and
a SHA-256 hash of the content; CSV (secondary) — one file per sheet,
named after the workbook ("relatorio-equipamentos-<sheet>.csv").
"""

import csv
import hashlib
import json
import logging
import unicodedata
from pathlib import Path
from typing import Any, Dict, List, Optional

from imeiwatch.models.record import SHEET_NOT_FOUND
from imeiwatch.report import (
    DEVICE_COLUMNS,
    NOT_FOUND_COLUMNS,
    Report,
    report_to_dict,
    sheet_rows,
)

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = "1.0"
WORKBOOK_NAME = "relatorio-equipamentos"


def _build_export_payload(
    report: Report,
    batch_parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build export payload (no hash yet). Used for both JSON and dict output."""
    report_metadata = {
        "generated_at": report.generated_at,
        "version": report.version,
        "batch_parameters": dict(batch_parameters) if batch_parameters else {},
    }
    return {
        "export_format_version": EXPORT_FORMAT_VERSION,
        "report_metadata": report_metadata,
        "report": report_to_dict(report),
    }


def _content_hash(payload: Dict[str, Any]) -> str:
    """SHA-256 of canonical JSON serialization of payload (no hash field)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def export_to_dict(
    report: Report,
    batch_parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload = _build_export_payload(report, batch_parameters)
    return {**payload, "content_hash_sha256": _content_hash(payload)}


def export_to_json(
    report: Report,
    batch_parameters: Optional[Dict[str, Any]] = None,
    indent: Optional[int] = 2,
) -> str:
    return json.dumps(
        export_to_dict(report, batch_parameters),
        indent=indent,
        ensure_ascii=False,
    )


def sheet_filename(sheet: str) -> str:
    """'Movido para Observação' → 'relatorio-equipamentos-movido-para-observacao.csv'"""
    ascii_name = unicodedata.normalize("NFKD", sheet).encode("ascii", "ignore").decode()
    slug = "-".join(ascii_name.lower().split())
    return f"{WORKBOOK_NAME}-{slug}.csv"


def write_csv_sheets(report: Report, directory: Path) -> List[Path]:
    """
    Write one CSV per sheet (empty sheets get a header row only).
    UTF-8 with BOM so spreadsheet apps read the accents correctly.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    for name, rows in report.sheets.items():
        columns = NOT_FOUND_COLUMNS if name == SHEET_NOT_FOUND else DEVICE_COLUMNS
        path = directory / sheet_filename(name)
        with path.open("w", encoding="utf-8-sig", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            writer.writerows(sheet_rows(name, rows))
        written.append(path)
        logger.debug(f"Wrote {len(rows)} rows to {path.name}")

    logger.info(f"Exported {len(written)} sheets to {directory}")
    return written

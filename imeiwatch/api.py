"""
imeiwatch/api.py
─────────────────────────────────────────────────────────────────────────────
imeiwatch — Dual-mode API layer

TWO USAGE MODES:
  1. Importable module:
         from imeiwatch.api import StatusAPI
         api = StatusAPI(api_url="http://localhost:3001")
         summary = api.run_check("359000000000001\\n359000000000002")
         summary = api.set_threshold(7)

  2. FastAPI HTTP server (dashboard UI via fetch()):
         python -m imeiwatch.api                  # default: port 8766
         python -m imeiwatch.api --port 9000
         uvicorn imeiwatch.api:app --port 8766

ENDPOINTS:
  POST /check                  — validate → lookup → classify → summary
  PUT  /threshold              — reclassify the current batch
  GET  /summary                — statistics for the current batch
  GET  /devices                — current batch devices, optional ?bucket=
  GET  /devices/{imei}         — raw detail payload, grouped, with battery
  GET  /devices/{imei}/battery — battery telemetry only
  GET  /report                 — workbook export (JSON)
  GET  /config, POST /config   — config file
  GET  /health

STATE:
  One batch snapshot in memory. A new /check replaces it. Nothing is
  written to disk except the config file.

CORS: localhost-only.
"""

import argparse
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from imeiwatch import __version__
from imeiwatch.aggregators.status_aggregator import AggregateSummary, aggregate
from imeiwatch.classifier import classify_device, new_batch, reclassify, validate_threshold
from imeiwatch.errors import EmptyInput, InvalidFormat, LookupFailure, MissingDaysOffline
from imeiwatch.fields import CATEGORY_TITLES, group_fields
from imeiwatch.lookup.base import LookupClient, ProgressCallback
from imeiwatch.lookup.http_client import HttpLookupClient
from imeiwatch.models.record import BatchResult, DisplayBucket
from imeiwatch.parsers.battery_parser import (
    battery_for_details,
    battery_level_color,
    find_self_check,
    resolve_percentage,
    split_self_check,
)
from imeiwatch.parsers.imei_parser import parse_imeis
from imeiwatch.parsers.response_parser import parse_check_response
from imeiwatch.report import build_report
from imeiwatch.report_export import export_to_dict
from imeiwatch.timefmt import to_brasilia, to_china

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE CLASS
# ═══════════════════════════════════════════════════════════════════════════

class StatusAPI:
    """
    Pure-Python pipeline around a lookup backend.
    No HTTP layer required — import and call directly.

    Usage:
        api = StatusAPI(client=HttpLookupClient("http://localhost:3001"))
        summary = api.run_check(raw_text)
        summary = api.set_threshold(15)
        offline = api.get_devices(bucket="Offline")
        report  = api.get_report()
    """

    def __init__(
        self,
        client:      Optional[LookupClient] = None,
        api_url:     str                    = "http://localhost:3001",
        timeout_sec: int                    = 120,
    ):
        self.client = client or HttpLookupClient(base_url=api_url, timeout_sec=timeout_sec)
        self.batch: Optional[BatchResult] = None

    # ── PIPELINE ──────────────────────────────────────────────────────────

    def run_check(
        self,
        raw_imeis:   Union[str, List[str]],
        threshold:   Optional[int]              = None,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Validate, look up and classify a batch. Replaces the current batch.

        Raises EmptyInput, InvalidFormat or ValueError (bad threshold)
        before any request is sent; LookupFailure if the service fails,
        MissingDaysOffline if it returns a device without days offline.
        """
        if not isinstance(raw_imeis, str):
            raw_imeis = "\n".join(raw_imeis)
        imeis = parse_imeis(raw_imeis)
        if threshold is not None:
            validate_threshold(threshold)

        # Previous results are dropped as soon as a new submission starts
        self.batch = None

        logger.info(f"Batch check started | imeis={len(imeis)}")
        payload = self.client.check_devices(imeis, progress_cb=progress_cb)
        devices, not_found = parse_check_response(payload, imeis)

        self.batch = new_batch(devices, not_found, requested=imeis, threshold=threshold)
        summary = self.get_summary()
        logger.info(
            f"Batch check complete | resolved={len(devices)} "
            f"not_found={len(not_found)} threshold={self.batch.threshold}"
        )
        return summary

    def set_threshold(self, threshold: int) -> Optional[Dict[str, Any]]:
        """Reclassify the current batch. None if no batch was checked yet."""
        if self.batch is None:
            return None
        self.batch = reclassify(self.batch, threshold)
        return self.get_summary()

    # ── QUERIES ───────────────────────────────────────────────────────────

    def get_summary(self) -> Optional[Dict[str, Any]]:
        if self.batch is None:
            return None
        summary = summary_to_dict(aggregate(self.batch))
        summary["not_found"] = list(self.batch.not_found)
        return summary

    def get_devices(self, bucket: Optional[str] = None) -> Optional[List[Dict[str, Any]]]:
        """
        Devices of the current batch with their display bucket.
        bucket filters by DisplayBucket value ("Online", "Em Observação", "Offline").
        """
        if self.batch is None:
            return None
        if bucket is not None:
            bucket = DisplayBucket(bucket)
        rows = []
        for device in self.batch.devices:
            shown = classify_device(device, self.batch.threshold)
            if bucket is not None and shown != bucket:
                continue
            rows.append({
                "imei":                 device.imei,
                "last_time":            device.last_time,
                "local_time":           to_brasilia(device.last_time),
                "china_time":           to_china(device.last_time),
                "days_offline":         device.days_offline,
                "moved_to_observation": device.moved_to_observation,
                "bucket":               shown.value,
            })
        return rows

    def get_report(self, version: str = __version__) -> Optional[Dict[str, Any]]:
        if self.batch is None:
            return None
        report = build_report(self.batch, version=version)
        return export_to_dict(report, batch_parameters={"threshold": self.batch.threshold})

    def get_device_details(self, imei: str) -> Optional[Dict[str, Any]]:
        """
        Single-IMEI detail lookup, grouped for display.
        Returns None if the service has no details for this IMEI.
        """
        details = self.client.get_device_details(imei)
        if not details:
            return None
        groups = group_fields(details)
        return {
            "imei":       details.get("imei", imei),
            "raw":        details,
            "groups":     {
                name: {"title": CATEGORY_TITLES[name], "fields": fields}
                for name, fields in groups.items()
                if fields
            },
            "self_check": [
                {"label": label, "value": value}
                for label, value in split_self_check(find_self_check(details))
            ],
            "battery":    battery_to_dict(details),
        }

    def get_battery(self, imei: str) -> Optional[Dict[str, Any]]:
        details = self.client.get_device_details(imei)
        if not details:
            return None
        return battery_to_dict(details)


def summary_to_dict(summary: AggregateSummary) -> Dict[str, Any]:
    data = asdict(summary)
    data["histogram"] = [{"range": label, "count": n} for label, n in summary.histogram]
    data["trend"] = [{"days": days, "count": n} for days, n in summary.trend]
    return data


def battery_to_dict(details: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    info = battery_for_details(details)
    if info is None:
        return None
    pct = resolve_percentage(info)
    return {
        "voltage_volts":       info.voltage_volts,
        "reported_percentage": info.percentage,
        "percentage":          pct,
        "color":               battery_level_color(pct) if pct is not None else None,
    }


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class CheckRequest(BaseModel):
    imeis:     Union[str, List[str]]
    threshold: Optional[int] = Field(default=None, ge=0)


class ThresholdRequest(BaseModel):
    threshold: int = Field(ge=0)


def _build_app(
    status_api:   Optional[StatusAPI]         = None,
    project_root: Optional[Path]              = None,
) -> FastAPI:
    """Build and return the FastAPI application instance."""
    from imeiwatch.config import ensure_config, load_config, save_config

    if status_api is None:
        cfg = ensure_config(project_root)
        status_api = StatusAPI(api_url=cfg["api_url"], timeout_sec=cfg["timeout_sec"])
    _api = status_api

    _app = FastAPI(
        title       = "imeiwatch API",
        description = "IMEI connectivity status — batch check, thresholds, export",
        version     = __version__,
        docs_url    = "/docs",
        redoc_url   = None,
    )

    _app.add_middleware(
        CORSMiddleware,
        allow_origins     = [
            "http://localhost",
            "http://localhost:3000",
            "http://localhost:8766",
            "http://127.0.0.1",
            "http://127.0.0.1:8766",
        ],
        allow_methods     = ["GET", "POST", "PUT", "OPTIONS"],
        allow_headers     = ["Content-Type"],
        allow_credentials = False,
    )

    def _no_batch() -> HTTPException:
        return HTTPException(status_code=404, detail="No batch checked yet — POST /check first.")

    # ── ENDPOINTS ───────────────────────────────────────────────────────

    @_app.post("/check", summary="Check a batch of IMEIs")
    def check(req: CheckRequest):
        """
        Validate the IMEIs, look them up and classify them.
        threshold defaults to the batch's maximum days offline.
        """
        threshold = req.threshold
        if threshold is None:
            threshold = load_config(project_root).get("default_threshold")
        try:
            return _api.run_check(req.imeis, threshold=threshold)
        except InvalidFormat as exc:
            raise HTTPException(status_code=400, detail={"error": str(exc), "invalid": exc.tokens})
        except EmptyInput as exc:
            raise HTTPException(status_code=400, detail={"error": str(exc), "invalid": []})
        except (LookupFailure, MissingDaysOffline) as exc:
            logger.error(f"Check endpoint lookup error: {exc}")
            raise HTTPException(status_code=502, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @_app.put("/threshold", summary="Change the offline threshold")
    def put_threshold(req: ThresholdRequest):
        try:
            data = _api.set_threshold(req.threshold)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        if data is None:
            raise _no_batch()
        return data

    @_app.get("/summary", summary="Statistics for the current batch")
    def get_summary():
        data = _api.get_summary()
        if data is None:
            raise _no_batch()
        return data

    @_app.get("/devices", summary="Devices in the current batch")
    def get_devices(
        bucket: Optional[str] = Query(None, description="Filter: Online, Em Observação, Offline"),
    ):
        try:
            data = _api.get_devices(bucket=bucket)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        if data is None:
            raise _no_batch()
        return {"count": len(data), "devices": data}

    @_app.get("/devices/{imei}", summary="Device details")
    def get_device(imei: str):
        try:
            data = _api.get_device_details(imei)
        except LookupFailure as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        if data is None:
            raise HTTPException(status_code=404, detail=f"Details not found for IMEI {imei}")
        return data

    @_app.get("/devices/{imei}/battery", summary="Device battery")
    def get_device_battery(imei: str):
        try:
            data = _api.get_battery(imei)
        except LookupFailure as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        if data is None:
            raise HTTPException(status_code=404, detail=f"No battery telemetry for IMEI {imei}")
        return data

    @_app.get("/report", summary="Workbook export")
    def get_report():
        data = _api.get_report()
        if data is None:
            raise _no_batch()
        return data

    @_app.get("/config", summary="Get config")
    def get_config():
        return {"config": load_config(project_root)}

    @_app.post("/config", summary="Save config")
    def save_config_endpoint(update: Dict[str, Any] = Body(default_factory=dict)):
        config = load_config(project_root)
        config.update(update or {})
        save_config(config, project_root)
        return {"status": "ok", "config": config}

    @_app.get("/health", summary="Health check")
    def health():
        return {
            "status":           "ok",
            "has_batch":        _api.batch is not None,
            "lookup_available": _api.client.is_available(),
            "version":          __version__,
        }

    return _app


# Module-level app instance, used by uvicorn imeiwatch.api:app
app = _build_app()


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT: python -m imeiwatch.api
# ═══════════════════════════════════════════════════════════════════════════

def main():
    import uvicorn
    from imeiwatch.config import ensure_config

    parser = argparse.ArgumentParser(
        prog        = "imeiwatch-api",
        description = "imeiwatch API Server",
    )
    parser.add_argument("--port",    type=int, default=8766,
                        help="Port to bind (default: 8766)")
    parser.add_argument("--host",    type=str, default="127.0.0.1",
                        help="Host to bind — DO NOT change to 0.0.0.0 on shared networks")
    parser.add_argument("--api-url", type=str, default=None,
                        help="Lookup service URL (default: from config)")
    args = parser.parse_args()

    logging.basicConfig(
        level   = logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    cfg = ensure_config()
    server_app = _build_app(StatusAPI(
        api_url     = args.api_url or cfg["api_url"],
        timeout_sec = cfg["timeout_sec"],
    ))

    print(f"""
+--------------------------------------------------+
|   imeiwatch API Server v{__version__:<25}|
+--------------------------------------------------+
|  Local:    http://{args.host}:{args.port}
|  Lookup:   {args.api_url or cfg["api_url"]}
|  Docs:     http://{args.host}:{args.port}/docs
+--------------------------------------------------+
""")

    uvicorn.run(
        server_app,
        host      = args.host,
        port      = args.port,
        log_level = "info",
    )


if __name__ == "__main__":
    main()

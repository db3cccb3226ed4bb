"""
imeiwatch/parsers/response_parser.py
Normalizes the lookup service's /api/check-devices response.

Response shape:
  {
    "devices": [
      {"imei": "...", "lastTime": "2024-01-01T12:00:00Z", "daysOffline": 3,
       "data": [{"imei": "...", "iccid": "...", "selfCheckParam": "..."}]},
      ...
    ],
    "rawData": [{...}, ...]
  }

The first element of a device's "data" list is its raw detail payload and
its "imei" (when present) wins over the top-level one. IMEIs the service
did not return are diffed against the request by the caller of
parse_check_response().
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from imeiwatch.errors import LookupFailure
from imeiwatch.models.record import DeviceRecord

logger = logging.getLogger(__name__)


def parse_device(entry: Mapping[str, Any]) -> DeviceRecord:
    """Build one DeviceRecord from a response entry."""
    if not isinstance(entry, Mapping):
        raise LookupFailure(f"Malformed device entry: {type(entry).__name__}")

    imei = entry.get('imei')
    details: Dict[str, Any] = {}
    data = entry.get('data')
    if isinstance(data, list) and data and isinstance(data[0], Mapping):
        details = dict(data[0])
        imei = details.get('imei') or imei

    if not imei:
        raise LookupFailure("Device entry without IMEI")

    return DeviceRecord(
        imei         = str(imei),
        last_time    = entry.get('lastTime') or None,
        days_offline = _parse_days(entry.get('daysOffline'), str(imei)),
        raw_details  = details,
    )


def parse_check_response(
    payload:   Mapping[str, Any],
    requested: List[str],
) -> Tuple[List[DeviceRecord], List[str]]:
    """
    Split a lookup response into resolved devices and unresolved IMEIs.

    Resolved devices keep the service's order. Unresolved IMEIs keep the
    request order, once per occurrence.
    """
    if not isinstance(payload, Mapping):
        raise LookupFailure("Lookup response is not a JSON object")
    entries = payload.get('devices') or []
    if not isinstance(entries, list):
        raise LookupFailure("Lookup response 'devices' is not a list")

    devices = [parse_device(e) for e in entries]
    resolved = {d.imei for d in devices}
    not_found = [imei for imei in requested if imei not in resolved]

    logger.info(f"Lookup resolved {len(devices)} devices, {len(not_found)} not found")
    return devices, not_found


def parse_detail_response(payload: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Raw, unprojected payload of a single-IMEI lookup: rawData[0], else
    the first device's data[0].
    """
    if not isinstance(payload, Mapping):
        return None
    raw = payload.get('rawData')
    if isinstance(raw, list) and raw and isinstance(raw[0], Mapping):
        return dict(raw[0])
    devices = payload.get('devices')
    if isinstance(devices, list) and devices and isinstance(devices[0], Mapping):
        data = devices[0].get('data')
        if isinstance(data, list) and data and isinstance(data[0], Mapping):
            return dict(data[0])
    return None


def _parse_days(value: Any, imei: str) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise LookupFailure(f"Invalid daysOffline for {imei}: {value!r}")
    # int(inf) and float() of a huge integer raise OverflowError
    try:
        days = int(value)
        exact = days == float(value)
    except (TypeError, ValueError, OverflowError):
        raise LookupFailure(f"Invalid daysOffline for {imei}: {value!r}")
    if days < 0 or not exact:
        raise LookupFailure(f"Invalid daysOffline for {imei}: {value!r}")
    return days

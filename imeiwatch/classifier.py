"""
imeiwatch/classifier.py
Status classification and threshold reclassification.

RULES (evaluated in order):
  days_offline == 0                → Online
  days_offline in (1, 2)           → Em Observação  (still settling, any threshold)
  moved_to_observation latch set   → Em Observação
  days_offline > threshold         → Em Observação  (reclassify() sets the latch)
  otherwise (2 < days <= threshold)→ Offline

THE LATCH:
  The threshold is the visibility window for "truly offline" devices.
  Devices staler than it are demoted to observation and stay there for
  the rest of the batch, even if the threshold is raised again later.
  reclassify() is the only place that sets it and nothing clears it.
"""

import logging
from dataclasses import replace
from typing import Iterable, List, Optional

from imeiwatch.errors import MissingDaysOffline
from imeiwatch.models.record import BatchResult, DeviceRecord, DisplayBucket

logger = logging.getLogger(__name__)


def classify(
    days_offline:         int,
    threshold_days:       int,
    moved_to_observation: bool = False,
) -> DisplayBucket:
    if days_offline == 0:
        return DisplayBucket.ONLINE
    if days_offline in (1, 2):
        return DisplayBucket.OBSERVATION
    if moved_to_observation:
        return DisplayBucket.OBSERVATION
    if days_offline > threshold_days:
        return DisplayBucket.OBSERVATION
    return DisplayBucket.OFFLINE


def classify_device(device: DeviceRecord, threshold_days: int) -> DisplayBucket:
    """Bucket for a resolved device. Rejects records without days_offline."""
    if device.days_offline is None:
        raise MissingDaysOffline(device.imei)
    return classify(device.days_offline, threshold_days, device.moved_to_observation)


def max_days_offline(devices: Iterable[DeviceRecord]) -> int:
    """Upper bound for the threshold control. Missing values count as 0."""
    return max((d.days_offline or 0 for d in devices), default=0)


def new_batch(
    devices:   List[DeviceRecord],
    not_found: List[str],
    requested: Optional[List[str]] = None,
    threshold: Optional[int]       = None,
) -> BatchResult:
    """
    Build a batch from a fresh lookup and run the initial pass.

    Without an explicit threshold the batch starts at its own maximum,
    so nothing is latched until the caller narrows the window.
    Raises MissingDaysOffline if a resolved device has no days_offline.
    """
    for device in devices:
        if device.days_offline is None:
            logger.error("Rejecting batch: device without days offline")
            raise MissingDaysOffline(device.imei)

    bound = max_days_offline(devices)
    batch = BatchResult(
        devices          = tuple(devices),
        not_found        = tuple(not_found),
        threshold        = bound,
        max_days_offline = bound,
        requested        = tuple(requested or ()),
    )
    return reclassify(batch, bound if threshold is None else threshold)


def validate_threshold(threshold: int) -> int:
    """Raises ValueError unless threshold is a non-negative int (bool excluded)."""
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise ValueError(f"Threshold must be an integer number of days: {threshold!r}")
    if threshold < 0:
        raise ValueError(f"Threshold must be >= 0: {threshold}")
    return threshold


def reclassify(batch: BatchResult, threshold: int) -> BatchResult:
    """
    Apply a new threshold to a batch.

    Every device with days_offline > threshold gets the latch; latched
    devices keep it. Returns a new BatchResult and leaves the input,
    including raw_details, untouched.

    Thresholds above batch.max_days_offline are accepted and latch
    nothing; the dashboard control stops at the maximum, but a threshold
    chosen before the lookup (CLI, config default) may exceed it.
    """
    validate_threshold(threshold)

    devices: List[DeviceRecord] = []
    newly_moved = 0
    for device in batch.devices:
        if (not device.moved_to_observation
                and device.days_offline is not None
                and device.days_offline > threshold):
            device = replace(device, moved_to_observation=True)
            newly_moved += 1
        devices.append(device)

    if newly_moved:
        logger.info(f"Threshold {threshold}d moved {newly_moved} devices to observation")

    return replace(batch, devices=tuple(devices), threshold=threshold)

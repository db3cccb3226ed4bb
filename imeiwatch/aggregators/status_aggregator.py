"""
imeiwatch/aggregators/status_aggregator.py
Batch-level statistics for the status dashboard.

COUNTING SETS:
  status_counts — every resolved device, one bucket each (latched devices
                  count as Em Observação). Sums to the resolved count.
  histogram     — every resolved device by exact days offline. The
                  threshold only decides which bins are shown: a bin is
                  emitted when its lower bound <= threshold.
  trend         — devices with days_offline <= threshold, one point per
                  distinct value. A frequency distribution, not cumulative.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from imeiwatch.classifier import classify_device
from imeiwatch.models.record import BatchResult, DisplayBucket

logger = logging.getLogger(__name__)

# (label, lower, upper), inclusive; upper None means unbounded
HISTOGRAM_BINS: List[Tuple[str, int, Optional[int]]] = [
    ('0 dias',      0,  0),
    ('1-2 dias',    1,  2),
    ('3-7 dias',    3,  7),
    ('8-15 dias',   8,  15),
    ('16-30 dias',  16, 30),
    ('31-60 dias',  31, 60),
    ('60+ dias',    60, None),
]


@dataclass
class AggregateSummary:
    """Everything the dashboard charts need for one batch/threshold."""
    threshold:        int
    max_days_offline: int
    total_devices:    int
    visible_devices:  int                           # days_offline <= threshold
    not_found_count:  int
    status_counts:    Dict[str, int]                = field(default_factory=dict)
    histogram:        List[Tuple[str, int]]         = field(default_factory=list)
    trend:            List[Tuple[int, int]]         = field(default_factory=list)
    generated_at:     str                           = ''


def status_counts(batch: BatchResult) -> Dict[DisplayBucket, int]:
    counts = {bucket: 0 for bucket in DisplayBucket}
    for device in batch.devices:
        counts[classify_device(device, batch.threshold)] += 1
    return counts


def _in_bin(days: int, lower: int, upper: Optional[int]) -> bool:
    if upper is None:
        return days > lower
    return lower <= days <= upper


def histogram(batch: BatchResult) -> List[Tuple[str, int]]:
    days = [d.days_offline for d in batch.devices if d.days_offline is not None]
    return [
        (label, sum(1 for v in days if _in_bin(v, lower, upper)))
        for label, lower, upper in HISTOGRAM_BINS
        if lower <= batch.threshold
    ]


def trend(batch: BatchResult) -> List[Tuple[int, int]]:
    counter = Counter(
        d.days_offline for d in batch.devices
        if d.days_offline is not None and d.days_offline <= batch.threshold
    )
    return sorted(counter.items())


def visible_count(batch: BatchResult) -> int:
    return sum(
        1 for d in batch.devices
        if d.days_offline is not None and d.days_offline <= batch.threshold
    )


def aggregate(batch: BatchResult) -> AggregateSummary:
    counts = status_counts(batch)
    summary = AggregateSummary(
        threshold        = batch.threshold,
        max_days_offline = batch.max_days_offline,
        total_devices    = len(batch.devices),
        visible_devices  = visible_count(batch),
        not_found_count  = len(batch.not_found),
        status_counts    = {bucket.value: n for bucket, n in counts.items()},
        histogram        = histogram(batch),
        trend            = trend(batch),
        generated_at     = datetime.now(timezone.utc).isoformat(),
    )
    logger.debug(f"Aggregated {summary.total_devices} devices at {batch.threshold}d")
    return summary

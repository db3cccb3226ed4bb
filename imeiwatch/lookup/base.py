"""
imeiwatch/lookup/base.py
Abstract base class for device lookup backends.
To add a new backend: subclass LookupClient and implement the two calls.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from imeiwatch.parsers.response_parser import parse_detail_response

# progress_cb(bytes_done, bytes_total); total is 0 when unknown
ProgressCallback = Callable[[int, int], None]


class LookupClient(ABC):
    """
    All lookup backends implement this interface.
    The pipeline calls check_devices() once per batch and never knows
    which backend is running.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Returns True if the service is reachable."""
        ...

    @abstractmethod
    def check_devices(
        self,
        imeis:       List[str],
        progress_cb: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        One request/response exchange for the whole batch.
        Returns the decoded response body.
        Raises LookupFailure on transport, HTTP or decoding errors.
        No retries.
        """
        ...

    def get_device_details(self, imei: str) -> Optional[Dict[str, Any]]:
        """
        Single-IMEI lookup returning the raw, unprojected payload,
        or None if the service has nothing for this IMEI.
        """
        return parse_detail_response(self.check_devices([imei]))

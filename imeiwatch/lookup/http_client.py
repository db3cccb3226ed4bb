"""
imeiwatch/lookup/http_client.py
HTTP backend for the device tracking service.

  POST {base_url}/api/check-devices   body: {"imeis": [...]}

Progress is estimated from bytes transferred, not from resolved devices:
it says nothing about which IMEIs are done at a given percentage.
"""

import json
import logging
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional

from imeiwatch.errors import LookupFailure
from imeiwatch.lookup.base import LookupClient, ProgressCallback

logger = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024


class HttpLookupClient(LookupClient):

    def __init__(
        self,
        base_url:    str = 'http://localhost:3001',
        timeout_sec: int = 120,
    ):
        self.base_url    = base_url.rstrip('/')
        self.timeout_sec = timeout_sec

    # ── AVAILABILITY CHECK ───────────────────────────────────
    def is_available(self) -> bool:
        """Any HTTP answer counts; only connection errors mean unavailable."""
        try:
            req = urllib.request.Request(self.base_url + '/', method='GET')
            with urllib.request.urlopen(req, timeout=5):
                return True
        except urllib.error.HTTPError:
            return True
        except (urllib.error.URLError, OSError) as e:
            logger.warning(f"Lookup service not reachable at {self.base_url}: {e}")
            return False

    # ── BATCH LOOKUP ─────────────────────────────────────────
    def check_devices(
        self,
        imeis:       List[str],
        progress_cb: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:

        payload = json.dumps({'imeis': list(imeis)}).encode('utf-8')
        req = urllib.request.Request(
            f"{self.base_url}/api/check-devices",
            data    = payload,
            headers = {'Content-Type': 'application/json'},
            method  = 'POST',
        )
        logger.info(f"Checking {len(imeis)} IMEIs at {self.base_url}")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                total = int(resp.headers.get('Content-Length') or 0)
                raw   = self._read_body(resp, total, progress_cb)
        except urllib.error.HTTPError as e:
            raise LookupFailure(self._error_message(e), status_code=e.code) from e
        except urllib.error.URLError as e:
            logger.error(f"Lookup request failed: {e.reason}")
            raise LookupFailure(f"Lookup service unreachable: {e.reason}") from e
        except OSError as e:
            logger.error(f"Lookup request failed: {e}")
            raise LookupFailure(f"Lookup request failed: {e}") from e

        try:
            data = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"JSON decode failed in lookup response: {e}")
            raise LookupFailure("Lookup response is not valid JSON") from e

        if not isinstance(data, dict):
            raise LookupFailure("Lookup response is not a JSON object")
        return data

    # ── HELPERS ──────────────────────────────────────────────
    @staticmethod
    def _read_body(resp, total: int, progress_cb: Optional[ProgressCallback]) -> bytes:
        chunks: List[bytes] = []
        done = 0
        while True:
            chunk = resp.read(CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
            done += len(chunk)
            if progress_cb:
                progress_cb(done, total)
        return b''.join(chunks)

    @staticmethod
    def _error_message(err: urllib.error.HTTPError) -> str:
        """Surface the service's own {"error": "..."} when it sent one."""
        try:
            body = json.loads(err.read().decode('utf-8'))
            if isinstance(body, dict) and body.get('error'):
                return str(body['error'])
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            pass
        return f"Lookup service returned HTTP {err.code}"

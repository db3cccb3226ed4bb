"""
tests/test_lookup.py
HTTP lookup client. urlopen is mocked; no network access.
"""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from imeiwatch.errors import LookupFailure
from imeiwatch.lookup.http_client import CHUNK_SIZE, HttpLookupClient

IMEI_A = "111111111111111"
IMEI_B = "222222222222222"


def _response(body: bytes, content_length: bool = True) -> MagicMock:
    resp = MagicMock()
    resp.headers = {"Content-Length": str(len(body))} if content_length else {}
    resp.read = io.BytesIO(body).read
    cm = MagicMock()
    cm.__enter__.return_value = resp
    cm.__exit__.return_value = False
    return cm


def _http_error(code: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(
        "http://localhost:3001/api/check-devices", code, "error", {}, io.BytesIO(body),
    )


class TestCheckDevices:

    def test_posts_imeis_as_json(self):
        body = json.dumps({"devices": [{"imei": IMEI_A, "daysOffline": 0}]}).encode()
        with patch("urllib.request.urlopen", return_value=_response(body)) as mock_open:
            data = HttpLookupClient("http://tracker.local:3001/").check_devices([IMEI_A, IMEI_B])

        assert data["devices"][0]["imei"] == IMEI_A
        req = mock_open.call_args[0][0]
        assert req.full_url == "http://tracker.local:3001/api/check-devices"
        assert req.get_method() == "POST"
        assert json.loads(req.data) == {"imeis": [IMEI_A, IMEI_B]}
        assert mock_open.call_args[1]["timeout"] == 120

    def test_progress_reported_in_bytes(self):
        devices = [{"imei": f"{i:015d}", "daysOffline": i % 5} for i in range(2000)]
        body = json.dumps({"devices": devices}).encode()
        assert len(body) > CHUNK_SIZE
        calls = []
        with patch("urllib.request.urlopen", return_value=_response(body)):
            HttpLookupClient().check_devices([IMEI_A], progress_cb=lambda d, t: calls.append((d, t)))

        assert len(calls) >= 2
        assert calls[-1] == (len(body), len(body))
        assert [d for d, _ in calls] == sorted(d for d, _ in calls)

    def test_progress_total_zero_without_content_length(self):
        body = b'{"devices": []}'
        calls = []
        with patch("urllib.request.urlopen", return_value=_response(body, content_length=False)):
            HttpLookupClient().check_devices([IMEI_A], progress_cb=lambda d, t: calls.append((d, t)))
        assert calls == [(len(body), 0)]

    def test_http_error_uses_service_message(self):
        err = _http_error(500, b'{"error": "Erro ao consultar equipamentos"}')
        with patch("urllib.request.urlopen", side_effect=err):
            with pytest.raises(LookupFailure) as exc:
                HttpLookupClient().check_devices([IMEI_A])
        assert str(exc.value) == "Erro ao consultar equipamentos"
        assert exc.value.status_code == 500

    def test_http_error_without_body(self):
        with patch("urllib.request.urlopen", side_effect=_http_error(503, b"<html>")):
            with pytest.raises(LookupFailure) as exc:
                HttpLookupClient().check_devices([IMEI_A])
        assert "503" in str(exc.value)
        assert exc.value.status_code == 503

    def test_network_error(self):
        err = urllib.error.URLError("Connection refused")
        with patch("urllib.request.urlopen", side_effect=err):
            with pytest.raises(LookupFailure) as exc:
                HttpLookupClient().check_devices([IMEI_A])
        assert "Connection refused" in str(exc.value)
        assert exc.value.status_code is None

    def test_timeout(self):
        with patch("urllib.request.urlopen", side_effect=TimeoutError("timed out")):
            with pytest.raises(LookupFailure):
                HttpLookupClient(timeout_sec=1).check_devices([IMEI_A])

    def test_invalid_json(self):
        with patch("urllib.request.urlopen", return_value=_response(b"not json")):
            with pytest.raises(LookupFailure):
                HttpLookupClient().check_devices([IMEI_A])

    def test_non_object_json(self):
        with patch("urllib.request.urlopen", return_value=_response(b"[1, 2]")):
            with pytest.raises(LookupFailure):
                HttpLookupClient().check_devices([IMEI_A])


class TestDetailsAndAvailability:

    def test_get_device_details_returns_raw_data(self):
        body = json.dumps({
            "devices": [{"imei": IMEI_A, "daysOffline": 0}],
            "rawData": [{"imei": IMEI_A, "iccid": "8955"}],
        }).encode()
        with patch("urllib.request.urlopen", return_value=_response(body)) as mock_open:
            details = HttpLookupClient().get_device_details(IMEI_A)
        assert details == {"imei": IMEI_A, "iccid": "8955"}
        assert json.loads(mock_open.call_args[0][0].data) == {"imeis": [IMEI_A]}

    def test_get_device_details_none_when_empty(self):
        with patch("urllib.request.urlopen", return_value=_response(b'{"devices": []}')):
            assert HttpLookupClient().get_device_details(IMEI_A) is None

    def test_available(self):
        with patch("urllib.request.urlopen", return_value=_response(b"")):
            assert HttpLookupClient().is_available() is True

    def test_http_error_still_available(self):
        with patch("urllib.request.urlopen", side_effect=_http_error(404, b"")):
            assert HttpLookupClient().is_available() is True

    def test_unreachable(self):
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            assert HttpLookupClient().is_available() is False

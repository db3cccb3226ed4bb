"""
tests/test_api.py
StatusAPI pipeline and FastAPI endpoints, against a fake lookup backend.
"""

import pytest
from fastapi.testclient import TestClient

from imeiwatch.api import StatusAPI, _build_app
from imeiwatch.config import save_config, DEFAULT_CONFIG
from imeiwatch.errors import EmptyInput, InvalidFormat, LookupFailure, MissingDaysOffline
from imeiwatch.lookup.base import LookupClient

IMEI_A = "111111111111111"
IMEI_B = "222222222222222"
IMEI_C = "333333333333333"

SELF_CHECK = "ver:V2.1.7;csq:24;vBat=3775mV(40%)"


class FakeLookupClient(LookupClient):
    """Answers from a fixed payload and records every request."""

    def __init__(self, payload=None, error=None, available=True):
        self.payload = payload if payload is not None else {"devices": []}
        self.error = error
        self.available = available
        self.calls = []

    def is_available(self):
        return self.available

    def check_devices(self, imeis, progress_cb=None):
        self.calls.append(list(imeis))
        if self.error:
            raise self.error
        if progress_cb:
            progress_cb(10, 10)
        return self.payload


def _payload(*pairs, raw=None):
    payload = {"devices": [{"imei": imei, "lastTime": "2024-01-01T15:00:00Z", "daysOffline": days}
                           for imei, days in pairs]}
    if raw is not None:
        payload["rawData"] = raw
    return payload


# ── IMPORTABLE CLASS ─────────────────────────────────────────

class TestStatusAPI:

    def test_two_device_scenario(self):
        api = StatusAPI(client=FakeLookupClient(_payload((IMEI_A, 0), (IMEI_B, 5))))
        summary = api.run_check(f"{IMEI_A}\n{IMEI_B}", threshold=30)
        assert summary["status_counts"] == {"Online": 1, "Em Observação": 0, "Offline": 1}

        summary = api.set_threshold(3)
        assert summary["status_counts"] == {"Online": 1, "Em Observação": 1, "Offline": 0}
        assert api.batch.devices[1].moved_to_observation

        summary = api.set_threshold(30)
        assert summary["status_counts"]["Em Observação"] == 1

    def test_default_threshold_is_max(self):
        api = StatusAPI(client=FakeLookupClient(_payload((IMEI_A, 0), (IMEI_B, 12))))
        summary = api.run_check([IMEI_A, IMEI_B])
        assert summary["threshold"] == 12
        assert summary["max_days_offline"] == 12

    def test_not_found_listed(self):
        client = FakeLookupClient(_payload((IMEI_B, 0)))
        summary = StatusAPI(client=client).run_check(f"{IMEI_A},{IMEI_B},{IMEI_C}")
        assert summary["not_found"] == [IMEI_A, IMEI_C]
        assert summary["not_found_count"] == 2
        assert summary["total_devices"] == 1

    def test_summary_shapes(self):
        api = StatusAPI(client=FakeLookupClient(_payload((IMEI_A, 0), (IMEI_B, 4))))
        summary = api.run_check([IMEI_A, IMEI_B], threshold=4)
        assert summary["histogram"][0] == {"range": "0 dias", "count": 1}
        assert summary["trend"] == [{"days": 0, "count": 1}, {"days": 4, "count": 1}]

    def test_invalid_input_sends_no_request(self):
        client = FakeLookupClient()
        api = StatusAPI(client=client)
        with pytest.raises(InvalidFormat):
            api.run_check(f"{IMEI_A}\n123")
        with pytest.raises(EmptyInput):
            api.run_check("  \n ")
        assert client.calls == []

    def test_lookup_failure_clears_previous_batch(self):
        client = FakeLookupClient(_payload((IMEI_A, 0)))
        api = StatusAPI(client=client)
        api.run_check(IMEI_A)
        assert api.batch is not None

        client.error = LookupFailure("Erro ao consultar equipamentos", status_code=500)
        with pytest.raises(LookupFailure):
            api.run_check(IMEI_A)
        assert api.batch is None
        assert api.get_summary() is None

    def test_missing_days_offline_rejected(self):
        client = FakeLookupClient({"devices": [{"imei": IMEI_A}]})
        with pytest.raises(MissingDaysOffline):
            StatusAPI(client=client).run_check(IMEI_A)

    def test_progress_callback_forwarded(self):
        calls = []
        api = StatusAPI(client=FakeLookupClient(_payload((IMEI_A, 0))))
        api.run_check(IMEI_A, progress_cb=lambda d, t: calls.append((d, t)))
        assert calls == [(10, 10)]

    @pytest.mark.parametrize("bad", [-1, True, 2.5, "7"])
    def test_bad_threshold_rejected_before_lookup(self, bad):
        client = FakeLookupClient(_payload((IMEI_A, 0)))
        api = StatusAPI(client=client)
        api.run_check(IMEI_A)
        previous = api.batch
        client.calls.clear()

        with pytest.raises(ValueError):
            api.run_check(IMEI_A, threshold=bad)
        assert client.calls == []
        assert api.batch is previous

    def test_set_threshold_without_batch(self):
        assert StatusAPI(client=FakeLookupClient()).set_threshold(3) is None

    def test_get_devices_filter(self):
        api = StatusAPI(client=FakeLookupClient(_payload((IMEI_A, 0), (IMEI_B, 9), (IMEI_C, 4))))
        api.run_check([IMEI_A, IMEI_B, IMEI_C], threshold=5)
        offline = api.get_devices(bucket="Offline")
        assert [d["imei"] for d in offline] == [IMEI_C]
        observation = api.get_devices(bucket="Em Observação")
        assert observation[0]["moved_to_observation"] is True
        assert observation[0]["local_time"] == "2024-01-01 12:00:00"
        assert observation[0]["china_time"] == "2024-01-01 23:00:00"
        assert len(api.get_devices()) == 3
        with pytest.raises(ValueError):
            api.get_devices(bucket="Perdido")

    def test_report(self):
        api = StatusAPI(client=FakeLookupClient(_payload((IMEI_A, 0))))
        api.run_check(f"{IMEI_A}\n{IMEI_B}")
        report = api.get_report(version="9.9.9")
        assert report["report_metadata"]["version"] == "9.9.9"
        assert report["report_metadata"]["batch_parameters"] == {"threshold": 0}
        assert report["report"]["sheets"]["Não Encontrados"] == [
            {"IMEI": IMEI_B, "Status": "Não encontrado"},
        ]

    def test_device_details(self):
        raw = [{"imei": IMEI_A, "iccid": "8955", "csq": 24, "selfCheckParam": SELF_CHECK,
                "customField": "x"}]
        client = FakeLookupClient(_payload((IMEI_A, 0), raw=raw))
        details = StatusAPI(client=client).get_device_details(IMEI_A)

        assert client.calls == [[IMEI_A]]
        assert details["imei"] == IMEI_A
        assert details["groups"]["identificacao"]["fields"] == {"imei": IMEI_A, "iccid": "8955"}
        assert details["groups"]["outros"]["fields"] == {"customField": "x"}
        assert "gps" not in details["groups"]
        assert details["self_check"][0] == {"label": "ver", "value": "V2.1.7"}
        assert details["battery"] == {
            "voltage_volts":       pytest.approx(3.775),
            "reported_percentage": 40,
            "percentage":          40,
            "color":               "amber",
        }

    def test_device_details_not_found(self):
        api = StatusAPI(client=FakeLookupClient({"devices": [], "rawData": []}))
        assert api.get_device_details(IMEI_A) is None
        assert api.get_battery(IMEI_A) is None


# ── HTTP ENDPOINTS ───────────────────────────────────────────

@pytest.fixture
def fake_client():
    return FakeLookupClient(_payload((IMEI_A, 0), (IMEI_B, 5)))


@pytest.fixture
def http(fake_client, tmp_path):
    app = _build_app(status_api=StatusAPI(client=fake_client), project_root=tmp_path)
    return TestClient(app)


class TestEndpoints:

    def test_health(self, http, fake_client):
        r = http.get("/health")
        assert r.status_code == 200
        assert r.json()["has_batch"] is False
        assert r.json()["lookup_available"] is True

        fake_client.available = False
        assert http.get("/health").json()["lookup_available"] is False

    def test_no_batch_yet(self, http):
        assert http.get("/summary").status_code == 404
        assert http.get("/report").status_code == 404
        assert http.get("/devices").status_code == 404
        assert http.put("/threshold", json={"threshold": 3}).status_code == 404

    def test_check_then_threshold(self, http):
        r = http.post("/check", json={"imeis": f"{IMEI_A}\n{IMEI_B}", "threshold": 30})
        assert r.status_code == 200
        assert r.json()["status_counts"] == {"Online": 1, "Em Observação": 0, "Offline": 1}

        r = http.put("/threshold", json={"threshold": 3})
        assert r.status_code == 200
        assert r.json()["status_counts"] == {"Online": 1, "Em Observação": 1, "Offline": 0}

        assert http.get("/summary").json()["threshold"] == 3
        assert http.get("/health").json()["has_batch"] is True

    def test_check_accepts_list(self, http):
        r = http.post("/check", json={"imeis": [IMEI_A, IMEI_B]})
        assert r.status_code == 200
        assert r.json()["threshold"] == 5

    def test_check_uses_configured_default_threshold(self, http, tmp_path):
        save_config({**DEFAULT_CONFIG, "default_threshold": 4}, tmp_path)
        r = http.post("/check", json={"imeis": [IMEI_A, IMEI_B]})
        assert r.json()["threshold"] == 4
        assert r.json()["status_counts"]["Em Observação"] == 1

    def test_bad_configured_threshold_rejected_before_lookup(self, http, fake_client, tmp_path):
        save_config({**DEFAULT_CONFIG, "default_threshold": -3}, tmp_path)
        r = http.post("/check", json={"imeis": [IMEI_A, IMEI_B]})
        assert r.status_code == 400
        assert fake_client.calls == []

    def test_invalid_imeis(self, http, fake_client):
        r = http.post("/check", json={"imeis": f"{IMEI_A}\nabc\n12345"})
        assert r.status_code == 400
        assert r.json()["detail"]["invalid"] == ["abc", "12345"]
        assert fake_client.calls == []

    def test_empty_input(self, http):
        r = http.post("/check", json={"imeis": ""})
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "Please enter at least one IMEI"

    def test_negative_threshold_rejected(self, http):
        assert http.post("/check", json={"imeis": IMEI_A, "threshold": -1}).status_code == 422
        http.post("/check", json={"imeis": IMEI_A})
        assert http.put("/threshold", json={"threshold": -2}).status_code == 422

    def test_lookup_failure_is_bad_gateway(self, http, fake_client):
        fake_client.error = LookupFailure("Erro ao consultar equipamentos", status_code=500)
        r = http.post("/check", json={"imeis": IMEI_A})
        assert r.status_code == 502
        assert r.json()["detail"] == "Erro ao consultar equipamentos"

    def test_devices_and_bucket_filter(self, http):
        http.post("/check", json={"imeis": [IMEI_A, IMEI_B]})
        assert http.get("/devices").json()["count"] == 2
        r = http.get("/devices", params={"bucket": "Online"})
        assert [d["imei"] for d in r.json()["devices"]] == [IMEI_A]
        assert http.get("/devices", params={"bucket": "nope"}).status_code == 400

    def test_report_endpoint(self, http):
        http.post("/check", json={"imeis": [IMEI_A, IMEI_B, IMEI_C]})
        r = http.get("/report")
        assert r.status_code == 200
        body = r.json()
        assert len(body["content_hash_sha256"]) == 64
        assert body["report"]["sheets"]["Não Encontrados"][0]["IMEI"] == IMEI_C

    def test_device_details_endpoint(self, http, fake_client):
        fake_client.payload = _payload((IMEI_A, 0), raw=[{"imei": IMEI_A, "bat": 4.1}])
        r = http.get(f"/devices/{IMEI_A}")
        assert r.status_code == 200
        assert r.json()["battery"]["percentage"] == 80
        assert http.get(f"/devices/{IMEI_A}/battery").json()["color"] == "green"

    def test_device_details_missing(self, http, fake_client):
        fake_client.payload = {"devices": []}
        assert http.get(f"/devices/{IMEI_A}").status_code == 404
        assert http.get(f"/devices/{IMEI_A}/battery").status_code == 404

    def test_config_roundtrip(self, http, tmp_path):
        assert http.get("/config").json()["config"]["timeout_sec"] == 120
        r = http.post("/config", json={"default_threshold": 10})
        assert r.json()["config"]["default_threshold"] == 10
        assert (tmp_path / "imeiwatch_config.json").exists()
        assert http.get("/config").json()["config"]["default_threshold"] == 10

"""
HTTP API tests through FastAPI's TestClient.

The lifespan hook is not entered (no `with TestClient(...)`), so no
background refresher runs; recomputes are triggered explicitly.
"""

import uuid

import msgpack
import pytest
from fastapi.testclient import TestClient

from cheburcheck.config import INTERNAL_API_KEY
from cheburcheck.database import get_db
from cheburcheck.dependencies import get_whitelist_builder, get_whitelist_cache
from cheburcheck.main import app
from cheburcheck.models.db_models import HumanReportDB, ReportDB
from cheburcheck.services.consensus import WhitelistBuilder, WhitelistCache
from cheburcheck.services.registry import StaticTrustPolicy

from conftest import PRIMARY_TOKEN, VOLUNTEER_TOKEN

PROBE_ADDRESS = "198.51.100.10"
INTERNAL_HEADERS = {"X-Internal-Key": INTERNAL_API_KEY}


def agency_headers(token=PRIMARY_TOKEN, **extra):
    headers = {"Authorization": f"Bearer {token}", "X-Real-IP": PROBE_ADDRESS}
    headers.update(extra)
    return headers


def report_payload(data=None, **overrides):
    payload = {
        "version": "0.4.2",
        "config": {
            "http": False,
            "tx_junk": True,
            "ip": "5.78.7.195",
            "path": "/",
            "retry_count": 2,
            "timeout_secs": 5,
            "probe_count": 1000,
        },
        "data": data if data is not None else {"example.test": "Ok"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def cache():
    return WhitelistCache()


@pytest.fixture
def client(session_factory, reporters, cache):
    builder = WhitelistBuilder(session_factory, cache, trust_policy=StaticTrustPolicy([1]))

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_whitelist_cache] = lambda: cache
    app.dependency_overrides[get_whitelist_builder] = lambda: builder
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, data=None, token=PRIMARY_TOKEN):
    response = client.post("/agency/report", json=report_payload(data), headers=agency_headers(token))
    assert response.status_code == 200, response.text
    return response.json()["id"]


def recompute(client):
    response = client.post("/internal/whitelist/recompute", headers=INTERNAL_HEADERS)
    assert response.status_code == 200, response.text
    return response.json()


# =============================================================================
# AGENCY UPLOADS
# =============================================================================

class TestAgencyUpload:

    def test_json_upload(self, client, db):
        response = client.post("/agency/report", json=report_payload(), headers=agency_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True

        report = db.get(ReportDB, body["id"])
        assert report.reporter_ip == PROBE_ADDRESS
        assert report.version == "0.4.2"

    def test_msgpack_upload(self, client, db):
        response = client.post(
            "/agency/report",
            content=msgpack.packb(report_payload({"a.test": "Ok", "b.test": "Blocked"})),
            headers=agency_headers(**{"Content-Type": "application/msgpack"}),
        )

        assert response.status_code == 200
        assert len(db.get(ReportDB, response.json()["id"]).rows) == 2

    def test_positional_msgpack_upload(self, client, db):
        """The probe client's compact encoding: structs as arrays, IpAddr as {"V4": octets}."""
        body = msgpack.packb([
            "0.4.2",
            [False, True, {"V4": [5, 78, 7, 195]}, "/", 2, 5, 1000],
            {"a.test": "Ok", "b.test": "ConnectError"},
        ])
        response = client.post(
            "/agency/report",
            content=body,
            headers=agency_headers(**{"Content-Type": "application/msgpack"}),
        )

        assert response.status_code == 200, response.text
        report = db.get(ReportDB, response.json()["id"])
        assert report.ip == "5.78.7.195"
        assert report.probe_count == 1000
        assert report.tx_junk is True
        assert {r.domain for r in report.rows} == {"a.test", "b.test"}

    def test_positional_msgpack_indexed_outcomes(self, client, db):
        """Variants sent by index or as single-key maps decode to the same outcomes."""
        body = msgpack.packb([
            "0.4.2",
            [True, False, "5.78.7.195", "/probe", 0, 3, 10],
            {"a.test": 0, "b.test": {"Blocked": None}},
        ])
        response = client.post(
            "/agency/report",
            content=body,
            headers=agency_headers(**{"Content-Type": "application/msgpack"}),
        )

        assert response.status_code == 200, response.text
        outcomes = {r.domain: r.evidence.value for r in db.get(ReportDB, response.json()["id"]).rows}
        assert outcomes == {"a.test": "ok", "b.test": "blocked"}

    def test_positional_config_with_missing_fields(self, client, db):
        """A config array shorter than the field list is a 400."""
        body = msgpack.packb(["0.4.2", [False, True, "5.78.7.195"], {"a.test": "Ok"}])
        response = client.post(
            "/agency/report",
            content=body,
            headers=agency_headers(**{"Content-Type": "application/msgpack"}),
        )

        assert response.status_code == 400
        assert db.query(ReportDB).count() == 0

    def test_pair_list_upload(self, client):
        response = client.post(
            "/agency/report",
            json=report_payload([["a.test", "ok"], ["b.test", "blocked"]]),
            headers=agency_headers(),
        )
        assert response.status_code == 200

    def test_pair_list_with_repeated_domain(self, client, db):
        """Two outcomes for one domain in one report is a 400."""
        response = client.post(
            "/agency/report",
            json=report_payload([["a.test", "ok"], ["a.test", "blocked"]]),
            headers=agency_headers(),
        )

        assert response.status_code == 400
        assert db.query(ReportDB).count() == 0

    def test_forwarded_for_address(self, client, db):
        """The first X-Forwarded-For hop is the reporter address."""
        headers = {"Authorization": f"Bearer {PRIMARY_TOKEN}", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        response = client.post("/agency/report", json=report_payload(), headers=headers)

        assert response.status_code == 200
        assert db.get(ReportDB, response.json()["id"]).reporter_ip == "203.0.113.7"

    def test_unknown_token(self, client, db):
        response = client.post("/agency/report", json=report_payload(), headers=agency_headers("nope"))

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == 401
        assert db.query(ReportDB).count() == 0

    def test_missing_token(self, client):
        response = client.post("/agency/report", json=report_payload(), headers={"X-Real-IP": PROBE_ADDRESS})
        assert response.status_code == 401

    def test_malformed_body(self, client):
        response = client.post(
            "/agency/report",
            content=b"{not json",
            headers=agency_headers(**{"Content-Type": "application/json"}),
        )
        assert response.status_code == 400

    def test_malformed_body_with_unknown_token(self, client):
        """An unknown token wins over an undecodable body."""
        response = client.post(
            "/agency/report",
            content=b"{not json",
            headers=agency_headers("nope", **{"Content-Type": "application/json"}),
        )
        assert response.status_code == 401

    def test_missing_version(self, client):
        payload = report_payload()
        del payload["version"]
        response = client.post("/agency/report", json=payload, headers=agency_headers())
        assert response.status_code == 400

    def test_duplicate_evidence(self, client, db):
        response = client.post(
            "/agency/report",
            json=report_payload([["a.test", "ok"], ["a.test", "ok"]]),
            headers=agency_headers(),
        )

        assert response.status_code == 400
        assert "Duplicate" in response.json()["detail"]["info"]
        assert db.query(ReportDB).count() == 0

    def test_upload_does_not_refresh_whitelist(self, client, cache):
        upload(client)
        assert cache.current().version == 0


# =============================================================================
# WHITELIST
# =============================================================================

class TestWhitelistEndpoints:

    def test_recompute_then_read(self, client):
        upload(client, {"example.test": "Ok", "blocked.test": "Blocked"})
        result = recompute(client)

        assert result["task"] == "whitelist_recompute"
        assert result["status"] == "published"

        body = client.get("/whitelist").json()
        assert body["version"] == 1
        assert body["size"] == 1
        assert body["entries"][0]["domain"] == "example.test"
        assert body["entries"][0]["rank"] is None
        assert body["entries"][0]["last_ok"] is not None

    def test_volunteer_uploads_do_not_count(self, client):
        """Only trusted reporters feed the published whitelist."""
        upload(client, {"volunteer.test": "Ok"}, token=VOLUNTEER_TOKEN)
        recompute(client)
        assert client.get("/whitelist").json()["size"] == 0

    def test_check_covers_subdomains(self, client):
        upload(client, {"example.test": "Ok"})
        recompute(client)

        body = client.get("/whitelist/check", params={"domain": "cdn.example.test"}).json()
        assert body["whitelisted"] is True
        assert body["entry"]["domain"] == "example.test"

        body = client.get("/whitelist/check", params={"domain": "other.test"}).json()
        assert body == {"domain": "other.test", "whitelisted": False, "entry": None}

    def test_csv_exports(self, client):
        upload(client, {"example.test": "Ok"})
        recompute(client)

        full = client.get("/whitelist/full.csv")
        assert full.status_code == 200
        assert full.headers["content-type"].startswith("text/csv")
        assert "max-age" in full.headers["cache-control"]
        assert full.text.splitlines()[0] == "domain,rank,last_ok"

        assert client.get("/whitelist/domains.csv").text == "example.test\n"
        assert client.get("/whitelist/other.csv").status_code == 404

    def test_histogram(self, client):
        upload(client, {"example.test": "Ok", "bbc.co.uk": "Ok"})
        client.put(
            "/internal/ranks",
            json={"ranks": [{"domain": "example.test", "rank": 3}, {"domain": "bbc.co.uk", "rank": 5}]},
            headers=INTERNAL_HEADERS,
        )
        recompute(client)

        bins = client.get("/whitelist/histogram", params={"limit": 100}).json()
        assert len(bins) == 50
        assert sum(b["count"] for b in bins) == 2

        filtered = client.get("/whitelist/histogram", params={"limit": 100, "filter": "true"}).json()
        assert sum(b["count"] for b in filtered) == 1


# =============================================================================
# INTERNAL
# =============================================================================

class TestInternalEndpoints:

    def test_internal_key_required(self, client):
        assert client.post("/internal/whitelist/recompute").status_code == 403
        assert client.post(
            "/internal/whitelist/recompute", headers={"X-Internal-Key": "wrong"}
        ).status_code == 403

    def test_status(self, client):
        upload(client)
        recompute(client)

        body = client.get("/internal/whitelist/status", headers=INTERNAL_HEADERS).json()
        assert body["version"] == 1
        assert body["size"] == 1
        assert body["running"] is False
        assert body["last_result"]["status"] == "published"

    def test_rank_upsert_applies_on_recompute(self, client):
        """Rank changes show up on the next recompute, not immediately."""
        upload(client, {"example.test": "Ok"})

        response = client.put(
            "/internal/ranks",
            json={"ranks": [{"domain": "example.test", "rank": 4}]},
            headers=INTERNAL_HEADERS,
        )
        assert response.json() == {"task": "rank_upsert", "updated": 1}
        assert client.get("/whitelist").json()["size"] == 0

        recompute(client)
        assert client.get("/whitelist").json()["entries"][0]["rank"] == 4

    def test_delete_report(self, client, db):
        report_id = upload(client, {"a.test": "Ok", "b.test": "Blocked"})

        response = client.delete(f"/internal/reports/{report_id}", headers=INTERNAL_HEADERS)
        assert response.status_code == 200
        assert response.json()["cascade"] == {"reports": 1, "report_rows": 2}

        assert client.delete(f"/internal/reports/{report_id}", headers=INTERNAL_HEADERS).status_code == 404


# =============================================================================
# QUERIES & FEEDBACK
# =============================================================================

class TestQueryLog:

    def test_query_then_feedback(self, client, db):
        response = client.post(
            "/queries",
            json={"query": "example.test", "resolved_ips": ["93.184.216.34"]},
            headers={"X-Real-IP": "192.0.2.5"},
        )
        assert response.status_code == 200
        query_id = response.json()["id"]

        response = client.post(f"/feedback/{query_id}/true", headers={"X-Real-IP": "192.0.2.5"})
        assert response.json() == {"message": "Feedback recorded"}

        client.post(f"/feedback/{query_id}/false", headers={"X-Real-IP": "192.0.2.5"})
        db.expire_all()
        assert db.get(HumanReportDB, query_id).works is False

    def test_feedback_invalid_id(self, client):
        assert client.post("/feedback/not-a-uuid/true").status_code == 400

    def test_feedback_unknown_query(self, client):
        assert client.post(f"/feedback/{uuid.uuid4()}/true").status_code == 404


class TestServiceInfo:

    def test_root_and_health(self, client):
        assert client.get("/").json()["name"] == "Cheburcheck"
        assert client.get("/healthcheck").json()["status"] == "healthy"

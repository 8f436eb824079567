import base64
import logging

import pytest
import requests

from packages.config.settings import BackendSettings
from packages.contrast.client import ContrastClient
from packages.contrast.findings import collect_findings
from packages.schema.errors import AppNotFound, BackendUnavailable, MarkFailed, TraceNotFound

BASE = "https://app.contrastsecurity.com/Contrast/api/ng/org-1"


def _settings(**overrides) -> BackendSettings:
    data = {
        "api_key": "api-key",
        "service_key": "svc-key",
        "org_id": "org-1",
        "app_name": "WebGoat",
        "user_name": "bot@example.com",
    }
    data.update(overrides)
    return BackendSettings(**data)


def _client(session) -> ContrastClient:
    return ContrastClient(_settings(), session=session)


def test_request_headers(session):
    _client(session)

    assert session.headers["API-Key"] == "api-key"
    decoded = base64.urlsafe_b64decode(session.headers["Authorization"]).decode()
    assert decoded == "bot@example.com:svc-key"
    assert session.headers["Accept"] == "application/json"


def test_resolve_app_id_by_exact_name(session, response):
    session.route(
        "GET",
        "applications/filter",
        response(200, {"applications": [{"name": "WebGoat2", "app_id": "a-2"}, {"name": "WebGoat", "app_id": "a-1"}]}),
    )

    assert _client(session).resolve_app_id("WebGoat") == "a-1"
    assert session.calls[0]["url"] == f"{BASE}/applications/filter"
    assert session.calls[0]["params"] == {"sort": "appName"}


def test_resolve_app_id_missing(session, response):
    session.route("GET", "applications/filter", response(200, {"applications": []}))

    with pytest.raises(AppNotFound):
        _client(session).resolve_app_id("WebGoat")


def test_resolve_server_id(session, response):
    session.route(
        "GET",
        "applications/a-1/servers",
        response(200, {"servers": [{"name": "web1", "server_id": 11}, {"name": "web2", "server_id": 22}]}),
    )
    client = _client(session)

    assert client.resolve_server_id("a-1", "web2") == "22"
    assert client.resolve_server_id("a-1", "web9") is None


def test_library_queries_carry_quick_filter_and_options(session, response):
    lib = {"file_name": "log4j-1.2.17.jar", "hash": "h1", "grade": "F", "total_vulnerabilities": 3, "extra": 1}
    session.route("GET", "applications/a-1/libraries/filter", response(200, {"libraries": [lib]}))
    client = _client(session)

    libs = client.list_vulnerable_libraries("a-1", {"servers": "11,22"})
    client.list_stale_libraries("a-1")

    assert libs[0].file_name == "log4j-1.2.17.jar"
    assert session.calls[0]["params"] == {"quickFilter": "VULNERABLE", "servers": "11,22"}
    assert session.calls[1]["params"] == {"quickFilter": "STALE"}


def test_traces_fetched_as_ids_then_details(session, response):
    session.route("GET", "traces/a-1/ids", response(200, {"traces": ["t-1", "t-2"]}))
    session.route(
        "GET",
        "traces/a-1/trace/t-1",
        response(200, {"trace": {"uuid": "t-1", "title": "XSS", "status": "Reported", "severity": "High"}}),
    )
    session.route(
        "GET",
        "traces/a-1/trace/t-2",
        response(200, {"trace": {"uuid": "t-2", "title": "SQLi", "status": "Confirmed", "severity": "Critical"}}),
    )

    traces = _client(session).list_traces("a-1", {"servers": "11"})

    assert [t.uuid for t in traces] == ["t-1", "t-2"]
    assert session.calls[0]["params"] == {"servers": "11"}


def test_missing_trace(session, response):
    session.route("GET", "traces/a-1/trace/t-9", response(404, {}))

    with pytest.raises(TraceNotFound):
        _client(session).trace_details("a-1", "t-9")


def test_trace_gone_between_listing_and_detail_is_skipped(session, response, caplog):
    session.route("GET", "traces/a-1/ids", response(200, {"traces": ["t-1", "gone", "t-3"]}))
    session.route("GET", "traces/a-1/trace/t-1", response(200, {"trace": {"uuid": "t-1", "title": "XSS"}}))
    session.route("GET", "traces/a-1/trace/gone", response(404, {}))
    session.route("GET", "traces/a-1/trace/t-3", response(200, {"trace": {"uuid": "t-3", "title": "SQLi"}}))

    with caplog.at_level(logging.WARNING):
        traces = _client(session).list_traces("a-1")

    assert [t.uuid for t in traces] == ["t-1", "t-3"]
    assert "Trace 'gone' not found" in caplog.text


def test_null_fields_in_backend_payload(session, response):
    session.route(
        "GET",
        "traces/a-1/trace/t-1",
        response(200, {"trace": {"uuid": "t-1", "title": None, "status": None, "severity": None}}),
    )
    session.route(
        "GET",
        "applications/a-1/libraries/filter",
        response(
            200,
            {
                "libraries": [
                    {
                        "file_name": "left-pad.js",
                        "file_version": None,
                        "latest_version": None,
                        "hash": "h1",
                        "grade": None,
                        "total_vulnerabilities": None,
                    }
                ]
            },
        ),
    )
    client = _client(session)

    trace = client.trace_details("a-1", "t-1")
    (library,) = client.list_stale_libraries("a-1")

    assert (trace.title, trace.status, trace.severity) == ("", "", "Note")
    assert (library.latest_version, library.grade, library.total_vulnerabilities) == ("", "", 0)


def test_backend_outage(session):
    session.route("GET", "applications/filter", requests.ConnectionError("down"))

    with pytest.raises(BackendUnavailable):
        _client(session).resolve_app_id("WebGoat")


def test_mark_trace_payload(session, response):
    session.route("PUT", "traces/a-1/mark", response(200, {"success": True}))

    _client(session).mark_trace("a-1", "t-1", "Remediated", note="Resolved in SEC-1")

    call = session.calls[0]
    assert call["url"] == f"{BASE}/traces/a-1/mark"
    assert call["json"]["status"] == "Remediated"
    assert call["json"]["traces"] == ["t-1"]
    assert call["json"]["note"] == "Resolved in SEC-1"


@pytest.mark.parametrize("outcome", [requests.Timeout("slow"), "http-error"])
def test_mark_trace_failure(session, response, outcome):
    session.route("PUT", "traces/a-1/mark", response(400, {}) if outcome == "http-error" else outcome)

    with pytest.raises(MarkFailed) as excinfo:
        _client(session).mark_trace("a-1", "t-1", "Remediated")
    assert excinfo.value.trace_id == "t-1"


def test_collect_findings_translates_libraries_and_traces(session, response):
    session.route("GET", "applications/filter", response(200, {"applications": [{"name": "WebGoat", "app_id": "a-1"}]}))
    session.route("GET", "applications/a-1/servers", response(200, {"servers": [{"name": "web1", "server_id": 11}]}))
    session.route(
        "GET",
        "applications/a-1/libraries/filter",
        response(
            200,
            {
                "libraries": [
                    {
                        "file_name": "log4j-1.2.17.jar",
                        "file_version": "1.2.17",
                        "latest_version": "2.17.1",
                        "hash": "h1",
                        "grade": "F",
                        "total_vulnerabilities": 1,
                    }
                ]
            },
        ),
        response(200, {"libraries": []}),
    )
    session.route("GET", "traces/a-1/ids", response(200, {"traces": ["t-1"]}))
    session.route(
        "GET",
        "traces/a-1/trace/t-1",
        response(200, {"trace": {"uuid": "t-1", "title": "XSS", "status": "Reported", "severity": "Medium"}}),
    )

    findings = collect_findings(_client(session), "WebGoat", "servers=web1")

    assert [f.fingerprint for f in findings] == ["h1", "t-1"]
    lib, trace = findings
    assert lib.description == "log4j-1.2.17.jar has 1 known security vulnerability."
    assert lib.detail.startswith("log4j-1.2.17.jar is currently rated F. ")
    assert lib.severity == "High"
    assert trace.detail.endswith("#/org-1/applications/a-1/vulns/t-1")
    assert trace.severity == "Medium"
    library_calls = [c for c in session.calls if c["url"].endswith("libraries/filter")]
    assert all(c["params"]["servers"] == "11" for c in library_calls)

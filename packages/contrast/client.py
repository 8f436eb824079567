"""Contrast TeamServer REST client: apps, servers, libraries, traces, mark."""
from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from packages.config.settings import BackendSettings
from packages.schema.errors import AppNotFound, BackendUnavailable, MarkFailed, TraceNotFound
from packages.schema.models import Library, Trace

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("Remediated", "Not a Problem")
QUICK_FILTER_VULNERABLE = "VULNERABLE"
QUICK_FILTER_STALE = "STALE"


class ContrastClient:
    def __init__(self, settings: BackendSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.org_id = settings.org_id
        self.base_url = f"{settings.base_url.rstrip('/')}/api/ng/{settings.org_id}"
        self.timeout = settings.timeout
        self._session = session if session is not None else requests.Session()
        self._session.headers.update(request_headers(settings))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def resolve_app_id(self, app_name: str) -> str:
        data = self._get_json("applications/filter", params={"sort": "appName"})
        for app in data.get("applications") or []:
            if app.get("name") == app_name:
                return str(app["app_id"])
        raise AppNotFound(app_name)

    def list_servers(self, app_id: str) -> List[Dict[str, Any]]:
        data = self._get_json(f"applications/{app_id}/servers")
        return list(data.get("servers") or [])

    def resolve_server_id(self, app_id: str, server_name: str) -> Optional[str]:
        """Server id for ``server_name`` or ``None``; server filtering is optional."""

        for server in self.list_servers(app_id):
            if server.get("name") == server_name:
                return str(server["server_id"])
        return None

    # ------------------------------------------------------------------
    # Libraries
    # ------------------------------------------------------------------
    def list_vulnerable_libraries(self, app_id: str, filters: Optional[Mapping[str, str]] = None) -> List[Library]:
        return self._libraries(app_id, QUICK_FILTER_VULNERABLE, filters)

    def list_stale_libraries(self, app_id: str, filters: Optional[Mapping[str, str]] = None) -> List[Library]:
        return self._libraries(app_id, QUICK_FILTER_STALE, filters)

    def _libraries(self, app_id: str, quick_filter: str, filters: Optional[Mapping[str, str]]) -> List[Library]:
        params: Dict[str, str] = {"quickFilter": quick_filter}
        params.update(filters or {})
        data = self._get_json(f"applications/{app_id}/libraries/filter", params=params)
        return [Library.model_validate(item) for item in data.get("libraries") or []]

    # ------------------------------------------------------------------
    # Traces
    # ------------------------------------------------------------------
    def list_trace_ids(self, app_id: str, filters: Optional[Mapping[str, str]] = None) -> List[str]:
        data = self._get_json(f"traces/{app_id}/ids", params=dict(filters or {}) or None)
        return [str(trace_id) for trace_id in data.get("traces") or []]

    def trace_details(self, app_id: str, trace_id: str) -> Trace:
        url = f"traces/{app_id}/trace/{trace_id}"
        response = self._request("GET", url)
        if response.status_code == 404:
            raise TraceNotFound(trace_id)
        _raise_unavailable(response)
        trace = response.json().get("trace")
        if not trace:
            raise TraceNotFound(trace_id)
        return Trace.model_validate(trace)

    def list_traces(self, app_id: str, filters: Optional[Mapping[str, str]] = None) -> List[Trace]:
        """Ids first, then one detail call per id; the id listing has no full records.

        A trace that disappears between the two calls is logged and left out.
        """

        traces: List[Trace] = []
        for trace_id in self.list_trace_ids(app_id, filters):
            try:
                traces.append(self.trace_details(app_id, trace_id))
            except TraceNotFound as exc:
                logger.warning("%s; skipping", exc)
        return traces

    def mark_trace(self, app_id: str, trace_uuid: str, status: str, note: str = "") -> None:
        payload = {
            "comment_preference": True,
            "note": note,
            "status": status,
            "substatus": "",
            "traces": [trace_uuid],
        }
        logger.debug("Marking trace %s as %s", trace_uuid, status)
        try:
            response = self._request("PUT", f"traces/{app_id}/mark", json=payload)
        except BackendUnavailable as exc:
            raise MarkFailed(trace_uuid, str(exc)) from exc
        if not response.ok:
            raise MarkFailed(trace_uuid, f"HTTP {response.status_code}")

    # ------------------------------------------------------------------
    # UI links
    # ------------------------------------------------------------------
    def trace_html_url(self, app_id: str, trace_id: str) -> str:
        return f"{self._ui_root()}/applications/{app_id}/vulns/{trace_id}"

    def library_html_url(self, app_id: str, lib_hash: str) -> str:
        return f"{self._ui_root()}/applications/{app_id}/libs/java/{lib_hash}"

    def _ui_root(self) -> str:
        return f"{self.settings.base_url.rstrip('/')}/static/ng/index.html#/{self.org_id}"

    def _get_json(self, path: str, params: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        response = self._request("GET", path, params=params)
        _raise_unavailable(response)
        return response.json()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}/{path}"
        try:
            return self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise BackendUnavailable(f"{method} {url} failed: {exc}") from exc


def request_headers(settings: BackendSettings) -> Dict[str, str]:
    token = base64.urlsafe_b64encode(f"{settings.user_name}:{settings.service_key}".encode("utf-8"))
    return {
        "API-Key": settings.api_key,
        "Authorization": token.decode("ascii"),
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


def _raise_unavailable(response: requests.Response) -> None:
    if not response.ok:
        raise BackendUnavailable(f"{response.url} returned HTTP {response.status_code}")


__all__ = [
    "CLOSED_STATUSES",
    "ContrastClient",
    "QUICK_FILTER_STALE",
    "QUICK_FILTER_VULNERABLE",
    "request_headers",
]

"""Jira REST client covering the queries and transitions the reconcile stages use."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from packages.config.settings import TrackerSettings
from packages.schema.errors import TrackerUnavailable, TransitionFailed
from packages.schema.models import Resolution, Ticket, Transition

logger = logging.getLogger(__name__)

_SEARCH_FIELDS = ["project", "description", "resolution", "status"]
_PAGE_SIZE = 100


def tracker_base_url(site: str, context_path: str = "", use_ssl: bool = True) -> str:
    base = site.strip().rstrip("/")
    if "://" not in base:
        base = f"{'https' if use_ssl else 'http'}://{base}"
    context = (context_path or "").strip().strip("/")
    if context:
        base = f"{base}/{context}"
    return f"{base}/rest/api/2"


def jql_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class JiraClient:
    """Basic-auth client bound to one Jira site; one timeout for every call."""

    def __init__(self, settings: TrackerSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.base_url = tracker_base_url(settings.site, settings.context_path, settings.use_ssl)
        self.timeout = settings.timeout
        self._session = session if session is not None else requests.Session()
        self._session.auth = (settings.username, settings.password)
        self._session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def find_open_by_fingerprint(self, project: str, fingerprint: str) -> int:
        """Count unresolved tickets in ``project`` whose description holds ``fingerprint``."""

        jql = (
            f"project = {jql_string(project)}"
            f" AND description ~ {jql_string(fingerprint)}"
            " AND resolution is EMPTY"
        )
        data = self.search(jql, max_results=1, fields=["key"])
        count = int(data.get("total", len(data.get("issues", []))))
        logger.debug("Found %s open ticket(s) for fingerprint %s", count, fingerprint)
        return count

    def find_recently_resolved(
        self,
        project: str,
        text_predicate: Optional[str] = None,
        age_window_days: Optional[int] = None,
    ) -> List[Ticket]:
        window = age_window_days if age_window_days is not None else self.settings.resolved_window_days
        clauses = [f"project = {jql_string(project)}"]
        if text_predicate:
            clauses.append(f"description ~ {jql_string(text_predicate)}")
        clauses.append("resolution IS NOT EMPTY")
        clauses.append(f"resolutiondate > -{int(window)}d")
        jql = " AND ".join(clauses) + " ORDER BY resolutiondate ASC"
        data = self.search(jql, max_results=self.settings.max_results)
        tickets = [ticket_from_issue(issue) for issue in data.get("issues", [])]
        logger.debug("Found %s ticket(s) resolved in the last %s day(s)", len(tickets), window)
        return tickets

    def list_open(self, project: str) -> List[Ticket]:
        """Every unresolved ticket in ``project``, following pagination."""

        jql = f"project = {jql_string(project)} AND resolution is EMPTY ORDER BY key ASC"
        tickets: List[Ticket] = []
        start_at = 0
        while True:
            data = self.search(jql, max_results=_PAGE_SIZE, start_at=start_at)
            issues = data.get("issues", [])
            tickets.extend(ticket_from_issue(issue) for issue in issues)
            start_at += len(issues)
            if not issues or start_at >= int(data.get("total", 0)):
                break
        return tickets

    def search(
        self,
        jql: str,
        *,
        max_results: int,
        start_at: int = 0,
        fields: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "jql": jql,
            "startAt": start_at,
            "maxResults": max_results,
            "fields": fields or _SEARCH_FIELDS,
        }
        logger.debug("JQL search: %s", jql)
        response = self._request("POST", "search", json=payload)
        if not response.ok:
            raise TrackerUnavailable(
                f"Search rejected with HTTP {response.status_code}: {_detail(response)}"
            )
        return response.json()

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------
    def list_transitions(self, ticket: Ticket) -> List[Transition]:
        response = self._request("GET", f"issue/{ticket.key}/transitions")
        if not response.ok:
            raise TransitionFailed(ticket.key, f"HTTP {response.status_code} listing transitions")
        transitions = [
            Transition(id=str(item["id"]), name=str(item.get("name", "")))
            for item in response.json().get("transitions", [])
        ]
        ticket.transitions = transitions
        return transitions

    def apply_transition(
        self,
        ticket: Ticket,
        transition_id: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Run a workflow transition; ``payload`` is sent as the transition's ``fields``."""

        body: Dict[str, Any] = {"transition": {"id": str(transition_id)}}
        if payload:
            body["fields"] = payload
        response = self._request("POST", f"issue/{ticket.key}/transitions", json=body)
        if not response.ok:
            raise TransitionFailed(ticket.key, f"HTTP {response.status_code}: {_detail(response)}")

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}/{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise TrackerUnavailable(f"{method} {url} failed: {exc}") from exc
        if response.status_code in (401, 403) or response.status_code >= 500:
            raise TrackerUnavailable(f"{method} {url} returned HTTP {response.status_code}")
        return response


def ticket_from_issue(issue: Dict[str, Any]) -> Ticket:
    fields = issue.get("fields") or {}
    status = fields.get("status") or {}
    raw_resolution = fields.get("resolution")
    resolution = None
    if raw_resolution:
        resolution = Resolution(
            name=str(raw_resolution.get("name", "")),
            category=(status.get("statusCategory") or {}).get("name"),
        )
    return Ticket(
        key=str(issue["key"]),
        project=str((fields.get("project") or {}).get("key", "")),
        description=fields.get("description") or "",
        resolution=resolution,
        status=str(status.get("name", "")),
    )


def _detail(response: requests.Response) -> str:
    try:
        return str(response.json())
    except ValueError:
        return response.text[:500]


__all__ = ["JiraClient", "jql_string", "ticket_from_issue", "tracker_base_url"]

import json
from typing import Dict, List, Optional, Tuple

import pytest

from packages.schema.errors import MarkFailed, TraceNotFound, TransitionFailed
from packages.schema.models import Ticket, Trace, Transition


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Optional[dict] = None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = json.dumps(self._payload)
        self.url = ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> dict:
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes match on method + URL suffix."""

    def __init__(self):
        self.headers: Dict[str, str] = {}
        self.auth = None
        self.calls: List[dict] = []
        self._routes: Dict[Tuple[str, str], list] = {}

    def route(self, method: str, path: str, *responses) -> None:
        self._routes.setdefault((method, path), []).extend(responses)

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        for (route_method, path), queue in self._routes.items():
            if route_method == method and url.endswith("/" + path):
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, Exception):
                    raise item
                item.url = url
                return item
        missing = FakeResponse(404, {"error": "no route"})
        missing.url = url
        return missing


class FakeTracker:
    def __init__(self):
        self.tickets: List[Ticket] = []
        self.transitions: Dict[str, List[Transition]] = {}
        self.applied: List[Tuple[str, str]] = []
        self.queries: List[Tuple[str, str]] = []
        self.fail_keys = set()

    def find_open_by_fingerprint(self, project, fingerprint):
        self.queries.append((project, fingerprint))
        return sum(
            1
            for t in self.tickets
            if t.project == project and fingerprint in t.description and t.resolution is None
        )

    def list_open(self, project):
        return [t for t in self.tickets if t.project == project and t.resolution is None]

    def find_recently_resolved(self, project, text_predicate=None, age_window_days=None):
        return [t for t in self.tickets if t.project == project and t.resolution is not None]

    def list_transitions(self, ticket):
        return self.transitions.get(ticket.key, [Transition(id="31", name="Done")])

    def apply_transition(self, ticket, transition_id, payload=None):
        if ticket.key in self.fail_keys:
            raise TransitionFailed(ticket.key, "HTTP 400")
        self.applied.append((ticket.key, transition_id))


class FakeBackend:
    def __init__(self):
        self.traces: Dict[str, Trace] = {}
        self.servers: Dict[str, str] = {}
        self.marked: List[Tuple[str, str, str]] = []
        self.fail_marks = set()
        self.detail_calls: List[str] = []

    def resolve_app_id(self, app_name):
        return "app-1"

    def resolve_server_id(self, app_id, server_name):
        return self.servers.get(server_name)

    def trace_details(self, app_id, trace_id):
        self.detail_calls.append(trace_id)
        if trace_id not in self.traces:
            raise TraceNotFound(trace_id)
        return self.traces[trace_id]

    def mark_trace(self, app_id, trace_uuid, status, note=""):
        if trace_uuid in self.fail_marks:
            raise MarkFailed(trace_uuid, "HTTP 500")
        self.marked.append((app_id, trace_uuid, status))
        self.traces[trace_uuid] = self.traces[trace_uuid].model_copy(update={"status": status})


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def response():
    return FakeResponse

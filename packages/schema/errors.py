# Error taxonomy shared by the tracker/backend clients and the reconcile stages.


class SyncError(Exception):
    """Base class for reconciliation failures."""


class TrackerUnavailable(SyncError):
    """Network or auth failure talking to the issue tracker."""


class BackendUnavailable(SyncError):
    """Network or auth failure talking to the scanning backend."""


class AppNotFound(SyncError):
    def __init__(self, app_name: str):
        super().__init__(f"Application '{app_name}' not found")
        self.app_name = app_name


class ServerNotFound(SyncError):
    def __init__(self, server_name: str):
        super().__init__(f"Server '{server_name}' not found")
        self.server_name = server_name


class TraceNotFound(SyncError):
    def __init__(self, trace_id: str):
        super().__init__(f"Trace '{trace_id}' not found")
        self.trace_id = trace_id


class MarkFailed(SyncError):
    def __init__(self, trace_id: str, reason: str = ""):
        super().__init__(f"Failed to mark trace '{trace_id}': {reason}".rstrip(": "))
        self.trace_id = trace_id


class TransitionFailed(SyncError):
    def __init__(self, ticket_key: str, reason: str = ""):
        super().__init__(f"Failed to transition ticket '{ticket_key}': {reason}".rstrip(": "))
        self.ticket_key = ticket_key


class UnmappedResolution(SyncError):
    def __init__(self, resolution_name: str):
        super().__init__(f"No backend status for resolution '{resolution_name}'")
        self.resolution_name = resolution_name


__all__ = [
    "SyncError",
    "TrackerUnavailable",
    "BackendUnavailable",
    "AppNotFound",
    "ServerNotFound",
    "TraceNotFound",
    "MarkFailed",
    "TransitionFailed",
    "UnmappedResolution",
]

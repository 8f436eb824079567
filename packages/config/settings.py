"""Flat option mapping -> validated settings for the tracker, backend and stages."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_PREFIX = "FINDINGSYNC_"
DEFAULT_CONTRAST_BASE_URL = "https://app.contrastsecurity.com/Contrast"

_TRUE = {"1", "true", "yes", "on"}


class TrackerSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    username: str
    password: str
    site: str
    context_path: str = ""
    use_ssl: bool = True
    project: str
    component: Optional[str] = None
    transition_name: str = "Done"
    default_transition_id: str = "21"
    resolved_window_days: int = Field(default=3, ge=1)
    content_marker: str = "contrastsecurity*"
    max_results: int = Field(default=1000, ge=1)
    timeout: float = 30.0


class BackendSettings(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    api_key: str
    service_key: str
    org_id: str
    app_name: str
    user_name: str
    filter_options: str = ""
    update_closed: bool = False
    strict_servers: bool = False
    base_url: str = DEFAULT_CONTRAST_BASE_URL
    timeout: float = 30.0


class SyncSettings(BaseModel):
    tracker: Optional[TrackerSettings] = None
    backend: Optional[BackendSettings] = None
    dedup_workers: int = Field(default=1, ge=1)
    closeable_ticket_keys: List[str] = Field(default_factory=list)

    @field_validator("closeable_ticket_keys", mode="before")
    @classmethod
    def _split_keys(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def has_tracker(self) -> bool:
        return self.tracker is not None


# option name -> settings field
_TRACKER_OPTIONS = {
    "jira_username": "username",
    "jira_password": "password",
    "jira_api_url": "site",
    "jira_api_context": "context_path",
    "jira_use_ssl": "use_ssl",
    "jira_project": "project",
    "jira_component": "component",
    "jira_transition_name": "transition_name",
    "jira_default_transition_id": "default_transition_id",
    "jira_resolved_window_days": "resolved_window_days",
    "jira_content_marker": "content_marker",
    "jira_max_results": "max_results",
}
_BACKEND_OPTIONS = {
    "contrast_api_key": "api_key",
    "contrast_service_key": "service_key",
    "contrast_org_id": "org_id",
    "contrast_app_name": "app_name",
    "contrast_user_name": "user_name",
    "contrast_filter_options": "filter_options",
    "contrast_update_closed_jira_issues": "update_closed",
    "contrast_strict_servers": "strict_servers",
    "contrast_base_url": "base_url",
}
_TOP_LEVEL_OPTIONS = {"dedup_workers", "closeable_ticket_keys", "http_timeout"}
KNOWN_OPTIONS = frozenset(_TRACKER_OPTIONS) | frozenset(_BACKEND_OPTIONS) | _TOP_LEVEL_OPTIONS


def from_options(options: Mapping[str, Any]) -> SyncSettings:
    """Build settings from the flat option mapping.

    A section is only built when at least one of its options is present, so a
    config without ``jira_*`` keys yields ``tracker=None``.
    """

    unknown = sorted(set(options) - KNOWN_OPTIONS)
    if unknown:
        raise ValueError(f"Unknown option(s): {', '.join(unknown)}")

    tracker = _section(options, _TRACKER_OPTIONS)
    backend = _section(options, _BACKEND_OPTIONS)
    timeout = options.get("http_timeout")
    if timeout not in (None, ""):
        if tracker is not None:
            tracker["timeout"] = timeout
        if backend is not None:
            backend["timeout"] = timeout
    if tracker is not None and "use_ssl" in tracker:
        tracker["use_ssl"] = _as_bool(tracker["use_ssl"])
    for flag in ("update_closed", "strict_servers"):
        if backend is not None and flag in backend:
            backend[flag] = _as_bool(backend[flag])

    top: Dict[str, Any] = {
        key: options[key]
        for key in ("dedup_workers", "closeable_ticket_keys")
        if options.get(key) not in (None, "")
    }
    return SyncSettings(
        tracker=TrackerSettings(**tracker) if tracker is not None else None,
        backend=BackendSettings(**backend) if backend is not None else None,
        **top,
    )


def load_settings(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> SyncSettings:
    """Load the flat YAML option file, then apply ``FINDINGSYNC_*`` overrides."""

    options: Dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file missing: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        options.update(data)

    env = os.environ if environ is None else environ
    for name in KNOWN_OPTIONS:
        override = env.get(ENV_PREFIX + name.upper())
        if override is not None:
            options[name] = override
    return from_options(options)


def _section(options: Mapping[str, Any], names: Mapping[str, str]) -> Optional[Dict[str, Any]]:
    present = {field: options[name] for name, field in names.items() if options.get(name) is not None}
    return present or None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


__all__ = [
    "BackendSettings",
    "KNOWN_OPTIONS",
    "SyncSettings",
    "TrackerSettings",
    "from_options",
    "load_settings",
]

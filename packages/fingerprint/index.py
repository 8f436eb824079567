"""Textual fingerprint contract between scan findings and tracker tickets.

Tickets carry no structured field for the finding identity, so the join key
lives in the free-text description as a ``Fingerprint: <value>`` line. Library
tickets are recognised by the connector phrases used when they were rendered.
Swap this module out if the tracker grows a dedicated custom field.
"""
from __future__ import annotations

import re

from packages.schema.models import Ticket, TicketKind

FINGERPRINT_KEYWORD = "Fingerprint:"
LIB_RATING_CONNECTOR = "is currently rated"
LIB_STALE_CONNECTOR = "latest version is"

_FINGERPRINT_RE = re.compile(r"Fingerprint:[ \t]*(.*)$", re.MULTILINE)


def fingerprint_line(fingerprint: str) -> str:
    """Render the marker line that :func:`extract` recognises."""

    return f"{FINGERPRINT_KEYWORD} {fingerprint}"


def extract(ticket: Ticket) -> str:
    """Return the first embedded fingerprint, trimmed, or ``""``."""

    description = ticket.description or ""
    if not description.strip():
        return ""
    match = _FINGERPRINT_RE.search(description)
    if match is None:
        return ""
    return match.group(1).strip()


def classify(ticket: Ticket) -> TicketKind:
    description = ticket.description or ""
    if LIB_RATING_CONNECTOR in description or LIB_STALE_CONNECTOR in description:
        return "library"
    return "vulnerability"


def is_library(ticket: Ticket) -> bool:
    return classify(ticket) == "library"


__all__ = [
    "FINGERPRINT_KEYWORD",
    "LIB_RATING_CONNECTOR",
    "LIB_STALE_CONNECTOR",
    "classify",
    "extract",
    "fingerprint_line",
    "is_library",
]

# Filter option string -> query parameters, with indirect entities resolved to ids.
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol

from packages.schema.errors import ServerNotFound

logger = logging.getLogger(__name__)

SERVERS_KEY = "servers"


class ServerLookup(Protocol):
    def resolve_server_id(self, app_id: str, server_name: str) -> Optional[str]: ...


def parse_filter_options(raw: Optional[str]) -> Dict[str, str]:
    """``"a=1,b=2"`` -> ``{"a": "1", "b": "2"}``; blank pairs are ignored."""

    opts: Dict[str, str] = {}
    if not raw:
        return opts
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            logger.warning("Ignoring filter option without a value: %s", pair)
            continue
        key, value = pair.split("=", 1)
        opts[key.strip()] = value.strip()
    return opts


def resolve_filter_options(
    client: ServerLookup,
    app_id: str,
    raw: Optional[str],
    *,
    strict: bool = False,
) -> Dict[str, str]:
    """Parse ``raw`` and rewrite indirect keys before any query consumes them.

    ``servers`` holds ``|``-separated server names that become a comma-joined
    id list. Unknown keys pass through as literal query parameters.
    """

    opts = parse_filter_options(raw)
    if SERVERS_KEY in opts:
        server_ids = _resolve_servers(client, app_id, opts[SERVERS_KEY], strict)
        if server_ids:
            opts[SERVERS_KEY] = ",".join(server_ids)
        else:
            logger.warning("No servers resolved from '%s'; server filter not applied", opts[SERVERS_KEY])
            del opts[SERVERS_KEY]
    return opts


def _resolve_servers(client: ServerLookup, app_id: str, names: str, strict: bool) -> List[str]:
    server_ids: List[str] = []
    for name in (part.strip() for part in names.split("|")):
        if not name:
            continue
        server_id = client.resolve_server_id(app_id, name)
        if server_id is None:
            if strict:
                raise ServerNotFound(name)
            logger.warning("Server '%s' not found for app %s", name, app_id)
            continue
        server_ids.append(server_id)
    return server_ids


__all__ = ["SERVERS_KEY", "parse_filter_options", "resolve_filter_options"]

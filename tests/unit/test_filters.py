import pytest

from packages.contrast.filters import parse_filter_options, resolve_filter_options
from packages.schema.errors import ServerNotFound


def test_server_names_are_rewritten_to_ids(backend):
    backend.servers.update({"web1": "11", "web2": "22"})

    opts = resolve_filter_options(backend, "app-1", "servers=web1|web2")

    assert opts == {"servers": "11,22"}


def test_literal_options_pass_through(backend):
    backend.servers["web1"] = "11"

    opts = resolve_filter_options(backend, "app-1", "severities=HIGH,servers=web1,environments=PRODUCTION")

    assert opts == {"severities": "HIGH", "servers": "11", "environments": "PRODUCTION"}


def test_unknown_servers_are_dropped(backend):
    backend.servers["web1"] = "11"

    assert resolve_filter_options(backend, "app-1", "servers=web1|ghost") == {"servers": "11"}
    assert resolve_filter_options(backend, "app-1", "servers=ghost,status=Reported") == {"status": "Reported"}


def test_strict_mode_raises_for_unknown_server(backend):
    with pytest.raises(ServerNotFound) as excinfo:
        resolve_filter_options(backend, "app-1", "servers=ghost", strict=True)
    assert excinfo.value.server_name == "ghost"


@pytest.mark.parametrize("raw", [None, "", " , ,"])
def test_empty_option_strings(raw):
    assert parse_filter_options(raw) == {}


def test_pairs_without_value_are_ignored():
    assert parse_filter_options("appVersionTags=1.2,orphan, tracked = yes") == {
        "appVersionTags": "1.2",
        "tracked": "yes",
    }


def test_value_may_contain_equals_sign():
    assert parse_filter_options("query=a=b") == {"query": "a=b"}

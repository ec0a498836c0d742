import pytest

from aaexplorer.location import (
    Location,
    Route,
    decode_page_params,
    detail_path,
    encode_page_params,
    list_path,
    parse_location,
    parse_route,
)
from aaexplorer.model import PageState


@pytest.mark.parametrize("path,route", [
    ("/", Route("home")),
    ("", Route("home")),
    ("/recentBundles", Route("bundles")),
    ("/recentUserOps", Route("userOps")),
    ("/bundlers", Route("bundlers")),
    ("/paymasters", Route("paymasters")),
    ("/paymaster/0xabc", Route("paymaster", "0xabc")),
    ("/bundler/0xdef/", Route("bundler", "0xdef")),
    ("/address/0x123", Route("address", "0x123")),
])
def test_parse_route(path, route):
    assert parse_route(path) == route


@pytest.mark.parametrize("path", ["/nope", "/paymaster", "/address/0x1/extra"])
def test_unknown_routes_rejected(path):
    with pytest.raises(ValueError):
        parse_route(path)


def test_detail_route_flag():
    assert parse_route("/address/0x1").is_detail
    assert not parse_route("/bundlers").is_detail


def test_parse_location_with_query():
    loc = parse_location("/paymaster/0xabc?network=base&pageNo=2&pageSize=25")
    assert loc.path == "/paymaster/0xabc"
    assert loc.params == {"network": "base", "pageNo": "2", "pageSize": "25"}
    assert decode_page_params(loc) == ("base", "2", "25")


def test_parse_location_adds_leading_slash():
    assert parse_location("bundlers").path == "/bundlers"
    assert parse_location("   ").path == "/"


def test_with_params_preserves_order_and_extras():
    loc = Location("/x", (("pageSize", "10"), ("foo", "bar")))
    updated = loc.with_params(network="base", pageSize="25")
    assert updated.query == (("pageSize", "25"), ("foo", "bar"), ("network", "base"))
    # Original is untouched
    assert loc.params["pageSize"] == "10"


def test_encode_decode_round_trip():
    state = PageState(network="arbitrum-one", page_no=7, page_size=50)
    loc = Location("/bundler/0x1").with_params(**encode_page_params(state))
    assert decode_page_params(parse_location(str(loc))) == ("arbitrum-one", "7", "50")


def test_empty_network_param_treated_as_missing():
    assert decode_page_params(parse_location("/?network=")) == (None, None, None)


def test_paths_for_views():
    assert detail_path("paymaster", "0xabc") == "/paymaster/0xabc"
    assert list_path("userOps") == "/recentUserOps"
    assert list_path("home") == "/"
    with pytest.raises(ValueError):
        detail_path("bundlers", "0x1")
    with pytest.raises(ValueError):
        list_path("paymaster")

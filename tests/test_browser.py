import asyncio
from collections import defaultdict
from unittest.mock import AsyncMock, MagicMock

import pytest

from aaexplorer.browser import (
    HomeBrowser,
    LoadResult,
    ResourceBrowser,
    make_detail_browser,
    make_list_browser,
    user_op_rows,
)
from aaexplorer.errors import TransportError
from aaexplorer.location import parse_location
from aaexplorer.model import Bundle, Bundler, ResolutionStatus, ResourceRow, Token, UserOp
from aaexplorer.networks import registry
from aaexplorer.resolver import NetworkResolver
from aaexplorer.state import PageStateController


def row(text):
    return ResourceRow(kind="bundle", token=Token(text, "", "bundle"))


def controller(text="/recentBundles", **kwargs):
    return PageStateController(parse_location(text), **kwargs)


# --- Row mappers ---

def test_user_op_rows_fallbacks():
    ops = [UserOp("0xu", "0xs", block_time=None, actual_gas_cost=10 ** 18, network="polygon")]
    (r,) = user_op_rows(ops, "mainnet")
    assert r.kind == "userOp"
    assert r.target == ("Unavailable!",)
    assert r.status is True
    assert r.ago == "Unavailable"
    assert r.fee == "1 MATIC"
    assert r.token.icon == registry.lookup("polygon").icon_ref


def test_user_op_rows_keep_failure():
    (r,) = user_op_rows([UserOp("0xu", "0xs", success=False, target=("0xt",))], "base")
    assert r.status is False
    assert r.target == ("0xt",)
    assert r.fee == "0 ETH"


# --- ResourceBrowser ---

async def test_superseded_response_is_dropped():
    sc = controller()
    gates = defaultdict(asyncio.Event)

    async def loader(state):
        await gates[state.page_no].wait()
        return LoadResult(rows=(row(f"page-{state.page_no}"),))

    notify = MagicMock()
    browser = ResourceBrowser("bundle", "Recent Bundles", sc, loader, notify)
    browser.watch()

    first = asyncio.ensure_future(browser.refresh())
    await asyncio.sleep(0)
    sc.set_page_no(2)
    await asyncio.sleep(0)

    gates[2].set()
    await browser.drain()
    assert [r.token.text for r in browser.table.rows] == ["page-2"]
    assert browser.table.loading is False
    version = browser.version

    gates[1].set()
    assert await first is False
    assert [r.token.text for r in browser.table.rows] == ["page-2"]
    assert browser.table.loading is False
    assert browser.version == version
    notify.assert_not_called()


async def test_stale_failure_is_silent():
    sc = controller()
    gate = asyncio.Event()

    async def loader(state):
        if state.page_no == 1:
            await gate.wait()
            raise TransportError("late failure")
        return LoadResult(rows=(row("fresh"),))

    notify = MagicMock()
    browser = ResourceBrowser("bundle", "Recent Bundles", sc, loader, notify)
    browser.watch()

    first = asyncio.ensure_future(browser.refresh())
    await asyncio.sleep(0)
    sc.set_page_no(2)
    await browser.drain()
    gate.set()

    assert await first is False
    assert [r.token.text for r in browser.table.rows] == ["fresh"]
    notify.assert_not_called()


async def test_total_rows_reported_to_controller():
    sc = controller("/paymaster/0xp?pageNo=2")

    async def loader(state):
        return LoadResult(rows=(), total_rows=12)

    browser = ResourceBrowser("userOp", "Paymaster", sc, loader, MagicMock())
    assert await browser.refresh() is True
    assert sc.total_rows == 12
    assert sc.state.page_no == 2


# --- HomeBrowser ---

def fake_client():
    client = MagicMock()
    client.latest_bundles = AsyncMock(return_value=[Bundle("0xt", 1, 2)])
    client.latest_user_ops = AsyncMock(return_value=[UserOp("0xu1", "0xs")])
    client.top_bundlers = AsyncMock(return_value=[Bundler("0xb", 3)])
    client.top_paymasters = AsyncMock(return_value=[])
    return client


async def test_failed_table_keeps_rows_others_update():
    sc = controller("/", paginated=False)
    client = fake_client()
    notify = MagicMock()
    home = HomeBrowser(client, sc, notify)

    await home.refresh()
    assert len(home.table("bundler").table.rows) == 1

    client.top_bundlers.side_effect = TransportError("bad gateway", network="mainnet", status_code=502)
    client.latest_user_ops.return_value = [UserOp("0xu1", "0xs"), UserOp("0xu2", "0xs")]
    await home.refresh()

    bundlers = home.table("bundler").table
    assert [r.token.text for r in bundlers.rows] == ["0xb"]
    assert bundlers.loading is False
    assert len(home.table("userOp").table.rows) == 2
    notify.assert_called_once()
    assert "Top Bundlers" in notify.call_args[0][0]


async def test_home_tables_follow_network_change():
    sc = controller("/", paginated=False)
    client = fake_client()
    home = HomeBrowser(client, sc, MagicMock(), limit=3)
    home.watch()

    sc.set_network("base")
    await home.drain()

    client.latest_bundles.assert_awaited_with("base", 3, 0)
    client.top_paymasters.assert_awaited_with("base", 3, 0)
    assert home.table("paymaster").table.loading is False

    home.unwatch()
    sc.set_network("mainnet")
    await home.drain()
    assert client.latest_bundles.await_count == 1


async def test_paged_list_has_more():
    sc = controller("/recentUserOps?pageSize=10&pageNo=2")
    client = fake_client()
    client.latest_user_ops.return_value = [UserOp(f"0x{i}", "0xs") for i in range(10)]

    browser = make_list_browser("userOps", client, sc, MagicMock())
    await browser.refresh()

    client.latest_user_ops.assert_awaited_with("mainnet", 10, 10)
    assert browser.has_more is True
    assert browser.table.caption == "Recent User Operations"


def test_unknown_views_rejected():
    sc = controller()
    with pytest.raises(ValueError):
        make_list_browser("paymaster", fake_client(), sc, MagicMock())
    with pytest.raises(ValueError):
        make_detail_browser("bundlers", "0x1", fake_client(), sc, MagicMock(), MagicMock())


# --- DetailBrowser ---

PAYMASTER_DETAIL = {"paymasterDetail": {
    "address": "0xp",
    "totalDeposits": 0,
    "userOpsLength": 47,
    "userOps": [{"userOpHash": "0xu", "sender": "0xs", "blockTime": 1}],
}}


async def test_detail_resolves_network_then_fetches(uncached_client, api):
    api.add_response("getAddressActivity", {"accountDetail": {"userOpsCount": 1}}, network="polygon")
    api.add_response("getPaymasterActivity", PAYMASTER_DETAIL, network="polygon")
    sc = controller("/paymaster/0xp")
    notify = MagicMock()
    browser = make_detail_browser("paymaster", "0xp", uncached_client, sc,
                                  NetworkResolver(uncached_client), notify)
    assert browser.table.caption == "N/A User Ops found"

    status = await browser.load()

    assert status == ResolutionStatus.RESOLVED
    assert browser.subject.resolved_network == "polygon"
    assert browser.subject.available_networks == ("polygon",)
    assert sc.state.network == "polygon"
    assert sc.location.params["network"] == "polygon"
    assert browser.table.caption == "47 User Ops found"
    assert len(browser.table.rows) == 1
    assert [r.url.params["network"] for r in api.calls("getPaymasterActivity")] == ["polygon"]
    notify.assert_not_called()


async def test_detail_no_match(uncached_client, api):
    sc = controller("/address/0xnone")
    notify = MagicMock()
    browser = make_detail_browser("address", "0xnone", uncached_client, sc,
                                  NetworkResolver(uncached_client), notify)

    status = await browser.load()

    assert status == ResolutionStatus.NO_MATCH
    assert browser.subject.resolved_network is None
    assert browser.table.loading is False
    assert browser.table.caption == "N/A User Ops found"
    assert len(api.requests) == len(registry)
    notify.assert_called_once_with("Network not determined for 0xnone")


async def test_detail_network_from_location_clamps_and_refetches(uncached_client, api):
    api.add_response("getPaymasterActivity", PAYMASTER_DETAIL, network="polygon")
    api.add_response("getAddressActivity", {"accountDetail": {}}, network="polygon")
    api.add_response("getAddressActivity", {"accountDetail": {}}, network="base")
    sc = controller("/paymaster/0xp?network=polygon&pageNo=9&pageSize=10")
    browser = make_detail_browser("paymaster", "0xp", uncached_client, sc,
                                  NetworkResolver(uncached_client), MagicMock())

    await browser.load()

    skips = [r.url.params["skip"] for r in api.calls("getPaymasterActivity")]
    assert skips == ["80", "40"]
    assert sc.state.page_no == 5
    assert sc.location.params["pageNo"] == "5"
    assert browser.subject.available_networks == ("polygon", "base")


async def test_detail_fetch_failure_notifies_once(uncached_client, api):
    api.add_response("getBundlerActivity", {}, status_code=500, network="base")
    sc = controller("/bundler/0xb?network=base")
    notify = MagicMock()
    browser = make_detail_browser("bundler", "0xb", uncached_client, sc,
                                  NetworkResolver(uncached_client), notify)

    await browser.load()

    assert browser.table.loading is False
    assert browser.table.rows == ()
    notify.assert_called_once()
    assert notify.call_args[0][0].startswith("Failed to load Bundler: HTTP 500")


async def test_page_size_change_during_resolution_keeps_resolved_network(uncached_client, api):
    gate = api.hold("getAddressActivity")
    api.add_response("getAddressActivity", {"accountDetail": {"userOpsCount": 1}}, network="polygon")
    api.add_response("getPaymasterActivity", PAYMASTER_DETAIL, network="polygon")
    sc = controller("/paymaster/0xp")
    browser = make_detail_browser("paymaster", "0xp", uncached_client, sc,
                                  NetworkResolver(uncached_client), MagicMock())

    loading = asyncio.ensure_future(browser.load())
    await asyncio.sleep(0)
    sc.set_page_size(25)
    assert browser.subject.resolved_network is None
    assert browser.subject.status == ResolutionStatus.UNRESOLVED
    gate.set()

    assert await loading == ResolutionStatus.RESOLVED
    assert browser.subject.resolved_network == "polygon"
    assert sc.state.network == "polygon"
    assert sc.state.page_size == 25
    fetched = [(r.url.params["network"], r.url.params["first"])
               for r in api.calls("getPaymasterActivity")]
    assert fetched == [("polygon", "25")]


async def test_explicit_choice_during_resolution_wins(uncached_client, api):
    gate = api.hold("getAddressActivity")
    api.add_response("getAddressActivity", {"accountDetail": {"userOpsCount": 1}}, network="polygon")
    api.add_response("getPaymasterActivity", PAYMASTER_DETAIL, network="mainnet")
    sc = controller("/paymaster/0xp")
    browser = make_detail_browser("paymaster", "0xp", uncached_client, sc,
                                  NetworkResolver(uncached_client), MagicMock())

    loading = asyncio.ensure_future(browser.load())
    await asyncio.sleep(0)
    browser.choose_network("mainnet")
    gate.set()
    await loading

    assert browser.subject.resolved_network == "mainnet"
    assert browser.subject.available_networks == ("polygon",)
    assert sc.state.network == "mainnet"
    assert [r.url.params["network"] for r in api.calls("getPaymasterActivity")] == ["mainnet"]


async def test_resolution_keeps_page_from_location(uncached_client, api):
    detail = {"paymasterDetail": dict(PAYMASTER_DETAIL["paymasterDetail"], userOpsLength=100)}
    api.add_response("getAddressActivity", {"accountDetail": {"userOpsCount": 1}}, network="polygon")
    api.add_response("getPaymasterActivity", detail, network="polygon")
    sc = controller("/paymaster/0xp?pageNo=3&pageSize=25")
    browser = make_detail_browser("paymaster", "0xp", uncached_client, sc,
                                  NetworkResolver(uncached_client), MagicMock())

    await browser.load()

    assert [r.url.params["skip"] for r in api.calls("getPaymasterActivity")] == ["50"]
    assert sc.state.network == "polygon"
    assert sc.state.page_no == 3
    assert sc.location.params["pageNo"] == "3"
    assert browser.table.caption == "100 User Ops found"


async def test_close_cancels_outstanding_fetches():
    sc = controller()
    gate = asyncio.Event()

    async def loader(state):
        await gate.wait()
        return LoadResult(rows=(row("late"),))

    browser = ResourceBrowser("bundle", "Recent Bundles", sc, loader, MagicMock())
    browser.watch()
    sc.set_page_no(2)
    task = next(iter(browser._tasks))
    browser.close()
    gate.set()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert browser.table.rows == ()
    sc.set_page_no(3)
    assert not browser._tasks

"""
Fetch orchestration: page state + query client -> table rows.

A ResourceBrowser drives one table. It is parameterized by a loader (which
query to run for a PageState) and a row mapper; list tables, paginated list
pages and detail pages only differ in those two.

Request Lifecycle:
  1. Tag the request with the controller's current generation
  2. Set loading, await the loader
  3. If the generation moved on meanwhile, drop the result silently
  4. Otherwise replace the whole TableState and report the backend's row
     total to the controller (which may clamp the page and trigger a refetch)

Failures (TransportError / MalformedResponseError) of the current generation
keep the previous rows, clear loading and notify exactly once. Each browser
owns only its own TableState, so one table failing never touches another.

Key Classes:
  - ResourceBrowser: one table, any resource kind
  - HomeBrowser: the four home tables sharing one controller
  - DetailBrowser: paymaster/bundler/address page with network resolution
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Set, Tuple

from .backend import QueryClient
from .errors import MalformedResponseError, TransportError
from .formatting import get_fee, get_time_passed
from .model import (
    Bundle,
    Bundler,
    PageState,
    Paymaster,
    ResolutionStatus,
    ResourceRow,
    Subject,
    TableState,
    Token,
    UserOp,
)
from .networks import NetworkRegistry, registry as default_registry
from .resolver import NetworkResolver
from .state import PageStateController

logger = logging.getLogger(__name__)

Notify = Callable[[str], None]
RowMapper = Callable[[Sequence[Any], str], Tuple[ResourceRow, ...]]

NETWORK_NOT_DETERMINED = "Network not determined"


@dataclass(frozen=True)
class LoadResult:
    rows: Tuple[ResourceRow, ...]
    total_rows: Optional[int] = None
    caption: Optional[str] = None
    summary: Any = None
    has_more: bool = False


Loader = Callable[[PageState], Awaitable[LoadResult]]


# --- Row mappers ---

def bundle_rows(bundles: Sequence[Bundle], network: str,
                networks: NetworkRegistry = default_registry) -> Tuple[ResourceRow, ...]:
    return tuple(
        ResourceRow(
            kind="bundle",
            token=Token(b.transaction_hash, networks.icon_for(b.network or network), "bundle"),
            ago=get_time_passed(b.block_time),
            user_ops=f"{b.user_ops_length} ops",
            status=True,
        )
        for b in bundles
    )


def user_op_rows(user_ops: Sequence[UserOp], network: str,
                 networks: NetworkRegistry = default_registry) -> Tuple[ResourceRow, ...]:
    return tuple(
        ResourceRow(
            kind="userOp",
            token=Token(u.user_op_hash, networks.icon_for(u.network or network), "userOp"),
            ago=get_time_passed(u.block_time),
            sender=u.sender,
            target=u.target or ("Unavailable!",),
            fee=get_fee(u.actual_gas_cost, u.network or network, networks),
            status=True if u.success is None else u.success,
        )
        for u in user_ops
    )


def bundler_rows(bundlers: Sequence[Bundler], network: str,
                 networks: NetworkRegistry = default_registry) -> Tuple[ResourceRow, ...]:
    return tuple(
        ResourceRow(
            kind="bundler",
            token=Token(b.address, networks.icon_for(network), "bundler"),
            user_ops=f"{b.bundle_length} bundles",
            fee=get_fee(b.actual_gas_cost_sum, network, networks),
        )
        for b in bundlers
    )


def paymaster_rows(paymasters: Sequence[Paymaster], network: str,
                   networks: NetworkRegistry = default_registry) -> Tuple[ResourceRow, ...]:
    return tuple(
        ResourceRow(
            kind="paymaster",
            token=Token(p.address, networks.icon_for(network), "paymaster"),
            user_ops=f"{p.user_ops_length} ops",
        )
        for p in paymasters
    )


# --- Loaders ---

def list_loader(fetch: Callable[[str, int, int], Awaitable[Sequence[Any]]],
                row_mapper: RowMapper, limit: int) -> Loader:
    """Fixed-size table of the newest/top records for the state's network."""
    async def load(state: PageState) -> LoadResult:
        records = await fetch(state.network, limit, 0)
        return LoadResult(rows=row_mapper(records, state.network)[:limit])
    return load


def paged_list_loader(fetch: Callable[[str, int, int], Awaitable[Sequence[Any]]],
                      row_mapper: RowMapper) -> Loader:
    """List page without a reported total; a full page means there may be more."""
    async def load(state: PageState) -> LoadResult:
        offset = (state.page_no - 1) * state.page_size
        records = await fetch(state.network, state.page_size, offset)
        return LoadResult(
            rows=row_mapper(records, state.network),
            has_more=len(records) >= state.page_size,
        )
    return load


def detail_loader(fetch_page: Callable[[str, str, int, int], Awaitable[Any]],
                  row_mapper: RowMapper, address: str, noun: str) -> Loader:
    """Activity page of one address; the response carries the authoritative total."""
    async def load(state: PageState) -> LoadResult:
        activity = await fetch_page(address, state.network, state.page_no, state.page_size)
        total = activity.total_rows
        return LoadResult(
            rows=row_mapper(activity.records, state.network),
            total_rows=total,
            caption=f"{total} {noun} found",
            summary=activity,
            has_more=state.page_no * state.page_size < total,
        )
    return load


# --- Browsers ---

class ResourceBrowser:
    """Drives one table from a PageStateController."""

    def __init__(self, kind: str, title: str, controller: PageStateController,
                 loader: Loader, notify: Notify, caption: str = ""):
        self.kind = kind
        self.title = title
        self.controller = controller
        self._loader = loader
        self._notify = notify
        self.table = TableState(loading=True, caption=caption)
        self.summary: Any = None
        self.has_more = False
        self.version = 0
        self._tasks: Set[asyncio.Task] = set()
        self._watching = False

    def watch(self) -> None:
        """Refetch on every controller transition."""
        if not self._watching:
            self.controller.add_listener(self._on_state_change)
            self._watching = True

    def unwatch(self) -> None:
        if self._watching:
            self.controller.remove_listener(self._on_state_change)
            self._watching = False

    def close(self) -> None:
        """Stop following the controller and cancel outstanding fetches."""
        self.unwatch()
        for task in list(self._tasks):
            task.cancel()

    def _on_state_change(self, state: PageState) -> None:
        self.schedule_refresh()

    def schedule_refresh(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every refresh this browser has started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def refresh(self) -> bool:
        """Fetch for the current state. Returns True if the result was applied."""
        generation = self.controller.generation
        state = self.controller.state
        self._set_table(replace(self.table, loading=True))

        try:
            result = await self._loader(state)
        except (TransportError, MalformedResponseError) as e:
            if self._is_stale(generation):
                logger.debug(f"Dropping stale {self.kind} failure (generation {generation}): {e}")
                return False
            self._set_table(replace(self.table, loading=False))
            self._notify(f"Failed to load {self.title}: {e}")
            return False

        if self._is_stale(generation):
            logger.debug(
                f"Dropping stale {self.kind} response "
                f"(generation {generation}, current {self.controller.generation})"
            )
            return False

        self.summary = result.summary
        self.has_more = result.has_more
        self._set_table(TableState(
            rows=tuple(result.rows),
            loading=False,
            caption=result.caption if result.caption is not None else self.table.caption,
        ))
        if result.total_rows is not None:
            self.controller.report_total_rows(result.total_rows)
        return True

    def _is_stale(self, generation: int) -> bool:
        return generation != self.controller.generation

    def _set_table(self, table: TableState) -> None:
        if table != self.table:
            self.table = table
            self.version += 1


class HomeBrowser:
    """Recent bundles, recent user ops, top bundlers and top paymasters."""

    def __init__(self, client: QueryClient, controller: PageStateController,
                 notify: Notify, limit: int = 5,
                 networks: NetworkRegistry = default_registry):
        self.controller = controller

        def rows(mapper):
            return lambda records, network: mapper(records, network, networks)

        self.tables: List[ResourceBrowser] = [
            ResourceBrowser("bundle", "Recent Bundles", controller,
                            list_loader(client.latest_bundles, rows(bundle_rows), limit),
                            notify, caption="Recent Bundles"),
            ResourceBrowser("userOp", "Recent User Operations", controller,
                            list_loader(client.latest_user_ops, rows(user_op_rows), limit),
                            notify, caption="Recent User Operations"),
            ResourceBrowser("bundler", "Top Bundlers", controller,
                            list_loader(client.top_bundlers, rows(bundler_rows), limit),
                            notify, caption="Top Bundlers"),
            ResourceBrowser("paymaster", "Top Paymasters", controller,
                            list_loader(client.top_paymasters, rows(paymaster_rows), limit),
                            notify, caption="Top Paymasters"),
        ]

    def table(self, kind: str) -> ResourceBrowser:
        for browser in self.tables:
            if browser.kind == kind:
                return browser
        raise KeyError(kind)

    @property
    def version(self) -> int:
        return sum(b.version for b in self.tables)

    def watch(self) -> None:
        for browser in self.tables:
            browser.watch()

    def unwatch(self) -> None:
        for browser in self.tables:
            browser.unwatch()

    def close(self) -> None:
        for browser in self.tables:
            browser.close()

    async def refresh(self) -> None:
        await asyncio.gather(*(b.refresh() for b in self.tables))

    async def drain(self) -> None:
        await asyncio.gather(*(b.drain() for b in self.tables))


class DetailBrowser(ResourceBrowser):
    """Single paymaster/bundler/address page."""

    def __init__(self, kind: str, title: str, subject: Subject,
                 controller: PageStateController, resolver: NetworkResolver,
                 loader: Loader, notify: Notify, noun: str = "User Ops"):
        super().__init__(kind, title, controller, loader, notify,
                         caption=f"N/A {noun} found")
        self.subject = subject
        self.resolver = resolver
        self._network = controller.state.network

    def _on_state_change(self, state: PageState) -> None:
        if state.network != self._network:
            # A network switch settles the subject's network
            self._network = state.network
            self.subject.resolved_network = state.network
            self.subject.status = ResolutionStatus.RESOLVED
        if self.subject.resolved_network is None:
            # load() fetches once resolution picks a network
            return
        super()._on_state_change(state)

    def choose_network(self, network: str) -> None:
        """Explicit user choice; settles the subject's network even if unchanged."""
        self.subject.resolved_network = network
        self.subject.status = ResolutionStatus.RESOLVED
        self._network = network
        self.controller.set_network(network)

    async def load(self) -> ResolutionStatus:
        """Resolve the subject's network if needed, then fetch the first view."""
        self.watch()
        subject = self.subject

        if subject.resolved_network is None and self.controller.network_from_location:
            subject.resolved_network = self.controller.state.network
            subject.status = ResolutionStatus.RESOLVED
            self._spawn(self._discover_networks())

        if subject.resolved_network is None:
            matches = self.resolver.ordered(await self.resolver.resolve(subject.hash))
            subject.available_networks = tuple(matches)

            if subject.resolved_network is not None:
                # The user picked a network while probes were running
                await self.drain()
                return subject.status

            if not matches:
                subject.status = ResolutionStatus.NO_MATCH
                self._set_table(replace(self.table, loading=False))
                self._notify(f"{NETWORK_NOT_DETERMINED} for {subject.hash}")
                return subject.status

            subject.resolved_network = matches[0]
            subject.status = ResolutionStatus.RESOLVED
            if matches[0] != self.controller.state.network:
                # Transition; the listener schedules the fetch
                self.controller.set_network(matches[0], page_no=self.controller.state.page_no)
                await self.drain()
                return subject.status

        await self.refresh()
        await self.drain()
        return subject.status

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _discover_networks(self) -> None:
        """Fill the network switcher even when the location named a network."""
        matches = await self.resolver.resolve(self.subject.hash)
        self.subject.available_networks = tuple(self.resolver.ordered(matches))
        self.version += 1


def make_detail_browser(view: str, address: str, client: QueryClient,
                        controller: PageStateController, resolver: NetworkResolver,
                        notify: Notify,
                        networks: NetworkRegistry = default_registry) -> DetailBrowser:
    """Detail browser for a route view: ``paymaster``, ``bundler`` or ``address``."""
    def rows(mapper):
        return lambda records, network: mapper(records, network, networks)

    if view == "paymaster":
        fetch, mapper, title, noun = client.paymaster_details, user_op_rows, "Paymaster", "User Ops"
    elif view == "bundler":
        fetch, mapper, title, noun = client.bundler_details, bundle_rows, "Bundler", "Bundles"
    elif view == "address":
        fetch, mapper, title, noun = client.address_activity, user_op_rows, "Address", "User Ops"
    else:
        raise ValueError(f"Unknown detail view: {view}")

    return DetailBrowser(
        view, title, Subject(hash=address), controller, resolver,
        detail_loader(fetch, rows(mapper), address, noun), notify, noun=noun,
    )


def make_list_browser(view: str, client: QueryClient, controller: PageStateController,
                      notify: Notify,
                      networks: NetworkRegistry = default_registry) -> ResourceBrowser:
    """Paginated browser for a list route: ``bundles``, ``userOps``, ``bundlers``, ``paymasters``."""
    specs = {
        "bundles": ("bundle", "Recent Bundles", client.latest_bundles, bundle_rows),
        "userOps": ("userOp", "Recent User Operations", client.latest_user_ops, user_op_rows),
        "bundlers": ("bundler", "Top Bundlers", client.top_bundlers, bundler_rows),
        "paymasters": ("paymaster", "Top Paymasters", client.top_paymasters, paymaster_rows),
    }
    if view not in specs:
        raise ValueError(f"Unknown list view: {view}")
    kind, title, fetch, mapper = specs[view]
    loader = paged_list_loader(fetch, lambda records, network: mapper(records, network, networks))
    return ResourceBrowser(kind, title, controller, loader, notify, caption=title)

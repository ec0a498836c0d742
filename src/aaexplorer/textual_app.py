"""Textual-based UI for aaexplorer."""

from __future__ import annotations

import logging
from typing import Any, Optional

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, Static, Tab, Tabs
from rich.markup import escape as rich_escape

from .backend import QueryClient
from .browser import (
    HomeBrowser,
    NETWORK_NOT_DETERMINED,
    ResourceBrowser,
    DetailBrowser,
    make_detail_browser,
    make_list_browser,
)
from .config import ConfigManager
from .formatting import get_fee, shorten_string
from .location import Location, NETWORK_PARAM, detail_path, list_path, parse_location
from .model import ResolutionStatus, ResourceRow
from .networks import NetworkRegistry, registry as default_registry
from .resolver import NetworkResolver
from .state import PageStateController

logger = logging.getLogger(__name__)

CACHE_CLEANUP_INTERVAL = 30.0  # seconds


class InputScreen(ModalScreen[Optional[str]]):
    def __init__(self, prompt: str) -> None:
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:
        yield Vertical(
            Static("Go to", classes="modal_title"),
            Static(self.prompt, classes="modal_body"),
            Input(placeholder="0x... or /paymaster/0x...?network=base", id="input_value"),
            Static("[Esc] Cancel", classes="modal_hint"),
            id="modal",
        )

    def on_mount(self) -> None:
        self.query_one("#input_value", Input).focus()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        self.dismiss(value or None)

    async def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)


class ActionMenuScreen(ModalScreen[Optional[str]]):
    BINDINGS = [
        Binding("up", "move_up", "Up", show=False),
        Binding("down", "move_down", "Down", show=False),
        Binding("enter", "select", "Select", show=False),
        Binding("escape", "cancel", "Cancel", show=False),
    ]

    def __init__(self, title: str, options: list[tuple[str, str]], index: int = 0) -> None:
        super().__init__()
        self.menu_title = title
        self.options = options
        self.index = index

    def compose(self) -> ComposeResult:
        yield Vertical(
            Static(self.menu_title, classes="modal_title"),
            Static("", id="menu_options", classes="modal_body", markup=False),
            Static("[Up/Down] Move  [Enter] Select  [Esc] Cancel", classes="modal_hint", markup=False),
            id="modal",
        )

    def on_mount(self) -> None:
        self._render_options()

    def _render_options(self) -> None:
        lines = []
        for idx, (label, _key) in enumerate(self.options):
            marker = ">" if idx == self.index else " "
            lines.append(f"{marker} {label}")
        self.query_one("#menu_options", Static).update("\n".join(lines))

    def action_move_up(self) -> None:
        self.index = (self.index - 1) % len(self.options)
        self._render_options()

    def action_move_down(self) -> None:
        self.index = (self.index + 1) % len(self.options)
        self._render_options()

    def action_select(self) -> None:
        self.dismiss(self.options[self.index][1])

    def action_cancel(self) -> None:
        self.dismiss(None)


class ExplorerApp(App[None]):
    TITLE = "aaexplorer"
    SUB_TITLE = "UserOp Explorer for ERC-4337"

    CSS = """
    Screen {
      layout: vertical;
    }

    #tabs {
      height: 1;
      padding: 0 1;
      background: $surface;
      color: $text;
    }

    #main {
      layout: vertical;
      height: 1fr;
    }

    #summary {
      height: auto;
      border: round $accent;
      padding: 0 1;
    }

    #tables {
      height: 1fr;
      border: round $accent;
      padding: 0 1;
      overflow: auto;
    }

    #status {
      height: 1;
      padding: 0 1;
      background: $panel;
      color: $text;
    }

    #modal {
      width: 70;
      height: auto;
      border: round $accent;
      background: $surface;
      padding: 1 2;
      align: center middle;
    }

    .modal_title {
      text-style: bold;
      margin-bottom: 1;
    }

    .modal_body {
      margin-bottom: 1;
    }

    .modal_hint {
      color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("1", "view('home')", "Home", show=False),
        Binding("2", "view('bundles')", "Bundles", show=False),
        Binding("3", "view('userOps')", "User Ops", show=False),
        Binding("4", "view('bundlers')", "Bundlers", show=False),
        Binding("5", "view('paymasters')", "Paymasters", show=False),
        Binding("n", "choose_network", "Network"),
        Binding("left", "previous_page", "Prev Page"),
        Binding("right", "next_page", "Next Page"),
        Binding("plus,equals_sign", "page_size(1)", "Page Size +"),
        Binding("minus", "page_size(-1)", "Page Size -"),
        Binding("g", "goto", "Go To"),
        Binding("y", "copy_location", "Copy Link"),
        Binding("r", "reload", "Reload"),
    ]

    TABS = ["home", "bundles", "userOps", "bundlers", "paymasters"]

    def __init__(self, client: QueryClient, config: ConfigManager,
                 location: Optional[Location] = None,
                 networks: NetworkRegistry = default_registry) -> None:
        super().__init__()
        self.client = client
        self.config = config
        self.networks = networks
        self.resolver = NetworkResolver(client, networks)
        self.location = location or Location()
        self.status_message = ""

        self.controller: Optional[PageStateController] = None
        self.browser: Any = None
        self.current_view = "home"
        self._last_version = -1
        self._syncing_tabs = False
        # Detail views keep whichever tab was active before them
        self._active_tab = self._initial_tab(self.location)

    def compose(self) -> ComposeResult:
        yield Header(show_clock=self.config.get_config().ui.show_clock)
        yield Tabs(
            Tab("HOME", id="home"),
            Tab("BUNDLES", id="bundles"),
            Tab("USER OPS", id="userOps"),
            Tab("BUNDLERS", id="bundlers"),
            Tab("PAYMASTERS", id="paymasters"),
            id="tabs",
            active=self._active_tab,
        )
        yield Vertical(
            Static("", id="summary"),
            Static("", id="tables"),
            id="main",
        )
        yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.set_interval(self.config.get_refresh_interval() / 1000, self._tick)
        self.set_interval(CACHE_CLEANUP_INTERVAL, self.client.cache.cleanup_expired)
        self._open(self.location)

    async def on_unmount(self) -> None:
        logger.debug(f"Cache stats: {self.client.cache.get_stats()}")
        await self.client.close()

    # --- Navigation ---

    def _open(self, location: Location) -> None:
        """Tear down the current view and build the one the location names."""
        try:
            route = location.route
        except ValueError as e:
            self._set_message(str(e))
            route = Location().route
            location = Location()

        # The previous view is destroyed; its late results must not reach the app
        self.workers.cancel_group(self, "fetch")
        if self.browser is not None:
            self.browser.close()

        def write_location(new_location: Location) -> None:
            self._on_location_change(controller, new_location)

        self.current_view = route.view
        controller = PageStateController(
            location,
            networks=self.networks,
            page_sizes=self.config.get_page_sizes(),
            default_page_size=self.config.get_default_page_size(),
            fallback_network=self.config.get_last_network(),
            on_location_change=write_location,
            paginated=route.view != "home",
        )
        self.controller = controller
        self.location = controller.location
        notify = self._notify_failure

        if route.view == "home":
            self.browser = HomeBrowser(
                self.client, self.controller, notify,
                limit=self.config.get_home_table_size(), networks=self.networks,
            )
            self.browser.watch()
            self.run_worker(self.browser.refresh(), group="fetch", thread=False)
        elif route.is_detail:
            self.browser = make_detail_browser(
                route.view, route.subject, self.client, self.controller,
                self.resolver, notify, networks=self.networks,
            )
            self.run_worker(self.browser.load(), group="fetch", thread=False)
        else:
            self.browser = make_list_browser(
                route.view, self.client, self.controller, notify, networks=self.networks,
            )
            self.browser.watch()
            self.run_worker(self.browser.refresh(), group="fetch", thread=False)

        self._sync_tabs()
        self._last_version = -1
        self._render()

    def _on_location_change(self, controller: PageStateController, location: Location) -> None:
        if controller is not self.controller:
            logger.debug(f"Ignoring location {location} from a closed view")
            return
        self.location = location
        self.config.set_last_network(controller.state.network)

    def _notify_failure(self, message: str) -> None:
        logger.warning(message)
        self.notify(message, title="Request failed", severity="error")

    def _initial_tab(self, location: Location) -> str:
        try:
            view = location.route.view
        except ValueError:
            return "home"
        return view if view in self.TABS else "home"

    def _sync_tabs(self) -> None:
        if self.current_view not in self.TABS:
            return
        self._active_tab = self.current_view
        tabs = self.query_one("#tabs", Tabs)
        if tabs.active != self.current_view:
            self._syncing_tabs = True
            try:
                tabs.active = self.current_view
            finally:
                self._syncing_tabs = False

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        if self._syncing_tabs:
            return
        tab_id = event.tab.id
        if tab_id in self.TABS and tab_id != self._active_tab:
            self.action_view(tab_id)

    def _current_network(self) -> Optional[str]:
        return self.controller.state.network if self.controller else None

    # --- Actions ---

    def action_view(self, view: str) -> None:
        network = self._current_network()
        query = ((NETWORK_PARAM, network),) if network else ()
        self._open(Location(list_path(view), query))

    def action_choose_network(self) -> None:
        self.run_worker(self._choose_network_flow(), group="user-action", exclusive=True, thread=False)

    async def _choose_network_flow(self) -> None:
        if self.controller is None:
            return
        found = ()
        if isinstance(self.browser, DetailBrowser):
            found = self.browser.subject.available_networks
        options = []
        for n in self.networks:
            label = n.display_name + ("  *" if n.key in found else "")
            options.append((label, n.key))
        keys = [k for _, k in options]
        current = self.controller.state.network
        index = keys.index(current) if current in keys else 0
        choice = await self.push_screen_wait(ActionMenuScreen("Network", options, index))
        if choice:
            if isinstance(self.browser, DetailBrowser):
                self.browser.choose_network(choice)
            else:
                self.controller.set_network(choice)
            self._render()

    def action_next_page(self) -> None:
        if self.controller is None or self.current_view == "home":
            return
        if not getattr(self.browser, "has_more", False):
            self._set_message("Last page")
            return
        self.controller.next_page()
        self._render()

    def action_previous_page(self) -> None:
        if self.controller is None or self.current_view == "home":
            return
        self.controller.previous_page()
        self._render()

    def action_page_size(self, step: int) -> None:
        if self.controller is None or self.current_view == "home":
            return
        sizes = list(self.controller.page_sizes)
        idx = sizes.index(self.controller.state.page_size)
        idx = max(0, min(len(sizes) - 1, idx + step))
        self.controller.set_page_size(sizes[idx])
        self._render()

    def action_goto(self) -> None:
        self.run_worker(self._goto_flow(), group="user-action", exclusive=True, thread=False)

    async def _goto_flow(self) -> None:
        value = await self.push_screen_wait(
            InputScreen("Address, hash or location to open")
        )
        if not value:
            return
        if value.startswith("/"):
            self._open(parse_location(value))
        else:
            self._open(Location(detail_path("address", value)))

    def action_copy_location(self) -> None:
        self.copy_to_clipboard(str(self.location))
        self._set_message(f"Copied {self.location}")
        self._render()

    def action_reload(self) -> None:
        network = self._current_network()
        if network:
            self.client.cache.invalidate_network(network)
        if isinstance(self.browser, DetailBrowser):
            self.resolver.forget(self.browser.subject.hash)
        self._open(self.location)

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool:
        # If a modal screen is active, app-level bindings must not steal keys.
        if len(self.screen_stack) > 1:
            return False
        return True

    # --- Rendering ---

    def _set_message(self, message: str) -> None:
        self.status_message = message

    def _tick(self) -> None:
        version = self.browser.version if self.browser is not None else 0
        if version != self._last_version:
            self._last_version = version
            self._render()

    def _render(self) -> None:
        self.query_one("#summary", Static).update(rich_escape(self._render_summary()))
        self.query_one("#tables", Static).update(rich_escape(self._render_tables()))
        self.query_one("#status", Static).update(rich_escape(self._render_status()))

    def _render_summary(self) -> str:
        if self.controller is None:
            return ""
        state = self.controller.state
        network = self.networks.lookup(state.network).display_name
        if self.current_view == "home":
            return f"Network: {network}    [n] change network"

        lines = []
        if isinstance(self.browser, DetailBrowser):
            subject = self.browser.subject
            lines.append(f"{self.browser.title}: {subject.hash}")
            if subject.status == ResolutionStatus.NO_MATCH:
                lines.append(f"Network: {NETWORK_NOT_DETERMINED}")
            elif subject.resolved_network is None:
                lines.append("Network: resolving...")
            else:
                lines.append(f"Network: {network}")
            if subject.available_networks:
                names = [self.networks.lookup(k).display_name for k in subject.available_networks]
                lines.append(f"Found on: {', '.join(names)}")
            summary = self.browser.summary
            if summary is not None and hasattr(summary, "total_deposits"):
                lines.append(f"Total deposits: {get_fee(summary.total_deposits, state.network, self.networks)}")
        else:
            lines.append(f"Network: {network}")

        page = f"Page {state.page_no}"
        if self.controller.total_rows is not None:
            page += f" of {self.controller.max_page}"
        lines.append(f"{page}    Page size: {state.page_size}")
        return "\n".join(lines)

    def _render_tables(self) -> str:
        if self.browser is None:
            return ""
        if isinstance(self.browser, HomeBrowser):
            return "\n\n".join(self._render_table(b) for b in self.browser.tables)
        return self._render_table(self.browser)

    def _render_table(self, browser: ResourceBrowser) -> str:
        table = browser.table
        caption = table.caption + ("  (loading...)" if table.loading else "")
        lines = [caption, "", self._header(browser.kind)]
        for row in table.rows:
            lines.append(self._row(row))
        if not table.rows and not table.loading:
            lines.append("(no items)")
        return "\n".join(lines)

    def _header(self, kind: str) -> str:
        if kind == "bundle":
            return "HASH               AGE            OPS"
        if kind == "userOp":
            return "HASH               AGE            SENDER           TARGET           FEE                OK"
        if kind == "bundler":
            return "ADDRESS            BUNDLES        FEE"
        if kind == "paymaster":
            return "ADDRESS            OPS"
        return ""

    def _row(self, row: ResourceRow) -> str:
        token = shorten_string(row.token.text)
        if row.kind == "bundle":
            return f"{token:18} {row.ago:14} {row.user_ops}"
        if row.kind == "userOp":
            target = shorten_string(row.target[0]) if row.target else ""
            ok = "yes" if row.status else "no"
            return f"{token:18} {row.ago:14} {shorten_string(row.sender):16} {target:16} {row.fee:18} {ok}"
        if row.kind == "bundler":
            return f"{token:18} {row.user_ops:14} {row.fee}"
        return f"{token:18} {row.user_ops}"

    def _render_status(self) -> str:
        return f"{self.location}  {self.status_message}".strip()


def run(location: Optional[Location] = None, config: Optional[ConfigManager] = None) -> None:
    from .config import config_manager

    config = config or config_manager
    client = QueryClient(
        config.get_api_base_url(),
        api_key=config.get_api_key(),
        timeout=config.get_timeout(),
    )
    app = ExplorerApp(client, config, location=location)
    app.run()

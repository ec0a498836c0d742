"""
Page state management and location synchronization.

This module owns the browsing position of one view: the selected network, the
page number, the page size and the last total row count reported by the
backend. It is the only writer of that state and the only writer of the
view's location.

Architecture:
  - PageStateController: state machine over PageState
  - Transitions: set_network, set_page_size, set_page_no, report_total_rows
  - Generation counter: incremented on every transition; fetches tag their
    responses with it and drop them when it has moved on
  - Listeners: callbacks run after each transition (browsers refetch from them)

Transition Side Effects (in order):
  1. Replace the PageState value
  2. Increment the generation
  3. Rewrite network/pageNo/pageSize in the location and publish it
  4. Run listeners

Initial State:
  - Read from the location query at mount
  - Missing or invalid values fall back to pageNo=1, the default page size and
    the fallback network (last selected), else the first supported network
  - total_rows is None until the backend reports one; the page upper bound
    applies from the first report on
"""

import logging
import math
from dataclasses import replace
from typing import Callable, List, Optional, Sequence, Union

from .config import DEFAULT_PAGE_SIZE, PAGE_SIZE_LIST
from .errors import InvalidPageParameter
from .location import (
    Location,
    NETWORK_PARAM,
    decode_page_params,
    encode_page_params,
)
from .model import PageState
from .networks import NetworkRegistry, registry as default_registry

logger = logging.getLogger(__name__)

StateListener = Callable[[PageState], None]
LocationWriter = Callable[[Location], None]


class PageStateController:
    """Single owner of a view's PageState and location."""

    def __init__(
        self,
        location: Location,
        networks: NetworkRegistry = default_registry,
        page_sizes: Sequence[int] = PAGE_SIZE_LIST,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        fallback_network: Optional[str] = None,
        on_location_change: Optional[LocationWriter] = None,
        paginated: bool = True,
    ):
        if default_page_size not in page_sizes:
            raise ValueError(f"default page size {default_page_size} not in {list(page_sizes)}")
        self.networks = networks
        self.page_sizes = tuple(page_sizes)
        self.default_page_size = default_page_size
        self.paginated = paginated
        self._on_location_change = on_location_change
        self._listeners: List[StateListener] = []
        self._generation = 0
        self._total_rows: Optional[int] = None

        raw_network, raw_page_no, raw_page_size = decode_page_params(location)
        self.network_from_location = raw_network is not None and raw_network in networks
        network = self._initial_network(raw_network, fallback_network)
        page_size = self._coerce_page_size(raw_page_size) if paginated else default_page_size
        page_no = self._coerce_page_no(raw_page_no) if paginated else 1

        self._state = PageState(network=network, page_no=page_no, page_size=page_size)
        self._location = location.with_params(**self._location_params())

    # --- Read access ---

    @property
    def state(self) -> PageState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def location(self) -> Location:
        return self._location

    @property
    def total_rows(self) -> Optional[int]:
        return self._total_rows

    @property
    def max_page(self) -> int:
        if not self._total_rows:
            return 1
        return max(1, math.ceil(self._total_rows / self._state.page_size))

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # --- Transitions ---

    def set_network(self, network: str, page_no: Union[int, str] = 1) -> None:
        """Switch network; page size is kept and the total becomes unknown.

        The page number resets to 1 unless ``page_no`` is given; network
        resolution passes the page the location named.
        """
        self.networks.lookup(network)
        self._total_rows = None
        self._transition(replace(self._state, network=network, page_no=self._coerce_page_no(page_no)))

    def set_page_size(self, page_size: Union[int, str]) -> None:
        size = self._coerce_page_size(page_size)
        self._transition(replace(self._state, page_size=size, page_no=1))

    def set_page_no(self, page_no: Union[int, str]) -> None:
        self._transition(replace(self._state, page_no=self._clamp(self._coerce_page_no(page_no))))

    def next_page(self) -> None:
        self.set_page_no(self._state.page_no + 1)

    def previous_page(self) -> None:
        self.set_page_no(self._state.page_no - 1)

    def report_total_rows(self, total_rows: int) -> bool:
        """Record the backend's row count. Returns True if the page was clamped.

        Only a clamp counts as a transition; recording an unchanged position
        does not invalidate in-flight requests.
        """
        total = max(0, int(total_rows))
        self._total_rows = total
        bounded = self._clamp(self._state.page_no)
        if bounded != self._state.page_no:
            logger.debug(f"Page {self._state.page_no} beyond {total} rows, clamping to {bounded}")
            self._transition(replace(self._state, page_no=bounded))
            return True
        self._state = replace(self._state, total_rows=total)
        return False

    # --- Internals ---

    def _transition(self, new_state: PageState) -> None:
        new_state = replace(new_state, total_rows=self._total_rows)
        self._state = new_state
        self._inc_generation()
        self._location = self._location.with_params(**self._location_params())
        if self._on_location_change:
            self._on_location_change(self._location)
        for listener in list(self._listeners):
            listener(new_state)

    def _inc_generation(self) -> None:
        self._generation += 1

    def _location_params(self):
        params = encode_page_params(self._state)
        if not self.paginated:
            return {NETWORK_PARAM: params[NETWORK_PARAM]}
        return params

    def _initial_network(self, raw: Optional[str], fallback: Optional[str]) -> str:
        if raw is not None:
            if raw in self.networks:
                return raw
            logger.debug(str(InvalidPageParameter(NETWORK_PARAM, raw)))
        if fallback and fallback in self.networks:
            return fallback
        return self.networks.default().key

    def _coerce_page_size(self, raw: Union[int, str, None]) -> int:
        try:
            size = int(raw) if raw is not None else self.default_page_size
        except (TypeError, ValueError):
            logger.debug(str(InvalidPageParameter("pageSize", raw)))
            return self.default_page_size
        if size not in self.page_sizes:
            logger.debug(str(InvalidPageParameter("pageSize", raw)))
            return self.default_page_size
        return size

    def _coerce_page_no(self, raw: Union[int, str, None]) -> int:
        try:
            page_no = int(raw) if raw is not None else 1
        except (TypeError, ValueError):
            logger.debug(str(InvalidPageParameter("pageNo", raw)))
            return 1
        if page_no < 1:
            logger.debug(str(InvalidPageParameter("pageNo", raw)))
            return 1
        return page_no

    def _clamp(self, page_no: int) -> int:
        if self._total_rows is None:
            return max(1, page_no)
        return max(1, min(page_no, self.max_page))

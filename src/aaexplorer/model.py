"""
Data models and structures for aaexplorer.

This module defines the dataclasses that flow between the query client, the
page state controller and the table renderer:
  - API records as returned by the query API (Bundle, UserOp, Bundler, Paymaster)
  - Per-address activity pages (PaymasterActivity, BundlerActivity, AddressActivity)
  - Browsing state (PageState, Subject, TableState)
  - Render-ready rows (ResourceRow)

Key Fields:
  - Records keep the API's values mostly raw (wei amounts, unix timestamps)
  - ResourceRow holds display strings only; rows are immutable snapshots
  - TableState is replaced whole on every update, never patched in place
  - PageState.page_no is 1-based

Row Kinds:
  - "bundle", "userOp", "bundler", "paymaster" (ROW_KINDS)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

ROW_KINDS = ("bundle", "userOp", "bundler", "paymaster")


@dataclass(frozen=True)
class Bundle:
    transaction_hash: str
    block_time: int
    user_ops_length: int
    network: str = ""


@dataclass(frozen=True)
class UserOp:
    user_op_hash: str
    sender: str
    block_time: Optional[int] = None
    target: Tuple[str, ...] = ()
    actual_gas_cost: int = 0
    success: Optional[bool] = None
    network: str = ""


@dataclass(frozen=True)
class Bundler:
    address: str
    bundle_length: int
    actual_gas_cost_sum: int = 0


@dataclass(frozen=True)
class Paymaster:
    address: str
    user_ops_length: int


@dataclass(frozen=True)
class PaymasterActivity:
    address: str
    total_deposits: int
    user_ops_length: int
    user_ops: List[UserOp] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return self.user_ops_length

    @property
    def records(self) -> List[UserOp]:
        return self.user_ops


@dataclass(frozen=True)
class BundlerActivity:
    address: str
    bundle_length: int
    bundles: List[Bundle] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return self.bundle_length

    @property
    def records(self) -> List[Bundle]:
        return self.bundles


@dataclass(frozen=True)
class AddressActivity:
    address: str
    user_ops_count: int
    user_ops: List[UserOp] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return self.user_ops_count

    @property
    def records(self) -> List[UserOp]:
        return self.user_ops


@dataclass(frozen=True)
class PageState:
    network: str
    page_no: int = 1
    page_size: int = 10
    # None until the backend reports a total; the page bound applies from then on
    total_rows: Optional[int] = None


class ResolutionStatus(Enum):
    UNRESOLVED = "unresolved"  # never attempted, or still in flight
    RESOLVED = "resolved"
    NO_MATCH = "no_match"


@dataclass
class Subject:
    """Entity under inspection on a detail page."""
    hash: str
    resolved_network: Optional[str] = None
    status: ResolutionStatus = ResolutionStatus.UNRESOLVED
    available_networks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Token:
    text: str
    icon: str
    type: str


@dataclass(frozen=True)
class ResourceRow:
    kind: str  # one of ROW_KINDS
    token: Token
    ago: str = ""
    sender: str = ""
    target: Tuple[str, ...] = ()
    fee: str = ""
    user_ops: str = ""
    status: Optional[bool] = None


@dataclass(frozen=True)
class TableState:
    rows: Tuple[ResourceRow, ...] = ()
    loading: bool = True
    caption: str = ""

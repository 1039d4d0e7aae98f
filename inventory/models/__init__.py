"""
Models package for the inventory store.
"""

# Domain models
from .domain import (
    ItemStatus,
    DueState,
    TERMINAL_STATUSES,
    ActiveState,
    NonRepairableState,
    HandedOverState,
    ItemState,
    compute_due_state,
    Person,
    ItemType,
    PcbModel,
    NameCreate,
    PersonCreate,
    RemovalResult,
    Item,
)

# Finance models
from .finance import (
    Transaction,
    FinanceSummary,
    FilterOptions,
)

__all__ = [
    # Domain
    "ItemStatus",
    "DueState",
    "TERMINAL_STATUSES",
    "ActiveState",
    "NonRepairableState",
    "HandedOverState",
    "ItemState",
    "compute_due_state",
    "Person",
    "ItemType",
    "PcbModel",
    "NameCreate",
    "PersonCreate",
    "RemovalResult",
    "Item",
    # Finance
    "Transaction",
    "FinanceSummary",
    "FilterOptions",
]

"""
Services package for the inventory store.
"""

from .store import InventoryStore
from .migrations import SchemaMigrator, MIGRATIONS, LATEST_VERSION
from .items import ItemService, next_serial_number, sort_by_due_date
from .entities import EntityKind, ReferenceEntityService
from .finance import FinanceService, filter_transactions

__version__ = "0.1.0"

__all__ = [
    "InventoryStore",
    "SchemaMigrator",
    "MIGRATIONS",
    "LATEST_VERSION",
    "ItemService",
    "next_serial_number",
    "sort_by_due_date",
    "EntityKind",
    "ReferenceEntityService",
    "FinanceService",
    "filter_transactions",
]

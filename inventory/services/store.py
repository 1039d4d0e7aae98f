"""
Inventory Store

The single entry point screens use. Owns the database connection and the
services built on it; construct one per process, call initialize() once,
and pass the store to whatever needs it.
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from inventory.models.domain import (
    Item,
    ItemStatus,
    ItemType,
    PcbModel,
    Person,
    RemovalResult,
)
from inventory.models.finance import FilterOptions, FinanceSummary, Transaction
from inventory.services.entities import EntityKind, ReferenceEntityService
from inventory.services.finance import FinanceService, filter_transactions
from inventory.services.items import ItemService
from inventory.services.migrations import SchemaMigrator
from inventory.utils.config import Settings, get_settings
from inventory.utils.database import Database
from inventory.utils.errors import NotInitializedError, StorageError

logger = logging.getLogger(__name__)


class InventoryStore:
    """
    Repair-shop inventory backed by one SQLite file.

    Every operation except initialize() raises NotInitializedError until
    initialize() has succeeded. The store never initializes itself.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        db_path: Optional[str] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            settings: Configuration (defaults to the global settings)
            db_path: Overrides settings.DB_PATH
            clock: Source of "now", replaceable in tests
        """
        self.settings = settings or get_settings()
        self.clock = clock
        self.db = Database(db_path or self.settings.DB_PATH)
        self.migrator = SchemaMigrator(self.db, self.settings, clock)
        self.items = ItemService(self.db, self.settings, clock)
        self.persons = ReferenceEntityService(self.db, EntityKind.PERSON)
        self.item_types = ReferenceEntityService(self.db, EntityKind.ITEM_TYPE)
        self.pcb_models = ReferenceEntityService(self.db, EntityKind.PCB_MODEL)
        self.finance = FinanceService(self.db, clock)
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> List[int]:
        """
        Open the database and bring its schema up to date

        Safe to call repeatedly; later calls apply nothing.

        Returns:
            Migration versions applied by this call

        Raises:
            StorageError: if the database cannot be opened or migrated
        """
        self.db.connect()
        try:
            applied = self.migrator.migrate()
        except StorageError:
            self._initialized = False
            self.db.close()
            raise
        self._initialized = True
        return applied

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def schema_version(self) -> int:
        self._require_initialized()
        return self.migrator.current_version()

    def close(self):
        self.db.close()
        self._initialized = False

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _require_initialized(self):
        if not self._initialized:
            raise NotInitializedError("InventoryStore.initialize() has not completed")

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(self, item_type_id: int, person_id: int, pcb_model_id: int, estimated_time_days: int) -> int:
        self._require_initialized()
        return self.items.add_item(item_type_id, person_id, pcb_model_id, estimated_time_days)

    def get_item(self, item_id: int, today: Optional[date] = None) -> Item:
        self._require_initialized()
        return self.items.get_item(item_id, today)

    def list_items(self, today: Optional[date] = None) -> List[Item]:
        self._require_initialized()
        return self.items.list_items(today)

    def list_due_items(self, today: Optional[date] = None) -> List[Item]:
        self._require_initialized()
        return self.items.list_due_items(today)

    def mark_status(self, item_id: int, status: ItemStatus):
        self._require_initialized()
        self.items.mark_status(item_id, status)

    def mark_handed_over(self, item_id: int, repair_amount, is_paid: bool):
        self._require_initialized()
        self.items.mark_handed_over(item_id, repair_amount, is_paid)

    def mark_paid(self, item_id: int) -> bool:
        self._require_initialized()
        return self.items.mark_paid(item_id)

    def delete_item(self, item_id: int):
        self._require_initialized()
        self.items.delete_item(item_id)

    # ------------------------------------------------------------------
    # Reference entities
    # ------------------------------------------------------------------

    def add_person(self, name: str, phone_number: str, priority: int = 1) -> int:
        self._require_initialized()
        return self.persons.add(name, phone_number=phone_number, priority=priority)

    def add_item_type(self, name: str) -> int:
        self._require_initialized()
        return self.item_types.add(name)

    def add_pcb_model(self, name: str) -> int:
        self._require_initialized()
        return self.pcb_models.add(name)

    def list_persons(self) -> List[Person]:
        self._require_initialized()
        return self.persons.list()

    def list_item_types(self) -> List[ItemType]:
        self._require_initialized()
        return self.item_types.list()

    def list_pcb_models(self) -> List[PcbModel]:
        self._require_initialized()
        return self.pcb_models.list()

    def remove_person(self, person_id: int) -> RemovalResult:
        self._require_initialized()
        return self.persons.remove(person_id)

    def remove_item_type(self, item_type_id: int) -> RemovalResult:
        self._require_initialized()
        return self.item_types.remove(item_type_id)

    def remove_pcb_model(self, pcb_model_id: int) -> RemovalResult:
        self._require_initialized()
        return self.pcb_models.remove(pcb_model_id)

    # ------------------------------------------------------------------
    # Finance
    # ------------------------------------------------------------------

    def finance_summary(self, today: Optional[date] = None) -> FinanceSummary:
        self._require_initialized()
        return self.finance.summary(today)

    def filter_options(self) -> FilterOptions:
        self._require_initialized()
        return self.finance.filter_options()

    def filter_transactions(
        self,
        person_name: Optional[str] = None,
        item_type: Optional[str] = None,
        pcb_model: Optional[str] = None,
        is_paid: Optional[bool] = None,
        today: Optional[date] = None
    ) -> List[Transaction]:
        self._require_initialized()
        return filter_transactions(
            self.finance.summary(today).transactions,
            person_name=person_name,
            item_type=item_type,
            pcb_model=pcb_model,
            is_paid=is_paid,
        )

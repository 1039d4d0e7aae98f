"""
Item Service

Creates and queries repair items. Serial numbers are generated in the
same transaction as the insert; due status of active items is computed
at read time from createdAt and estimatedTime.
"""

import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from inventory.models.domain import (
    ActiveState,
    HandedOverState,
    Item,
    ItemStatus,
    NonRepairableState,
    TERMINAL_STATUSES,
    compute_due_state,
)
from inventory.services.migrations import parse_estimated_days
from inventory.utils.config import Settings
from inventory.utils.database import Database
from inventory.utils.errors import NotFoundError, StatusTransitionError, StorageError
from inventory.utils.timeutils import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

SERIAL_PATTERN = re.compile(r"^([A-Z]{2})(\d+)$")

ITEM_SELECT = """
    SELECT i.id, i.serialNumber AS serial_number,
           i.itemTypeId AS item_type_id, i.personId AS person_id, i.pcbModelId AS pcb_model_id,
           t.name AS item_type, p.name AS person_name, m.name AS pcb_model,
           p.priority AS person_priority,
           i.estimatedTime AS estimated_time, i.createdAt AS created_at, i.updatedAt AS updated_at,
           i.status, i.repairAmount AS repair_amount, i.isPaid AS is_paid
    FROM items i
    JOIN itemTypes t ON t.id = i.itemTypeId
    JOIN persons p ON p.id = i.personId
    JOIN pcbModels m ON m.id = i.pcbModelId
"""


def next_serial_number(last: Optional[str], prefix: str) -> str:
    """
    Serial number following `last`.

    The prefix of the previous serial is carried unchanged and the number
    is incremented and zero-padded to three digits. With no previous
    serial the sequence starts at `<prefix>001`.
    """
    if last is None:
        return f"{prefix}001"
    match = SERIAL_PATTERN.match(last)
    if not match:
        raise StorageError(f"Unrecognised serial number {last!r}")
    return f"{match.group(1)}{int(match.group(2)) + 1:03d}"


def sort_by_due_date(items: List[Item]) -> List[Item]:
    """Due-board display order: earliest due date first, then highest priority"""
    return sorted(items, key=lambda item: (item.due_date, -item.person_priority))


class ItemService:
    """Item CRUD and status transitions"""

    def __init__(
        self,
        db: Database,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.db = db
        self.settings = settings
        self.clock = clock

    def _now(self) -> str:
        return format_timestamp(self.clock())

    def _to_item(self, row: Dict[str, Any], today: date) -> Item:
        created_at = parse_timestamp(row["created_at"])
        estimated = parse_estimated_days(row["estimated_time"])
        due_date = created_at.date() + timedelta(days=estimated)

        status = row["status"]
        if status == ItemStatus.HANDED_OVER.value:
            state = HandedOverState(
                repair_amount=Decimal(str(row["repair_amount"] or 0)),
                is_paid=bool(row["is_paid"])
            )
        elif status == ItemStatus.NON_REPAIRABLE.value:
            state = NonRepairableState()
        else:
            # Whatever was stored for an active item is ignored
            state = ActiveState(due=compute_due_state(due_date, today))

        return Item(
            id=row["id"],
            serial_number=row["serial_number"],
            item_type_id=row["item_type_id"],
            person_id=row["person_id"],
            pcb_model_id=row["pcb_model_id"],
            item_type=row["item_type"],
            person_name=row["person_name"],
            pcb_model=row["pcb_model"],
            person_priority=row["person_priority"],
            estimated_time=estimated,
            created_at=created_at,
            updated_at=parse_timestamp(row["updated_at"]),
            due_date=due_date,
            state=state,
        )

    def add_item(
        self,
        item_type_id: int,
        person_id: int,
        pcb_model_id: int,
        estimated_time_days: int
    ) -> int:
        """
        Register a new repair item

        Args:
            item_type_id: Existing item type
            person_id: Existing person
            pcb_model_id: Existing PCB model
            estimated_time_days: Days until the repair is due

        Returns:
            The new item id

        Raises:
            ValueError: if a reference is missing or the estimate is negative
            ReferentialIntegrityError: if a reference does not exist
        """
        if item_type_id is None or person_id is None or pcb_model_id is None:
            raise ValueError("Item type, person and PCB model are required")
        if estimated_time_days is None or int(estimated_time_days) < 0:
            raise ValueError("Estimated time must be zero or more days")

        with self.db.transaction():
            # Forward-only high-water mark; deletes never lower it
            last = self.db.execute_scalar("SELECT lastSerial FROM serialCounter WHERE id = 1")
            serial = next_serial_number(last, self.settings.SERIAL_PREFIX)
            item_id = self.db.execute_insert(
                """
                INSERT INTO items (itemTypeId, personId, pcbModelId, estimatedTime,
                                   createdAt, status, serialNumber)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item_type_id,
                    person_id,
                    pcb_model_id,
                    int(estimated_time_days),
                    self._now(),
                    ItemStatus.UPCOMING.value,
                    serial,
                )
            )
            self.db.execute_update(
                "INSERT OR REPLACE INTO serialCounter (id, lastSerial) VALUES (1, ?)",
                (serial,)
            )

        logger.debug(f"Added item {item_id} with serial {serial}")
        return item_id

    def get_item(self, item_id: int, today: Optional[date] = None) -> Item:
        row = self.db.execute_query(ITEM_SELECT + " WHERE i.id = ?", (item_id,), fetch_one=True)
        if row is None:
            raise NotFoundError(f"Item {item_id} not found")
        return self._to_item(row, today or self.clock().date())

    def list_items(self, today: Optional[date] = None) -> List[Item]:
        """All items, newest first"""
        today = today or self.clock().date()
        rows = self.db.execute_query(ITEM_SELECT + " ORDER BY i.createdAt DESC, i.id DESC")
        return [self._to_item(row, today) for row in rows]

    def list_due_items(self, today: Optional[date] = None) -> List[Item]:
        """Non-terminal items, highest person priority first, then oldest first"""
        today = today or self.clock().date()
        rows = self.db.execute_query(
            ITEM_SELECT + """
            WHERE i.status NOT IN (?, ?)
            ORDER BY p.priority DESC, i.createdAt ASC, i.id ASC
            """,
            tuple(status.value for status in TERMINAL_STATUSES)
        )
        return [self._to_item(row, today) for row in rows]

    def _require_active(self, item_id: int) -> Dict[str, Any]:
        row = self.db.execute_query(
            "SELECT status, isPaid FROM items WHERE id = ?", (item_id,), fetch_one=True
        )
        if row is None:
            raise NotFoundError(f"Item {item_id} not found")
        if row["status"] in (status.value for status in TERMINAL_STATUSES):
            raise StatusTransitionError(f"Item {item_id} is already {row['status']}")
        return row

    def mark_status(self, item_id: int, status: ItemStatus):
        """Move an active item to a stored terminal status (nonRepairable)"""
        status = ItemStatus(status)
        if status != ItemStatus.NON_REPAIRABLE:
            raise StatusTransitionError(f"Status {status.value} cannot be set directly")

        with self.db.transaction():
            self._require_active(item_id)
            self.db.execute_update(
                "UPDATE items SET status = ?, updatedAt = ? WHERE id = ?",
                (status.value, self._now(), item_id)
            )
        logger.info(f"Item {item_id} marked {status.value}")

    def mark_handed_over(self, item_id: int, repair_amount, is_paid: bool):
        """Price an active item and hand it over in one write"""
        try:
            amount = Decimal(str(repair_amount))
        except InvalidOperation as e:
            raise ValueError(f"Invalid repair amount {repair_amount!r}") from e
        if not amount.is_finite():
            raise ValueError(f"Invalid repair amount {repair_amount!r}")
        if amount < 0:
            raise ValueError("Repair amount cannot be negative")

        with self.db.transaction():
            self._require_active(item_id)
            self.db.execute_update(
                """
                UPDATE items
                SET repairAmount = ?, isPaid = ?, status = ?, updatedAt = ?
                WHERE id = ?
                """,
                (float(amount), 1 if is_paid else 0, ItemStatus.HANDED_OVER.value, self._now(), item_id)
            )
        logger.info(f"Item {item_id} handed over for {amount} (paid={bool(is_paid)})")

    def mark_paid(self, item_id: int) -> bool:
        """
        Record payment for a handed-over item

        Returns:
            True if the item changed, False if it was already paid
        """
        with self.db.transaction():
            row = self.db.execute_query(
                "SELECT status, isPaid FROM items WHERE id = ?", (item_id,), fetch_one=True
            )
            if row is None:
                raise NotFoundError(f"Item {item_id} not found")
            if row["status"] != ItemStatus.HANDED_OVER.value:
                raise StatusTransitionError(f"Item {item_id} has not been handed over")
            if row["isPaid"]:
                return False
            self.db.execute_update(
                "UPDATE items SET isPaid = 1, updatedAt = ? WHERE id = ?",
                (self._now(), item_id)
            )
        logger.info(f"Item {item_id} marked paid")
        return True

    def delete_item(self, item_id: int):
        # Legacy hard delete; the current workflow never removes items
        if self.db.execute_update("DELETE FROM items WHERE id = ?", (item_id,)) == 0:
            raise NotFoundError(f"Item {item_id} not found")
        logger.info(f"Deleted item {item_id}")

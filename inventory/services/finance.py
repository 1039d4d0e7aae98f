"""
Finance Service

Read-only revenue figures over handed-over items, and the filters used on
the finance screen.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

from inventory.models.domain import ItemStatus
from inventory.models.finance import FilterOptions, FinanceSummary, Transaction
from inventory.utils.database import Database
from inventory.utils.timeutils import parse_timestamp

logger = logging.getLogger(__name__)


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def filter_transactions(
    transactions: List[Transaction],
    person_name: Optional[str] = None,
    item_type: Optional[str] = None,
    pcb_model: Optional[str] = None,
    is_paid: Optional[bool] = None
) -> List[Transaction]:
    """Keep transactions matching every criterion that is given"""
    return [
        t for t in transactions
        if (person_name is None or t.person_name == person_name)
        and (item_type is None or t.item_type == item_type)
        and (pcb_model is None or t.pcb_model == pcb_model)
        and (is_paid is None or t.is_paid == bool(is_paid))
    ]


class FinanceService:
    """Aggregates repair amounts of handed-over items"""

    def __init__(self, db: Database, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    def summary(self, today: Optional[date] = None) -> FinanceSummary:
        """
        Revenue totals and handed-over transactions

        Amounts are summed as Decimal over the same rows that make up the
        transaction list, and the monthly figure uses the parsed local
        updatedAt of each transaction.

        Args:
            today: Day whose calendar month counts as "this month"

        Returns:
            FinanceSummary with every sum defaulting to 0
        """
        today = today or self.clock().date()

        rows = self.db.execute_query(
            """
            SELECT i.id, i.serialNumber AS serial_number,
                   p.name AS person_name, t.name AS item_type, m.name AS pcb_model,
                   i.repairAmount AS repair_amount, i.isPaid AS is_paid, i.updatedAt AS updated_at
            FROM items i
            JOIN persons p ON p.id = i.personId
            JOIN itemTypes t ON t.id = i.itemTypeId
            JOIN pcbModels m ON m.id = i.pcbModelId
            WHERE i.status = ?
            ORDER BY i.updatedAt DESC, i.id DESC
            """,
            (ItemStatus.HANDED_OVER.value,)
        )
        transactions = [
            Transaction(
                id=row["id"],
                serial_number=row["serial_number"],
                person_name=row["person_name"],
                item_type=row["item_type"],
                pcb_model=row["pcb_model"],
                repair_amount=_decimal(row["repair_amount"]),
                is_paid=bool(row["is_paid"]),
                updated_at=parse_timestamp(row["updated_at"]),
            )
            for row in rows
        ]

        paid = [t for t in transactions if t.is_paid]
        this_month = [
            t for t in paid
            if t.updated_at is not None
            and (t.updated_at.year, t.updated_at.month) == (today.year, today.month)
        ]
        return FinanceSummary(
            total_revenue=sum((t.repair_amount for t in paid), Decimal("0")),
            pending_payments=sum((t.repair_amount for t in transactions if not t.is_paid), Decimal("0")),
            monthly_revenue=sum((t.repair_amount for t in this_month), Decimal("0")),
            transactions=transactions,
        )

    def filter_options(self) -> FilterOptions:
        """Distinct person, item-type and PCB-model names used by items"""
        def names(table: str, foreign_key: str) -> List[str]:
            rows = self.db.execute_query(
                f"""
                SELECT DISTINCT e.name FROM {table} e
                JOIN items i ON i.{foreign_key} = e.id
                ORDER BY e.name
                """
            )
            return [row["name"] for row in rows]

        return FilterOptions(
            person_names=names("persons", "personId"),
            item_types=names("itemTypes", "itemTypeId"),
            pcb_models=names("pcbModels", "pcbModelId"),
        )

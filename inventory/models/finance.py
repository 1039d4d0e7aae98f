"""
Finance Models - Pydantic models for the read-only finance views.

These models carry the revenue summary, the handed-over transactions it is
computed from, and the names used to populate the transaction filters.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict


class Transaction(BaseModel):
    """A handed-over item as shown on the finance screen."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    serial_number: Optional[str] = None
    person_name: str
    item_type: str
    pcb_model: str
    repair_amount: Decimal
    is_paid: bool
    updated_at: Optional[datetime] = None


class FinanceSummary(BaseModel):
    """Revenue totals and the transactions behind them."""

    total_revenue: Decimal = Field(default=Decimal("0"), description="Paid handed-over items")
    pending_payments: Decimal = Field(default=Decimal("0"), description="Unpaid handed-over items")
    monthly_revenue: Decimal = Field(default=Decimal("0"), description="Paid this calendar month")
    transactions: List[Transaction] = Field(default_factory=list, description="Newest first")


class FilterOptions(BaseModel):
    """Distinct names currently used by items."""

    person_names: List[str] = Field(default_factory=list)
    item_types: List[str] = Field(default_factory=list)
    pcb_models: List[str] = Field(default_factory=list)

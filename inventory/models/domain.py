"""
Domain Models - Pydantic models for repair-shop inventory entities.

These models represent the rows of the inventory database (persons, item
types, PCB models and repair items) and the inputs accepted when creating
reference rows. Item status is modelled as a tagged union: active items
carry a due state computed at read time, terminal items carry what was
recorded when they left the due board.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional, Union, Literal

from pydantic import BaseModel, Field, ConfigDict, field_validator


# ============================================================================
# Enums
# ============================================================================

class ItemStatus(str, Enum):
    """Status values reported for items."""
    UPCOMING = "upcoming"
    DUE_TODAY = "dueToday"
    OVERDUE = "overdue"
    NON_REPAIRABLE = "nonRepairable"
    HANDED_OVER = "handedOver"


class DueState(str, Enum):
    """Computed state of an item still on the due board."""
    UPCOMING = "upcoming"
    DUE_TODAY = "dueToday"
    OVERDUE = "overdue"


TERMINAL_STATUSES = (ItemStatus.NON_REPAIRABLE, ItemStatus.HANDED_OVER)


# ============================================================================
# Item state
# ============================================================================

class ActiveState(BaseModel):
    """Item still being repaired."""

    kind: Literal["active"] = "active"
    due: DueState


class NonRepairableState(BaseModel):
    """Item given up on."""

    kind: Literal["nonRepairable"] = "nonRepairable"


class HandedOverState(BaseModel):
    """Item returned to its owner, priced and possibly paid."""

    kind: Literal["handedOver"] = "handedOver"
    repair_amount: Decimal = Decimal("0")
    is_paid: bool = False


ItemState = Annotated[
    Union[ActiveState, NonRepairableState, HandedOverState],
    Field(discriminator="kind"),
]


def compute_due_state(due_date: date, today: date) -> DueState:
    """Compare a due date against today."""
    if due_date < today:
        return DueState.OVERDUE
    if due_date == today:
        return DueState.DUE_TODAY
    return DueState.UPCOMING


# ============================================================================
# Reference entities
# ============================================================================

class Person(BaseModel):
    """Person entity from the persons table."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone_number: str
    priority: int = Field(default=1, ge=1, le=5)
    item_count: int = 0


class ItemType(BaseModel):
    """Item type from the itemTypes table."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    item_count: int = 0


class PcbModel(BaseModel):
    """PCB model from the pcbModels table."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    item_count: int = 0


class NameCreate(BaseModel):
    """Input for item types and PCB models."""

    name: str = Field(..., min_length=1, description="Unique display name")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class PersonCreate(NameCreate):
    """Input for persons."""

    phone_number: str = Field(..., pattern=r"^\d{10}$", description="10-digit phone number")
    priority: int = Field(default=1, ge=1, le=5, description="Due-board priority, 5 is highest")


class RemovalResult(BaseModel):
    """Outcome of removing a reference entity."""

    removed_id: int
    reassigned_to: int
    reassigned_items: int


# ============================================================================
# Items
# ============================================================================

class Item(BaseModel):
    """Repair item from the items table joined with its reference names."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    serial_number: Optional[str] = None
    item_type_id: int
    person_id: int
    pcb_model_id: int
    item_type: str
    person_name: str
    pcb_model: str
    person_priority: int = 1
    estimated_time: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    due_date: date
    state: ItemState

    @property
    def status(self) -> ItemStatus:
        if isinstance(self.state, ActiveState):
            return ItemStatus(self.state.due.value)
        return ItemStatus(self.state.kind)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

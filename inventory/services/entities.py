"""
Reference Entity Service

Manages the three lookup tables items point to: persons, item types and
PCB models. Names are unique per table. Removing a row moves its items to
another row of the same kind instead of orphaning or deleting them.
"""

import logging
from enum import Enum
from typing import Dict, List, NamedTuple, Tuple, Type

from pydantic import BaseModel

from inventory.models.domain import (
    ItemType,
    NameCreate,
    PcbModel,
    Person,
    PersonCreate,
    RemovalResult,
)
from inventory.utils.database import Database
from inventory.utils.errors import (
    NotFoundError,
    ReferentialIntegrityError,
    UniquenessViolation,
)

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    """Kinds of reference entity."""
    PERSON = "person"
    ITEM_TYPE = "itemType"
    PCB_MODEL = "pcbModel"


class EntityTable(NamedTuple):
    """Fixed SQL identifiers and models for one kind of reference entity"""
    table: str
    foreign_key: str
    columns: str
    insert_columns: Tuple[Tuple[str, str], ...]
    model: Type[BaseModel]
    create_model: Type[NameCreate]


# The only identifiers ever interpolated into SQL by this module
ENTITY_TABLES: Dict[EntityKind, EntityTable] = {
    EntityKind.PERSON: EntityTable(
        table="persons",
        foreign_key="personId",
        columns="e.id, e.name, e.phoneNumber AS phone_number, e.priority",
        insert_columns=(("name", "name"), ("phoneNumber", "phone_number"), ("priority", "priority")),
        model=Person,
        create_model=PersonCreate,
    ),
    EntityKind.ITEM_TYPE: EntityTable(
        table="itemTypes",
        foreign_key="itemTypeId",
        columns="e.id, e.name",
        insert_columns=(("name", "name"),),
        model=ItemType,
        create_model=NameCreate,
    ),
    EntityKind.PCB_MODEL: EntityTable(
        table="pcbModels",
        foreign_key="pcbModelId",
        columns="e.id, e.name",
        insert_columns=(("name", "name"),),
        model=PcbModel,
        create_model=NameCreate,
    ),
}


class ReferenceEntityService:
    """CRUD for one kind of reference entity"""

    def __init__(self, db: Database, kind: EntityKind):
        self.db = db
        self.kind = EntityKind(kind)
        self.entity = ENTITY_TABLES[self.kind]

    def _select(self) -> str:
        return f"""
            SELECT {self.entity.columns}, COUNT(i.id) AS item_count
            FROM {self.entity.table} e
            LEFT JOIN items i ON i.{self.entity.foreign_key} = e.id
        """

    def add(self, name: str, **fields) -> int:
        """
        Insert a new row

        Args:
            name: Display name, unique within this kind
            **fields: Extra fields for the kind (phone_number, priority for persons)

        Returns:
            The new row id

        Raises:
            pydantic.ValidationError: if the input is invalid
            UniquenessViolation: if the name is taken
        """
        data = self.entity.create_model(name=name, **fields)
        values = data.model_dump()
        columns = ", ".join(column for column, _ in self.entity.insert_columns)
        placeholders = ", ".join("?" for _ in self.entity.insert_columns)

        try:
            entity_id = self.db.execute_insert(
                f"INSERT INTO {self.entity.table} ({columns}) VALUES ({placeholders})",
                tuple(values[field] for _, field in self.entity.insert_columns)
            )
        except UniquenessViolation as e:
            raise UniquenessViolation(f"{self.kind.value} named {data.name!r} already exists") from e

        logger.debug(f"Added {self.kind.value} {entity_id} ({data.name})")
        return entity_id

    def get(self, entity_id: int) -> BaseModel:
        row = self.db.execute_query(
            self._select() + " WHERE e.id = ? GROUP BY e.id", (entity_id,), fetch_one=True
        )
        if row is None:
            raise NotFoundError(f"{self.kind.value} {entity_id} not found")
        return self.entity.model(**row)

    def list(self) -> List[BaseModel]:
        """All rows ordered by name, each with the number of items using it"""
        rows = self.db.execute_query(self._select() + " GROUP BY e.id ORDER BY e.name")
        return [self.entity.model(**row) for row in rows]

    def remove(self, entity_id: int) -> RemovalResult:
        """
        Delete a row after moving its items to the first remaining row

        Raises:
            NotFoundError: if the row does not exist
            ReferentialIntegrityError: if it is the last row of its kind
        """
        table, foreign_key = self.entity.table, self.entity.foreign_key

        with self.db.transaction():
            if self.db.execute_scalar(f"SELECT id FROM {table} WHERE id = ?", (entity_id,)) is None:
                raise NotFoundError(f"{self.kind.value} {entity_id} not found")

            target = self.db.execute_scalar(
                f"SELECT id FROM {table} WHERE id != ? ORDER BY id LIMIT 1", (entity_id,)
            )
            if target is None:
                raise ReferentialIntegrityError(
                    f"Cannot remove the last {self.kind.value}; items need somewhere to go"
                )

            moved = self.db.execute_update(
                f"UPDATE items SET {foreign_key} = ? WHERE {foreign_key} = ?",
                (target, entity_id)
            )
            self.db.execute_update(f"DELETE FROM {table} WHERE id = ?", (entity_id,))

        logger.info(f"Removed {self.kind.value} {entity_id}, reassigned {moved} items to {target}")
        return RemovalResult(removed_id=entity_id, reassigned_to=target, reassigned_items=moved)

"""
Schema Lifecycle Manager

Brings the on-disk schema to the current version. Migrations are an
ordered list of versioned steps recorded in the schema_version table;
every pending step runs inside one transaction together with its ledger
row, so a failure leaves the database exactly as it was.

Each step also guards on table/column existence, because databases
written by earlier app versions carry no ledger and may already have
part of the schema.
"""

import logging
import re
from datetime import datetime
from typing import Callable, List, NamedTuple, Optional

from inventory.utils.config import Settings
from inventory.utils.database import Database
from inventory.utils.errors import StorageError
from inventory.utils.timeutils import format_timestamp

logger = logging.getLogger(__name__)


# ============================================================================
# DDL
# ============================================================================

SCHEMA_VERSION_DDL = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        applied_at TEXT NOT NULL
    )
"""

REFERENCE_TABLES_DDL = (
    """
    CREATE TABLE IF NOT EXISTS persons (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        phoneNumber TEXT NOT NULL,
        priority INTEGER NOT NULL DEFAULT 1 CHECK (priority BETWEEN 1 AND 5)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS itemTypes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pcbModels (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    )
    """,
)

ITEMS_DDL = """
    CREATE TABLE items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        itemTypeId INTEGER NOT NULL REFERENCES itemTypes(id),
        personId INTEGER NOT NULL REFERENCES persons(id),
        pcbModelId INTEGER NOT NULL REFERENCES pcbModels(id),
        estimatedTime INTEGER NOT NULL,
        createdAt TEXT NOT NULL,
        updatedAt TEXT,
        status TEXT NOT NULL DEFAULT 'upcoming',
        repairAmount REAL NOT NULL DEFAULT 0,
        isPaid INTEGER NOT NULL DEFAULT 0,
        serialNumber TEXT
    )
"""

# Columns introduced after the normalized items table first shipped.
# Identifiers here are fixed; nothing from input is interpolated.
REPAIR_COLUMNS = (
    ("updatedAt", "TEXT"),
    ("status", "TEXT NOT NULL DEFAULT 'upcoming'"),
    ("repairAmount", "REAL NOT NULL DEFAULT 0"),
    ("isPaid", "INTEGER NOT NULL DEFAULT 0"),
)

SERIAL_INDEX_DDL = "CREATE UNIQUE INDEX IF NOT EXISTS idx_items_serialNumber ON items(serialNumber)"

DUE_BOARD_INDEXES_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_items_personId ON items(personId)",
    "CREATE INDEX IF NOT EXISTS idx_items_status ON items(status)",
)

# Single-row high-water mark of issued serial numbers
SERIAL_COUNTER_DDL = """
    CREATE TABLE IF NOT EXISTS serialCounter (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        lastSerial TEXT NOT NULL
    )
"""

# Columns that identify the flat schema where items stored names directly
LEGACY_FLAT_COLUMNS = {"itemType", "personName", "pcbModel"}


def parse_estimated_days(value) -> int:
    """Leading integer of a legacy estimate such as "2 days", else 0."""
    if value is None:
        return 0
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else 0


class Migration(NamedTuple):
    version: int
    name: str
    apply: Callable[["SchemaMigrator"], None]


class SchemaMigrator:
    """Applies pending migrations to an open database"""

    def __init__(
        self,
        db: Database,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.db = db
        self.settings = settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def create_reference_tables(self):
        for ddl in REFERENCE_TABLES_DDL:
            self.db.execute_update(ddl)

    def create_or_normalize_items(self):
        if not self.db.table_exists("items"):
            self.db.execute_update(ITEMS_DDL)
            logger.info("Created items table")
            return

        columns = self.db.table_columns("items")
        if LEGACY_FLAT_COLUMNS <= columns:
            self._normalize_flat_items(columns)

    def add_repair_columns(self):
        columns = self.db.table_columns("items")
        if "createdAt" not in columns:
            self.db.execute_update("ALTER TABLE items ADD COLUMN createdAt TEXT")
            self.db.execute_update(
                "UPDATE items SET createdAt = ? WHERE createdAt IS NULL",
                (format_timestamp(self.clock()),)
            )
            logger.info("Added column items.createdAt")
        for column, definition in REPAIR_COLUMNS:
            if column not in columns:
                self.db.execute_update(f"ALTER TABLE items ADD COLUMN {column} {definition}")
                logger.info(f"Added column items.{column}")

    def add_serial_numbers(self):
        if "serialNumber" not in self.db.table_columns("items"):
            self.db.execute_update("ALTER TABLE items ADD COLUMN serialNumber TEXT")
            logger.info("Added column items.serialNumber")
        self.db.execute_update(SERIAL_INDEX_DDL)

    def add_due_board_indexes(self):
        for ddl in DUE_BOARD_INDEXES_DDL:
            self.db.execute_update(ddl)

    def add_serial_counter(self):
        """Seed the counter from the newest serial already issued"""
        self.db.execute_update(SERIAL_COUNTER_DDL)
        seeded = self.db.execute_update(
            """
            INSERT OR IGNORE INTO serialCounter (id, lastSerial)
            SELECT 1, serialNumber FROM items
            WHERE serialNumber IS NOT NULL
            ORDER BY id DESC LIMIT 1
            """
        )
        if seeded:
            logger.info("Seeded serial counter from existing items")

    # ------------------------------------------------------------------
    # Legacy flat schema
    # ------------------------------------------------------------------

    def _normalize_flat_items(self, legacy_columns):
        """Move items that stored names as text onto reference-table ids"""
        self.db.execute_update("ALTER TABLE items RENAME TO items_legacy")
        self.db.execute_update(ITEMS_DDL)

        rows = self.db.execute_query("SELECT * FROM items_legacy ORDER BY id")
        now = format_timestamp(self.clock())
        params = [
            (
                row["id"],
                self._reference_id("itemTypes", row["itemType"]),
                self._reference_id("persons", row["personName"]),
                self._reference_id("pcbModels", row["pcbModel"]),
                parse_estimated_days(row.get("estimatedTime")),
                row.get("createdAt") or now,
            )
            for row in rows
        ]
        if params:
            self.db.execute_many(
                """
                INSERT INTO items (id, itemTypeId, personId, pcbModelId, estimatedTime, createdAt)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                params
            )

        self.db.execute_update("DROP TABLE items_legacy")
        logger.info(f"Migrated {len(rows)} items from the flat schema")

    def _reference_id(self, table: str, name: Optional[str]) -> int:
        """First row with this name, or a newly inserted default row"""
        name = (name or "").strip() or self.settings.DEFAULT_REFERENCE_NAME
        existing = self.db.execute_scalar(
            f"SELECT id FROM {table} WHERE name = ? ORDER BY id LIMIT 1",
            (name,)
        )
        if existing is not None:
            return existing

        if table == "persons":
            return self.db.execute_insert(
                "INSERT INTO persons (name, phoneNumber, priority) VALUES (?, ?, 1)",
                (name, self.settings.DEFAULT_PHONE_NUMBER)
            )
        return self.db.execute_insert(f"INSERT INTO {table} (name) VALUES (?)", (name,))

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def current_version(self) -> int:
        """Highest applied migration version, 0 for a fresh or unversioned database"""
        if not self.db.table_exists("schema_version"):
            return 0
        return self.db.execute_scalar("SELECT COALESCE(MAX(version), 0) FROM schema_version")

    def pending(self) -> List[Migration]:
        current = self.current_version()
        return [m for m in MIGRATIONS if m.version > current]

    def migrate(self) -> List[int]:
        """
        Apply every pending migration atomically

        Returns:
            Versions applied by this call (empty when already current)

        Raises:
            StorageError: if any step fails; nothing is kept
        """
        with self.db.transaction():
            self.db.execute_update(SCHEMA_VERSION_DDL)
            current = self.current_version()
            if current > LATEST_VERSION:
                raise StorageError(
                    f"Database schema version {current} is newer than supported {LATEST_VERSION}"
                )

            applied = []
            for migration in MIGRATIONS:
                if migration.version <= current:
                    continue
                try:
                    migration.apply(self)
                except StorageError:
                    raise
                except Exception as e:
                    raise StorageError(f"Migration {migration.version} ({migration.name}) failed: {e}") from e
                self.db.execute_insert(
                    "INSERT INTO schema_version (version, name, applied_at) VALUES (?, ?, ?)",
                    (migration.version, migration.name, format_timestamp(self.clock()))
                )
                applied.append(migration.version)

        if applied:
            logger.info(f"Applied schema migrations {applied}, now at version {LATEST_VERSION}")
        else:
            logger.debug(f"Schema already at version {current}")
        return applied


MIGRATIONS: List[Migration] = [
    Migration(1, "reference_tables", SchemaMigrator.create_reference_tables),
    Migration(2, "normalized_items", SchemaMigrator.create_or_normalize_items),
    Migration(3, "repair_columns", SchemaMigrator.add_repair_columns),
    Migration(4, "serial_numbers", SchemaMigrator.add_serial_numbers),
    Migration(5, "due_board_indexes", SchemaMigrator.add_due_board_indexes),
    Migration(6, "serial_counter", SchemaMigrator.add_serial_counter),
]

LATEST_VERSION = MIGRATIONS[-1].version

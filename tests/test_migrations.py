"""
Tests for the schema lifecycle: fresh databases, repeated startup, and
databases written by earlier app versions.
"""

import sqlite3
from unittest.mock import patch

import pytest

from inventory.models.domain import ItemStatus
from inventory.services import migrations
from inventory.services.migrations import (
    LATEST_VERSION,
    MIGRATIONS,
    Migration,
    parse_estimated_days,
)
from inventory.services.store import InventoryStore
from inventory.utils.errors import NotInitializedError, StorageError


def schema_snapshot(path):
    conn = sqlite3.connect(path)
    try:
        return conn.execute(
            "SELECT type, name, sql FROM sqlite_master WHERE name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
    finally:
        conn.close()


def make_flat_database(path, rows):
    """Database as written by the first app version: names stored on items"""
    conn = sqlite3.connect(path)
    conn.execute(
        """
        CREATE TABLE items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            itemType TEXT NOT NULL,
            personName TEXT NOT NULL,
            pcbModel TEXT NOT NULL,
            estimatedTime TEXT NOT NULL
        )
        """
    )
    conn.executemany(
        "INSERT INTO items (itemType, personName, pcbModel, estimatedTime) VALUES (?, ?, ?, ?)",
        rows
    )
    conn.commit()
    conn.close()


def make_normalized_database(path):
    """Normalized items from before repair, payment and serial columns existed"""
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE persons (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL UNIQUE,
                              phoneNumber TEXT NOT NULL, priority INTEGER NOT NULL DEFAULT 1);
        CREATE TABLE itemTypes (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL UNIQUE);
        CREATE TABLE pcbModels (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL UNIQUE);
        CREATE TABLE items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            itemTypeId INTEGER NOT NULL REFERENCES itemTypes(id),
            personId INTEGER NOT NULL REFERENCES persons(id),
            pcbModelId INTEGER NOT NULL REFERENCES pcbModels(id),
            estimatedTime INTEGER NOT NULL,
            createdAt TEXT NOT NULL
        );
        INSERT INTO persons (name, phoneNumber, priority) VALUES ('Ravi', '9999999999', 2);
        INSERT INTO itemTypes (name) VALUES ('Fridge');
        INSERT INTO pcbModels (name) VALUES ('LG');
        INSERT INTO items (itemTypeId, personId, pcbModelId, estimatedTime, createdAt)
            VALUES (1, 1, 1, 3, '2026-10-18T12:00:00.000Z');
        """
    )
    conn.commit()
    conn.close()


class TestFreshDatabase:
    """Initialization of an empty file"""

    def test_applies_every_migration(self, settings, clock):
        """Test a fresh file gets every migration"""
        store = InventoryStore(settings=settings, clock=clock)
        applied = store.initialize()
        assert applied == [m.version for m in MIGRATIONS]
        assert store.schema_version() == LATEST_VERSION
        store.close()

    def test_items_created_at_current_shape(self, store):
        """Test a fresh items table has every current column"""
        columns = store.db.table_columns("items")
        assert {
            "itemTypeId", "personId", "pcbModelId", "estimatedTime", "createdAt",
            "updatedAt", "status", "repairAmount", "isPaid", "serialNumber",
        } <= columns

    def test_store_unusable_before_initialize(self, settings, clock):
        """Test calls before initialize raise NotInitializedError"""
        store = InventoryStore(settings=settings, clock=clock)
        with pytest.raises(NotInitializedError):
            store.list_items()
        with pytest.raises(NotInitializedError):
            store.add_item_type("AC")


class TestIdempotence:
    """Repeated initialization changes nothing"""

    def test_initialize_many_times(self, settings, clock, db_path):
        """Test repeated initialize applies nothing and keeps data"""
        store = InventoryStore(settings=settings, clock=clock)
        store.initialize()
        store.add_item_type("AC")
        first = schema_snapshot(db_path)

        for _ in range(3):
            assert store.initialize() == []

        assert schema_snapshot(db_path) == first
        assert [t.name for t in store.list_item_types()] == ["AC"]
        store.close()

    def test_reopen_applies_nothing(self, settings, clock):
        """Test reopening a current file applies nothing"""
        with InventoryStore(settings=settings, clock=clock) as store:
            store.add_pcb_model("Samsung")

        reopened = InventoryStore(settings=settings, clock=clock)
        assert reopened.initialize() == []
        assert [m.name for m in reopened.list_pcb_models()] == ["Samsung"]
        reopened.close()

    def test_each_step_is_repeatable(self, store):
        """Test every step can run again on a current schema"""
        for migration in MIGRATIONS:
            with store.db.transaction():
                migration.apply(store.migrator)
        assert store.schema_version() == LATEST_VERSION

    @pytest.mark.parametrize("build", [
        lambda path: make_flat_database(path, [("AC", "Ravi", "Samsung", "2 days"), ("Fan", " ", "LG", "x")]),
        make_normalized_database,
    ], ids=["flat", "normalized"])
    def test_migrated_legacy_database_reopens_unchanged(self, settings, clock, db_path, build):
        """Test a migrated legacy file reopens with the same schema and rows"""
        build(db_path)
        with InventoryStore(settings=settings, clock=clock) as store:
            items = store.list_items()
            persons = store.list_persons()
        first = schema_snapshot(db_path)

        reopened = InventoryStore(settings=settings, clock=clock)
        assert reopened.initialize() == []
        assert schema_snapshot(db_path) == first
        assert reopened.list_items() == items
        assert reopened.list_persons() == persons
        reopened.close()


class TestLegacyFlatSchema:
    """Items that stored names directly are moved onto reference tables"""

    def test_every_row_survives(self, settings, clock, db_path):
        """Test every flat row is moved onto reference tables"""
        make_flat_database(db_path, [
            ("AC", "Ravi", "Samsung", "2 days"),
            ("AC", "Ravi", "LG", "3"),
            ("Washing Machine", "  ", "LG", "soon"),
        ])

        with InventoryStore(settings=settings, clock=clock) as store:
            items = sorted(store.list_items(), key=lambda item: item.id)

            assert [item.id for item in items] == [1, 2, 3]
            assert [item.person_name for item in items] == ["Ravi", "Ravi", "Unknown"]
            assert [item.item_type for item in items] == ["AC", "AC", "Washing Machine"]
            assert [item.pcb_model for item in items] == ["Samsung", "LG", "LG"]
            assert [item.estimated_time for item in items] == [2, 3, 0]
            assert all(item.serial_number is None for item in items)

            persons = {p.name: p for p in store.list_persons()}
            assert set(persons) == {"Ravi", "Unknown"}
            assert persons["Ravi"].item_count == 2
            assert persons["Unknown"].phone_number == settings.DEFAULT_PHONE_NUMBER
            assert {m.name for m in store.list_pcb_models()} == {"Samsung", "LG"}
            assert not store.db.table_exists("items_legacy")

    def test_migrated_items_get_serials_after_them(self, settings, clock, db_path):
        """Test new items after a flat migration start at AA001"""
        make_flat_database(db_path, [("AC", "Ravi", "Samsung", "1")])

        with InventoryStore(settings=settings, clock=clock) as store:
            person = store.list_persons()[0]
            item_id = store.add_item(1, person.id, 1, 2)
            assert item_id == 2
            assert store.get_item(item_id).serial_number == "AA001"


class TestSerialCounter:
    """High-water mark of issued serials"""

    def test_seeded_from_existing_serials(self, settings, clock, db_path):
        """Test the counter is seeded from serials already issued"""
        with InventoryStore(settings=settings, clock=clock) as store:
            ids = [store.add_person("Asha", "9876543210"), store.add_item_type("AC"), store.add_pcb_model("LG")]
            store.add_item(ids[1], ids[0], ids[2], 1)
            store.add_item(ids[1], ids[0], ids[2], 1)
            # Shape of a database from before the counter existed
            store.db.execute_update("DROP TABLE serialCounter")
            store.db.execute_update("DELETE FROM schema_version WHERE name = ?", ("serial_counter",))

        with InventoryStore(settings=settings, clock=clock) as store:
            assert store.schema_version() == LATEST_VERSION
            assert store.db.execute_scalar("SELECT lastSerial FROM serialCounter") == "AA002"
            item_id = store.add_item(ids[1], ids[0], ids[2], 1)
            assert store.get_item(item_id).serial_number == "AA003"

    def test_empty_database_has_no_counter_row(self, store):
        """Test a fresh file starts with no counter row"""
        assert store.db.execute_scalar("SELECT COUNT(*) FROM serialCounter") == 0


class TestLegacyNormalizedSchema:
    """Additive columns on an already normalized items table"""

    def test_columns_added_and_rows_kept(self, settings, clock, db_path):
        """Test repair and serial columns are added without losing rows"""
        make_normalized_database(db_path)

        with InventoryStore(settings=settings, clock=clock) as store:
            columns = store.db.table_columns("items")
            assert {"status", "repairAmount", "isPaid", "updatedAt", "serialNumber"} <= columns

            item = store.get_item(1)
            assert item.person_name == "Ravi"
            assert item.serial_number is None
            assert item.status == ItemStatus.UPCOMING
            assert item.created_at.date().isoformat() in ("2026-10-18", "2026-10-19")


class TestMigrationFailure:
    """A failing step leaves nothing behind"""

    def test_failed_step_rolls_back_everything(self, settings, clock, db_path):
        """Test a failing step leaves the file untouched"""
        def broken(migrator):
            raise RuntimeError("disk on fire")

        steps = MIGRATIONS[:3] + [Migration(4, "broken", broken)]
        store = InventoryStore(settings=settings, clock=clock)

        with patch.object(migrations, "MIGRATIONS", steps):
            with pytest.raises(StorageError, match="broken"):
                store.initialize()

        assert not store.is_initialized
        assert schema_snapshot(db_path) == []
        with pytest.raises(NotInitializedError):
            store.list_items()

    def test_failed_flat_migration_keeps_legacy_table(self, settings, clock, db_path):
        """Test a failed flat migration keeps the original table"""
        make_flat_database(db_path, [("AC", "Ravi", "Samsung", "2")])
        original = migrations.SchemaMigrator._reference_id

        def failing_reference_id(self, table, name):
            if table == "pcbModels":
                raise RuntimeError("lookup failed")
            return original(self, table, name)

        store = InventoryStore(settings=settings, clock=clock)
        with patch.object(migrations.SchemaMigrator, "_reference_id", failing_reference_id):
            with pytest.raises(StorageError):
                store.initialize()

        conn = sqlite3.connect(db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
            assert "items" in tables
            assert "items_legacy" not in tables
            assert "persons" not in tables
            columns = {row[1] for row in conn.execute("PRAGMA table_info(items)")}
            assert "personName" in columns
        finally:
            conn.close()

    def test_newer_database_is_rejected(self, settings, clock, db_path):
        """Test a ledger ahead of the code raises StorageError"""
        with InventoryStore(settings=settings, clock=clock) as store:
            store.db.execute_insert(
                "INSERT INTO schema_version (version, name, applied_at) VALUES (?, ?, ?)",
                (LATEST_VERSION + 1, "future", "2030-01-01T00:00:00")
            )

        store = InventoryStore(settings=settings, clock=clock)
        with pytest.raises(StorageError, match="newer"):
            store.initialize()
        assert not store.is_initialized


class TestParseEstimatedDays:
    """Legacy free-text estimates"""

    @pytest.mark.parametrize("value, expected", [
        ("2 days", 2),
        ("10", 10),
        (7, 7),
        ("soon", 0),
        (None, 0),
    ])
    def test_leading_integer(self, value, expected):
        """Test legacy estimates keep their leading integer"""
        assert parse_estimated_days(value) == expected

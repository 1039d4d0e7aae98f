"""
Repair-Shop Inventory Store

Data layer for a repair-shop tracker: persons, item types, PCB models and
repair items in an embedded SQLite database, with versioned schema
migrations, computed due status and finance summaries.
"""

__version__ = "0.1.0"

"""
Utilities package for the inventory store.
"""

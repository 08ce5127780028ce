"""Reader Sync: synchronization client for Google Reader style feed services."""

__version__ = "0.1.0"

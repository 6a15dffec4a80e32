"""SQLite-backed state for tokens, fulfillment orders, sync reports and locks."""

from .database import MigrationManager, StateDatabase, utc_now_iso

__all__ = ["MigrationManager", "StateDatabase", "utc_now_iso"]

"""SQLite-backed record store for cost records."""

"""Message intake service backed by a single SQLite table."""

"""Database plumbing behind the settings store."""

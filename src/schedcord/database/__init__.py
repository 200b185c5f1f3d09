"""
SQLite persistence layer.

- **db_connection.py**: The single aiosqlite connection and its transaction helpers.
- **db_schema.py**: Table definitions and schema versioning.
"""

"""Database module for SQLite persistence.

Provides:
- Database: owned connection pool, schema management, retry policy
- students_repository: CRUD for the students table
- sessions_repository: learning sessions, assessment answers and markers
"""

from shapetrack.db.database import Database

__all__ = ["Database"]

"""Database Infrastructure - declarative Base shared by models, SchemaManager and alembic.

Invariants:
    - One engine per process, owned by SchemaManager (infrastructure/database.py)
    - All sessions are async (AsyncSession)
"""

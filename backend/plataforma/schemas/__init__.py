"""Pydantic Schemas - response contracts for the built-in endpoints.

Invariants:
    - Schemas validate at the system boundary; ORM models stay in models/
"""

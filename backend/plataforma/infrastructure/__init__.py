"""Infrastructure Layer - database resources, lifecycle, crypto and logging.

Invariants:
    - Infrastructure depends on core/ only for errors and state tokens
    - Every call that can block on the network is bounded or mapped to a PlataformaError

Design Decisions:
    - Two database handles: SchemaManager (SQLAlchemy) and ConnectionResource (raw asyncpg pool)
"""

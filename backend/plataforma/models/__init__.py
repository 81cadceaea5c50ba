"""ORM Models - SQLAlchemy declarative models owned by the platform core.

Invariants:
    - All models inherit from Base (db/base.py)
    - Every model is imported here so Base.metadata is complete before create_all
"""

from plataforma.models.session import SessionRecord  # noqa: F401

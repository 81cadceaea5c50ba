"""Root conftest - shared test configuration."""

import os

# Settings refuse to load without a secret; tests never touch a real database
os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ.setdefault(
    "POSTGRES_URL",
    "sqlite+aiosqlite:///test.db",
)

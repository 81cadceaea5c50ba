"""Route Modules - one file per built-in resource.

Invariants:
    - Each module defines its own APIRouter with prefix and tags
    - Resource collaborators (models, content, billing, ...) are mounted by api/dispatcher.py
"""

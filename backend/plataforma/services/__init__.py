"""Services Layer - session persistence and rate limiting.

Invariants:
    - Services hold no request objects beyond what they are handed
    - Storage behind each service is swappable (SchemaManager, RateLimitStore)
"""

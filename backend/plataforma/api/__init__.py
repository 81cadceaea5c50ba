"""API Layer - request pipeline, dispatcher, routes and error handlers.

Invariants:
    - Routes registered explicitly through the dispatcher (no auto-discovery)
    - Collaborator routers own their authorization; the pipeline only attaches the session
"""

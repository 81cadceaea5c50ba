"""Request Pipeline Middleware - cross-cutting steps applied to every routed request.

Invariants:
    - Order (outermost first): CORS -> security filters -> body parsing -> session -> encryption
    - Registration happens in one place (main.create_app), in reverse of that order
"""

"""Core Layer - pure rules and state tokens, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Functions are deterministic given their inputs (clocks are passed in)

Design Decisions:
    - Security rules, rate windows and the startup state machine live here so they are
      testable without a server
"""

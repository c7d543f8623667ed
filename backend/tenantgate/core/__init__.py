"""Core Layer - pure routing, codec and state-machine logic. No IO, no async.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/ or schemas/
    - All functions are pure and deterministic (clocks are passed in as values)

Design Decisions:
    - Functional core separated from imperative shell: the shell reads the URL and
      storage, calls the core, and applies the returned action
"""

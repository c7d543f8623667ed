"""Infrastructure Layer - backend HTTP client, storage partitions, browser adapter, logging.

Invariants:
    - Infrastructure never imports from services/
    - All backend calls wrapped with retry/timeout/error mapping
"""

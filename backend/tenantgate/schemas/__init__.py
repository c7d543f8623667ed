"""Pydantic Schemas - validation at the backend and HTTP boundaries.

Invariants:
    - Backend payloads are validated here before reaching core/
    - Domain types from core/ used for enum fields

Design Decisions:
    - Schemas are wire contracts; core dataclasses are the in-process model
"""

"""Services Layer - async flows that apply core decisions to storage, browser and backend.

Invariants:
    - Only session_store.py reads or writes token/user storage keys
    - Every async flow ends in a terminal state or an explicit resting state
"""

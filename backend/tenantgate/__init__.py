"""tenantgate - company-scoped routing and login handoff for the CRM front end.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""

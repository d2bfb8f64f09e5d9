"""Pydantic Schemas — request/response validation for API endpoints and oracle output.

Invariants:
    - Schemas validate at system boundaries (user input, oracle JSON, API responses)
    - Domain enums from core/ used for enum fields
"""

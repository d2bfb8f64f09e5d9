"""Infrastructure Layer — external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports core/ domain logic beyond errors and fixed strings
    - All external calls wrapped with retry/timeout/error mapping
"""

"""Engineering AI Coach — conversational coaching service with researcher dashboards.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""

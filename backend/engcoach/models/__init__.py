"""ORM Models — SQLAlchemy declarative models for sessions and messages.

Invariants:
    - All models inherit from Base (db/base.py)
    - CoachingSession is the aggregate root; Message rows are owned by it

Design Decisions:
    - One file per entity
    - All models imported here so string-based relationship() references resolve
"""

from engcoach.models.session import CoachingSession  # noqa: F401
from engcoach.models.message import Message  # noqa: F401

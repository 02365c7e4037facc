"""
XFound Backend — Application Package
======================================

Campus lost-and-found and exchange marketplace: listings with photos,
accounts, and real-time chat between a listing's owner and interested users.

Layers:
    ┌─────────────────────────────────────┐
    │  Routes (HTTP + /ws/chat socket)    │  ← transport concerns only
    ├─────────────────────────────────────┤
    │  Services                           │  ← rules, relay, presence
    ├─────────────────────────────────────┤
    │  Models & Schemas                   │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database                           │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"

"""
Praxis OS Backend: Application Package
=======================================

What: Practice-management API for physiotherapy practices (patients,
      courses, enrollments, push reminders).

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Pipeline (Authorization stages)   │  ← session, role, id, payload, owner
    ├─────────────────────────────────────┤
    │         Services (Data operations)  │  ← one call per request
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes compose pipeline stages and call a service; errors travel as
    PraxisError subclasses and are turned into responses in main.py.
"""

__version__ = "1.0.0"

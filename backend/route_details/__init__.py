"""
Route Details Backend: Application Package Initializer
========================================================

What: Marks the `route_details` directory as a Python package.
Who:  Imported by uvicorn (`route_details.main:app`), Alembic, and pytest.

Architecture Note:
    The backend is layered; every request flows top to bottom and back:

    ┌──────────────────────────────────────────────┐
    │  Routes (HTTP)      │  Messaging (TCP)       │  ← transport adapters
    ├──────────────────────────────────────────────┤
    │  Route Handlers (envelope + status policy)   │  ← shared by both adapters
    ├──────────────────────────────────────────────┤
    │  Validation   │   Route Service (queries)    │  ← business rules
    ├──────────────────────────────────────────────┤
    │  Models & Schemas (SQLAlchemy + Pydantic)    │
    ├──────────────────────────────────────────────┤
    │  Database (async SQLAlchemy sessions)        │
    └──────────────────────────────────────────────┘

    The HTTP routes and the message patterns never talk to the service
    directly; both go through `services.route_handlers`, so the two
    transports cannot drift apart.
"""

__version__ = "1.0.0"
